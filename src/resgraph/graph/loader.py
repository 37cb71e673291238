"""Asynchronous archive loading and resource resolution.

Fetching is the only suspension point. Once an archive's bytes are in hand,
decompression, container parsing, resource decoding and reference
resolution all run synchronously, so no other task can observe a
half-resolved graph.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from ..binary.errors import FormatError
from ..config import LoaderConfig
from ..formats.models import Resource
from ..logging import get_logger
from ..reporting import TaskStatus, get_reporter, task
from .archive import Archive
from .cache import InFlight, ResourceCache
from .fetch import Fetcher
from .keys import ResourceKey
from .resolver import Resolver

__all__ = ["AssetLoader"]


class AssetLoader:
    def __init__(
        self,
        fetcher: Fetcher,
        cache: Optional[ResourceCache] = None,
        config: Optional[LoaderConfig] = None,
    ) -> None:
        self.fetcher = fetcher
        self.cache = cache if cache is not None else ResourceCache()
        self.config = config or LoaderConfig()
        self._archives: InFlight[Archive] = InFlight()
        self._unload_hooks: List[Callable[[Optional[str]], object]] = []

    @property
    def archives(self) -> Dict[str, Archive]:
        return {a.id: a for a in self._archives.values()}

    async def open_archive(self, path: str) -> Archive:
        """Fetch and parse ``path`` once; concurrent callers share the work."""
        return await self._archives.get_or_run(path, lambda: self._open(path))

    async def _open(self, path: str) -> Archive:
        with task("archive.fetch", f"Fetch {path}", archive=path) as rec:
            raw = await self.fetcher.fetch(path)
            rec.meta["bytes"] = len(raw)
        with task("archive.parse", f"Parse {path}", archive=path) as rec:
            try:
                archive = Archive.from_buffer(
                    path, raw, decompress_nested=self.config.decompress_nested
                )
            except FormatError as e:
                raise e.add_context(archive=path)
            rec.meta["files"] = len(archive.container.files)
            rec.meta["directories"] = len(archive.container.directories)
        kinds = ",".join(
            f"{k.decode('latin-1')}:{n}" for k, n in sorted(archive.kinds.items())
        )
        get_reporter().status(
            f"Archive summary: archive={path} bytes={len(raw)} "
            f"files={len(archive.container.files)} kinds={kinds or '-'}"
        )
        return archive

    def resolve(self, roots: Iterable[ResourceKey]) -> List[Resource]:
        """Resolve keys whose archives are already open."""
        return Resolver(self.archives, self.cache).resolve(roots)

    async def load_resource(self, key: ResourceKey) -> Resource:
        with task("resource.load", f"Load {key}", key=str(key)) as rec:
            hit = self.cache.get(key)
            if hit is not None:
                rec.status = TaskStatus.CACHED
                return hit
            await self.open_archive(key.archive)
            # No await between here and the commit inside resolve().
            before = len(self.cache)
            resource = self.resolve([key])[0]
            rec.meta["resources"] = len(self.cache) - before
        get_reporter().status(
            f"Load summary: key={key} resources={rec.meta['resources']} "
            f"cached={len(self.cache)}"
        )
        return resource

    async def load_resources(self, keys: Iterable[ResourceKey]) -> List[Resource]:
        """Resolve several roots in a single walk."""
        keys = list(keys)
        for archive in dict.fromkeys(k.archive for k in keys):
            await self.open_archive(archive)
        return self.resolve(keys)

    def loaded_of_kind(self, kind: bytes) -> List[Resource]:
        return self.cache.loaded_of_kind(kind)

    def on_unload(self, hook: Callable[[Optional[str]], object]) -> None:
        """Call ``hook(archive)`` before an archive (or ``None``: all) is dropped."""
        self._unload_hooks.append(hook)

    def unload(self, archive: Optional[str] = None) -> None:
        """Drop one archive and its resources, or everything."""
        for hook in self._unload_hooks:
            hook(archive)
        if archive is None:
            self.cache.clear()
            self._archives.clear()
        else:
            self.cache.drop_archive(archive)
            self._archives.forget(archive)
        get_logger().debug("Unloaded %s", archive or "all archives")
