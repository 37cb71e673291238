"""High-level API for resgraph."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

from .binary.constants import KIND_MODEL
from .binary.errors import E_MAGIC, format_error
from .config import LoaderConfig
from .formats.models import Model, Resource
from .graph.archive import Archive
from .graph.cache import ArtifactCache, Identity, ResourceCache
from .graph.fetch import Fetcher, FileFetcher
from .graph.keys import ResourceKey
from .graph.loader import AssetLoader
from .logging import get_logger

__all__ = [
    "AssetSession",
    "load_models_from_buffer",
    "describe_archive",
    "session_from_config",
]

T = TypeVar("T")

_BUFFER_ID = "<buffer>"


class AssetSession:
    """A loader plus the artifacts a consumer derived from its resources.

    Unloading an archive, directly through ``loader.unload`` or via
    ``close``, tears down the artifacts derived from it first, so derived
    objects never outlive the data they were built from.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        config: Optional[LoaderConfig] = None,
        cache: Optional[ResourceCache] = None,
        device: Any = None,
    ) -> None:
        self.config = config or LoaderConfig()
        self.device = device
        self.loader = AssetLoader(fetcher, cache, self.config)
        self.artifacts = ArtifactCache()
        self.loader.on_unload(
            lambda archive: self.artifacts.destroy(self.device, archive)
        )

    async def preload(self) -> List[Archive]:
        """Open every archive listed in the config's ``archives``."""
        return [await self.loader.open_archive(a) for a in self.config.archives]

    async def load_resource(self, key: ResourceKey) -> Resource:
        return await self.loader.load_resource(key)

    def get_or_create_derived(
        self, source: Identity, factory: Callable[[], T], slot: str = ""
    ) -> T:
        return self.artifacts.get_or_create(source, factory, slot)

    def close(self, device: Any = None) -> int:
        if device is None:
            device = self.device
        released = self.artifacts.destroy(device)
        self.loader.unload()
        return released


def session_from_config(config: LoaderConfig) -> AssetSession:
    fetcher = FileFetcher(Path(config.asset_root), config.max_file_size)
    return AssetSession(fetcher, config)


def load_models_from_buffer(buffer: bytes) -> List[Model]:
    """Every model in ``buffer`` (archive or bare model), siblings attached."""
    archive = Archive.from_buffer(_BUFFER_ID, buffer)
    count = archive.count(KIND_MODEL)
    if count == 0:
        raise format_error(
            "Buffer holds no BMD3 model", E_MAGIC, root=archive.container.name
        )
    models = [
        archive.parse(ResourceKey(_BUFFER_ID, KIND_MODEL, i))
        for i in range(count)
    ]
    get_logger().debug("Loaded %d models from buffer", len(models))
    return models  # type: ignore[return-value]


def describe_archive(buffer: bytes, name: str = _BUFFER_ID) -> dict:
    return Archive.from_buffer(name, buffer).describe()
