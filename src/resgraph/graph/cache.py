"""Memoization layers.

- ResourceCache: ResourceKey -> parsed resource, lifetime of the loaded
  archives.
- ArtifactCache: ResourceKey (+ slot) -> consumer-built artifact, lifetime
  of a rendering session; ``destroy`` releases what the artifacts hold.
- InFlight: async get-or-run keyed by string, so concurrent callers share
  one fetch/parse.

None of these validate what they store.
"""

from __future__ import annotations

import asyncio
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Set,
    Tuple,
    TypeVar,
    Union,
)

from ..formats.models import Resource
from ..logging import get_logger
from .keys import ResourceKey

__all__ = ["ResourceCache", "ArtifactCache", "InFlight"]

T = TypeVar("T")


class ResourceCache:
    def __init__(self) -> None:
        self._entries: Dict[ResourceKey, Resource] = {}
        self._loading: Set[ResourceKey] = set()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ResourceKey]:
        return iter(self._entries)

    def get(self, key: ResourceKey) -> Optional[Resource]:
        return self._entries.get(key)

    def get_or_load(
        self, key: ResourceKey, loader: Callable[[], Resource]
    ) -> Resource:
        """Return the cached value for ``key``, running ``loader`` only on a miss.

        If ``loader`` raises, nothing is stored and a later call may retry.
        """
        if key in self._entries:
            return self._entries[key]
        if key in self._loading:
            raise RuntimeError(f"Re-entrant load of {key}")
        self._loading.add(key)
        try:
            value = loader()
        finally:
            self._loading.discard(key)
        self._entries[key] = value
        return value

    def loaded_of_kind(self, kind: bytes) -> List[Resource]:
        return [v for k, v in self._entries.items() if k.kind == kind]

    def drop_archive(self, archive: str) -> int:
        doomed = [k for k in self._entries if k.archive == archive]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()


Identity = Union[Resource, ResourceKey]


def _identity_key(source: Identity) -> ResourceKey:
    if isinstance(source, ResourceKey):
        return source
    key = getattr(source, "key", None)
    if not isinstance(key, ResourceKey):
        raise ValueError(
            f"{type(source).__name__} has no ResourceKey; load it through "
            "the loader before deriving artifacts from it"
        )
    return key


class ArtifactCache:
    """Session-scoped store for objects derived from resolved resources."""

    def __init__(self) -> None:
        self._artifacts: Dict[Tuple[ResourceKey, str], Any] = {}
        self._sources: Dict[ResourceKey, Identity] = {}

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, source: object) -> bool:
        try:
            key = _identity_key(source)  # type: ignore[arg-type]
        except ValueError:
            return False
        return any(k == key for k, _ in self._artifacts)

    def get_or_create(
        self, source: Identity, factory: Callable[[], T], slot: str = ""
    ) -> T:
        key = _identity_key(source)
        if (key, slot) in self._artifacts:
            return self._artifacts[(key, slot)]
        artifact = factory()
        self._artifacts[(key, slot)] = artifact
        if isinstance(source, Resource) or key not in self._sources:
            self._sources[key] = source
        return artifact

    def sources(self) -> List[Identity]:
        return list(self._sources.values())

    def destroy(self, device: Any = None, archive: Optional[str] = None) -> int:
        """Release artifacts that own external state, then forget them.

        With ``archive`` only artifacts derived from that archive go, so a
        reloaded resource never picks up one built from its predecessor.
        """
        doomed = [
            k for k in self._artifacts if archive is None or k[0].archive == archive
        ]
        released = 0
        try:
            for k in doomed:
                destroy = getattr(self._artifacts[k], "destroy", None)
                if callable(destroy):
                    destroy(device)
                    released += 1
        finally:
            for k in doomed:
                del self._artifacts[k]
                self._sources.pop(k[0], None)
        get_logger().debug(
            "Destroyed %d derived artifacts of %s", released, archive or "all archives"
        )
        return released


class InFlight(Generic[T]):
    def __init__(self) -> None:
        self._done: Dict[str, T] = {}
        self._pending: Dict[str, "asyncio.Task[T]"] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._done

    async def get_or_run(
        self, key: str, factory: Callable[[], Awaitable[T]]
    ) -> T:
        if key in self._done:
            return self._done[key]
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
        try:
            # One caller being cancelled must not cancel the shared work.
            value = await asyncio.shield(task)
        finally:
            if task.done() and self._pending.get(key) is task:
                del self._pending[key]
        self._done.setdefault(key, value)
        return self._done[key]

    def values(self) -> List[T]:
        return list(self._done.values())

    def forget(self, key: str) -> None:
        self._done.pop(key, None)

    def clear(self) -> None:
        self._done.clear()
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
