"""Cross-reference resolution.

Parsed resources carry ``Ref`` placeholders. ``Resolver.resolve`` replaces
each one with the resource it names, parsing targets on demand, and only
then publishes the whole batch to the cache:

1. roots not already cached are parsed and staged;
2. breadth-first over staged resources, each ``Ref`` slot is rewritten to a
   cached resource, deferred if its target is staged in this walk (a cycle
   or a shared dependency), or parsed, staged and queued;
3. deferred slots are attached once every target exists;
4. the batch is checked for leftover ``Ref`` values and committed.

Nothing reaches the cache unless the whole walk succeeds.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, Iterable, List, Mapping, Protocol, Tuple

from ..binary.errors import E_REF, ResgraphError, UnresolvedReferenceError
from ..formats.models import Ref, RefSlot, Resource
from ..logging import get_logger
from .cache import ResourceCache
from .keys import ResourceKey

__all__ = ["ResourceSource", "Resolver"]


class ResourceSource(Protocol):
    def count(self, kind: bytes) -> int: ...

    def parse(self, key: ResourceKey) -> Resource: ...


class Resolver:
    def __init__(
        self, sources: Mapping[str, ResourceSource], cache: ResourceCache
    ) -> None:
        self.sources = sources
        self.cache = cache

    def _source(self, archive: str) -> ResourceSource:
        try:
            return self.sources[archive]
        except KeyError:
            raise UnresolvedReferenceError(
                code=E_REF,
                message=f"Archive {archive!r} is not open",
                context={"archive": archive},
            ) from None

    def _check_exists(
        self, target: ResourceKey, referrer: ResourceKey, slot: RefSlot
    ) -> None:
        count = self._source(target.archive).count(target.kind)
        if not 0 <= target.index < count:
            raise UnresolvedReferenceError(
                code=E_REF,
                message=(
                    f"{referrer} refers to {target.kind.decode('latin-1')} "
                    f"#{target.index} but the archive holds {count}"
                ),
                context={
                    "archive": target.archive,
                    "key": str(referrer),
                    "target": str(target),
                    "field": repr(slot),
                },
            )

    def resolve(self, roots: Iterable[ResourceKey]) -> List[Resource]:
        log = get_logger()
        staged: Dict[ResourceKey, Resource] = {}
        queue: Deque[ResourceKey] = deque()
        deferred: List[Tuple[RefSlot, ResourceKey]] = []

        def stage(key: ResourceKey) -> Resource:
            resource = self._source(key.archive).parse(key)
            staged[key] = resource
            queue.append(key)
            log.debug("Staged %s", key)
            return resource

        results: List[Resource] = []
        for key in roots:
            if not 0 <= key.index < self._source(key.archive).count(key.kind):
                raise UnresolvedReferenceError(
                    code=E_REF,
                    message=f"No resource {key}",
                    context={"archive": key.archive, "key": str(key)},
                )
            hit = self.cache.get(key) or staged.get(key)
            results.append(hit if hit is not None else stage(key))

        while queue:
            key = queue.popleft()
            for slot in staged[key].ref_slots():
                ref = slot.get()
                if not isinstance(ref, Ref):
                    continue
                target = ResourceKey(key.archive, ref.kind, ref.index)
                hit = self.cache.get(target)
                if hit is not None:
                    slot.set(hit)
                elif target in staged:
                    deferred.append((slot, target))
                else:
                    self._check_exists(target, key, slot)
                    slot.set(stage(target))

        for slot, target in deferred:
            slot.set(staged[target])

        for key, resource in staged.items():
            left = resource.pending_refs()
            if left:
                raise ResgraphError(
                    code=E_REF,
                    message=f"{key} still holds {len(left)} unresolved refs",
                    context={"key": str(key), "fields": [repr(s) for s in left]},
                )

        for key, resource in staged.items():
            self.cache.get_or_load(key, lambda r=resource: r)
        if staged:
            log.info(
                "Resolved %d resources (%d deferred edges)",
                len(staged),
                len(deferred),
            )
        return results
