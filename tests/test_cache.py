import asyncio

import pytest

from resgraph.formats.models import Texture
from resgraph.graph.cache import ArtifactCache, InFlight, ResourceCache
from resgraph.graph.keys import ResourceKey


def _tex(key=None):
    t = Texture(width=1, height=1, format=0)
    t.key = key
    return t


def test_key_validation_and_str():
    key = ResourceKey.of("a.arc", "UVTX", 2)
    assert key.kind == b"UVTX"
    assert str(key) == "a.arc:UVTX[2]"
    with pytest.raises(ValueError):
        ResourceKey.of("a.arc", "TOOLONG", 0)
    with pytest.raises(ValueError):
        ResourceKey.of("a.arc", b"UVTX", -1)


def test_get_or_load_runs_loader_once():
    cache = ResourceCache()
    key = ResourceKey.of("a", "UVTX", 0)
    calls = []

    def loader():
        calls.append(1)
        return _tex(key)

    first = cache.get_or_load(key, loader)
    second = cache.get_or_load(key, loader)
    assert first is second
    assert len(calls) == 1
    assert key in cache and len(cache) == 1


def test_none_values_are_memoized():
    key = ResourceKey.of("a", "UVTX", 0)
    calls = []

    def nothing():
        calls.append(1)
        return None

    cache = ResourceCache()
    assert cache.get_or_load(key, nothing) is None
    assert cache.get_or_load(key, nothing) is None
    arts = ArtifactCache()
    assert arts.get_or_create(key, nothing) is None
    assert arts.get_or_create(key, nothing) is None
    assert len(calls) == 2
    assert key in cache and key in arts


def test_failed_loader_inserts_nothing():
    cache = ResourceCache()
    key = ResourceKey.of("a", "UVTX", 0)

    def boom():
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        cache.get_or_load(key, boom)
    assert key not in cache
    # retry after failure succeeds
    assert cache.get_or_load(key, lambda: _tex(key)).key == key


def test_reentrant_load_rejected():
    cache = ResourceCache()
    key = ResourceKey.of("a", "UVTX", 0)
    with pytest.raises(RuntimeError, match="Re-entrant"):
        cache.get_or_load(key, lambda: cache.get_or_load(key, _tex))


def test_loaded_of_kind_and_drop_archive():
    cache = ResourceCache()
    for arc, kind, i in [("a", "UVTX", 0), ("a", "UVTR", 0), ("b", "UVTX", 0)]:
        key = ResourceKey.of(arc, kind, i)
        cache.get_or_load(key, lambda key=key: _tex(key))
    assert len(cache.loaded_of_kind(b"UVTX")) == 2
    assert cache.drop_archive("a") == 2
    assert [str(k) for k in cache] == ["b:UVTX[0]"]


class _Gpu:
    def __init__(self):
        self.destroyed_with = None

    def destroy(self, device):
        self.destroyed_with = device


def test_artifacts_keyed_by_resource_key():
    arts = ArtifactCache()
    key = ResourceKey.of("a", "UVTX", 0)
    made = []

    def factory():
        made.append(_Gpu())
        return made[-1]

    # two distinct objects with the same key share one artifact
    a = arts.get_or_create(_tex(key), factory)
    b = arts.get_or_create(_tex(key), factory)
    c = arts.get_or_create(key, factory)
    assert a is b is c
    assert len(made) == 1
    other = arts.get_or_create(key, factory, slot="mip")
    assert other is not a
    assert len(arts) == 2


def test_artifact_needs_a_key():
    with pytest.raises(ValueError):
        ArtifactCache().get_or_create(_tex(), object)


def test_destroy_releases_and_forgets():
    arts = ArtifactCache()
    gpu = arts.get_or_create(ResourceKey.of("a", "UVTX", 0), _Gpu)
    arts.get_or_create(ResourceKey.of("a", "UVTX", 1), lambda: "plain")
    assert arts.destroy("device0") == 1
    assert gpu.destroyed_with == "device0"
    assert len(arts) == 0 and arts.sources() == []


def test_inflight_shares_one_run():
    calls = []

    async def work():
        calls.append(1)
        await asyncio.sleep(0)
        return object()

    async def main():
        flight: InFlight[object] = InFlight()
        results = await asyncio.gather(
            *(flight.get_or_run("k", work) for _ in range(5))
        )
        again = await flight.get_or_run("k", work)
        return results, again

    results, again = asyncio.run(main())
    assert len(calls) == 1
    assert all(r is results[0] for r in results)
    assert again is results[0]


def test_inflight_failure_is_retried():
    attempts = []

    async def flaky():
        attempts.append(1)
        await asyncio.sleep(0)
        if len(attempts) == 1:
            raise OSError("first try fails")
        return "ok"

    async def main():
        flight: InFlight[str] = InFlight()
        with pytest.raises(OSError):
            await flight.get_or_run("k", flaky)
        assert "k" not in flight
        return await flight.get_or_run("k", flaky)

    assert asyncio.run(main()) == "ok"
    assert len(attempts) == 2


def test_destroy_one_archive_keeps_the_rest():
    arts = ArtifactCache()
    a = arts.get_or_create(ResourceKey.of("a", "UVTX", 0), _Gpu)
    b = arts.get_or_create(ResourceKey.of("b", "UVTX", 0), _Gpu)
    assert arts.destroy("dev", archive="a") == 1
    assert a.destroyed_with == "dev" and b.destroyed_with is None
    assert ResourceKey.of("a", "UVTX", 0) not in arts
    assert arts.get_or_create(ResourceKey.of("b", "UVTX", 0), _Gpu) is b
    assert arts.get_or_create(ResourceKey.of("a", "UVTX", 0), _Gpu) is not a
