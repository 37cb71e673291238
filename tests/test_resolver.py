import pytest

from resgraph.binary.errors import UnresolvedReferenceError
from resgraph.formats.models import Ref
from resgraph.graph.archive import Archive
from resgraph.graph.cache import ResourceCache
from resgraph.graph.keys import ResourceKey
from resgraph.graph.resolver import Resolver
from builders import build_rarc, environment, terrain, texture, texture_sequence

ARC = "scene.arc"


def _archive(files):
    return Archive.from_buffer(ARC, build_rarc(files))


def _cyclic():
    return _archive(
        [
            ("tex/t0.bti", texture(sequence=0)),
            ("tex/t1.bti", texture(width=2)),
            ("seq/s0.bts", texture_sequence([(0, 0.5), (1, 0.5)])),
        ]
    )


def test_cycle_between_texture_and_sequence():
    cache = ResourceCache()
    (tex0,) = Resolver({ARC: _cyclic()}, cache).resolve(
        [ResourceKey.of(ARC, "UVTX", 0)]
    )
    seq = tex0.sequence
    assert seq.key == ResourceKey.of(ARC, "UVTS", 0)
    assert seq.frames[0].texture is tex0
    assert seq.frames[1].texture.width == 2
    assert len(cache) == 3
    for key in cache:
        assert cache.get(key).pending_refs() == []


def test_resolution_reuses_cached_instances():
    cache = ResourceCache()
    resolver = Resolver({ARC: _cyclic()}, cache)
    (tex1,) = resolver.resolve([ResourceKey.of(ARC, "UVTX", 1)])
    assert len(cache) == 1
    (seq,) = resolver.resolve([ResourceKey.of(ARC, "UVTS", 0)])
    assert seq.frames[1].texture is tex1
    (again,) = resolver.resolve([ResourceKey.of(ARC, "UVTS", 0)])
    assert again is seq


def test_shared_dependency_is_one_instance():
    arc = _archive(
        [
            ("t.bti", texture()),
            ("g.bin", terrain(2, 1, [(0, 0, 0.0), (0, 0, 1.0)])),
            ("e.bin", environment(sky=[0, 0], terrain_index=0)),
        ]
    )
    cache = ResourceCache()
    (env,) = Resolver({ARC: arc}, cache).resolve([ResourceKey.of(ARC, "UVEN", 0)])
    tex = env.sky_textures[0]
    assert env.sky_textures[1] is tex
    assert all(t.texture is tex for t in env.terrain.tiles)
    assert len(cache) == 3


def test_dangling_reference_leaves_cache_clean():
    arc = _archive(
        [
            ("t.bti", texture()),
            ("e.bin", environment(sky=[0], terrain_index=5)),
        ]
    )
    cache = ResourceCache()
    with pytest.raises(UnresolvedReferenceError) as ei:
        Resolver({ARC: arc}, cache).resolve([ResourceKey.of(ARC, "UVEN", 0)])
    err = ei.value
    assert err.code == "E_REF"
    assert err.context["target"] == f"{ARC}:UVTR[5]"
    assert err.context["key"] == f"{ARC}:UVEN[0]"
    assert len(cache) == 0


def test_failed_walk_can_be_retried_for_other_roots():
    arc = _archive(
        [
            ("t.bti", texture()),
            ("e.bin", environment(sky=[0, 3])),
        ]
    )
    cache = ResourceCache()
    resolver = Resolver({ARC: arc}, cache)
    with pytest.raises(UnresolvedReferenceError):
        resolver.resolve([ResourceKey.of(ARC, "UVEN", 0)])
    assert len(cache) == 0
    (tex,) = resolver.resolve([ResourceKey.of(ARC, "UVTX", 0)])
    assert cache.get(ResourceKey.of(ARC, "UVTX", 0)) is tex


def test_root_out_of_range():
    with pytest.raises(UnresolvedReferenceError):
        Resolver({ARC: _cyclic()}, ResourceCache()).resolve(
            [ResourceKey.of(ARC, "UVTX", 9)]
        )


def test_unknown_archive():
    with pytest.raises(UnresolvedReferenceError) as ei:
        Resolver({}, ResourceCache()).resolve([ResourceKey.of("nope", "UVTX", 0)])
    assert ei.value.context["archive"] == "nope"


def test_parsed_but_unresolved_resource_holds_refs():
    tex = _cyclic().parse(ResourceKey.of(ARC, "UVTX", 0))
    assert tex.sequence == Ref(b"UVTS", 0)
    assert tex.key == ResourceKey.of(ARC, "UVTX", 0)


def test_negative_root_index_is_unresolved():
    # the plain constructor skips ResourceKey.of's validation
    with pytest.raises(UnresolvedReferenceError) as ei:
        Resolver({ARC: _cyclic()}, ResourceCache()).resolve(
            [ResourceKey(ARC, b"UVTX", -1)]
        )
    assert ei.value.context["key"] == f"{ARC}:UVTX[-1]"


def test_dependencies_are_the_resolved_targets():
    arc = _archive(
        [
            ("t.bti", texture()),
            ("g.bin", terrain(1, 1, [(0, 0, 0.0)])),
            ("e.bin", environment(sky=[0], terrain_index=0)),
        ]
    )
    (env,) = Resolver({ARC: arc}, ResourceCache()).resolve(
        [ResourceKey.of(ARC, "UVEN", 0)]
    )
    sky, ground = env.dependencies()
    assert sky is env.sky_textures[0]
    assert ground is env.terrain
    assert ground.dependencies() == [sky]
    assert sky.dependencies() == []
