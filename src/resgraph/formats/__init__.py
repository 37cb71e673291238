from typing import Callable, Dict, Optional

from ..binary.constants import (
    KIND_ENVIRONMENT,
    KIND_MODEL,
    KIND_TERRAIN,
    KIND_TEXTURE,
    KIND_TEXTURE_SEQUENCE,
)
from ..binary.errors import E_MAGIC, format_error
from .model import parse_animation_track, parse_material_swap, parse_model
from .models import (
    AnimationTrack,
    Environment,
    MaterialSwap,
    Model,
    Ref,
    RefSlot,
    Resource,
    TerrainTable,
    Texture,
    TextureSequence,
)
from .textures import parse_texture, parse_texture_sequence
from .world import parse_environment, parse_terrain

# Kinds addressable by ResourceKey. Model siblings are parsed with their base.
PARSERS: Dict[bytes, Callable[..., Resource]] = {
    KIND_TEXTURE: parse_texture,
    KIND_TEXTURE_SEQUENCE: parse_texture_sequence,
    KIND_TERRAIN: parse_terrain,
    KIND_ENVIRONMENT: parse_environment,
    KIND_MODEL: parse_model,
}


def parse(
    buffer: bytes,
    kind: bytes,
    *,
    animation: Optional[bytes] = None,
    materials: Optional[bytes] = None,
    name: str = "",
) -> Resource:
    parser = PARSERS.get(kind)
    if parser is None:
        raise format_error(
            f"No parser for resource kind {kind!r}",
            E_MAGIC,
            kind=kind.decode("latin-1"),
        )
    if kind == KIND_MODEL:
        return parse_model(buffer, animation, materials, name=name)
    return parser(buffer)


__all__ = [
    "PARSERS",
    "parse",
    "parse_texture",
    "parse_texture_sequence",
    "parse_terrain",
    "parse_environment",
    "parse_model",
    "parse_animation_track",
    "parse_material_swap",
    "Resource",
    "Ref",
    "RefSlot",
    "Texture",
    "TextureSequence",
    "TerrainTable",
    "Environment",
    "Model",
    "AnimationTrack",
    "MaterialSwap",
]
