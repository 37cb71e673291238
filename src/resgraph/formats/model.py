"""BMD3 model decoder and its optional sibling files.

A model is stored as up to three files sharing a base name: the geometry
(``name.bmd``), a texture-animation track (``name.btk``) and a material
swap table (``name.bmt``). Only the geometry is required; a missing
sibling leaves the corresponding field ``None``.
"""

from __future__ import annotations

import struct
from typing import Optional

from ..binary.chunks import (
    ChunkTable,
    decode_chunks,
    read_chunk_table,
    read_string_table,
)
from ..binary.constants import KIND_ANIMATION, KIND_MATERIAL_SWAP, KIND_MODEL
from ..binary.errors import E_RANGE, format_error
from ..binary.reader import BinaryReader
from .common import check_version, expect_count, read_records
from .models import AnimationTrack, MaterialSwap, Model, Shape, TexTrack

__all__ = [
    "parse_model",
    "parse_animation_track",
    "parse_material_swap",
]

TAG_INF1 = b"INF1"
TAG_VTX1 = b"VTX1"
TAG_SHP1 = b"SHP1"
TAG_MAT3 = b"MAT3"
TAG_TEX1 = b"TEX1"
TAG_TTK1 = b"TTK1"

# Version 2 adds a DRW1 chunk; readers without a decoder for it skip it.
MODEL_VERSIONS = (1, 2)
ANIMATION_VERSIONS = (1,)
MATERIAL_SWAP_VERSIONS = (1,)

_TRACK = struct.Struct(">HHff")


def _info(reader: BinaryReader, table: ChunkTable):
    flags = reader.u16()
    reader.skip(2)
    return flags, reader.u32()


def _positions(reader: BinaryReader, table: ChunkTable):
    return tuple(read_records(reader, "fff", 12))


def _shapes(reader: BinaryReader, table: ChunkTable):
    count = reader.u16()
    reader.skip(2)
    shapes = []
    for _ in range(count):
        material = reader.u16()
        reader.skip(2)
        n = reader.u32()
        shapes.append(Shape(material, reader.array("H", n) if n else ()))
    return tuple(shapes)


def _string_table(reader: BinaryReader, table: ChunkTable):
    return read_string_table(reader)


_MODEL_DECODERS = {
    TAG_INF1: _info,
    TAG_VTX1: _positions,
    TAG_SHP1: _shapes,
    TAG_MAT3: _string_table,
    TAG_TEX1: _string_table,
}


def parse_model(
    base: bytes,
    animation: Optional[bytes] = None,
    materials: Optional[bytes] = None,
    name: str = "",
) -> Model:
    table = read_chunk_table(base, KIND_MODEL)
    check_version(table, MODEL_VERSIONS)
    decoded, unknown = decode_chunks(
        table, base, _MODEL_DECODERS, required=(TAG_INF1, TAG_VTX1, TAG_SHP1)
    )
    flags, vertex_count = decoded[TAG_INF1]
    positions = decoded[TAG_VTX1]
    expect_count(table, TAG_VTX1, len(positions), vertex_count, "vertices")
    shapes = decoded[TAG_SHP1]
    material_names = decoded.get(TAG_MAT3, ())
    for i, shape in enumerate(shapes):
        if material_names and shape.material >= len(material_names):
            raise format_error(
                f"Shape {i} uses material {shape.material}, only "
                f"{len(material_names)} defined",
                E_RANGE,
                kind="BMD3",
                chunk="SHP1",
            )
        if shape.indices and max(shape.indices) >= vertex_count:
            raise format_error(
                f"Shape {i} indexes vertex {max(shape.indices)}, only "
                f"{vertex_count} present",
                E_RANGE,
                kind="BMD3",
                chunk="SHP1",
            )
    return Model(
        version=table.version,
        unknown_chunks=unknown,
        name=name,
        flags=flags,
        positions=positions,
        shapes=shapes,
        material_names=material_names,
        texture_names=decoded.get(TAG_TEX1, ()),
        animation=(
            parse_animation_track(animation) if animation is not None else None
        ),
        material_swap=(
            parse_material_swap(materials) if materials is not None else None
        ),
    )


def _tracks(reader: BinaryReader, table: ChunkTable):
    loop_mode = reader.u8()
    reader.skip(1)
    duration = reader.u16()
    count = reader.u16()
    reader.skip(2)
    tracks = []
    for _ in range(count):
        material, _pad, s, t = reader.unpack(_TRACK)
        tracks.append(TexTrack(material, s, t))
    return loop_mode, duration, tuple(tracks)


def parse_animation_track(buffer: bytes) -> AnimationTrack:
    table = read_chunk_table(buffer, KIND_ANIMATION)
    check_version(table, ANIMATION_VERSIONS)
    decoded, unknown = decode_chunks(
        table, buffer, {TAG_TTK1: _tracks}, required=(TAG_TTK1,)
    )
    loop_mode, duration, tracks = decoded[TAG_TTK1]
    return AnimationTrack(
        version=table.version,
        unknown_chunks=unknown,
        loop_mode=loop_mode,
        duration=duration,
        tracks=tracks,
    )


def parse_material_swap(buffer: bytes) -> MaterialSwap:
    table = read_chunk_table(buffer, KIND_MATERIAL_SWAP)
    check_version(table, MATERIAL_SWAP_VERSIONS)
    decoded, unknown = decode_chunks(
        table,
        buffer,
        {TAG_MAT3: _string_table, TAG_TEX1: _string_table},
        required=(TAG_MAT3,),
    )
    return MaterialSwap(
        version=table.version,
        unknown_chunks=unknown,
        material_names=decoded[TAG_MAT3],
        texture_names=decoded.get(TAG_TEX1, ()),
    )
