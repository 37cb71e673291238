"""UVTR terrain tile table and UVEN environment decoders."""

from __future__ import annotations

from ..binary.chunks import (
    ChunkTable,
    decode_chunks,
    read_chunk_table,
    read_string_table,
)
from ..binary.constants import KIND_ENVIRONMENT, KIND_TERRAIN, KIND_TEXTURE
from ..binary.reader import BinaryReader
from .common import check_version, expect_count, read_records
from .models import Environment, TerrainTable, Tile, ref_or_none

__all__ = ["parse_terrain", "parse_environment"]

TAG_TRHD = b"TRHD"
TAG_TILE = b"TILE"
TAG_NAME = b"NAME"
TAG_ENHD = b"ENHD"
TAG_SKYT = b"SKYT"
TAG_TERR = b"TERR"

TERRAIN_VERSIONS = (1,)
ENVIRONMENT_VERSIONS = (1,)


def _terrain_header(reader: BinaryReader, table: ChunkTable):
    return reader.u16(), reader.u16(), reader.f32(), reader.f32()


def _tiles(reader: BinaryReader, table: ChunkTable):
    # i16 texture index, u16 flags, f32 height
    return read_records(reader, "hHf", 8)


def _names(reader: BinaryReader, table: ChunkTable):
    return read_string_table(reader)


_TERRAIN_DECODERS = {
    TAG_TRHD: _terrain_header,
    TAG_TILE: _tiles,
    TAG_NAME: _names,
}


def parse_terrain(buffer: bytes) -> TerrainTable:
    table = read_chunk_table(buffer, KIND_TERRAIN)
    check_version(table, TERRAIN_VERSIONS)
    decoded, unknown = decode_chunks(
        table, buffer, _TERRAIN_DECODERS, required=(TAG_TRHD, TAG_TILE)
    )
    columns, rows, cell_width, cell_depth = decoded[TAG_TRHD]
    raw_tiles = decoded[TAG_TILE]
    expect_count(table, TAG_TILE, len(raw_tiles), columns * rows, "tiles")
    return TerrainTable(
        version=table.version,
        unknown_chunks=unknown,
        columns=columns,
        rows=rows,
        cell_width=cell_width,
        cell_depth=cell_depth,
        tiles=[
            Tile(ref_or_none(KIND_TEXTURE, tex), flags, height)
            for tex, flags, height in raw_tiles
        ],
        layer_names=decoded.get(TAG_NAME, ()),
    )


def _environment_header(reader: BinaryReader, table: ChunkTable):
    r, g, b, flags = reader.u8(), reader.u8(), reader.u8(), reader.u8()
    return (r, g, b), bool(flags & 1), reader.f32(), reader.f32()


def _sky_textures(reader: BinaryReader, table: ChunkTable):
    count = reader.u16()
    reader.skip(2)
    return reader.array("h", count) if count else ()


def _terrain_link(reader: BinaryReader, table: ChunkTable):
    index = reader.i16()
    reader.skip(2)
    return ref_or_none(KIND_TERRAIN, index)


_ENVIRONMENT_DECODERS = {
    TAG_ENHD: _environment_header,
    TAG_SKYT: _sky_textures,
    TAG_TERR: _terrain_link,
}


def parse_environment(buffer: bytes) -> Environment:
    table = read_chunk_table(buffer, KIND_ENVIRONMENT)
    check_version(table, ENVIRONMENT_VERSIONS)
    decoded, unknown = decode_chunks(
        table, buffer, _ENVIRONMENT_DECODERS, required=(TAG_ENHD,)
    )
    clear_color, fog_enabled, fog_near, fog_far = decoded[TAG_ENHD]
    return Environment(
        version=table.version,
        unknown_chunks=unknown,
        clear_color=clear_color,
        fog_enabled=fog_enabled,
        fog_near=fog_near,
        fog_far=fog_far,
        sky_textures=[
            ref_or_none(KIND_TEXTURE, i) for i in decoded.get(TAG_SKYT, ())
        ],
        terrain=decoded.get(TAG_TERR),
    )
