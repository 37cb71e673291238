"""UVTX texture and UVTS texture-sequence decoders.

A texture may point at the sequence it animates through (``SEQA``), and a
sequence lists the textures making up its frames (``FRMS``): the two kinds
reference each other, so both leave their links as ``Ref`` for the resolver.

UVTX version 1 predates the mip level count and flags in ``THDR``; it is
decoded with ``levels=1, flags=0``.
"""

from __future__ import annotations

import struct
from typing import Tuple

from ..binary.chunks import ChunkTable, decode_chunks, read_chunk_table
from ..binary.constants import (
    KIND_TEXTURE,
    KIND_TEXTURE_SEQUENCE,
    MAX_SCROLL_ANIMS,
    NO_INDEX,
)
from ..binary.errors import E_RANGE, format_error
from ..binary.reader import BinaryReader
from .common import check_version, expect_count, read_records
from .models import (
    ScrollAnim,
    SequenceFrame,
    Texture,
    TextureSequence,
    ref_or_none,
)

__all__ = ["parse_texture", "parse_texture_sequence"]

TAG_THDR = b"THDR"
TAG_TXEL = b"TXEL"
TAG_SCRL = b"SCRL"
TAG_SEQA = b"SEQA"
TAG_SHDR = b"SHDR"
TAG_FRMS = b"FRMS"

TEXTURE_VERSIONS = (1, 2)
SEQUENCE_VERSIONS = (1,)

_SCROLL = struct.Struct(">ff")


def _texture_header(reader: BinaryReader, table: ChunkTable) -> Tuple[int, ...]:
    width = reader.u16()
    height = reader.u16()
    fmt = reader.u8()
    if table.version >= 2:
        levels = reader.u8()
        flags = reader.u16()
    else:
        reader.skip(1)
        levels, flags = 1, 0
    if width == 0 or height == 0 or levels == 0:
        raise format_error(
            f"Degenerate texture {width}x{height} with {levels} levels",
            E_RANGE,
        )
    return width, height, fmt, levels, flags


def _texels(reader: BinaryReader, table: ChunkTable) -> bytes:
    return reader.take(reader.remaining)


def _scroll_anims(
    reader: BinaryReader, table: ChunkTable
) -> Tuple[ScrollAnim, ...]:
    count = reader.u16()
    reader.skip(2)
    if count > MAX_SCROLL_ANIMS:
        raise format_error(
            f"{count} scroll animations, at most {MAX_SCROLL_ANIMS} allowed",
            E_RANGE,
        )
    return tuple(ScrollAnim(*reader.unpack(_SCROLL)) for _ in range(count))


def _sequence_link(reader: BinaryReader, table: ChunkTable):
    index = reader.i16()
    reader.skip(2)
    return ref_or_none(KIND_TEXTURE_SEQUENCE, index)


_TEXTURE_DECODERS = {
    TAG_THDR: _texture_header,
    TAG_TXEL: _texels,
    TAG_SCRL: _scroll_anims,
    TAG_SEQA: _sequence_link,
}


def parse_texture(buffer: bytes) -> Texture:
    table = read_chunk_table(buffer, KIND_TEXTURE)
    check_version(table, TEXTURE_VERSIONS)
    decoded, unknown = decode_chunks(
        table, buffer, _TEXTURE_DECODERS, required=(TAG_THDR, TAG_TXEL)
    )
    width, height, fmt, levels, flags = decoded[TAG_THDR]
    return Texture(
        version=table.version,
        unknown_chunks=unknown,
        width=width,
        height=height,
        format=fmt,
        levels=levels,
        flags=flags,
        texels=decoded[TAG_TXEL],
        scroll_anims=decoded.get(TAG_SCRL, ()),
        sequence=decoded.get(TAG_SEQA),
    )


def _sequence_header(reader: BinaryReader, table: ChunkTable):
    count = reader.u16()
    flags = reader.u16()
    return count, bool(flags & 1)


def _frames(reader: BinaryReader, table: ChunkTable):
    # u16 texture index, u16 pad, f32 duration
    return [
        (index, duration)
        for index, _pad, duration in read_records(reader, "HHf", 8)
    ]


_SEQUENCE_DECODERS = {
    TAG_SHDR: _sequence_header,
    TAG_FRMS: _frames,
}


def parse_texture_sequence(buffer: bytes) -> TextureSequence:
    table = read_chunk_table(buffer, KIND_TEXTURE_SEQUENCE)
    check_version(table, SEQUENCE_VERSIONS)
    decoded, unknown = decode_chunks(
        table, buffer, _SEQUENCE_DECODERS, required=(TAG_SHDR, TAG_FRMS)
    )
    count, looping = decoded[TAG_SHDR]
    raw_frames = decoded[TAG_FRMS]
    expect_count(table, TAG_FRMS, len(raw_frames), count, "frames")
    frames = [
        SequenceFrame(
            texture=ref_or_none(
                KIND_TEXTURE, NO_INDEX if index == 0xFFFF else index
            ),
            duration=duration,
        )
        for index, duration in raw_frames
    ]
    return TextureSequence(
        version=table.version,
        unknown_chunks=unknown,
        looping=looping,
        frames=frames,
    )
