"""Chunked resource framing shared by every resource kind.

Layout (big-endian)::

    0x00  4   kind tag
    0x04  4   version
    0x08  4   total size (<= buffer length)
    0x0C  4   chunk count
    0x10  16  reserved
    0x20  ..  chunks: tag[4], size (u32, includes this 8-byte header), payload

Chunks are read strictly in sequence, so their ranges are disjoint by
construction; each must also fit inside the declared total size.
"""

from __future__ import annotations

from dataclasses import dataclass
import struct
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

from ..logging import get_logger
from .constants import CHUNK_HEADER_SIZE, RESOURCE_HEADER_SIZE
from .errors import (
    E_CHUNK_DUP,
    E_CHUNK_MISSING,
    E_MAGIC,
    E_RANGE,
    E_TRUNCATED,
    FormatError,
    format_error,
)
from .reader import BinaryReader, read_cstring, unpack_at

__all__ = [
    "ChunkHeader",
    "ChunkTable",
    "UnknownChunk",
    "ChunkDecoder",
    "read_chunk_table",
    "decode_chunks",
    "read_string_table",
    "tag_name",
]

_HEADER = struct.Struct(">4sIII16s")
_CHUNK = struct.Struct(">4sI")


def tag_name(tag: bytes) -> str:
    return tag.decode("latin-1")


@dataclass(frozen=True, slots=True)
class ChunkHeader:
    tag: bytes
    size: int
    offset: int

    @property
    def payload_offset(self) -> int:
        return self.offset + CHUNK_HEADER_SIZE

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(frozen=True, slots=True)
class UnknownChunk:
    tag: bytes
    size: int


@dataclass(frozen=True, slots=True)
class ChunkTable:
    kind: bytes
    version: int
    total_size: int
    chunks: Tuple[ChunkHeader, ...]

    def tags(self) -> List[bytes]:
        return [c.tag for c in self.chunks]


ChunkDecoder = Callable[[BinaryReader, ChunkTable], Any]


def read_chunk_table(buffer: bytes, kind: bytes) -> ChunkTable:
    tag, version, total_size, count, _reserved = unpack_at(
        _HEADER, buffer, 0, f"{tag_name(kind)} header"
    )
    if tag != kind:
        raise format_error(
            f"Expected {tag_name(kind)} resource, found {tag!r}",
            E_MAGIC,
            kind=tag_name(kind),
        )
    if total_size < RESOURCE_HEADER_SIZE or total_size > len(buffer):
        raise format_error(
            f"Declared size {total_size} outside "
            f"[{RESOURCE_HEADER_SIZE}, {len(buffer)}]",
            E_RANGE,
            kind=tag_name(kind),
        )
    chunks: List[ChunkHeader] = []
    pos = RESOURCE_HEADER_SIZE
    for i in range(count):
        if pos + CHUNK_HEADER_SIZE > total_size:
            raise format_error(
                f"Chunk table truncated at chunk {i} of {count}",
                E_TRUNCATED,
                kind=tag_name(kind),
                offset=pos,
            )
        ctag, size = _CHUNK.unpack_from(buffer, pos)
        if size < CHUNK_HEADER_SIZE or pos + size > total_size:
            raise format_error(
                f"Chunk {tag_name(ctag)} spans {pos}+{size}, "
                f"resource ends at {total_size}",
                E_RANGE,
                kind=tag_name(kind),
                chunk=tag_name(ctag),
                offset=pos,
            )
        chunks.append(ChunkHeader(ctag, size, pos))
        pos += size
    return ChunkTable(kind, version, total_size, tuple(chunks))


def decode_chunks(
    table: ChunkTable,
    buffer: bytes,
    decoders: Mapping[bytes, ChunkDecoder],
    required: Iterable[bytes] = (),
) -> Tuple[Dict[bytes, Any], Tuple[UnknownChunk, ...]]:
    """Run each known chunk through its decoder.

    Unknown tags are skipped by length and reported back; a missing
    required tag or a repeated known tag is a format error.
    """
    logger = get_logger()
    decoded: Dict[bytes, Any] = {}
    unknown: List[UnknownChunk] = []
    for chunk in table.chunks:
        decoder = decoders.get(chunk.tag)
        if decoder is None:
            logger.debug(
                "Skipping unknown %s chunk %s (%d bytes)",
                tag_name(table.kind),
                tag_name(chunk.tag),
                chunk.size,
            )
            unknown.append(UnknownChunk(chunk.tag, chunk.size))
            continue
        if chunk.tag in decoded:
            raise format_error(
                f"Duplicate {tag_name(chunk.tag)} chunk",
                E_CHUNK_DUP,
                kind=tag_name(table.kind),
                chunk=tag_name(chunk.tag),
            )
        reader = BinaryReader(
            buffer, chunk.payload_offset, chunk.end, tag_name(chunk.tag)
        )
        try:
            decoded[chunk.tag] = decoder(reader, table)
        except FormatError as e:
            raise e.add_context(
                kind=tag_name(table.kind), chunk=tag_name(chunk.tag)
            )
    for tag in required:
        if tag not in decoded:
            raise format_error(
                f"Missing required {tag_name(tag)} chunk",
                E_CHUNK_MISSING,
                kind=tag_name(table.kind),
                chunk=tag_name(tag),
            )
    return decoded, tuple(unknown)


def read_string_table(reader: BinaryReader) -> Tuple[str, ...]:
    """Decode a J3D-style string table starting at the reader's cursor.

    ``u16 count, u16 pad, count * (u16 hash, u16 offset)`` then the
    NUL-terminated strings; offsets are relative to the table start.
    """
    start = reader.pos
    count = reader.u16()
    reader.skip(2)
    offsets = [reader.array("H", 2)[1] for _ in range(count)]
    names = tuple(
        read_cstring(reader.data, start + off, reader.end, f"{reader.label} name")
        for off in offsets
    )
    reader.pos = reader.end
    return names
