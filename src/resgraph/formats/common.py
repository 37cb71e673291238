"""Helpers shared by the per-kind decoders."""

from __future__ import annotations
import struct
from typing import Collection, List, Tuple

from ..binary.chunks import ChunkTable, tag_name
from ..binary.errors import E_LENGTH, E_RANGE, format_error, version_error
from ..binary.reader import BinaryReader

__all__ = ["check_version", "read_records", "expect_count"]


def check_version(table: ChunkTable, supported: Collection[int]) -> None:
    if table.version not in supported:
        raise version_error(
            table.kind, table.version, supported=sorted(supported)
        )


def read_records(reader: BinaryReader, code: str, record_size: int) -> List[Tuple]:
    """Decode the rest of a chunk as fixed-size records of format ``code``."""
    if reader.remaining % record_size:
        raise format_error(
            f"{reader.label} payload of {reader.remaining} bytes is not a "
            f"multiple of {record_size}",
            E_LENGTH,
        )
    count = reader.remaining // record_size
    flat = reader.unpack(struct.Struct(">" + code * count)) if count else ()
    width = len(code)
    return [tuple(flat[i : i + width]) for i in range(0, len(flat), width)]


def expect_count(
    table: ChunkTable, tag: bytes, actual: int, expected: int, what: str
) -> None:
    if actual != expected:
        raise format_error(
            f"{tag_name(tag)} holds {actual} {what}, header declares {expected}",
            E_RANGE,
            kind=tag_name(table.kind),
            chunk=tag_name(tag),
        )
