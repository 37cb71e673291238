"""Bounds-checked big-endian reads over an immutable buffer."""

from __future__ import annotations

import struct
from typing import Any, Tuple

from .errors import E_RANGE, E_TRUNCATED, format_error

__all__ = ["read_exact", "unpack_at", "read_cstring", "BinaryReader"]


def read_exact(data: bytes, offset: int, size: int, label: str) -> bytes:
    end = offset + size
    if offset < 0 or size < 0 or end > len(data):
        raise format_error(
            f"Out of range read for {label}: {offset}+{size}>{len(data)}",
            E_TRUNCATED,
            offset=offset,
        )
    return bytes(data[offset:end])


def unpack_at(fmt: struct.Struct, data: bytes, offset: int, label: str):
    if offset < 0 or offset + fmt.size > len(data):
        raise format_error(
            f"Out of range read for {label}: {offset}+{fmt.size}>{len(data)}",
            E_TRUNCATED,
            offset=offset,
        )
    return fmt.unpack_from(data, offset)


def read_cstring(data: bytes, offset: int, end: int, label: str) -> str:
    """Read a NUL-terminated string that must finish before ``end``."""
    if offset < 0 or offset >= end or end > len(data):
        raise format_error(
            f"String offset out of range for {label}: {offset}",
            E_RANGE,
            offset=offset,
        )
    stop = data.find(b"\x00", offset, end)
    if stop == -1:
        raise format_error(
            f"Unterminated string for {label} at {offset}",
            E_RANGE,
            offset=offset,
        )
    return bytes(data[offset:stop]).decode("shift_jis", errors="replace")


_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_I16 = struct.Struct(">h")
_U32 = struct.Struct(">I")
_F32 = struct.Struct(">f")


class BinaryReader:
    """Sequential cursor over ``data[start:end]``.

    Every read is checked against ``end`` so a decoder can never walk out
    of the chunk it was handed.
    """

    __slots__ = ("data", "pos", "end", "label")

    def __init__(
        self, data: bytes, start: int = 0, end: int | None = None, label: str = ""
    ) -> None:
        self.data = data
        self.pos = start
        self.end = len(data) if end is None else end
        self.label = label

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def _take(self, size: int) -> int:
        if size < 0 or self.pos + size > self.end:
            raise format_error(
                f"Truncated {self.label}: need {size} bytes at {self.pos}, "
                f"{self.remaining} left",
                E_TRUNCATED,
                offset=self.pos,
            )
        at = self.pos
        self.pos += size
        return at

    def unpack(self, fmt: struct.Struct) -> Tuple[Any, ...]:
        at = self._take(fmt.size)
        return fmt.unpack_from(self.data, at)

    def u8(self) -> int:
        return self.unpack(_U8)[0]

    def u16(self) -> int:
        return self.unpack(_U16)[0]

    def i16(self) -> int:
        return self.unpack(_I16)[0]

    def u32(self) -> int:
        return self.unpack(_U32)[0]

    def f32(self) -> float:
        return self.unpack(_F32)[0]

    def array(self, code: str, count: int) -> Tuple[Any, ...]:
        fmt = struct.Struct(f">{count}{code}")
        return self.unpack(fmt)

    def take(self, size: int) -> bytes:
        at = self._take(size)
        return bytes(self.data[at : at + size])

    def skip(self, size: int) -> None:
        self._take(size)
