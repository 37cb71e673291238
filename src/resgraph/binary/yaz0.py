"""Yaz0 codec.

Yaz0 is the LZ77 variant used to wrap archives and individual files.
Layout (big-endian)::

    0x00  4  magic "Yaz0"
    0x04  4  decompressed size
    0x08  8  reserved (alignment hint on newer tools, ignored)
    0x10  .. stream

The stream is a sequence of groups: one flag byte (MSB first) followed by
eight items. A set bit is a literal byte; a clear bit is a back-reference
``NR RR`` (length ``N + 2``, distance ``RRR + 1``) or, when ``N`` is zero,
``0R RR NN`` (length ``NN + 0x12``).
"""

from __future__ import annotations

from dataclasses import dataclass
import struct
from typing import Dict, List, Tuple

from .constants import (
    YAZ0_HEADER_SIZE,
    YAZ0_MAGIC,
    YAZ0_MAX_DISTANCE,
    YAZ0_MAX_MATCH,
    YAZ0_MAX_SHORT_MATCH,
    YAZ0_MIN_MATCH,
)
from .errors import (
    E_DISTANCE,
    E_LENGTH,
    E_MAGIC,
    E_TRUNCATED,
    format_error,
)

__all__ = [
    "Yaz0Header",
    "is_compressed",
    "read_header",
    "decompress",
    "compress",
]

_HEADER = struct.Struct(">4sI8s")

# Candidates examined per position by the encoder; bounds worst-case time
# on highly repetitive input.
_MAX_CHAIN = 64


@dataclass(frozen=True, slots=True)
class Yaz0Header:
    magic: bytes
    decompressed_size: int
    reserved: bytes


def is_compressed(buffer: bytes) -> bool:
    return bytes(buffer[:4]) == YAZ0_MAGIC


def read_header(buffer: bytes) -> Yaz0Header:
    if len(buffer) < YAZ0_HEADER_SIZE:
        raise format_error(
            f"Yaz0 header truncated: {len(buffer)} bytes",
            E_TRUNCATED,
        )
    magic, size, reserved = _HEADER.unpack_from(buffer, 0)
    if magic != YAZ0_MAGIC:
        raise format_error(
            f"Bad Yaz0 magic {magic!r}", E_MAGIC, expected="Yaz0"
        )
    return Yaz0Header(magic, size, reserved)


def decompress(buffer: bytes) -> bytes:
    header = read_header(buffer)
    size = header.decompressed_size
    src_end = len(buffer)
    out = bytearray(size)
    src = YAZ0_HEADER_SIZE
    dst = 0

    def _truncated() -> Exception:
        return format_error(
            f"Yaz0 stream ended after {dst} of {size} bytes",
            E_LENGTH,
            offset=src,
            written=dst,
            declared=size,
        )

    while dst < size:
        if src >= src_end:
            raise _truncated()
        group = buffer[src]
        src += 1
        mask = 0x80
        while mask and dst < size:
            if group & mask:
                if src >= src_end:
                    raise _truncated()
                out[dst] = buffer[src]
                src += 1
                dst += 1
            else:
                if src + 2 > src_end:
                    raise _truncated()
                b1 = buffer[src]
                b2 = buffer[src + 1]
                src += 2
                distance = (((b1 & 0x0F) << 8) | b2) + 1
                count = b1 >> 4
                if count == 0:
                    if src >= src_end:
                        raise _truncated()
                    count = buffer[src] + 0x12
                    src += 1
                else:
                    count += 2
                if distance > dst:
                    raise format_error(
                        f"Back-reference distance {distance} exceeds "
                        f"{dst} bytes written",
                        E_DISTANCE,
                        offset=src,
                    )
                if dst + count > size:
                    raise format_error(
                        f"Back-reference overruns declared size {size}",
                        E_LENGTH,
                        offset=src,
                        written=dst,
                        declared=size,
                    )
                start = dst - distance
                if distance >= count:
                    out[dst : dst + count] = out[start : start + count]
                    dst += count
                else:
                    # Overlapping run: each byte may be one just written.
                    for i in range(count):
                        out[dst + i] = out[start + i]
                    dst += count
            mask >>= 1
    return bytes(out)


def _find_match(
    data: bytes, pos: int, chains: Dict[bytes, List[int]]
) -> Tuple[int, int]:
    limit = min(YAZ0_MAX_MATCH, len(data) - pos)
    if limit < YAZ0_MIN_MATCH:
        return 0, 0
    candidates = chains.get(data[pos : pos + YAZ0_MIN_MATCH])
    if not candidates:
        return 0, 0
    best_len = 0
    best_dist = 0
    examined = 0
    for cand in reversed(candidates):
        dist = pos - cand
        if dist > YAZ0_MAX_DISTANCE or examined >= _MAX_CHAIN:
            break
        examined += 1
        length = YAZ0_MIN_MATCH
        while length < limit and data[cand + length] == data[pos + length]:
            length += 1
        if length > best_len:
            best_len = length
            best_dist = dist
            if length == limit:
                break
    return best_len, best_dist


def _remember(data: bytes, pos: int, chains: Dict[bytes, List[int]]) -> None:
    if pos + YAZ0_MIN_MATCH <= len(data):
        chains.setdefault(data[pos : pos + YAZ0_MIN_MATCH], []).append(pos)


def compress(data: bytes) -> bytes:
    """Reference encoder (greedy, hash chained).

    Output is accepted by any conforming decoder; it is not tuned to match
    the stock encoder byte for byte.
    """
    data = bytes(data)
    out = bytearray(_HEADER.pack(YAZ0_MAGIC, len(data), b"\x00" * 8))
    chains: Dict[bytes, List[int]] = {}
    pos = 0
    end = len(data)
    while pos < end:
        group_at = len(out)
        out.append(0)
        group = 0
        for bit in range(8):
            if pos >= end:
                break
            length, distance = _find_match(data, pos, chains)
            if length >= YAZ0_MIN_MATCH:
                d = distance - 1
                if length > YAZ0_MAX_SHORT_MATCH:
                    out += bytes((d >> 8, d & 0xFF, length - 0x12))
                else:
                    out += bytes((((length - 2) << 4) | (d >> 8), d & 0xFF))
                for p in range(pos, pos + length):
                    _remember(data, p, chains)
                pos += length
            else:
                group |= 0x80 >> bit
                out.append(data[pos])
                _remember(data, pos, chains)
                pos += 1
        out[group_at] = group
    return bytes(out)
