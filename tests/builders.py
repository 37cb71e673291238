"""Binary fixture builders for resgraph tests.

Usage:
    from builders import build_rarc, texture
    blob = build_rarc([("tex/a.bti", texture(4, 4))])

Everything here writes the on-disk layouts directly with ``struct`` so the
tests do not depend on the code under test to produce their inputs (the
Yaz0 encoder excepted, which has its own tests).
"""

from __future__ import annotations

import struct
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from resgraph.binary.rarc import name_hash

RARC_FILE = 0x01
RARC_DIR = 0x02
RARC_YAZ0 = 0x84


def _pad(buf: bytearray, align: int = 32) -> None:
    buf += b"\x00" * (-len(buf) % align)


# ---------------------------------------------------------------------------
# Chunked resources
# ---------------------------------------------------------------------------


def resource(
    kind: bytes,
    chunks: Sequence[Tuple[bytes, bytes]],
    version: int = 1,
    trailing: bytes = b"",
) -> bytes:
    body = b"".join(
        struct.pack(">4sI", tag, len(payload) + 8) + payload
        for tag, payload in chunks
    )
    total = 0x20 + len(body)
    header = struct.pack(">4sIII16s", kind, version, total, len(chunks), b"")
    return header + body + trailing


def string_table(names: Sequence[str]) -> bytes:
    head = 4 + 4 * len(names)
    strings = bytearray()
    entries = bytearray()
    for n in names:
        entries += struct.pack(">HH", name_hash(n), head + len(strings))
        strings += n.encode("shift_jis") + b"\x00"
    return struct.pack(">HH", len(names), 0xFFFF) + bytes(entries) + bytes(strings)


def texture(
    width: int = 4,
    height: int = 4,
    fmt: int = 1,
    levels: int = 1,
    flags: int = 0,
    texels: Optional[bytes] = None,
    sequence: Optional[int] = None,
    scroll: Sequence[Tuple[float, float]] = (),
    version: int = 2,
    extra: Sequence[Tuple[bytes, bytes]] = (),
) -> bytes:
    if version >= 2:
        thdr = struct.pack(">HHBBH", width, height, fmt, levels, flags)
    else:
        thdr = struct.pack(">HHBx", width, height, fmt)
    chunks = [(b"THDR", thdr)]
    chunks.extend(extra)
    chunks.append((b"TXEL", texels if texels is not None else b"\xAB" * 16))
    if scroll:
        chunks.append(
            (
                b"SCRL",
                struct.pack(">Hxx", len(scroll))
                + b"".join(struct.pack(">ff", s, t) for s, t in scroll),
            )
        )
    if sequence is not None:
        chunks.append((b"SEQA", struct.pack(">hxx", sequence)))
    return resource(b"UVTX", chunks, version)


def texture_sequence(
    frames: Sequence[Tuple[int, float]],
    looping: bool = False,
    declared: Optional[int] = None,
) -> bytes:
    count = len(frames) if declared is None else declared
    return resource(
        b"UVTS",
        [
            (b"SHDR", struct.pack(">HH", count, 1 if looping else 0)),
            (
                b"FRMS",
                b"".join(struct.pack(">HHf", i, 0, d) for i, d in frames),
            ),
        ],
    )


def terrain(
    columns: int,
    rows: int,
    tiles: Sequence[Tuple[int, int, float]],
    cell: Tuple[float, float] = (1.0, 1.0),
    names: Sequence[str] = (),
) -> bytes:
    chunks = [
        (b"TRHD", struct.pack(">HHff", columns, rows, *cell)),
        (b"TILE", b"".join(struct.pack(">hHf", *t) for t in tiles)),
    ]
    if names:
        chunks.append((b"NAME", string_table(names)))
    return resource(b"UVTR", chunks)


def environment(
    color: Tuple[int, int, int] = (0, 0, 0),
    fog: Optional[Tuple[float, float]] = None,
    sky: Sequence[int] = (),
    terrain_index: Optional[int] = None,
) -> bytes:
    near, far = fog if fog is not None else (0.0, 0.0)
    chunks = [
        (
            b"ENHD",
            struct.pack(">BBBBff", *color, 1 if fog else 0, near, far),
        )
    ]
    if sky:
        chunks.append(
            (b"SKYT", struct.pack(f">Hxx{len(sky)}h", len(sky), *sky))
        )
    if terrain_index is not None:
        chunks.append((b"TERR", struct.pack(">hxx", terrain_index)))
    return resource(b"UVEN", chunks)


def model(
    positions: Sequence[Tuple[float, float, float]] = (
        (0.0, 0.0, 0.0),
        (1.0, 0.0, 0.0),
        (0.0, 1.0, 0.0),
    ),
    shapes: Sequence[Tuple[int, Sequence[int]]] = ((0, (0, 1, 2)),),
    materials: Sequence[str] = ("mat0",),
    textures: Sequence[str] = (),
    flags: int = 0,
    version: int = 1,
    vertex_count: Optional[int] = None,
) -> bytes:
    count = len(positions) if vertex_count is None else vertex_count
    shp = bytearray(struct.pack(">Hxx", len(shapes)))
    for material, indices in shapes:
        shp += struct.pack(f">HxxI{len(indices)}H", material, len(indices), *indices)
    chunks = [
        (b"INF1", struct.pack(">HxxI", flags, count)),
        (b"VTX1", b"".join(struct.pack(">fff", *p) for p in positions)),
        (b"SHP1", bytes(shp)),
    ]
    if materials:
        chunks.append((b"MAT3", string_table(materials)))
    if textures:
        chunks.append((b"TEX1", string_table(textures)))
    return resource(b"BMD3", chunks, version)


def animation(
    tracks: Sequence[Tuple[int, float, float]] = ((0, 0.5, 0.0),),
    loop_mode: int = 2,
    duration: int = 60,
) -> bytes:
    body = struct.pack(">BxHHxx", loop_mode, duration, len(tracks))
    body += b"".join(struct.pack(">HHff", m, 0, s, t) for m, s, t in tracks)
    return resource(b"BTK1", [(b"TTK1", body)])


def material_swap(
    materials: Sequence[str], textures: Sequence[str] = ()
) -> bytes:
    chunks = [(b"MAT3", string_table(materials))]
    if textures:
        chunks.append((b"TEX1", string_table(textures)))
    return resource(b"BMT3", chunks)


# ---------------------------------------------------------------------------
# Yaz0
# ---------------------------------------------------------------------------


def yaz0_stream(decompressed_size: int, stream: bytes) -> bytes:
    return struct.pack(">4sI8x", b"Yaz0", decompressed_size) + stream


def yaz0_literals(data: bytes) -> bytes:
    """Encode ``data`` as literals only (no back-references)."""
    out = bytearray()
    for i in range(0, len(data), 8):
        group = data[i : i + 8]
        out.append((0xFF << (8 - len(group))) & 0xFF)
        out += group
    return yaz0_stream(len(data), bytes(out))


# ---------------------------------------------------------------------------
# RARC
# ---------------------------------------------------------------------------

# (type tag, name, first entry index, entry count)
Node = Tuple[bytes, str, int, int]
# (name, flags, data offset or node index, size, file id)
Entry = Tuple[str, int, int, int, int]


def pack_rarc(nodes: Sequence[Node], entries: Sequence[Entry], data: bytes) -> bytes:
    """Lay out an archive from explicit node and entry tables."""
    strings = bytearray(b".\x00..\x00")
    offsets: Dict[str, int] = {".": 0, "..": 2}

    def intern(name: str) -> int:
        if name not in offsets:
            offsets[name] = len(strings)
            strings.extend(name.encode("shift_jis") + b"\x00")
        return offsets[name]

    dir_table = bytearray()
    for type_tag, name, first, count in nodes:
        dir_table += struct.pack(
            ">4sIHHI", type_tag, intern(name), name_hash(name), count, first
        )
    entry_table = bytearray()
    for name, flags, payload, size, file_id in entries:
        entry_table += struct.pack(
            ">HHBBHIII",
            file_id,
            name_hash(name),
            flags,
            0,
            intern(name),
            payload,
            size,
            0,
        )

    body = bytearray()
    dir_off = 0x40
    body += dir_table
    _pad(body)
    entry_off = 0x40 + len(body)
    body += entry_table
    _pad(body)
    str_off = 0x40 + len(body)
    body += strings
    _pad(body)
    str_size = 0x40 + len(body) - str_off
    data_off = 0x40 + len(body)
    body += data
    _pad(body)
    total = 0x40 + len(body)

    header = struct.pack(
        ">4sIIIIIII",
        b"RARC",
        total,
        0x20,
        data_off - 0x20,
        len(data),
        len(data),
        0,
        0,
    )
    info = struct.pack(
        ">IIIIIIHB",
        len(nodes),
        dir_off - 0x20,
        len(entries),
        entry_off - 0x20,
        str_size,
        str_off - 0x20,
        sum(1 for e in entries if e[1] & RARC_FILE),
        1,
    ).ljust(0x20, b"\x00")
    return header + info + bytes(body)


def build_rarc(
    files: Iterable[Tuple[str, bytes]], root: str = "root"
) -> bytes:
    """Archive holding ``files`` (``dir/sub/name`` paths under ``root``).

    Directories are numbered breadth-first and each node lists its files,
    then its subdirectories, then the ``.``/``..`` entries.
    """
    tree: Dict[str, Tuple[List[Tuple[str, bytes]], List[str]]] = {"": ([], [])}
    for path, payload in files:
        parts = path.split("/")
        cur = ""
        for part in parts[:-1]:
            nxt = f"{cur}/{part}" if cur else part
            if nxt not in tree:
                tree[nxt] = ([], [])
                tree[cur][1].append(nxt)
            cur = nxt
        tree[cur][0].append((parts[-1], payload))

    order: List[str] = []
    queue = deque([""])
    while queue:
        d = queue.popleft()
        order.append(d)
        queue.extend(tree[d][1])
    index = {d: i for i, d in enumerate(order)}

    nodes: List[Node] = []
    entries: List[Entry] = []
    blob = bytearray()
    file_id = 0
    for d in order:
        first = len(entries)
        for name, payload in tree[d][0]:
            flags = RARC_FILE | (RARC_YAZ0 if payload[:4] == b"Yaz0" else 0)
            entries.append((name, flags, len(blob), len(payload), file_id))
            file_id += 1
            blob += payload
            _pad(blob)
        for sub in tree[d][1]:
            entries.append(
                (sub.rsplit("/", 1)[-1], RARC_DIR, index[sub], 0x10, 0xFFFF)
            )
        parent = d.rsplit("/", 1)[0] if "/" in d else ""
        entries.append((".", RARC_DIR, index[d], 0x10, 0xFFFF))
        entries.append(
            ("..", RARC_DIR, index[parent] if d else 0xFFFFFFFF, 0x10, 0xFFFF)
        )
        name = root if d == "" else d.rsplit("/", 1)[-1]
        type_tag = b"ROOT" if d == "" else name.upper().encode()[:4].ljust(4)
        nodes.append((type_tag, name, first, len(entries) - first))
    return pack_rarc(nodes, entries, bytes(blob))
