"""RARC directory-tree archive parsing.

Public functions:
- parse(buffer) -> Container
- single_file(name, buffer) -> Container
- name_hash(name) -> int

Layout (big-endian, "rel" offsets are relative to the info block at 0x20)::

    header      0x00  magic, total size, header size, data offset (rel),
                      data size, MRAM size, ARAM size, reserved
    info        0x20  dir count, dir table (rel), entry count, entry table
                      (rel), string table size, string table (rel),
                      u16 next file id, u8 ids synced
    dir node    0x10  type[4], name offset, name hash, entry count, first entry
    file entry  0x14  id, name hash, flags, pad, name offset,
                      data offset | subdir node, data size, reserved

Directory nodes are laid out so that a node's entries follow the previous
node's entries and every subdirectory has a larger node index than its
parent. Both properties are checked; an archive violating them is rejected
as a whole.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import struct
from typing import Dict, Iterator, List, Optional

from ..logging import get_logger
from .constants import (
    RARC_DIR_NODE_SIZE,
    RARC_FILE_ENTRY_SIZE,
    RARC_FLAG_COMPRESSED,
    RARC_FLAG_DIRECTORY,
    RARC_FLAG_FILE,
    RARC_FLAG_YAZ0,
    RARC_HEADER_SIZE,
    RARC_INFO_SIZE,
    RARC_MAGIC,
    RARC_ROOT_TYPE,
)
from .errors import E_MAGIC, E_ORDER, E_RANGE, format_error
from .reader import read_cstring, unpack_at

__all__ = [
    "FileEntry",
    "DirectoryNode",
    "Container",
    "parse",
    "single_file",
    "name_hash",
]

_HEADER = struct.Struct(">4sIIIIIII")
_INFO = struct.Struct(">IIIIIIHB")
_DIR_NODE = struct.Struct(">4sIHHI")
_FILE_ENTRY = struct.Struct(">HHBBHIII")


@dataclass(frozen=True, slots=True)
class FileEntry:
    name: str
    type_tag: bytes
    offset: int
    size: int
    directory: str
    file_id: int = 0
    flags: int = RARC_FLAG_FILE

    @property
    def path(self) -> str:
        return f"{self.directory}/{self.name}" if self.directory else self.name

    @property
    def base_name(self) -> str:
        return self.name.split(".", 1)[0]

    @property
    def compressed(self) -> bool:
        return bool(self.flags & (RARC_FLAG_COMPRESSED | RARC_FLAG_YAZ0))


@dataclass(slots=True)
class DirectoryNode:
    index: int
    name: str
    type_tag: bytes
    path: str
    parent: Optional[int]
    children: List[int] = field(default_factory=list)
    files: List[int] = field(default_factory=list)


@dataclass(slots=True)
class Container:
    """Parsed archive: files in declaration order plus their directory tree."""

    name: str
    data: bytes
    files: List[FileEntry]
    directories: List[DirectoryNode]
    _by_path: Dict[str, FileEntry] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not self._by_path:
            # First declaration wins, matching sibling lookup below.
            for f in self.files:
                self._by_path.setdefault(f.path.lower(), f)

    def find(self, path: str) -> Optional[FileEntry]:
        key = path.strip("/").lower()
        hit = self._by_path.get(key)
        if hit is None and self.name:
            # Paths may omit the root directory name.
            hit = self._by_path.get(f"{self.name.lower()}/{key}")
        return hit

    def files_in(self, directory: str) -> List[FileEntry]:
        d = directory.strip("/").lower()
        found = [f for f in self.files if f.directory.lower() == d]
        if not found and self.name:
            rooted = f"{self.name.lower()}/{d}" if d else self.name.lower()
            found = [f for f in self.files if f.directory.lower() == rooted]
        return found

    def of_type(self, type_tag: bytes) -> List[FileEntry]:
        return [f for f in self.files if f.type_tag == type_tag]

    def sibling(self, entry: FileEntry, suffix: str) -> Optional[FileEntry]:
        wanted = (entry.base_name + suffix).lower()
        for f in self.files:
            if f.directory == entry.directory and f.name.lower() == wanted:
                return f
        return None

    def read(self, entry: FileEntry) -> bytes:
        return bytes(self.data[entry.offset : entry.offset + entry.size])

    def walk(self) -> Iterator[DirectoryNode]:
        yield from self.directories


def name_hash(name: str) -> int:
    h = 0
    for c in name.encode("shift_jis", errors="replace"):
        h = (h * 3 + c) & 0xFFFF
    return h


def _check_span(
    label: str, offset: int, size: int, limit: int, **context
) -> None:
    if offset < 0 or size < 0 or offset + size > limit:
        raise format_error(
            f"{label} out of range: {offset}+{size}>{limit}",
            E_RANGE,
            **context,
        )


def parse(buffer: bytes) -> Container:
    logger = get_logger()
    data = bytes(buffer)
    (
        magic,
        total_size,
        header_size,
        data_rel,
        data_size,
        _mram,
        _aram,
        _reserved,
    ) = unpack_at(_HEADER, data, 0, "RARC header")
    if magic != RARC_MAGIC:
        raise format_error(f"Bad RARC magic {magic!r}", E_MAGIC)
    _check_span("RARC total size", 0, total_size, len(data))
    if header_size != RARC_HEADER_SIZE:
        raise format_error(
            f"Unexpected RARC header size {header_size:#x}", E_RANGE
        )
    data = data[:total_size]
    (
        dir_count,
        dir_rel,
        entry_count,
        entry_rel,
        str_size,
        str_rel,
        _next_id,
        _synced,
    ) = unpack_at(_INFO, data, RARC_HEADER_SIZE, "RARC info block")

    base = RARC_HEADER_SIZE
    _check_span("Info block", base, RARC_INFO_SIZE, total_size)
    dir_off = base + dir_rel
    entry_off = base + entry_rel
    str_off = base + str_rel
    data_off = base + data_rel
    _check_span(
        "Directory table", dir_off, dir_count * RARC_DIR_NODE_SIZE, total_size
    )
    _check_span(
        "File entry table",
        entry_off,
        entry_count * RARC_FILE_ENTRY_SIZE,
        total_size,
    )
    _check_span("String table", str_off, str_size, total_size)
    _check_span("Data section", data_off, data_size, total_size)
    if dir_count == 0:
        raise format_error("RARC has no root directory", E_RANGE)
    str_end = str_off + str_size

    def _name(offset: int, label: str) -> str:
        return read_cstring(data, str_off + offset, str_end, label)

    raw_nodes = []
    prev_end = 0
    for i in range(dir_count):
        type_tag, name_off, _hash, count, first = unpack_at(
            _DIR_NODE, data, dir_off + i * RARC_DIR_NODE_SIZE, f"dir[{i}]"
        )
        if first < prev_end:
            raise format_error(
                f"Directory node {i} entries start at {first}, before the "
                f"end of the previous node ({prev_end})",
                E_ORDER,
                node=i,
            )
        _check_span(f"dir[{i}] entries", first, count, entry_count, node=i)
        prev_end = first + count
        raw_nodes.append((type_tag, _name(name_off, f"dir[{i}]"), count, first))

    if raw_nodes[0][0] != RARC_ROOT_TYPE:
        logger.debug("RARC root node has type %r", raw_nodes[0][0])

    nodes: List[Optional[DirectoryNode]] = [None] * dir_count
    root_type, root_name, _, _ = raw_nodes[0]
    nodes[0] = DirectoryNode(0, root_name, root_type, root_name, None)
    files: List[FileEntry] = []

    for i, (type_tag, dname, count, first) in enumerate(raw_nodes):
        node = nodes[i]
        if node is None:
            raise format_error(
                f"Directory node {i} is not reachable from the root",
                E_ORDER,
                node=i,
            )
        for j in range(first, first + count):
            (
                file_id,
                _hash,
                flags,
                _pad,
                name_off,
                payload,
                size,
                _res,
            ) = unpack_at(
                _FILE_ENTRY,
                data,
                entry_off + j * RARC_FILE_ENTRY_SIZE,
                f"entry[{j}]",
            )
            ename = _name(name_off, f"entry[{j}]")
            if flags & RARC_FLAG_DIRECTORY:
                if ename in (".", ".."):
                    continue
                if payload <= i or payload >= dir_count:
                    raise format_error(
                        f"Subdirectory '{ename}' of node {i} points at node "
                        f"{payload}; child indices must increase",
                        E_ORDER,
                        node=i,
                        child=payload,
                    )
                if nodes[payload] is not None:
                    raise format_error(
                        f"Directory node {payload} has more than one parent",
                        E_ORDER,
                        node=payload,
                    )
                child_type = raw_nodes[payload][0]
                nodes[payload] = DirectoryNode(
                    payload,
                    ename,
                    child_type,
                    f"{node.path}/{ename}",
                    i,
                )
                node.children.append(payload)
                continue
            _check_span(
                f"File '{ename}'",
                payload,
                size,
                data_size,
                path=f"{node.path}/{ename}",
            )
            start = data_off + payload
            files.append(
                FileEntry(
                    name=ename,
                    type_tag=data[start : start + min(size, 4)].ljust(4, b"\x00"),
                    offset=start,
                    size=size,
                    directory=node.path,
                    file_id=file_id,
                    flags=flags,
                )
            )
            node.files.append(len(files) - 1)

    directories = [n for n in nodes if n is not None]
    logger.debug(
        "Parsed RARC '%s': %d directories, %d files",
        root_name,
        len(directories),
        len(files),
    )
    return Container(
        name=root_name, data=data, files=files, directories=directories
    )


def single_file(name: str, buffer: bytes) -> Container:
    """Wrap a bare resource buffer as a one-entry flat container."""
    data = bytes(buffer)
    entry = FileEntry(
        name=name,
        type_tag=data[:4].ljust(4, b"\x00"),
        offset=0,
        size=len(data),
        directory="",
    )
    root = DirectoryNode(0, "", RARC_ROOT_TYPE, "", None, files=[0])
    return Container(name=name, data=data, files=[entry], directories=[root])
