"""An opened archive: container plus per-kind file index."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Dict, List, Optional

from ..binary import rarc, yaz0
from ..binary.constants import (
    ANIMATION_SUFFIX,
    KIND_MODEL,
    MATERIAL_SWAP_SUFFIX,
    RARC_MAGIC,
    YAZ0_MAGIC,
)
from ..binary.errors import FormatError
from ..formats import parse as parse_resource
from ..formats.models import Resource
from ..logging import get_logger
from .keys import ResourceKey

__all__ = ["Archive"]


class Archive:
    """Files of one fetched blob, addressable as ``(kind, index)``.

    A file's kind is the tag its payload declares; nested Yaz0 payloads are
    unwrapped first when ``decompress_nested`` is set.
    """

    def __init__(
        self,
        archive_id: str,
        container: rarc.Container,
        *,
        decompress_nested: bool = True,
        raw_size: int = 0,
    ) -> None:
        self.id = archive_id
        self.container = container
        self.decompress_nested = decompress_nested
        self.raw_size = raw_size
        self._payloads: Dict[int, bytes] = {}
        self._positions: Dict[rarc.FileEntry, int] = {}
        self._by_kind: Dict[bytes, List[rarc.FileEntry]] = {}
        for i, entry in enumerate(container.files):
            self._positions.setdefault(entry, i)
            try:
                kind = self._kind_of(i, entry)
            except FormatError as e:
                raise e.add_context(archive=archive_id, path=entry.path)
            self._by_kind.setdefault(kind, []).append(entry)

    @classmethod
    def from_buffer(
        cls, archive_id: str, buffer: bytes, *, decompress_nested: bool = True
    ) -> "Archive":
        data = bytes(buffer)
        if yaz0.is_compressed(data):
            data = yaz0.decompress(data)
        if data[:4] == RARC_MAGIC:
            container = rarc.parse(data)
        else:
            container = rarc.single_file(PurePosixPath(archive_id).name, data)
        return cls(
            archive_id,
            container,
            decompress_nested=decompress_nested,
            raw_size=len(buffer),
        )

    def _index(self, entry: rarc.FileEntry) -> int:
        try:
            return self._positions[entry]
        except KeyError:
            raise ValueError(f"{entry.path} is not a file of {self.id}") from None

    def _kind_of(self, i: int, entry: rarc.FileEntry) -> bytes:
        if entry.type_tag == YAZ0_MAGIC and self.decompress_nested:
            return self._payload_at(i, entry)[:4].ljust(4, b"\x00")
        return entry.type_tag

    def _payload_at(self, i: int, entry: rarc.FileEntry) -> bytes:
        data = self._payloads.get(i)
        if data is None:
            data = self.container.read(entry)
            if self.decompress_nested and yaz0.is_compressed(data):
                data = yaz0.decompress(data)
            self._payloads[i] = data
        return data

    def payload(self, entry: rarc.FileEntry) -> bytes:
        return self._payload_at(self._index(entry), entry)

    @property
    def kinds(self) -> Dict[bytes, int]:
        return {k: len(v) for k, v in self._by_kind.items()}

    def count(self, kind: bytes) -> int:
        return len(self._by_kind.get(kind, ()))

    def entries(self, kind: bytes) -> List[rarc.FileEntry]:
        return list(self._by_kind.get(kind, ()))

    def entry(self, kind: bytes, index: int) -> rarc.FileEntry:
        entries = self._by_kind.get(kind, [])
        if not 0 <= index < len(entries):
            raise IndexError(
                f"{self.id} has {len(entries)} {kind!r} files, no index {index}"
            )
        return entries[index]

    def _sibling_payload(
        self, entry: rarc.FileEntry, suffix: str
    ) -> Optional[bytes]:
        sib = self.container.sibling(entry, suffix)
        return None if sib is None else self.payload(sib)

    def parse(self, key: ResourceKey) -> Resource:
        """Decode one file into an unresolved resource stamped with ``key``."""
        entry = self.entry(key.kind, key.index)
        try:
            if key.kind == KIND_MODEL:
                resource = parse_resource(
                    self.payload(entry),
                    key.kind,
                    animation=self._sibling_payload(entry, ANIMATION_SUFFIX),
                    materials=self._sibling_payload(entry, MATERIAL_SWAP_SUFFIX),
                    name=entry.base_name,
                )
            else:
                resource = parse_resource(self.payload(entry), key.kind)
        except FormatError as e:
            raise e.add_context(archive=self.id, key=str(key), path=entry.path)
        resource.key = key
        get_logger().debug("Parsed %s from %s", key, entry.path)
        return resource

    def describe(self) -> dict:
        return {
            "archive": self.id,
            "root": self.container.name,
            "raw_size": self.raw_size,
            "directories": [
                {
                    "path": d.path,
                    "type": d.type_tag.decode("latin-1"),
                    "files": len(d.files),
                    "subdirectories": len(d.children),
                }
                for d in self.container.walk()
            ],
            "files": [
                {
                    "path": f.path,
                    "type": self._kind_of(i, f).decode("latin-1"),
                    "size": f.size,
                    "compressed": f.type_tag == YAZ0_MAGIC or f.compressed,
                }
                for i, f in enumerate(self.container.files)
            ],
            "kinds": {
                k.decode("latin-1"): n for k, n in sorted(self.kinds.items())
            },
        }
