"""Stable resource identity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, order=True)
class ResourceKey:
    """``index``-th file of ``kind`` in ``archive``, in declaration order."""

    archive: str
    kind: bytes
    index: int

    @classmethod
    def of(cls, archive: str, kind: "bytes | str", index: int) -> "ResourceKey":
        if isinstance(kind, str):
            kind = kind.encode("latin-1")
        if len(kind) != 4:
            raise ValueError(f"Resource kind must be 4 bytes, got {kind!r}")
        if index < 0:
            raise ValueError(f"Resource index must be >= 0, got {index}")
        return cls(archive, kind, index)

    def __str__(self) -> str:
        return f"{self.archive}:{self.kind.decode('latin-1')}[{self.index}]"


__all__ = ["ResourceKey"]
