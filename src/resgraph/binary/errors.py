"""Error definitions for resgraph."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

E_FORMAT = "E_FORMAT"
E_MAGIC = "E_MAGIC"
E_TRUNCATED = "E_TRUNCATED"
E_RANGE = "E_RANGE"
E_ORDER = "E_ORDER"
E_LENGTH = "E_LENGTH"
E_DISTANCE = "E_DISTANCE"
E_CHUNK_MISSING = "E_CHUNK_MISSING"
E_CHUNK_DUP = "E_CHUNK_DUP"
E_VERSION = "E_VERSION"
E_REF = "E_REF"
E_FETCH = "E_FETCH"


@dataclass
class ResgraphError(Exception):
    code: str
    message: str
    context: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}" + (
            f" | ctx={self.context}" if self.context else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context or {},
        }

    def add_context(self, **fields: Any) -> "ResgraphError":
        # Inner frames know the chunk, outer frames know the archive/key;
        # keep whatever the raiser already recorded.
        ctx = dict(self.context or {})
        for k, v in fields.items():
            ctx.setdefault(k, v)
        self.context = ctx
        return self


class FormatError(ResgraphError):
    pass


class UnsupportedChunkVersion(FormatError):
    pass


class UnresolvedReferenceError(ResgraphError):
    pass


class FetchError(ResgraphError):
    pass


def format_error(
    message: str,
    code: str = E_FORMAT,
    **context: Any,
) -> FormatError:
    return FormatError(code=code, message=message, context=context or None)


def version_error(kind: bytes, version: int, **context: Any) -> FormatError:
    return UnsupportedChunkVersion(
        code=E_VERSION,
        message=f"Unsupported {kind.decode('latin-1')} version {version}",
        context={"kind": kind.decode("latin-1"), "version": version, **context},
    )


__all__ = [
    "ResgraphError",
    "FormatError",
    "UnsupportedChunkVersion",
    "UnresolvedReferenceError",
    "FetchError",
    "format_error",
    "version_error",
    "E_FORMAT",
    "E_MAGIC",
    "E_TRUNCATED",
    "E_RANGE",
    "E_ORDER",
    "E_LENGTH",
    "E_DISTANCE",
    "E_CHUNK_MISSING",
    "E_CHUNK_DUP",
    "E_VERSION",
    "E_REF",
    "E_FETCH",
]
