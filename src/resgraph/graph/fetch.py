"""Byte sources for archives."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Mapping, Protocol

from ..binary.errors import E_FETCH, FetchError
from ..config import DEFAULT_MAX_FILE_SIZE
from ..utils.paths import safe_file_path

__all__ = ["Fetcher", "FileFetcher", "MemoryFetcher"]


class Fetcher(Protocol):
    async def fetch(self, path: str) -> bytes: ...


def _read_limited(path: Path, max_size: int) -> bytes:
    if not path.is_file():
        raise FetchError(E_FETCH, f"File not found: {path}", {"path": str(path)})
    size = path.stat().st_size
    if size > max_size:
        raise FetchError(
            E_FETCH,
            f"File too large: {size}>{max_size}",
            {"path": str(path), "size": size},
        )
    return path.read_bytes()


class FileFetcher:
    """Reads archives below ``root``, off the event loop."""

    def __init__(self, root: Path, max_size: int = DEFAULT_MAX_FILE_SIZE):
        self.root = Path(root)
        self.max_size = max_size
        self.fetch_count = 0

    async def fetch(self, path: str) -> bytes:
        try:
            resolved = safe_file_path(self.root, path)
        except ValueError:
            raise FetchError(
                E_FETCH,
                f"Path escapes asset root: {path}",
                {"path": path, "root": str(self.root)},
            ) from None
        self.fetch_count += 1
        try:
            return await asyncio.to_thread(
                _read_limited, resolved, self.max_size
            )
        except OSError as e:
            raise FetchError(E_FETCH, str(e), {"path": path}) from e


class MemoryFetcher:
    def __init__(self, files: Mapping[str, bytes]):
        self.files: Dict[str, bytes] = dict(files)
        self.fetch_count = 0

    async def fetch(self, path: str) -> bytes:
        self.fetch_count += 1
        await asyncio.sleep(0)
        try:
            return self.files[path]
        except KeyError:
            raise FetchError(
                E_FETCH, f"No such archive: {path}", {"path": path}
            ) from None
