"""Loader configuration (JSON/YAML)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List

import yaml

__all__ = ["LoaderConfig", "load_config", "config_from_dict"]

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024


@dataclass(slots=True)
class LoaderConfig:
    asset_root: Path = Path(".")
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    # Unwrap Yaz0-compressed files found inside an archive when read
    decompress_nested: bool = True
    # Archives opened up front by ``AssetSession.preload``
    archives: List[str] = field(default_factory=list)


def config_from_dict(data: Any, base_dir: Path = Path(".")) -> LoaderConfig:
    if not isinstance(data, dict):
        raise ValueError("Root of loader config must be an object")
    known = {f.name for f in fields(LoaderConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown loader config keys: {', '.join(unknown)}")
    cfg = LoaderConfig()
    if "asset_root" in data:
        root = Path(str(data["asset_root"]))
        cfg.asset_root = root if root.is_absolute() else base_dir / root
    else:
        cfg.asset_root = base_dir
    if "max_file_size" in data:
        size = data["max_file_size"]
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValueError(f"max_file_size must be a positive int: {size!r}")
        cfg.max_file_size = size
    if "decompress_nested" in data:
        if not isinstance(data["decompress_nested"], bool):
            raise ValueError("decompress_nested must be a boolean")
        cfg.decompress_nested = data["decompress_nested"]
    if "archives" in data:
        archives = data["archives"]
        if not isinstance(archives, list) or not all(
            isinstance(a, str) for a in archives
        ):
            raise ValueError("archives must be a list of paths")
        cfg.archives = list(archives)
    return cfg


def load_config(path: str | Path) -> LoaderConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        data: Any = yaml.safe_load(text)
    else:
        data = json.loads(text)
    return config_from_dict(data, p.parent)
