"""Command line interface for resgraph."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from .api import AssetSession, describe_archive
from .binary import yaz0
from .binary.errors import ResgraphError
from .config import LoaderConfig, load_config
from .formats.models import Ref, Resource
from .graph.fetch import FileFetcher
from .graph.keys import ResourceKey
from .logging import configure_logging, get_logger, step
from .reporting import (
    BACKENDS,
    PlainReporter,
    get_reporter,
    set_reporter,
    set_verbosity,
)


def _decompress_cmd(args: argparse.Namespace) -> int:
    step(f"decompressing {args.input}")
    raw = args.input.read_bytes()
    out = yaz0.decompress(raw)
    args.output.write_bytes(out)
    get_reporter().status(
        f"Codec summary: op=decompress in={len(raw)} out={len(out)}"
    )
    return 0


def _compress_cmd(args: argparse.Namespace) -> int:
    step(f"compressing {args.input}")
    raw = args.input.read_bytes()
    out = yaz0.compress(raw)
    args.output.write_bytes(out)
    get_reporter().status(
        f"Codec summary: op=compress in={len(raw)} out={len(out)}"
    )
    return 0


def _inspect_cmd(args: argparse.Namespace) -> int:
    info = describe_archive(args.archive.read_bytes(), args.archive.name)
    rep = get_reporter()
    rep.flush()
    if args.json:
        print(json.dumps(info, indent=2, sort_keys=True))
        return 0
    rep.section(f"{args.archive.name} ({info['root'] or 'flat'})")
    for d in info["directories"]:
        print(f"{d['path'] or '/'}/  [{d['type']}] files={d['files']}")
    for f in info["files"]:
        flag = " (yaz0)" if f["compressed"] else ""
        print(f"  {f['path']}  {f['type']}  {f['size']}{flag}")
    kinds = " ".join(f"{k}={n}" for k, n in info["kinds"].items())
    rep.status(f"Archive summary: files={len(info['files'])} {kinds}")
    return 0


def _field_value(value: Any) -> Any:
    # Keyed resources are listed on their own; siblings are inlined.
    if isinstance(value, Resource) and value.key is not None:
        return str(value.key)
    if isinstance(value, Ref):
        return repr(value)
    if isinstance(value, (bytes, bytearray)):
        return {"bytes": len(value)}
    if isinstance(value, (list, tuple)):
        return [_field_value(v) for v in value]
    if dataclasses.is_dataclass(value):
        return {
            f.name: _field_value(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    return value


def _reachable(root: Resource) -> List[Resource]:
    """Every resource reachable from ``root`` (itself included), in key order."""
    seen = {id(root): root}
    stack = [root]
    while stack:
        for dep in stack.pop().dependencies():
            if id(dep) not in seen:
                seen[id(dep)] = dep
                stack.append(dep)
    return sorted(seen.values(), key=lambda r: r.key)


def resource_summary(resource: Resource) -> Dict[str, Any]:
    out = _field_value(resource)
    out["kind"] = resource.KIND.decode("latin-1")
    out["key"] = str(resource.key)
    out["unknown_chunks"] = [
        c.tag.decode("latin-1") for c in resource.unknown_chunks
    ]
    return out


async def _load(config: LoaderConfig, key: ResourceKey) -> Dict[str, Any]:
    session = AssetSession(
        FileFetcher(config.asset_root, config.max_file_size), config
    )
    try:
        if config.archives:
            await session.preload()
        root = await session.load_resource(key)
        pulled = [resource_summary(r) for r in _reachable(root) if r is not root]
        return {"resource": resource_summary(root), "dependencies": pulled}
    finally:
        session.close()


def _load_cmd(args: argparse.Namespace) -> int:
    if args.config is not None:
        config = load_config(args.config)
        archive = args.archive
    else:
        path = Path(args.archive)
        config = LoaderConfig(asset_root=path.parent)
        archive = path.name
    key = ResourceKey.of(archive, args.kind, args.index)
    result = asyncio.run(_load(config, key))
    get_reporter().flush()
    print(json.dumps(result, indent=2, sort_keys=True, default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="resgraph", description="Archive and resource graph loader"
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=sorted(BACKENDS),
        default="plain",
        help="Select reporter backend: plain (default), rich, json (JSONL events), silent",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("decompress", help="Decompress a Yaz0 file")
    d.add_argument("input", type=Path)
    d.add_argument("output", type=Path)
    d.set_defaults(func=_decompress_cmd)

    c = sub.add_parser("compress", help="Compress a file with Yaz0")
    c.add_argument("input", type=Path)
    c.add_argument("output", type=Path)
    c.set_defaults(func=_compress_cmd)

    i = sub.add_parser("inspect", help="Show an archive's tree and file kinds")
    i.add_argument("archive", type=Path)
    i.add_argument("--json", action="store_true", help="Emit JSON")
    i.set_defaults(func=_inspect_cmd)

    ld = sub.add_parser("load", help="Load and resolve one resource")
    ld.add_argument(
        "archive", help="Archive path (relative to asset_root with --config)"
    )
    ld.add_argument("kind", help="Four-character kind tag, e.g. UVTX")
    ld.add_argument("index", type=int)
    ld.add_argument("--config", type=Path, help="Loader config (JSON/YAML)")
    ld.set_defaults(func=_load_cmd)

    return p


def _select_reporter(requested: str) -> None:
    backend = BACKENDS[requested]
    if requested == "rich" and not sys.stderr.isatty():
        # spinners need a terminal
        backend = PlainReporter
    set_reporter(backend())


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    args = build_parser().parse_args(argv)
    _select_reporter(args.reporter)
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except ResgraphError as e:
        get_reporter().flush()
        get_logger().error(str(e))
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
