#!/usr/bin/env python3
"""Build a phone data snapshot and write it to the cache directory.

Usage
-----
Run a single refresh (fetch, encode, persist) and print a summary::

    python scripts/refresh_cache.py --cache-dir /tmp/phonenumbersCacheDir

Options::

    --cache-dir DIR      Cache directory (default: $PHONEDATA_CACHE_DIR or /tmp/phonenumbersCacheDir)
    --check              Only load and verify the existing cache, no network access
    --mode MODE          Bulk fetch mode: archive (default) or export
    --json               Print the summary as JSON
    -v, --verbose        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyphonedata import (  # noqa: E402
    PhoneDataError,
    Snapshot,
    SnapshotCache,
    SnapshotStore,
    SnapshotUpdater,
    UpdaterConfig,
)


def _summary(snapshot: Snapshot, cache_file: Path) -> dict[str, Any]:
    return {
        "cache_file": str(cache_file),
        "version": snapshot.version,
        "languages": snapshot.languages,
        "blob_sizes": snapshot.blob_sizes(),
    }


def _print_summary(summary: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(summary, indent=2))
        return
    print(f"cache file: {summary['cache_file']}")
    print(f"version:    {summary['version']}")
    print(f"languages:  {', '.join(summary['languages']) or '-'}")
    for name, size in summary["blob_sizes"].items():
        print(f"  {name:<40} {size:>10}")


async def _refresh(config: UpdaterConfig) -> Snapshot:
    store = SnapshotStore()
    async with SnapshotUpdater(store, config) as updater:
        return await updater.update()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--cache-dir", type=Path, default=None)
    parser.add_argument("--check", action="store_true")
    parser.add_argument("--mode", choices=("archive", "export"), default=None)
    parser.add_argument("--json", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if args.cache_dir is not None:
        overrides["cache_dir"] = args.cache_dir
    if args.mode is not None:
        overrides["bulk_fetch_mode"] = args.mode
    config = UpdaterConfig.from_env(**overrides)

    try:
        if args.check:
            snapshot = SnapshotCache(config.cache_file).load()
        else:
            snapshot = asyncio.run(_refresh(config))
    except PhoneDataError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _print_summary(_summary(snapshot, config.cache_file), args.json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
