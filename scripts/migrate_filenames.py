#!/usr/bin/env python3
"""Rename standards to the canonical {type}-{tier}-{process}-{slug}-{status}.md layout.

Also rewrites plural type spellings ("standards", "practices", ...) to their
singular form.  Files whose target name is already taken are skipped.

Run with --dry-run to preview the renames without touching any file.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from standards.migrate import migrate_filenames
from standards.paths import ROOT_ENV_VAR, resolve_store_root
from standards.storage import Storage


def main() -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument(
        "--root",
        type=Path,
        default=None,
        help=f"Standards directory (default: ${ROOT_ENV_VAR} or ./standards)",
    )
    ap.add_argument("--dry-run", action="store_true", help="Preview only, rename nothing")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s", stream=sys.stderr)

    root = resolve_store_root(args.root)
    if not root.is_dir():
        print(f"No standards directory at {root}", file=sys.stderr)
        return 1

    report = migrate_filenames(Storage(root), dry_run=args.dry_run)

    verb = "Would rename" if args.dry_run else "Renamed"
    for old, new in report.renamed:
        print(f"{verb}: {old} → {new}")
    for path, reason in report.skipped:
        print(f"Skipped: {path} ({reason})")
    print(json.dumps(report.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
