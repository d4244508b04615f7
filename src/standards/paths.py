"""Canonical directory and file names for the standards store.

Single source of truth for the store directory name, the dot-directory
used for logs and config, and the document extension.

Layout:
  ~/.standards-mcp/             home_dir()    call logs
  <store>/                      store root    flat *.md standards
  <store>/.standards-mcp/       store_dir()   config.yaml, server.log
"""

from __future__ import annotations

import os
from pathlib import Path

DOT_DIR = ".standards-mcp"
STANDARDS_DIRNAME = "standards"
MARKDOWN_EXTENSION = ".md"
ROOT_ENV_VAR = "STANDARDS_ROOT"


def home_dir() -> Path:
    """Return ~/.standards-mcp/ (per-session call logs)."""
    return Path.home() / DOT_DIR


def store_dir(store_root: Path) -> Path:
    """Return <store>/.standards-mcp/ (config and server log)."""
    return store_root / DOT_DIR


def resolve_store_root(explicit: str | Path | None = None) -> Path:
    """Store root: explicit argument > STANDARDS_ROOT env var > ./standards."""
    if explicit:
        return Path(explicit).expanduser()
    env = os.environ.get(ROOT_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return Path.cwd() / STANDARDS_DIRNAME
