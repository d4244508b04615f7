"""Store configuration: loads and validates .standards-mcp/config.yaml.

The config file lives in the hidden dot-directory inside the standards
store.  Every key is optional; a missing file means all defaults.

If no config exists, create_default() writes a commented starter file.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from standards.errors import ConfigError


@dataclass
class StandardsConfig:
    """Parsed .standards-mcp/config.yaml."""

    search_limit_default: int = 10
    search_limit_max: int = 50
    context_length: int = 100
    max_matches_per_result: int = 3
    min_query_length: int = 2
    default_author: str = ""


_DEFAULT_CONFIG = """\
# Standards MCP configuration
# All keys are optional; remove a key to fall back to its default.

# Number of search results returned when the caller gives no limit,
# and the hard ceiling on any caller-supplied limit.
search_limit_default: 10
search_limit_max: 50

# Characters of body text shown around each search match, and how many
# match snippets are kept per standard.
context_length: 100
max_matches_per_result: 3

# Shorter search queries are rejected.
min_query_length: 2

# Author recorded when standards_create is called without one.
default_author: ""
"""

_INT_FIELDS = (
    "search_limit_default",
    "search_limit_max",
    "context_length",
    "max_matches_per_result",
    "min_query_length",
)


def config_path(dot_dir: Path) -> Path:
    """Path to config.yaml inside the .standards-mcp/ directory."""
    return dot_dir / "config.yaml"


def create_default(dot_dir: Path) -> Path:
    """Write a starter config.yaml if it doesn't exist. Returns the path."""
    p = config_path(dot_dir)
    if not p.exists():
        dot_dir.mkdir(parents=True, exist_ok=True)
        p.write_text(_DEFAULT_CONFIG, encoding="utf-8")
    return p


def load_config(dot_dir: Path) -> StandardsConfig:
    """Load and validate config.yaml. Returns defaults if file is missing."""
    p = config_path(dot_dir)
    if not p.exists():
        return StandardsConfig()

    raw = p.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {p}: {e}", hint="Fix the syntax or delete the file.") from e

    if not isinstance(data, dict):
        raise ConfigError(f"expected a YAML mapping in {p}, got {type(data).__name__}")

    cfg = StandardsConfig()
    for name in _INT_FIELDS:
        if name not in data:
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")
        setattr(cfg, name, value)

    if "default_author" in data:
        cfg.default_author = "" if data["default_author"] is None else str(data["default_author"])

    if cfg.search_limit_default > cfg.search_limit_max:
        raise ConfigError(
            f"search_limit_default ({cfg.search_limit_default}) exceeds "
            f"search_limit_max ({cfg.search_limit_max})"
        )
    return cfg
