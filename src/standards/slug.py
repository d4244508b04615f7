"""Canonical file names for standards.

Name format: ``{type}-{tier}-{process}-{slug}-{status}.md`` where the slug
is a lowercase kebab-case title distinguishing siblings that share
type/tier/process/status.

Two historical layouts exist on disk and both are recognised when an
update needs to recover the slug from the current file name:

    standard-backend-development-api-design-active.md     (status suffix)
    standard-backend-development-active-api-design.md     (status infix, legacy)
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any

from standards.paths import MARKDOWN_EXTENSION, STANDARDS_DIRNAME
from standards.validate import normalize_type

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DIR_PREFIX = re.compile(rf"^[/\\]?{STANDARDS_DIRNAME}[/\\]", re.IGNORECASE)


def strip_extension(name: str) -> str:
    if name.lower().endswith(MARKDOWN_EXTENSION):
        return name[: -len(MARKDOWN_EXTENSION)]
    return name


def base_name(path: str) -> str:
    """File name without directories or the ``.md`` extension."""
    return strip_extension(re.split(r"[/\\]", path)[-1])


def sanitize_slug(value: str) -> str:
    """Lowercase kebab-case: non-alphanumeric runs become one hyphen, ends trimmed.

    A leading ``standards/`` directory and the ``.md`` extension are dropped.
    """
    name = base_name(_DIR_PREFIX.sub("", value.strip()))
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def name_prefix(metadata: dict[str, Any]) -> str:
    """``{type}-{tier}-{process}-`` with the type normalized."""
    parts = [normalize_type(metadata.get("type")), metadata.get("tier"), metadata.get("process")]
    return "-".join(str(p).lower() for p in parts if p) + "-"


def name_suffix(metadata: dict[str, Any]) -> str:
    return f"-{str(metadata.get('status', '')).lower()}"


def default_slug(metadata: dict[str, Any]) -> str:
    """First tag, else the tier, else the type."""
    tags = metadata.get("tags") or []
    for candidate in (tags[0] if tags else "", metadata.get("tier"), metadata.get("type")):
        if candidate:
            slug = sanitize_slug(str(candidate))
            if slug:
                return slug
    return "untitled"


def derive_filename(metadata: dict[str, Any], slug: str | None = None) -> str:
    """Derive the canonical file name from metadata and an optional title/slug.

    Idempotent: feeding the output back in as *slug* yields the same name,
    because an existing prefix and status suffix are stripped before being
    re-attached.
    """
    prefix = name_prefix(metadata)
    suffix = name_suffix(metadata)

    base = sanitize_slug(slug) if slug else ""
    if base.startswith(prefix):
        base = base[len(prefix) :]
    if base.endswith(suffix):
        base = base[: -len(suffix)]
    if not base:
        base = default_slug(metadata)
    return f"{prefix}{base}{suffix}{MARKDOWN_EXTENSION}"


# ---------------------------------------------------------------------------
# Layout detection
# ---------------------------------------------------------------------------


class NameLayout(enum.Enum):
    """How the slug and status are arranged after the type/tier/process prefix."""

    STATUS_SUFFIX = "prefix-slug-status"
    STATUS_INFIX = "prefix-status-slug"
    UNRECOGNISED = "prefix-slug"


@dataclass(frozen=True)
class ParsedName:
    layout: NameLayout
    slug: str


def _strip_prefix(name: str, metadata: dict[str, Any]) -> str:
    """Drop the type/tier/process prefix, tolerating legacy type spellings."""
    candidates = {name_prefix(metadata)}
    raw_type = metadata.get("type")
    if raw_type:
        candidates.add(f"{str(raw_type).lower()}-{metadata.get('tier')}-{metadata.get('process')}-")
    for prefix in sorted(candidates, key=len, reverse=True):
        if name.startswith(prefix):
            return name[len(prefix) :]
    # Prefix does not match the metadata: fall back to the first three segments.
    parts = name.split("-")
    return "-".join(parts[3:]) if len(parts) > 3 else name


def parse_filename(path: str, metadata: dict[str, Any]) -> ParsedName:
    """Recover the slug from a file name using the document's current status.

    Probes, in order: status as the last segment, status as the segment
    right after the prefix, otherwise everything after the prefix is slug.
    """
    name = base_name(path).lower()
    status = str(metadata.get("status", "")).lower()
    rest = _strip_prefix(name, metadata)

    if status and rest.endswith(f"-{status}"):
        return ParsedName(NameLayout.STATUS_SUFFIX, rest[: -len(status) - 1])
    if status and rest.startswith(f"{status}-"):
        return ParsedName(NameLayout.STATUS_INFIX, rest[len(status) + 1 :])
    if status and rest == status:
        return ParsedName(NameLayout.STATUS_SUFFIX, "")
    return ParsedName(NameLayout.UNRECOGNISED, rest)


def extract_slug(path: str, metadata: dict[str, Any]) -> str:
    return parse_filename(path, metadata).slug
