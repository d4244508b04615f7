"""Metadata validation, normalization, and versioning.

Every type value that enters the system goes through ``normalize_type`` so
legacy plural spellings ("standards") and canonical singular ones
("standard") are indistinguishable downstream.  Also holds the path guards
that keep caller-supplied paths inside the standards directory.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from standards.errors import InvalidMetadata, UnsafeInput
from standards.parser import format_timestamp

TYPES = ("principle", "standard", "practice", "tech-stack", "process")
TIERS = ("frontend", "backend", "database", "infrastructure", "security")
PROCESSES = ("development", "testing", "delivery", "operations")
STATUSES = ("active", "draft", "deprecated")
VERSION_BUMPS = ("major", "minor", "patch")

# Legacy spellings found in older files and callers.
LEGACY_TYPES = {
    "principles": "principle",
    "standards": "standard",
    "practices": "practice",
    "processes": "process",
    "technical-stack": "tech-stack",
    "tech-stacks": "tech-stack",
}

INITIAL_VERSION = "1.0.0"

_VERSION_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")

_ENUMS: dict[str, tuple[str, ...]] = {
    "tier": TIERS,
    "process": PROCESSES,
    "status": STATUSES,
}


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_type(value: str | None) -> str | None:
    """Map a type spelling to its canonical singular form (unknowns pass through lowercased)."""
    if not value:
        return value
    lower = str(value).strip().lower()
    return LEGACY_TYPES.get(lower, lower)


# ---------------------------------------------------------------------------
# Versions and timestamps
# ---------------------------------------------------------------------------


def parse_version(version: str, field: str = "version") -> tuple[int, int, int]:
    """Parse ``major.minor.patch`` into integers.

    Raises:
        InvalidMetadata: If *version* is not three dot-separated non-negative integers.
    """
    m = _VERSION_RE.match(str(version).strip())
    if not m:
        raise InvalidMetadata(
            field, version, "must be three dot-separated non-negative integers, e.g. '1.2.0'"
        )
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def bump_version(current: str, kind: str = "patch") -> str:
    """Increment one version component and zero the lower-order ones.

    >>> bump_version("1.4.2", "minor")
    '1.5.0'
    """
    major, minor, patch = parse_version(current)
    if kind == "major":
        return f"{major + 1}.0.0"
    if kind == "minor":
        return f"{major}.{minor + 1}.0"
    if kind == "patch":
        return f"{major}.{minor}.{patch + 1}"
    raise InvalidMetadata("version_bump", kind, f"must be one of {', '.join(VERSION_BUMPS)}")


def generate_initial_version() -> str:
    return INITIAL_VERSION


def generate_iso_date() -> str:
    """Current UTC instant, ISO-8601 with milliseconds."""
    return format_timestamp(datetime.now(timezone.utc))


def parse_iso_date(value: str, field: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidMetadata(field, value, "must be an ISO-8601 timestamp") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def _check_enum(field: str, value: Any, allowed: tuple[str, ...]) -> str:
    if not isinstance(value, str) or value not in allowed:
        raise InvalidMetadata(field, value, f"must be one of {', '.join(allowed)}")
    return value


def _check_tags(tags: Any) -> list[str]:
    if not isinstance(tags, list) or not tags:
        raise InvalidMetadata("tags", tags, "must be a non-empty list of strings")
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise InvalidMetadata("tags", tags, "tags must not contain empty strings")
    return list(tags)


def validate_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Validate a complete metadata record and return a normalized copy.

    Unknown fields are kept verbatim.

    Raises:
        InvalidMetadata: Naming the first offending field.
    """
    result = dict(metadata)

    raw_type = metadata.get("type")
    type_ = normalize_type(raw_type) if isinstance(raw_type, str) else raw_type
    result["type"] = _check_enum("type", type_, TYPES)
    for field, allowed in _ENUMS.items():
        result[field] = _check_enum(field, metadata.get(field), allowed)

    result["tags"] = _check_tags(metadata.get("tags"))

    version = metadata.get("version")
    if version is None:
        raise InvalidMetadata("version", version, "is required")
    parse_version(version)
    result["version"] = str(version).strip()

    author = metadata.get("author", "")
    if author is None:
        author = ""
    if not isinstance(author, str):
        raise InvalidMetadata("author", author, "must be a string")
    result["author"] = author

    for field in ("created", "updated"):
        if not metadata.get(field):
            raise InvalidMetadata(field, metadata.get(field), "is required")
    created = parse_iso_date(metadata["created"], "created")
    updated = parse_iso_date(metadata["updated"], "updated")
    if updated < created:
        raise InvalidMetadata(
            "updated", metadata["updated"], f"must not be earlier than created ({metadata['created']})"
        )

    return result


def validate_metadata_update(existing: dict[str, Any], partial: dict[str, Any]) -> None:
    """Reject a partial update that mutates ``created`` or regresses ``version``.

    Does not compute the new version; the caller does.
    """
    if "created" in partial and partial["created"] != existing.get("created"):
        raise InvalidMetadata(
            "created", partial["created"], "is immutable once set; omit it from the update"
        )
    if partial.get("version") is not None:
        new = parse_version(partial["version"])
        old = parse_version(existing.get("version", INITIAL_VERSION))
        if new < old:
            raise InvalidMetadata(
                "version",
                partial["version"],
                f"must not be lower than the current version {existing.get('version')}",
            )


# ---------------------------------------------------------------------------
# Path guards
# ---------------------------------------------------------------------------


def validate_relative_path(path: str, field: str = "path") -> str:
    """Validate a relative path (no traversal, no absolute).

    Raises:
        UnsafeInput: If the path is empty, absolute, or contains traversal.
    """
    if not path:
        raise UnsafeInput(field, path, "path must not be empty")

    if "\0" in path:
        raise UnsafeInput(field, repr(path), "contains null byte")

    if Path(path).is_absolute():
        raise UnsafeInput(field, path, "absolute paths not allowed")

    if ".." in Path(path).parts:
        raise UnsafeInput(field, path, "contains '..' (path traversal)")

    return path


def ensure_within(resolved: Path, root: Path) -> Path:
    """Ensure a path is within the expected root directory.

    Raises:
        UnsafeInput: If the path escapes root.
    """
    try:
        resolved.resolve().relative_to(root.resolve())
    except ValueError:
        raise UnsafeInput(
            "path",
            str(resolved),
            f"resolves outside allowed directory {root}",
        )
    return resolved
