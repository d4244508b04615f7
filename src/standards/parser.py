"""Frontmatter parsing and serialization for standard documents.

A standard is a Markdown file that starts with a YAML frontmatter block::

    ---
    type: standard
    tier: backend
    process: development
    tags:
    - api
    status: active
    version: 1.0.0
    author: Platform Team
    created: '2025-01-01T00:00:00.000Z'
    updated: '2025-01-01T00:00:00.000Z'
    ---
    # API Standards
    ...

``parse_document`` and ``serialize_document`` are a round-trip pair: the
metadata block comes back semantically equal and the body byte-identical.
Known fields are always written in ``FIELD_ORDER``; unknown fields follow in
the order they were read, so re-serialized files diff cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import yaml

from standards.errors import MalformedDocument

DELIMITER = "---"

# Order for serialization
FIELD_ORDER = [
    "type",
    "tier",
    "process",
    "tags",
    "status",
    "version",
    "author",
    "created",
    "updated",
]
REQUIRED_FIELDS = frozenset(FIELD_ORDER)


@dataclass
class Document:
    """A standard: relative path, frontmatter metadata, Markdown body."""

    path: str
    metadata: dict[str, Any] = field(default_factory=dict)
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "metadata": copy_metadata(self.metadata), "content": self.content}


def copy_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Detached copy of a metadata dict; list values (tags) are copied too."""
    return {k: list(v) if isinstance(v, list) else v for k, v in metadata.items()}


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_scalar(value: Any) -> Any:
    # YAML resolves unquoted timestamps to datetime/date objects.
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _coerce_metadata(data: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        key = str(key)
        if key == "tags":
            if isinstance(value, str):
                value = [value]
            elif isinstance(value, list):
                value = [str(_coerce_scalar(v)) for v in value]
        elif key in ("version", "author", "created", "updated"):
            value = "" if value is None else str(_coerce_scalar(value))
        else:
            value = _coerce_scalar(value)
        result[key] = value
    return result


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------


def split_frontmatter(raw: str, path: str = "") -> tuple[str, str]:
    """Split file text into ``(frontmatter_yaml, body)``.

    Raises:
        MalformedDocument: If the opening or closing delimiter is missing.
    """
    text = raw[1:] if raw.startswith("\ufeff") else raw
    first, sep, rest = text.partition("\n")
    if first.rstrip("\r") != DELIMITER or not sep:
        raise MalformedDocument(path, "no opening '---' frontmatter delimiter on the first line")

    offset = 0
    while True:
        end = rest.find("\n", offset)
        line = rest[offset:] if end == -1 else rest[offset:end]
        if line.rstrip("\r") == DELIMITER:
            body = "" if end == -1 else rest[end + 1 :]
            return rest[:offset], body
        if end == -1:
            raise MalformedDocument(path, "no closing '---' frontmatter delimiter")
        offset = end + 1


def parse_document(raw: str, path: str) -> Document:
    """Parse raw file text into a Document.

    Raises:
        MalformedDocument: If the frontmatter is absent, is not a YAML
            mapping, or lacks a required field.
    """
    block, body = split_frontmatter(raw, path)
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise MalformedDocument(path, f"invalid YAML in frontmatter: {e}") from e

    if not isinstance(data, dict):
        kind = "empty" if data is None else type(data).__name__
        raise MalformedDocument(path, f"frontmatter must be a key/value mapping, got {kind}")

    metadata = _coerce_metadata(data)
    missing = sorted(REQUIRED_FIELDS - metadata.keys())
    if missing:
        raise MalformedDocument(path, f"missing required field(s): {', '.join(missing)}")
    if not isinstance(metadata["tags"], list):
        raise MalformedDocument(path, "'tags' must be a list of strings")

    return Document(path=path, metadata=metadata, content=body)


# ---------------------------------------------------------------------------
# Serialize
# ---------------------------------------------------------------------------


def ordered_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Known fields in FIELD_ORDER, then extra fields in their given order."""
    ordered = {k: metadata[k] for k in FIELD_ORDER if k in metadata}
    for key, value in metadata.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


def serialize_document(doc: Document) -> str:
    """Render a Document back to file text."""
    block = yaml.safe_dump(
        ordered_metadata(doc.metadata),
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
    return f"{DELIMITER}\n{block}{DELIMITER}\n{doc.content}"


# ---------------------------------------------------------------------------
# Search snippets
# ---------------------------------------------------------------------------


def extract_context(text: str, match_index: int, window: int) -> str:
    """Return up to *window* characters of *text* centred on *match_index*."""
    if window <= 0 or not text:
        return ""
    half = window // 2
    start = max(0, match_index - half)
    end = min(len(text), start + window)
    # Re-centre when clipped at the end
    start = max(0, end - window)
    return text[start:end]
