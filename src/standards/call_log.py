"""MCP tool call logging.

Writes to ~/.standards-mcp/logs/, one JSONL file per server process.
File naming: {start_datetime}_{pid}.jsonl

Each call record carries the tool, its (truncated) arguments, the output
format the caller asked for, and the standards directory it ran against,
so logs from several stores can be told apart after the fact.
"""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from standards.paths import home_dir as _home_dir

_LOGS_DIR = _home_dir() / "logs"

# Long document bodies are cut to this many characters.
_PARAM_LIMIT = 200
_ERROR_LIMIT = 500

_session_file: Path | None = None
_store: str | None = None


def _now() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S")


def _init_session() -> Path:
    """Create the session log file with a metadata header line."""
    global _session_file
    _LOGS_DIR.mkdir(parents=True, exist_ok=True)
    pid = os.getpid()
    _session_file = _LOGS_DIR / f"{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}_{pid}.jsonl"
    meta = {"type": "session_start", "ts": _now(), "pid": pid}
    _session_file.write_text(json.dumps(meta) + "\n", encoding="utf-8")
    return _session_file


def _get_session_file() -> Path:
    if _session_file is None or not _session_file.parent.exists():
        return _init_session()
    return _session_file


def _append(entry: dict[str, Any]) -> None:
    with open(_get_session_file(), "a", encoding="utf-8") as fp:
        fp.write(json.dumps(entry, ensure_ascii=False) + "\n")


def _shorten(value: Any) -> str:
    s = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    return s[:_PARAM_LIMIT] + "…" if len(s) > _PARAM_LIMIT else s


def set_store(store_root: Path, count: int) -> None:
    """Record the resolved standards directory and how many standards it loaded."""
    global _store
    _store = str(Path(store_root).expanduser().resolve())
    _append({"type": "set_store", "ts": _now(), "store": _store, "standards": count})


def log_call(
    tool: str,
    params: dict[str, Any],
    duration_ms: float,
    status: str = "ok",
    error: str = "",
) -> None:
    """Append one tool call record to the session JSONL file."""
    args = {k: _shorten(v) for k, v in params.items() if k != "response_format" and v is not None}
    entry: dict[str, Any] = {
        "type": "call",
        "ts": _now(),
        "tool": tool,
        "format": params.get("response_format") or "markdown",
        "params": args,
        "ms": round(duration_ms, 1),
        "status": status,
    }
    if _store:
        entry["store"] = _store
    if error:
        entry["error"] = error[:_ERROR_LIMIT]
    _append(entry)
