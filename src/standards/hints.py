"""Self-describing JSON response builder.

Every JSON response includes contextual ``hints`` showing the LLM what to
call next.
"""

from __future__ import annotations

import json
from typing import Any


def response(data: dict[str, Any], hints: dict[str, str] | None = None) -> str:
    """Build a JSON response with next-action hints.

    Args:
        data: The response payload.
        hints: Optional contextual hints (next actions).

    Returns:
        JSON string with ``hints`` appended when given.
    """
    if hints:
        data["hints"] = hints
    return json.dumps(data, indent=2, ensure_ascii=False)


def standard_hints(path: str) -> dict[str, str]:
    """Hints for a single-standard response."""
    return {
        "update_content": f"standards_update(path='{path}', content='...')",
        "deprecate": f"standards_update(path='{path}', metadata={{status: 'deprecated'}})",
        "related": "standards_search(query='...')",
    }


def list_hints(total: int) -> dict[str, str]:
    if total == 0:
        return {"create": "standards_create(metadata={...}, content='...')"}
    return {
        "read": "standards_get(path='<file name>')",
        "narrow": "standards_list_index(filter_tier='backend')",
    }


def search_hints(query: str, count: int, limit: int) -> dict[str, str]:
    h: dict[str, str] = {"read": "standards_get(path='<path from results>')"}
    if count == 0:
        h["broaden"] = "standards_search(query='<shorter or broader term>')"
    elif count >= limit:
        h["more"] = f"standards_search(query='{query}', limit={limit * 2})"
    return h


def mutation_hints(path: str) -> dict[str, str]:
    return {
        "view": f"standards_get(path='{path}')",
        "index": "standards_list_index()",
    }
