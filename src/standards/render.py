"""Human-readable Markdown rendering of service results.

Each renderer takes the plain dict a ``StandardsService`` operation returns
and produces the text shown to the caller when ``response_format`` is
``"markdown"``.
"""

from __future__ import annotations

import re
from typing import Any

_WS = re.compile(r"\s+")


def _title(word: str) -> str:
    return word[:1].upper() + word[1:]


def _snippet(text: str) -> str:
    return _WS.sub(" ", text).strip()


def _meta_lines(meta: dict[str, Any], indent: str = "") -> list[str]:
    return [
        f"{indent}- Type: {meta.get('type', '')}",
        f"{indent}- Tier: {meta.get('tier', '')}",
        f"{indent}- Process: {meta.get('process', '')}",
        f"{indent}- Tags: {', '.join(meta.get('tags') or [])}",
        f"{indent}- Status: {meta.get('status', '')}",
        f"{indent}- Version: {meta.get('version', '')}",
        f"{indent}- Author: {meta.get('author', '')}",
        f"{indent}- Updated: {meta.get('updated', '')}",
    ]


def render_hierarchical_index(result: dict[str, Any]) -> str:
    """Render ``list_standards`` output as nested headings."""
    lines = ["# Standards Index", ""]
    for type_, tiers in result["index"].items():
        lines += [f"## {_title(type_)}", ""]
        for tier, processes in tiers.items():
            lines += [f"### {_title(tier)}", ""]
            for process, entries in processes.items():
                lines += [f"#### {_title(process)}", ""]
                for entry in entries:
                    meta = entry["metadata"]
                    lines += [
                        f"- **{entry['path']}**",
                        f"  - Tags: {', '.join(meta.get('tags') or [])}",
                        f"  - Version: {meta.get('version', '')}",
                        f"  - Status: {meta.get('status', '')}",
                        f"  - Updated: {meta.get('updated', '')}",
                    ]
                lines.append("")
    lines.append(f"**Total Standards**: {result['total_count']}")
    return "\n".join(lines)


def render_standard(doc: dict[str, Any]) -> str:
    """Render one document: path, metadata list, then the body."""
    lines = [f"# {doc['path']}", "", "## Metadata", ""]
    lines += _meta_lines(doc["metadata"])
    lines += ["", "## Content", "", doc["content"]]
    return "\n".join(lines)


def render_standards(result: dict[str, Any]) -> str:
    if not result["count"]:
        return "No standards found matching the specified criteria."
    body = "\n\n---\n\n".join(render_standard(doc) for doc in result["standards"])
    return f"Found {result['count']} standard(s).\n\n{body}"


def render_search_results(result: dict[str, Any]) -> str:
    if not result["count"]:
        return f'No results found for query: "{result["query"]}"'
    lines = [f'# Search results for "{result["query"]}"', "", f"{result['count']} result(s)", ""]
    for i, hit in enumerate(result["results"], 1):
        meta = hit["metadata"]
        lines.append(f"## {i}. {hit['path']} (score {hit['score']})")
        lines.append(
            f"- {meta.get('type', '')} / {meta.get('tier', '')} / {meta.get('process', '')}"
            f" · {meta.get('status', '')} · v{meta.get('version', '')}"
        )
        for match in hit["matches"]:
            lines.append(f"  > …{_snippet(match['context'])}…")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def render_metadata_list(result: dict[str, Any]) -> str:
    if not result["count"]:
        return "No standards found matching the specified criteria."
    lines = [f"# Standards Metadata ({result['count']})", ""]
    for item in result["standards"]:
        lines.append(f"## {item['path']}")
        lines += _meta_lines(item["metadata"])
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def render_created(result: dict[str, Any]) -> str:
    meta = result["metadata"]
    lines = [f"Successfully created standard at: {result['path']}", "", "Metadata:"]
    lines += _meta_lines(meta)
    lines.append(f"- Created: {meta.get('created', '')}")
    return "\n".join(lines)


def render_updated(result: dict[str, Any]) -> str:
    lines = [f"Successfully updated standard: {result['path']}"]
    if result["previous_path"] != result["path"]:
        lines.append(f"Renamed from: {result['previous_path']}")
    lines += [
        "",
        "Updated Metadata:",
        f"- Version: {result['previous_version']} → {result['new_version']}",
        f"- Updated: {result['metadata'].get('updated', '')}",
    ]
    if result["content_updated"]:
        lines.append("- Content: Updated")
    if result["fields_updated"]:
        lines.append(f"- Metadata fields updated: {', '.join(result['fields_updated'])}")
    return "\n".join(lines)
