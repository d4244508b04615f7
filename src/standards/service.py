"""Standards operations: the six tool operations plus delete.

``StandardsService`` owns one Storage and one StandardsIndex.  Reads query
the index snapshot; every mutation goes to storage and is followed by a
full index refresh before returning.  Results are plain dicts ready for
JSON or Markdown rendering.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from standards.config import StandardsConfig, load_config
from standards.errors import InvalidMetadata
from standards.index import FilterCriteria, StandardsIndex
from standards.parser import copy_metadata
from standards.paths import store_dir
from standards.storage import Storage
from standards.validate import VERSION_BUMPS

logger = logging.getLogger("standards")


class StandardsService:
    """Composes storage and index behind the tool-facing operations."""

    def __init__(self, storage: Storage, config: StandardsConfig | None = None):
        self.storage = storage
        self.config = config or StandardsConfig()
        self.index = StandardsIndex(
            storage,
            context_length=self.config.context_length,
            max_matches=self.config.max_matches_per_result,
        )

    @classmethod
    def from_root(cls, root: Path) -> StandardsService:
        """Build a service for the store at *root*, reading its config."""
        return cls(Storage(root), load_config(store_dir(root)))

    def start(self) -> None:
        """Ensure the store exists and load the index."""
        self.storage.ensure_store_exists()
        self.index.refresh()
        logger.info("Loaded %d standards from %s", len(self.index.documents), self.storage.root)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_standards(
        self,
        type: str | None = None,
        tier: str | None = None,
        process: str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        tree = self.index.build_hierarchical_index(
            FilterCriteria(type=type, tier=tier, process=process, status=status)
        )
        total = sum(
            len(entries)
            for tiers in tree.values()
            for processes in tiers.values()
            for entries in processes.values()
        )
        return {"total_count": total, "index": tree}

    def get_standard(
        self,
        path: str | None = None,
        type: str | None = None,
        tier: str | None = None,
        process: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        """One standard by path, or every standard matching the criteria.

        By path the result is the document dict; by criteria it is
        ``{count, standards}``.
        """
        if path:
            return self.index.find_by_path(path).to_dict()
        if not any((type, tier, process, tags)):
            raise InvalidMetadata(
                "path", path, "provide a path, or at least one of type, tier, process, tags"
            )
        docs = self.index.filter(FilterCriteria(type=type, tier=tier, process=process, tags=tags))
        return {"count": len(docs), "standards": [d.to_dict() for d in docs]}

    def search_standards(
        self,
        query: str,
        type: str | None = None,
        tier: str | None = None,
        process: str | None = None,
        tags: list[str] | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        cfg = self.config
        if len((query or "").strip()) < cfg.min_query_length:
            raise InvalidMetadata(
                "query", query, f"must be at least {cfg.min_query_length} characters"
            )
        if limit is None:
            limit = cfg.search_limit_default
        limit = max(1, min(int(limit), cfg.search_limit_max))

        results = self.index.search(
            query,
            FilterCriteria(type=type, tier=tier, process=process, tags=tags),
            limit,
        )
        return {
            "query": query,
            "count": len(results),
            "results": [
                {
                    "path": r.document.path,
                    "metadata": copy_metadata(r.document.metadata),
                    "score": r.score,
                    "match_count": len(r.matches),
                    "matches": [m.to_dict() for m in r.matches],
                }
                for r in results
            ],
        }

    def get_metadata(
        self,
        type: str | None = None,
        tier: str | None = None,
        process: str | None = None,
        tags: list[str] | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        items = self.index.metadata_list(
            FilterCriteria(type=type, tier=tier, process=process, status=status, tags=tags)
        )
        return {"count": len(items), "standards": items}

    def stats(self) -> dict[str, Any]:
        return self.index.snapshot_stats()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_standard(
        self,
        metadata: dict[str, Any],
        content: str,
        filename: str | None = None,
    ) -> dict[str, Any]:
        meta = dict(metadata)
        if not meta.get("author") and self.config.default_author:
            meta["author"] = self.config.default_author
        doc = self.storage.create(meta, content, filename)
        self.index.refresh()
        return {"success": True, "path": doc.path, "metadata": doc.metadata}

    def update_standard(
        self,
        path: str,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        version_bump: str = "patch",
    ) -> dict[str, Any]:
        if content is None and not metadata:
            raise InvalidMetadata("content", content, "provide content, metadata, or both")
        if version_bump not in VERSION_BUMPS:
            raise InvalidMetadata(
                "version_bump", version_bump, f"must be one of {', '.join(VERSION_BUMPS)}"
            )

        existing = self.index.find_by_path(path)
        updated = self.storage.update(
            existing.path, content=content, metadata=metadata, version_bump=version_bump
        )
        self.index.refresh()
        return {
            "success": True,
            "path": updated.path,
            "previous_path": existing.path,
            "previous_version": existing.metadata.get("version"),
            "new_version": updated.metadata["version"],
            "content_updated": content is not None,
            "fields_updated": sorted((metadata or {}).keys()),
            "metadata": updated.metadata,
        }

    def delete_standard(self, path: str) -> dict[str, Any]:
        rel = self.storage.normalize_path(path)
        self.storage.delete(rel)
        self.index.refresh()
        return {"success": True, "path": rel}
