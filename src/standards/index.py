"""In-memory index of all standards.

The index is a disposable snapshot rebuilt wholesale from storage by
``refresh()``.  A refresh builds the new snapshot in full before swapping
it in, so readers never observe a partially rebuilt index.  Files that fail
to load are logged by storage and simply missing from the snapshot.

Lifecycle: construct → refresh (startup) → refresh (after each mutation).
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from standards.errors import AmbiguousPath, StandardNotFound
from standards.parser import Document, copy_metadata, extract_context, format_timestamp
from standards.slug import base_name
from standards.storage import Storage
from standards.validate import normalize_type

logger = logging.getLogger("standards")

DEFAULT_SEARCH_LIMIT = 10
SEARCH_CONTEXT_LENGTH = 100
MAX_MATCHES_PER_RESULT = 3


class IndexState(enum.Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"


@dataclass
class FilterCriteria:
    """Metadata filter.  Absent fields impose no constraint; tags must all be present."""

    type: str | None = None
    tier: str | None = None
    process: str | None = None
    status: str | None = None
    tags: list[str] | None = None

    def matches(self, metadata: dict[str, Any]) -> bool:
        if self.type and normalize_type(metadata.get("type")) != normalize_type(self.type):
            return False
        if self.tier and metadata.get("tier") != self.tier:
            return False
        if self.process and metadata.get("process") != self.process:
            return False
        if self.status and metadata.get("status") != self.status:
            return False
        if self.tags:
            have = metadata.get("tags") or []
            if not all(tag in have for tag in self.tags):
                return False
        return True


@dataclass
class SearchMatch:
    context: str
    start_index: int
    end_index: int

    def to_dict(self) -> dict[str, Any]:
        return {"context": self.context, "start_index": self.start_index, "end_index": self.end_index}


@dataclass
class SearchResult:
    document: Document
    score: int
    matches: list[SearchMatch] = field(default_factory=list)


class StandardsIndex:
    """Snapshot of every standard in a Storage, with filter/search/lookup."""

    def __init__(
        self,
        storage: Storage,
        context_length: int = SEARCH_CONTEXT_LENGTH,
        max_matches: int = MAX_MATCHES_PER_RESULT,
    ):
        self.storage = storage
        self.context_length = context_length
        self.max_matches = max_matches
        self._documents: tuple[Document, ...] = ()
        self._last_refresh: datetime | None = None
        self._state = IndexState.EMPTY

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def documents(self) -> tuple[Document, ...]:
        return self._documents

    def refresh(self) -> None:
        """Re-read every standard from storage and swap in the new snapshot."""
        previous = self._state
        self._state = IndexState.LOADING
        t0 = time.monotonic()
        try:
            snapshot = tuple(self.storage.read_all())
        except Exception:
            self._state = previous
            raise
        self._documents = snapshot
        self._last_refresh = datetime.now(timezone.utc)
        self._state = IndexState.READY
        logger.info(
            "Index refreshed: %d standards in %.3fs", len(snapshot), time.monotonic() - t0
        )

    def snapshot_stats(self) -> dict[str, Any]:
        return {
            "count": len(self._documents),
            "last_refresh": format_timestamp(self._last_refresh) if self._last_refresh else None,
            "state": self._state.value,
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def filter(self, criteria: FilterCriteria | None = None) -> list[Document]:
        """Documents matching *criteria*, in snapshot order."""
        criteria = criteria or FilterCriteria()
        return [d for d in self._documents if criteria.matches(d.metadata)]

    def search(
        self,
        query: str,
        criteria: FilterCriteria | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[SearchResult]:
        """Frequency/field-weighted search over the filtered snapshot.

        Scoring: +1 per body occurrence, +2 once if the query appears in
        type/tier/process/tags/author, +1 once if it appears in the path.
        Sorted by descending score; ties keep filter order.
        """
        if not query:
            return []
        needle = query.lower()
        results: list[SearchResult] = []

        for doc in self.filter(criteria):
            score = 0
            matches: list[SearchMatch] = []

            body = doc.content.lower()
            pos = body.find(needle)
            while pos != -1:
                score += 1
                if len(matches) < self.max_matches:
                    matches.append(
                        SearchMatch(
                            context=extract_context(doc.content, pos, self.context_length),
                            start_index=pos,
                            end_index=pos + len(query),
                        )
                    )
                pos = body.find(needle, pos + 1)

            meta = doc.metadata
            meta_text = " ".join(
                str(v)
                for v in (
                    meta.get("type"),
                    meta.get("tier"),
                    meta.get("process"),
                    *(meta.get("tags") or []),
                    meta.get("author"),
                )
                if v
            ).lower()
            if needle in meta_text:
                score += 2

            if needle in doc.path.lower():
                score += 1

            if score > 0 or matches:
                results.append(SearchResult(document=doc, score=score, matches=matches))

        # sorted() is stable: equal scores keep filter order
        results = sorted(results, key=lambda r: r.score, reverse=True)
        return results[:limit]

    def find_by_path(self, path: str) -> Document:
        """Resolve a caller path: exact path, then base name, then substring.

        Raises:
            StandardNotFound: Nothing matches.
            AmbiguousPath: Only the substring stage matched, and more than once.
        """
        normalized = self.storage.normalize_path(path)
        docs = self._documents

        for doc in docs:
            if doc.path == normalized:
                return doc

        wanted = base_name(normalized).lower()
        if not wanted:
            raise StandardNotFound(path)

        for doc in docs:
            if base_name(doc.path).lower() == wanted:
                return doc

        partial = [doc for doc in docs if wanted in base_name(doc.path).lower()]
        if len(partial) == 1:
            return partial[0]
        if len(partial) > 1:
            raise AmbiguousPath(path, [d.path for d in partial])
        raise StandardNotFound(path)

    def build_hierarchical_index(
        self, criteria: FilterCriteria | None = None
    ) -> dict[str, dict[str, dict[str, list[dict[str, Any]]]]]:
        """Group matches as type → tier → process → [{path, metadata}], in encounter order."""
        tree: dict[str, dict[str, dict[str, list[dict[str, Any]]]]] = {}
        for doc in self.filter(criteria):
            meta = doc.metadata
            type_ = normalize_type(meta.get("type")) or ""
            bucket = (
                tree.setdefault(type_, {})
                .setdefault(str(meta.get("tier", "")), {})
                .setdefault(str(meta.get("process", "")), [])
            )
            bucket.append({"path": doc.path, "metadata": copy_metadata(meta)})
        return tree

    def metadata_list(self, criteria: FilterCriteria | None = None) -> list[dict[str, Any]]:
        """Same as ``filter`` but projected to ``{path, metadata}`` without bodies."""
        return [
            {"path": d.path, "metadata": copy_metadata(d.metadata)} for d in self.filter(criteria)
        ]
