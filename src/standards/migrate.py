"""Rename stored standards to the canonical file name layout.

Older stores hold files in the status-infix layout
(``standard-backend-development-active-api-design.md``) or with plural
type spellings (``standards-backend-...``).  ``migrate_filenames`` walks the
store, normalizes the type in the frontmatter, and moves each file to the
name ``derive_filename`` would give it.  Versions and timestamps are not
touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from standards.errors import StandardsError
from standards.parser import Document
from standards.slug import derive_filename, extract_slug
from standards.storage import Storage
from standards.validate import normalize_type

logger = logging.getLogger("standards")


@dataclass
class MigrationReport:
    renamed: list[tuple[str, str]] = field(default_factory=list)
    retyped: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "renamed": [{"from": a, "to": b} for a, b in self.renamed],
            "retyped": list(self.retyped),
            "unchanged": len(self.unchanged),
            "skipped": [{"path": p, "reason": r} for p, r in self.skipped],
        }


def plan_target(doc: Document) -> tuple[str, dict[str, Any]]:
    """Return the canonical name and normalized metadata for *doc*."""
    meta = dict(doc.metadata)
    meta["type"] = normalize_type(meta.get("type"))
    slug = extract_slug(doc.path, doc.metadata)
    return derive_filename(meta, slug or None), meta


def migrate_filenames(storage: Storage, dry_run: bool = False) -> MigrationReport:
    """Move every readable standard to its canonical name.

    A file whose target name is already taken by another file is skipped
    and reported, never overwritten.  Malformed files are skipped by
    ``Storage.read_all`` and do not appear in the report.
    """
    report = MigrationReport(dry_run=dry_run)
    planned: set[str] = set()

    for doc in storage.read_all():
        target, meta = plan_target(doc)
        retype = meta["type"] != doc.metadata.get("type")

        if target == doc.path:
            if not retype:
                report.unchanged.append(doc.path)
                continue
            report.retyped.append(doc.path)
            if not dry_run:
                storage.rewrite(Document(path=doc.path, metadata=meta, content=doc.content))
            continue

        if target in planned or storage.exists(target):
            report.skipped.append((doc.path, f"target '{target}' already exists"))
            logger.warning("Migration skipped %s: %s already exists", doc.path, target)
            continue

        planned.add(target)
        report.renamed.append((doc.path, target))
        if retype:
            report.retyped.append(doc.path)
        if dry_run:
            continue
        try:
            storage.relocate(doc.path, Document(path=target, metadata=meta, content=doc.content))
        except StandardsError as e:
            report.renamed.pop()
            if retype:
                report.retyped.pop()
            report.skipped.append((doc.path, str(e)))
            logger.warning("Migration skipped %s: %s", doc.path, e)

    logger.info(
        "Filename migration%s: %d renamed, %d unchanged, %d skipped",
        " (dry run)" if dry_run else "",
        len(report.renamed),
        len(report.unchanged),
        len(report.skipped),
    )
    return report
