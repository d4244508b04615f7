"""File-system storage for standards: the only writer of the store.

The store is a flat directory of ``*.md`` files named from their metadata
(see :mod:`standards.slug`).  Every write goes through a temp file and
``os.replace`` so a reader never sees a half-written document.

Known limitation: the existence check in ``create`` and the conflict check
in ``update`` are check-then-act with no lock.  Two writers racing for the
same derived name can both pass the check; the last write wins.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from standards.errors import (
    MalformedDocument,
    RenameConflict,
    StandardExists,
    StandardNotFound,
    StorageIOError,
)
from standards.parser import Document, parse_document, serialize_document
from standards.paths import MARKDOWN_EXTENSION, STANDARDS_DIRNAME
from standards.slug import derive_filename, extract_slug
from standards.validate import (
    bump_version,
    ensure_within,
    generate_initial_version,
    generate_iso_date,
    validate_metadata,
    validate_metadata_update,
    validate_relative_path,
)

logger = logging.getLogger("standards")

_TMP_SUFFIX = ".tmp"


class Storage:
    """Reads, writes, renames, and deletes standards under *root*."""

    def __init__(self, root: Path):
        self.root = Path(root)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def normalize_path(self, path: str | Path) -> str:
        """Normalize a caller path to a POSIX path relative to the store root.

        Accepts bare names, names prefixed with the store directory
        (``standards/x.md``), and absolute paths inside the store.
        Idempotent.

        Raises:
            UnsafeInput: If the path is empty, escapes the root, or traverses.
        """
        p = str(path).strip()
        if p and Path(p).is_absolute():
            ensure_within(Path(p), self.root)
            p = Path(p).resolve().relative_to(self.root.resolve()).as_posix()
        p = p.replace("\\", "/")
        prefix = re.compile(
            rf"^/?(?:{re.escape(STANDARDS_DIRNAME)}|{re.escape(self.root.name)})/", re.IGNORECASE
        )
        stripped = prefix.sub("", p)
        while stripped != p:
            p, stripped = stripped, prefix.sub("", stripped)
        return validate_relative_path(p)

    def full_path(self, path: str | Path) -> Path:
        return self.root / self.normalize_path(path)

    def canonical_path(self, metadata: dict[str, Any], slug: str | None = None) -> str:
        return derive_filename(metadata, slug)

    def ensure_store_exists(self) -> None:
        """Create the store root.  The store is flat, no nested directories."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(str(self.root), str(e)) from e

    def exists(self, path: str | Path) -> bool:
        return self.full_path(path).is_file()

    def _occupied(self, rel: str) -> bool:
        return (self.root / rel).exists()

    # ------------------------------------------------------------------
    # Low-level I/O
    # ------------------------------------------------------------------

    def _write(self, rel: str, doc: Document) -> None:
        """Write *doc* to *rel* atomically (temp file, then rename)."""
        target = self.root / rel
        tmp = target.with_name(target.name + _TMP_SUFFIX)
        try:
            self.ensure_store_exists()
            tmp.write_text(serialize_document(doc), encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageIOError(rel, str(e)) from e

    def read_one(self, path: str | Path) -> Document:
        """Read and parse one standard.

        Raises:
            StandardNotFound: No file at *path*.
            MalformedDocument: The frontmatter cannot be parsed.
            StorageIOError: Any other read failure.
        """
        rel = self.normalize_path(path)
        full = self.root / rel
        try:
            raw = full.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise StandardNotFound(str(path)) from None
        except IsADirectoryError:
            raise StandardNotFound(str(path)) from None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageIOError(rel, str(e)) from e
        return parse_document(raw, rel)

    def list_all_paths(self) -> list[str]:
        """Every ``*.md`` file directly under the root, sorted.  Non-recursive."""
        if not self.root.is_dir():
            return []
        return sorted(
            p.name
            for p in self.root.glob(f"*{MARKDOWN_EXTENSION}")
            if p.is_file()
        )

    def read_all(self) -> list[Document]:
        """Read every standard, skipping (and logging) unreadable or malformed files."""
        docs: list[Document] = []
        for rel in self.list_all_paths():
            try:
                docs.append(self.read_one(rel))
            except (MalformedDocument, StorageIOError, StandardNotFound) as e:
                logger.warning("Skipping standard %s: %s", rel, e)
        return docs

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        metadata: dict[str, Any],
        content: str,
        filename: str | None = None,
    ) -> Document:
        """Create a new standard with version 1.0.0 and fresh timestamps.

        Raises:
            InvalidMetadata: Metadata fails validation.
            StandardExists: A file already occupies the derived name.
        """
        now = generate_iso_date()
        complete = {
            **metadata,
            "version": generate_initial_version(),
            "created": now,
            "updated": now,
        }
        validated = validate_metadata(complete)
        rel = self.canonical_path(validated, filename)

        if self._occupied(rel):
            raise StandardExists(rel)

        doc = Document(path=rel, metadata=validated, content=content)
        self._write(rel, doc)
        logger.info("Created standard %s", rel)
        return doc

    def update(
        self,
        path: str | Path,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        version_bump: str = "patch",
    ) -> Document:
        """Merge *content* and a metadata patch into an existing standard.

        The version is taken verbatim from the patch when given, otherwise
        bumped by *version_bump*.  If the merged metadata yields a different
        canonical name the file is relocated.

        Raises:
            StandardNotFound: No file at *path*.
            InvalidMetadata: The patch or merged metadata is invalid.
            RenameConflict: The new name is already taken.
        """
        existing = self.read_one(path)
        patch = dict(metadata or {})
        validate_metadata_update(existing.metadata, patch)

        merged = {**existing.metadata, **patch, "updated": generate_iso_date()}
        if patch.get("version") is None:
            merged["version"] = bump_version(existing.metadata["version"], version_bump)
        validated = validate_metadata(merged)

        slug = extract_slug(existing.path, existing.metadata)
        new_rel = self.canonical_path(validated, slug or None)
        updated = Document(
            path=new_rel,
            metadata=validated,
            content=existing.content if content is None else content,
        )

        if new_rel != existing.path:
            self.relocate(existing.path, updated)
        else:
            self._write(new_rel, updated)
            logger.info("Updated standard %s (v%s)", new_rel, validated["version"])
        return updated

    def relocate(self, old_path: str, doc: Document) -> None:
        """Move a standard to ``doc.path`` and rewrite it with ``doc``'s bytes.

        The new content is staged in a temp file first, then the old file is
        renamed to the new name and the staged content renamed over it.  At
        every point the document exists at exactly one of the two names.  If
        the final step fails the rename is rolled back.

        Raises:
            RenameConflict: ``doc.path`` is already taken.
        """
        old_rel = self.normalize_path(old_path)
        new_rel = self.normalize_path(doc.path)
        if self._occupied(new_rel):
            raise RenameConflict(old_rel, new_rel)

        old_full = self.root / old_rel
        new_full = self.root / new_rel
        staged = new_full.with_name(new_full.name + _TMP_SUFFIX)
        try:
            staged.write_text(serialize_document(doc), encoding="utf-8")
        except OSError as e:
            staged.unlink(missing_ok=True)
            raise StorageIOError(new_rel, str(e)) from e

        try:
            os.rename(old_full, new_full)
        except OSError as e:
            staged.unlink(missing_ok=True)
            raise StorageIOError(old_rel, f"rename to {new_rel} failed: {e}") from e

        try:
            os.replace(staged, new_full)
        except OSError as e:
            staged.unlink(missing_ok=True)
            try:
                os.rename(new_full, old_full)
            except OSError:
                logger.error("Rollback of %s -> %s failed; file left at %s", old_rel, new_rel, new_rel)
            raise StorageIOError(new_rel, f"rewrite after rename failed: {e}") from e

        logger.info("Renamed standard %s -> %s (v%s)", old_rel, new_rel, doc.metadata.get("version"))

    def rewrite(self, doc: Document) -> None:
        """Overwrite an existing standard in place with *doc*, no version change."""
        rel = self.normalize_path(doc.path)
        if not self._occupied(rel):
            raise StandardNotFound(rel)
        self._write(rel, doc)
        logger.info("Rewrote standard %s", rel)

    def delete(self, path: str | Path) -> None:
        """Remove a standard.

        Raises:
            StandardNotFound: No file at *path*.
        """
        rel = self.normalize_path(path)
        try:
            (self.root / rel).unlink()
        except FileNotFoundError:
            raise StandardNotFound(str(path)) from None
        except OSError as e:
            raise StorageIOError(rel, str(e)) from e
        logger.info("Deleted standard %s", rel)

