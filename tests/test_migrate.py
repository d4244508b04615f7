"""Tests for standards.migrate: renaming stores to the canonical layout."""

from standards.migrate import migrate_filenames, plan_target
from standards.parser import Document

CANON = "standard-backend-development-api-design-active.md"
INFIX = "standard-backend-development-active-api-design.md"


class TestPlanTarget:
    def test_infix_to_suffix(self, storage, write_doc):
        write_doc(INFIX)
        target, meta = plan_target(storage.read_one(INFIX))
        assert target == CANON
        assert meta["type"] == "standard"

    def test_plural_type(self):
        doc = Document(
            path="standards-backend-development-api-active.md",
            metadata={"type": "standards", "tier": "backend", "process": "development", "status": "active"},
        )
        target, meta = plan_target(doc)
        assert target == "standard-backend-development-api-active.md"
        assert meta["type"] == "standard"


class TestMigrate:
    def test_renames_legacy_layout(self, storage, write_doc, store_root):
        write_doc(INFIX, body="keep\n", version="1.3.0")
        report = migrate_filenames(storage)
        assert report.renamed == [(INFIX, CANON)]
        assert not (store_root / INFIX).exists()
        doc = storage.read_one(CANON)
        assert doc.content == "keep\n"
        assert doc.metadata["version"] == "1.3.0"

    def test_canonical_unchanged(self, storage, write_doc):
        write_doc(CANON)
        report = migrate_filenames(storage)
        assert report.unchanged == [CANON]
        assert report.renamed == []

    def test_plural_type_rewritten_in_place(self, storage, write_doc):
        name = "standard-backend-development-x-active.md"
        write_doc(name, type="standards")
        report = migrate_filenames(storage)
        assert report.retyped == [name]
        assert report.renamed == []
        assert storage.read_one(name).metadata["type"] == "standard"

    def test_plural_prefix_renamed(self, storage, write_doc):
        old = "standards-backend-development-x-active.md"
        write_doc(old, type="standards")
        report = migrate_filenames(storage)
        assert report.renamed == [(old, "standard-backend-development-x-active.md")]
        assert report.retyped == [old]

    def test_conflict_skipped(self, storage, write_doc, store_root):
        write_doc(CANON, body="canonical\n")
        write_doc(INFIX, body="legacy\n")
        report = migrate_filenames(storage)
        assert [p for p, _ in report.skipped] == [INFIX]
        assert storage.read_one(CANON).content == "canonical\n"
        assert (store_root / INFIX).exists()

    def test_two_legacy_files_same_target(self, storage, write_doc):
        a = "standard-backend-development-active-api-design.md"
        b = "standard-backend-development-api-design.md"
        write_doc(a)
        write_doc(b)
        report = migrate_filenames(storage)
        assert len(report.renamed) == 1
        assert len(report.skipped) == 1

    def test_dry_run_touches_nothing(self, storage, write_doc, store_root):
        write_doc(INFIX)
        report = migrate_filenames(storage, dry_run=True)
        assert report.renamed == [(INFIX, CANON)]
        assert (store_root / INFIX).exists()
        assert not (store_root / CANON).exists()
        assert report.to_dict()["dry_run"] is True

    def test_malformed_ignored(self, storage, sample_store):
        report = migrate_filenames(storage)
        assert "broken.md" not in report.unchanged
        assert len(report.unchanged) == 3
