"""Shared test fixtures for the standards server."""

import textwrap
from pathlib import Path

import pytest

from standards.storage import Storage

TS = "2025-01-01T00:00:00.000Z"


def make_raw(
    type="standard",
    tier="backend",
    process="development",
    tags=("api",),
    status="active",
    version="1.0.0",
    author="Platform Team",
    body="# Title\n\nBody text.\n",
) -> str:
    """Frontmatter + body text in the on-disk layout."""
    tag_lines = "".join(f"- {t}\n" for t in tags)
    return (
        "---\n"
        f"type: {type}\n"
        f"tier: {tier}\n"
        f"process: {process}\n"
        f"tags:\n{tag_lines}"
        f"status: {status}\n"
        f"version: {version}\n"
        f"author: {author}\n"
        f"created: '{TS}'\n"
        f"updated: '{TS}'\n"
        "---\n"
        f"{body}"
    )


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Empty standards directory."""
    root = tmp_path / "standards"
    root.mkdir()
    return root


@pytest.fixture
def storage(store_root: Path) -> Storage:
    return Storage(store_root)


@pytest.fixture
def write_doc(store_root: Path):
    """Write a standard file directly, bypassing Storage."""

    def _write(name: str, **kwargs) -> Path:
        p = store_root / name
        p.write_text(make_raw(**kwargs), encoding="utf-8")
        return p

    return _write


@pytest.fixture
def sample_store(write_doc, store_root: Path) -> Path:
    """Three standards across types and tiers, plus one malformed file."""
    write_doc(
        "standard-backend-development-api-design-active.md",
        tags=("api", "rest"),
        body="# API Design\n\nUse REST. Version every API.\n",
    )
    write_doc(
        "practice-security-testing-auth-active.md",
        type="practice",
        tier="security",
        process="testing",
        tags=("security", "api"),
        body="# Auth testing\n\nTest authentication flows for every API.\n",
    )
    write_doc(
        "principle-frontend-delivery-accessibility-draft.md",
        type="principle",
        tier="frontend",
        process="delivery",
        tags=("a11y",),
        status="draft",
        body="# Accessibility\n\nShip accessible pages.\n",
    )
    (store_root / "broken.md").write_text(
        textwrap.dedent("""\
            # No frontmatter here

            Just a heading.
        """),
        encoding="utf-8",
    )
    return store_root


@pytest.fixture
def raw_doc():
    """The ``make_raw`` builder, for tests that need file text without a file."""
    return make_raw
