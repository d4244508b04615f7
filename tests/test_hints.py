"""Tests for standards.hints: self-describing JSON response builder."""

import json

from standards.hints import (
    list_hints,
    mutation_hints,
    response,
    search_hints,
    standard_hints,
)


class TestResponse:
    def test_no_hints(self):
        r = json.loads(response({"status": "ok"}))
        assert r == {"status": "ok"}

    def test_with_hints(self):
        r = json.loads(response({"status": "ok"}, hints={"next": "do_this()"}))
        assert r["hints"]["next"] == "do_this()"

    def test_unicode_not_escaped(self):
        assert "→" in response({"x": "→"})


class TestHintBuilders:
    def test_standard_hints_name_path(self):
        h = standard_hints("a.md")
        assert "a.md" in h["update_content"]
        assert "deprecated" in h["deprecate"]

    def test_list_empty_suggests_create(self):
        assert "standards_create" in list_hints(0)["create"]

    def test_list_nonempty(self):
        assert "read" in list_hints(3)

    def test_search_no_results(self):
        assert "broaden" in search_hints("x", 0, 10)

    def test_search_full_page(self):
        assert "limit=20" in search_hints("spring", 10, 10)["more"]

    def test_search_partial_page(self):
        h = search_hints("spring", 3, 10)
        assert "more" not in h and "broaden" not in h

    def test_mutation(self):
        assert "a.md" in mutation_hints("a.md")["view"]
