"""Tests for the frontmatter codec."""

from __future__ import annotations

from datetime import date

import pytest

from sales_vault.domain.enums import PipelineStage
from sales_vault.domain.exceptions import FrontmatterParseError
from sales_vault.domain.values import WikiLink
from sales_vault.infrastructure import frontmatter


class TestParse:
    """Test splitting notes into metadata and body."""

    def test_header_and_body(self) -> None:
        note = frontmatter.parse("---\ntitle: Hello\ntags: [a, b]\n---\n# Body\n")
        assert note.metadata == {"title": "Hello", "tags": ["a", "b"]}
        assert note.body == "# Body\n"
        assert note.has_frontmatter

    def test_no_header(self) -> None:
        text = "# Just a note\n\nNothing above.\n"
        note = frontmatter.parse(text)
        assert note.metadata == {}
        assert note.body == text
        assert not note.has_frontmatter

    def test_empty_header(self) -> None:
        note = frontmatter.parse("---\n---\nbody")
        assert note.metadata == {}
        assert note.body == "body"

    def test_unterminated_header_is_not_an_error(self) -> None:
        text = "---\ntitle: Hello\nno closing fence\n\nBody text\n"
        note = frontmatter.parse(text)
        assert note.metadata == {}
        assert note.body == text

    def test_invalid_yaml_recovers(self, caplog: pytest.LogCaptureFixture) -> None:
        text = "---\ntitle: [unclosed\n---\nbody\n"
        note = frontmatter.parse(text)
        assert note.metadata == {}
        assert note.body == text
        assert "Failed to parse frontmatter" in caplog.text

    def test_strict_raises_with_line(self) -> None:
        with pytest.raises(FrontmatterParseError, match="Invalid YAML") as info:
            frontmatter.parse_strict("---\nok: 1\nbad: [\n---\n")
        assert info.value.line is not None

    def test_strict_rejects_non_mapping(self) -> None:
        with pytest.raises(FrontmatterParseError, match="mapping"):
            frontmatter.parse_strict("---\n- a\n- b\n---\n")

    def test_crlf_line_endings(self) -> None:
        note = frontmatter.parse("---\r\ntitle: Hi\r\n---\r\nbody\r\n")
        assert note.metadata == {"title": "Hi"}
        assert note.body == "body\r\n"


class TestGenerate:
    """Test rendering metadata as a YAML header."""

    def test_round_trip(self) -> None:
        meta = {
            "id": "abc",
            "company": "Pizza Place",
            "qualification_score": 42.5,
            "tags": ["prospect", "cold"],
            "has_website": False,
            "social_profiles": {"instagram": "@pizza"},
            "updated": "2025-03-10T09:30:00.000Z",
            "zip": "01234",
            "answer": "yes",
        }
        body = "# Pizza Place\n\nSome notes.\n"
        note = frontmatter.parse(frontmatter.generate(meta) + body)
        assert note.metadata == meta
        assert note.body == body

    def test_key_order_preserved(self) -> None:
        text = frontmatter.generate({"zeta": 1, "alpha": 2})
        assert text.index("zeta") < text.index("alpha")

    def test_empty_metadata(self) -> None:
        assert frontmatter.generate({}) == "---\n---\n"

    def test_enums_are_written_as_values(self) -> None:
        text = frontmatter.generate({"pipeline_stage": PipelineStage.QUALIFIED})
        assert "pipeline_stage: qualified" in text

    def test_unicode_not_escaped(self) -> None:
        assert "Café" in frontmatter.generate({"company": "Café Olé"})


class TestUpdate:
    """Test shallow merges into an existing header."""

    def test_merge_does_not_clobber(self) -> None:
        original = {
            "id": "p1",
            "pipeline_stage": "cold",
            "custom_widget": {"nested": [1, 2]},
            "notes_owner": "sam",
        }
        body = "# Title\n\nUser written text.\n"
        text = frontmatter.render(original, body)

        updated = frontmatter.parse(frontmatter.update(text, {"pipeline_stage": "contacted"}))
        assert updated.metadata == {**original, "pipeline_stage": "contacted"}
        assert updated.body == body

    def test_adds_new_keys(self) -> None:
        text = frontmatter.render({"a": 1}, "")
        assert frontmatter.parse(frontmatter.update(text, {"b": 2})).metadata == {"a": 1, "b": 2}

    def test_note_without_header_gains_one(self) -> None:
        out = frontmatter.update("plain body\n", {"a": 1})
        note = frontmatter.parse(out)
        assert note.metadata == {"a": 1}
        assert note.body == "plain body\n"


class TestHelpers:
    """Test tags, dates, slugs, wikilinks and markdown helpers."""

    def test_extract_tags(self) -> None:
        assert frontmatter.extract_tags({"tags": ["a", 3, "b"]}) == ["a", "b"]
        assert frontmatter.extract_tags({"tags": "a, b"}) == ["a", "b"]
        assert frontmatter.extract_tags({}) == []

    def test_normalize_dates(self) -> None:
        meta = {
            "created": date(2025, 1, 2),
            "follow_up_date": "2025-01-05",
            "name": "2025-01-02",
        }
        out = frontmatter.normalize_dates(meta)
        assert out["created"] == "2025-01-02T00:00:00.000Z"
        assert out["follow_up_date"] == "2025-01-05T00:00:00.000Z"
        assert out["name"] == "2025-01-02"

    def test_normalize_metadata(self) -> None:
        meta = {"tags": "prospect, sales ,, cold", "updated": date(2025, 1, 2), "city": "Denver"}
        out = frontmatter.normalize_metadata(meta)
        assert out == {
            "tags": ["prospect", "sales", "cold"],
            "updated": "2025-01-02T00:00:00.000Z",
            "city": "Denver",
        }
        assert meta["tags"] == "prospect, sales ,, cold"
        assert frontmatter.normalize_metadata({"tags": ["a", "b"]}) == {"tags": ["a", "b"]}

    def test_split_header_keeps_malformed_yaml(self) -> None:
        text = "---\ntags: [daily\n---\n# Day\n"
        assert frontmatter.split_header(text) == ("---\ntags: [daily\n---\n", "# Day\n")
        assert frontmatter.split_header("# Day\n") == ("", "# Day\n")

    @pytest.mark.parametrize(
        "title,slug",
        [
            ("Test Restaurant LLC", "test-restaurant-llc"),
            ("Joe's  Pizza & Subs!", "joes-pizza-subs"),
            ("  --Edge--  ", "edge"),
            ("A" * 80, "a" * 50),
        ],
    )
    def test_generate_slug(self, title: str, slug: str) -> None:
        assert frontmatter.generate_slug(title) == slug

    def test_wikilinks(self) -> None:
        assert frontmatter.generate_wikilink("pizza-place") == "[[pizza-place]]"
        assert frontmatter.generate_wikilink("pizza-place", "Pizza Place") == "[[pizza-place|Pizza Place]]"
        links = frontmatter.extract_wikilinks("see [[a]] and [[b|Bee]]")
        assert links == [WikiLink("a"), WikiLink("b", "Bee")]

    def test_markdown_table(self) -> None:
        table = frontmatter.generate_markdown_table(["Stage", "Count"], [("cold", 2), ("a|b", 1)])
        assert table.splitlines() == [
            "| Stage | Count |",
            "| --- | --- |",
            "| cold | 2 |",
            "| a\\|b | 1 |",
        ]
        assert frontmatter.generate_markdown_table(["x"], []) == ""

    def test_checkbox_list(self) -> None:
        out = frontmatter.generate_checkbox_list(["call", "email"], [True])
        assert out == "- [x] call\n- [ ] email"
