"""Tests for template loading and token substitution."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sales_vault.domain.enums import EntityKind, PipelineStage
from sales_vault.infrastructure.templates import (
    DEFAULT_TEMPLATES,
    TemplateLoader,
    substitute,
)

NOW = datetime(2025, 3, 10, 9, 30, 15, tzinfo=timezone.utc)


class TestSubstitute:
    """Test VALUE and date token substitution."""

    def test_values(self) -> None:
        out = substitute("# {{VALUE:company}} in {{VALUE:city}}", {"company": "Pizza Place", "city": "Boulder"})
        assert out == "# Pizza Place in Boulder"

    def test_unknown_value_is_blank(self) -> None:
        assert substitute("[{{VALUE:missing}}]", {}) == "[]"

    def test_value_display(self) -> None:
        values = {
            "stage": PipelineStage.QUALIFIED,
            "industries": ["restaurants", "fitness"],
            "flag": True,
            "none": None,
        }
        out = substitute("{{VALUE:stage}}|{{VALUE:industries}}|{{VALUE:flag}}|{{VALUE:none}}", values)
        assert out == "qualified|restaurants, fitness|true|"

    def test_date_formats(self) -> None:
        out = substitute(
            "{{date:YYYY-MM-DD}} {{date:HH:mm}} {{date:YYYY-MM-DDTHH:mm:ss.SSSZ}}", {}, now=NOW
        )
        assert out == "2025-03-10 09:30 2025-03-10T09:30:15.000Z"

    def test_unknown_date_format_left_alone(self) -> None:
        assert substitute("{{date:dddd}}", {}, now=NOW) == "{{date:dddd}}"

    def test_values_are_not_rescanned_for_values(self) -> None:
        out = substitute("{{VALUE:notes}}", {"notes": "literal {{VALUE:company}}"}, now=NOW)
        assert out == "literal {{VALUE:company}}"


class TestTemplateLoader:
    """Test built-in templates, seeding and rendering."""

    def test_builtin_fallback(self, tmp_path: Path) -> None:
        loader = TemplateLoader(tmp_path / "templates")
        assert loader.load(EntityKind.PROSPECT) == DEFAULT_TEMPLATES[EntityKind.PROSPECT]

    def test_reads_from_disk(self, tmp_path: Path) -> None:
        loader = TemplateLoader(tmp_path)
        (tmp_path / "Campaign.md").write_text("# custom {{VALUE:campaign_name}}\n")
        note = loader.render("campaign", {"campaign_name": "Spring"}, now=NOW)
        assert note.body == "# custom Spring\n"

    def test_render_splits_template_header(self, tmp_path: Path) -> None:
        (tmp_path / "Activity.md").write_text(
            "---\ncssclass: activity\n---\n# {{VALUE:summary}}\n"
        )
        note = TemplateLoader(tmp_path).render(EntityKind.ACTIVITY, {"summary": "Called"}, now=NOW)
        assert note.metadata == {"cssclass": "activity"}
        assert note.body == "# Called\n"

    def test_default_prospect_body(self, tmp_path: Path) -> None:
        note = TemplateLoader(tmp_path).render(
            EntityKind.PROSPECT,
            {"company": "Pizza Place", "qualification_score": 42},
            now=NOW,
        )
        assert note.body.startswith("# Pizza Place\n")
        assert "Score: 42/100" in note.body
        assert "{{" not in note.body

    def test_seed_is_idempotent(self, tmp_path: Path) -> None:
        loader = TemplateLoader(tmp_path)
        assert len(loader.seed()) == 3
        (tmp_path / "Prospect.md").write_text("mine")
        assert loader.seed() == []
        assert (tmp_path / "Prospect.md").read_text() == "mine"
        assert len(loader.seed(overwrite=True)) == 3
