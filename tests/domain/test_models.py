"""Tests for entity models and their flat frontmatter mapping."""

from __future__ import annotations

from datetime import date, datetime, timezone

from sales_vault.domain.enums import (
    ActivityType,
    AgentType,
    BusinessSize,
    CampaignStatus,
    EntityKind,
    Industry,
    PipelineStage,
    QualificationLevel,
)
from sales_vault.domain.models import (
    Activity,
    Campaign,
    Prospect,
    entity_from_frontmatter,
    format_timestamp,
    parse_timestamp,
)
from sales_vault.domain.pipeline import QualificationBands


def _prospect_meta() -> dict:
    return {
        "type": "prospect-profile",
        "id": "p-1",
        "company": "Mile High Tacos",
        "industry": "restaurants",
        "city": "Denver",
        "state": "CO",
        "business_size": "micro",
        "employee_count": 6,
        "has_website": False,
        "phone": "303-555-0101",
        "pipeline_stage": "contacted",
        "qualification_score": 72,
        "score_business_size": 12,
        "score_digital_presence": 20,
        "score_competitor_gaps": 15,
        "score_location": 10,
        "score_industry": 10,
        "score_revenue": 5,
        "created": "2025-01-02T10:00:00.000Z",
        "updated": "2025-01-05T10:00:00.000Z",
        "tags": ["prospect", "sales", "restaurants", "contacted"],
        "lead_source": "walk-in",
    }


class TestTimestamps:
    """Test timestamp formatting and parsing."""

    def test_format_is_millisecond_utc(self) -> None:
        dt = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2025-01-02T03:04:05.678Z"

    def test_naive_datetimes_are_utc(self) -> None:
        assert format_timestamp(datetime(2025, 1, 2)) == "2025-01-02T00:00:00.000Z"

    def test_parse_variants(self) -> None:
        expected = datetime(2025, 1, 2, tzinfo=timezone.utc)
        assert parse_timestamp("2025-01-02T00:00:00.000Z") == expected
        assert parse_timestamp("2025-01-02") == expected
        assert parse_timestamp(date(2025, 1, 2)) == expected
        assert parse_timestamp(datetime(2025, 1, 2)) == expected

    def test_parse_garbage(self) -> None:
        assert parse_timestamp("next tuesday") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(42) is None


class TestProspectMapping:
    """Test mapping prospects to and from flat headers."""

    def test_from_frontmatter_nests_fields(self) -> None:
        p = Prospect.from_frontmatter(_prospect_meta(), "/vault/mile-high-tacos.md")
        assert p.name == "Mile High Tacos"
        assert p.business.industry is Industry.RESTAURANTS
        assert p.business.location.display == "Denver, CO"
        assert p.business.size.category is BusinessSize.MICRO
        assert p.pipeline_stage is PipelineStage.CONTACTED
        assert p.qualification_score.total == 72
        assert p.qualification_score.breakdown.digital_presence == 20
        assert p.qualification_score.is_consistent
        assert p.file_stem == "mile-high-tacos"

    def test_unknown_keys_go_to_custom_fields(self) -> None:
        p = Prospect.from_frontmatter(_prospect_meta())
        assert p.custom_fields == {"lead_source": "walk-in"}

    def test_round_trip_preserves_extension_keys(self) -> None:
        meta = _prospect_meta()
        out = Prospect.from_frontmatter(meta).to_frontmatter()
        assert out["lead_source"] == "walk-in"
        assert out["company"] == "Mile High Tacos"
        assert out["location"] == "Denver, CO"
        assert out["score_revenue"] == 5
        assert list(out)[-1] == "lead_source"

    def test_optional_fields_stay_absent(self) -> None:
        out = Prospect.from_frontmatter(_prospect_meta()).to_frontmatter()
        assert "primary_contact" not in out
        assert "competitors" not in out

    def test_qualification_level_uses_bands(self) -> None:
        p = Prospect.from_frontmatter(_prospect_meta())
        assert p.qualification_level() is QualificationLevel.MEDIUM
        strict = QualificationBands(high=95, medium=75, low=50)
        assert p.qualification_level(strict) is QualificationLevel.LOW

    def test_file_stem_falls_back_to_id(self) -> None:
        p = Prospect.from_frontmatter(_prospect_meta())
        assert p.file_stem == "p-1"


class TestCampaignMapping:
    """Test mapping campaigns to and from flat headers."""

    def test_round_trip(self) -> None:
        meta = {
            "type": "campaign",
            "id": "c-1",
            "campaign_name": "Denver Q2",
            "campaign_type": "geographic",
            "status": "active",
            "start_date": "2025-04-01T00:00:00.000Z",
            "target_city": "Denver",
            "target_state": "CO",
            "target_industries": ["restaurants", "fitness"],
            "min_employees": 1,
            "max_employees": 49,
            "prospects_identified": 12,
            "qualified_leads": 3,
            "created": "2025-03-01T00:00:00.000Z",
            "updated": "2025-03-01T00:00:00.000Z",
            "tags": ["campaign"],
        }
        c = Campaign.from_frontmatter(meta)
        assert c.name == "Denver Q2"
        assert c.status is CampaignStatus.ACTIVE
        assert c.targeting.industries == [Industry.RESTAURANTS, Industry.FITNESS]
        assert c.metrics.prospects_identified == 12

        out = c.to_frontmatter()
        assert out["type"] == "campaign"
        assert out["target_industries"] == ["restaurants", "fitness"]
        assert out["qualified_leads"] == 3


class TestActivityMapping:
    """Test mapping activities to and from flat headers."""

    def test_metadata_blocks_and_impact(self) -> None:
        meta = {
            "type": "activity",
            "id": "a-1",
            "prospect_id": "p-1",
            "activity_type": "call",
            "outcome": "positive",
            "date": "2025-03-01T15:00:00.000Z",
            "agent_responsible": "voice_ai_agent",
            "summary": "Owner keen on a demo",
            "call_metadata": {"duration": 240, "answered": True},
            "stage_change_from": "contacted",
            "stage_change_to": "interested",
            "qualification_score_change": 15,
            "automated": True,
            "automation_rules": ["agent:voice_ai_agent"],
            "created": "2025-03-01T15:00:00.000Z",
            "updated": "2025-03-01T15:00:00.000Z",
            "tags": ["activity"],
        }
        a = Activity.from_frontmatter(meta)
        assert a.activity_type is ActivityType.CALL
        assert a.agent_responsible is AgentType.VOICE_AI_AGENT
        assert a.metadata["call_metadata"]["duration"] == 240
        assert a.impact.stage_change_to is PipelineStage.INTERESTED
        assert a.impact.qualification_score_change == 15

        out = a.to_frontmatter()
        assert out["call_metadata"] == {"duration": 240, "answered": True}
        assert out["stage_change_from"] == "contacted"
        assert out["automation_rules"] == ["agent:voice_ai_agent"]


class TestEntityFactory:
    """Test building entities by kind."""

    def test_dispatches_on_kind(self) -> None:
        entity = entity_from_frontmatter(EntityKind.PROSPECT, _prospect_meta())
        assert isinstance(entity, Prospect)
        entity = entity_from_frontmatter("prospect", _prospect_meta())
        assert isinstance(entity, Prospect)
