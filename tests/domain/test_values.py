"""Tests for domain value objects."""

from __future__ import annotations

import pytest

from sales_vault.domain.enums import PipelineStage, TransitionTrigger
from sales_vault.domain.exceptions import EntityValidationError
from sales_vault.domain.values import (
    PipelineMetrics,
    QualificationScore,
    ScoreBreakdown,
    StageTransition,
    StoreResult,
    ValidationIssue,
    ValidationResult,
    WikiLink,
)


class TestValidationResult:
    """Test ValidationResult construction and summaries."""

    def test_ok(self) -> None:
        result = ValidationResult.ok()
        assert result.is_valid
        assert result.errors == ()
        assert result.summary() == "valid"

    def test_from_issues_collects_everything(self) -> None:
        issues = [
            ValidationIssue("company", "required", "missing"),
            ValidationIssue("state", "too short", "string_too_short", "C"),
        ]
        result = ValidationResult.from_issues(issues)
        assert not result.is_valid
        assert result.fields == {"company", "state"}
        assert result.summary() == "company: required; state: too short"

    def test_merge(self) -> None:
        a = ValidationResult.ok()
        b = ValidationResult.from_issues([ValidationIssue("x", "bad", "code")])
        assert not a.merge(b).is_valid
        assert a.merge(ValidationResult.ok()).is_valid

    def test_raise_if_invalid(self) -> None:
        result = ValidationResult.from_issues([ValidationIssue("x", "bad", "code")])
        with pytest.raises(EntityValidationError, match="x: bad") as info:
            result.raise_if_invalid()
        assert info.value.issues[0].code == "code"
        ValidationResult.ok().raise_if_invalid()

    def test_issue_to_dict(self) -> None:
        issue = ValidationIssue("x", "bad", "code", 3)
        assert issue.to_dict() == {"field": "x", "message": "bad", "code": "code", "value": 3}


class TestScores:
    """Test score breakdowns and totals."""

    def test_breakdown_total(self) -> None:
        bd = ScoreBreakdown(10, 20, 5, 5, 5, 5)
        assert bd.total == 50
        assert bd.as_dict()["digital_presence"] == 20

    def test_from_mapping_defaults_missing_to_zero(self) -> None:
        bd = ScoreBreakdown.from_mapping({"location": 12, "industry": None})
        assert bd.location == 12
        assert bd.industry == 0
        assert bd.total == 12

    def test_score_from_breakdown_is_consistent(self) -> None:
        score = QualificationScore.from_breakdown(ScoreBreakdown(10.5, 20, 5, 5, 5, 5))
        assert score.total == 50.5
        assert score.is_consistent

    def test_inconsistent_total(self) -> None:
        score = QualificationScore(total=70, breakdown=ScoreBreakdown(10, 10, 10, 10, 5, 5))
        assert not score.is_consistent


class TestStageTransition:
    """Test StageTransition values."""

    def test_key_and_defaults(self) -> None:
        t = StageTransition("p1", PipelineStage.COLD, PipelineStage.CONTACTED)
        assert t.key == "cold->contacted"
        assert t.triggered_by is TransitionTrigger.MANUAL
        assert t.timestamp.tzinfo is not None


class TestWikiLink:
    """Test wikilink rendering."""

    def test_render(self) -> None:
        assert WikiLink("pizza-place").render() == "[[pizza-place]]"
        assert str(WikiLink("pizza-place", "Pizza Place")) == "[[pizza-place|Pizza Place]]"
        assert WikiLink("same", "same").render() == "[[same]]"


class TestStoreResult:
    """Test StoreResult helpers."""

    def test_truthiness(self) -> None:
        assert StoreResult(success=True)
        failed = StoreResult.failed("nope", "not_found")
        assert not failed
        assert failed.error_code == "not_found"
        assert failed.issues == ()


class TestPipelineMetrics:
    """Test PipelineMetrics serialisation."""

    def test_to_dict(self) -> None:
        metrics = PipelineMetrics(
            count_by_stage={PipelineStage.COLD: 2, PipelineStage.CONTACTED: 1},
            average_score_by_stage={PipelineStage.COLD: 40.0, PipelineStage.CONTACTED: 55.5},
            conversion_rates={"cold->contacted": 33},
            stagnant_prospect_ids=("p1",),
        )
        assert metrics.total_prospects == 3
        data = metrics.to_dict()
        assert data["count_by_stage"] == {"cold": 2, "contacted": 1}
        assert data["stagnant_prospect_ids"] == ["p1"]
