"""Value objects for the sales vault.

All types here are frozen dataclasses -- immutable, compared by value.
They describe validation outcomes, scores, transitions, cross-references,
store results and aggregated metrics; none of them has an identity beyond
its content.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .enums import PipelineStage, TransitionTrigger

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationIssue:
    """A single field-level rule violation."""

    field: str
    message: str
    code: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "code": self.code,
            "value": self.value,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one metadata map or input object.

    ``errors`` holds every violation collected in one pass; validation never
    stops at the first failure.
    """

    is_valid: bool
    errors: tuple[ValidationIssue, ...] = ()

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(is_valid=True)

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> ValidationResult:
        collected = tuple(issues)
        return cls(is_valid=not collected, errors=collected)

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Combine two results; the merge is valid only if both are."""
        return ValidationResult.from_issues(self.errors + other.errors)

    @property
    def fields(self) -> set[str]:
        """Names of the fields with at least one violation."""
        return {issue.field for issue in self.errors}

    def summary(self) -> str:
        """One-line, human-readable description of every violation."""
        if self.is_valid:
            return "valid"
        return "; ".join(f"{i.field}: {i.message}" for i in self.errors)

    def raise_if_invalid(self, message: str = "Validation failed") -> None:
        """Raise ``EntityValidationError`` when this result is not valid."""
        if not self.is_valid:
            from .exceptions import EntityValidationError

            raise EntityValidationError(
                f"{message}: {self.summary()}", issues=list(self.errors)
            )


# ---------------------------------------------------------------------------
# Qualification score
# ---------------------------------------------------------------------------

#: Maximum points per breakdown component; the caps sum to 100.
SCORE_CAPS: Mapping[str, int] = {
    "business_size": 20,
    "digital_presence": 25,
    "competitor_gaps": 20,
    "location": 15,
    "industry": 10,
    "revenue_indicators": 10,
}

#: Allowed difference between a stored total and its recomputed sum.
SCORE_TOLERANCE = 1.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """The six weighted sub-scores behind a qualification total."""

    business_size: float = 0.0
    digital_presence: float = 0.0
    competitor_gaps: float = 0.0
    location: float = 0.0
    industry: float = 0.0
    revenue_indicators: float = 0.0

    @property
    def total(self) -> float:
        """Sum of all components."""
        return sum(self.as_dict().values())

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in SCORE_CAPS}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ScoreBreakdown:
        """Build from a mapping keyed by component name; missing keys are 0."""
        return cls(**{name: float(data.get(name) or 0) for name in SCORE_CAPS})


@dataclass(frozen=True)
class QualificationScore:
    """A qualification total with its breakdown."""

    total: float = 0.0
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    last_updated: datetime | None = None

    @classmethod
    def from_breakdown(
        cls, breakdown: ScoreBreakdown, last_updated: datetime | None = None
    ) -> QualificationScore:
        """Derive the total from *breakdown* so the two always agree."""
        return cls(
            total=round(breakdown.total, 2),
            breakdown=breakdown,
            last_updated=last_updated,
        )

    @property
    def is_consistent(self) -> bool:
        """True when ``total`` matches the breakdown sum within tolerance."""
        return abs(self.total - self.breakdown.total) <= SCORE_TOLERANCE


# ---------------------------------------------------------------------------
# Stage transitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageTransition:
    """A request to move one prospect between pipeline stages."""

    prospect_id: str
    from_stage: PipelineStage
    to_stage: PipelineStage
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    triggered_by: TransitionTrigger = TransitionTrigger.MANUAL
    reason: str = ""

    @property
    def key(self) -> str:
        """``from->to`` label used for score-adjustment lookups and logging."""
        return f"{self.from_stage.value}->{self.to_stage.value}"


@dataclass(frozen=True)
class BoardChange:
    """A card found in a lane that disagrees with its prospect's stage."""

    prospect_id: str
    file_stem: str
    from_stage: PipelineStage
    to_stage: PipelineStage
    business_name: str = ""


# ---------------------------------------------------------------------------
# Cross-references
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WikiLink:
    """A double-bracket reference to another note, with optional alias."""

    target: str
    alias: str | None = None

    def render(self) -> str:
        if self.alias and self.alias != self.target:
            return f"[[{self.target}|{self.alias}]]"
        return f"[[{self.target}]]"

    def __str__(self) -> str:
        return self.render()


# ---------------------------------------------------------------------------
# Store results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoreResult:
    """Outcome of a document-store mutation.

    A failed result never corresponds to a partial write: the filesystem is
    left exactly as it was before the call.
    """

    success: bool
    entity: Any = None
    file_path: str | None = None
    error: str | None = None
    error_code: str | None = None
    issues: tuple[ValidationIssue, ...] = ()

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failed(
        cls,
        error: str,
        code: str,
        issues: Iterable[ValidationIssue] = (),
        file_path: str | None = None,
    ) -> StoreResult:
        return cls(
            success=False,
            error=error,
            error_code=code,
            issues=tuple(issues),
            file_path=file_path,
        )


# ---------------------------------------------------------------------------
# Pipeline metrics
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineMetrics:
    """Pipeline-wide aggregates computed from every prospect."""

    count_by_stage: Mapping[PipelineStage, int]
    average_score_by_stage: Mapping[PipelineStage, float]
    conversion_rates: Mapping[str, int] = field(default_factory=dict)
    stagnant_prospect_ids: tuple[str, ...] = ()

    @property
    def total_prospects(self) -> int:
        return sum(self.count_by_stage.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_prospects": self.total_prospects,
            "count_by_stage": {s.value: n for s, n in self.count_by_stage.items()},
            "average_score_by_stage": {
                s.value: v for s, v in self.average_score_by_stage.items()
            },
            "conversion_rates": dict(self.conversion_rates),
            "stagnant_prospect_ids": list(self.stagnant_prospect_ids),
        }
