"""Qualification scoring and the pipeline stage state machine.

Pure functions only -- nothing in this module touches the filesystem.

The stage graph below is the single source of truth for legal moves.  Every
operation that changes a prospect's stage must pass through
:func:`require_legal_transition` (or test :func:`is_legal_transition`)
before anything is persisted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

from .enums import BusinessSize, PipelineStage, QualificationLevel
from .exceptions import IllegalTransitionError
from .values import SCORE_CAPS, SCORE_TOLERANCE, ScoreBreakdown, ValidationIssue

# ---------------------------------------------------------------------------
# Stage graph
# ---------------------------------------------------------------------------

_S = PipelineStage

STAGE_GRAPH: Mapping[PipelineStage, frozenset[PipelineStage]] = {
    _S.COLD: frozenset({_S.CONTACTED, _S.CLOSED_LOST}),
    _S.CONTACTED: frozenset({_S.INTERESTED, _S.CLOSED_LOST, _S.FROZEN}),
    _S.INTERESTED: frozenset({_S.QUALIFIED, _S.CLOSED_LOST, _S.FROZEN}),
    _S.QUALIFIED: frozenset({_S.CLOSED_WON, _S.CLOSED_LOST, _S.FROZEN}),
    _S.CLOSED_WON: frozenset(),
    _S.CLOSED_LOST: frozenset(),
    # reactivation only, never straight to a terminal stage
    _S.FROZEN: frozenset({_S.COLD, _S.CONTACTED, _S.INTERESTED, _S.QUALIFIED}),
}

TERMINAL_STAGES: frozenset[PipelineStage] = frozenset(
    stage for stage, targets in STAGE_GRAPH.items() if not targets
)

#: Fixed order used for board lanes and per-stage reports.
STAGE_ORDER: tuple[PipelineStage, ...] = tuple(PipelineStage)


def coerce_stage(value: Any) -> PipelineStage | None:
    """Return *value* as a ``PipelineStage``, or ``None`` if it is not one."""
    if isinstance(value, PipelineStage):
        return value
    try:
        return PipelineStage(value)
    except ValueError:
        return None


def legal_targets(from_stage: PipelineStage | str) -> frozenset[PipelineStage]:
    """Stages reachable in one move from *from_stage*."""
    stage = coerce_stage(from_stage)
    if stage is None:
        return frozenset()
    return STAGE_GRAPH[stage]


def is_legal_transition(from_stage: PipelineStage | str, to_stage: PipelineStage | str) -> bool:
    """True when ``from_stage -> to_stage`` is an edge of the stage graph.

    Unknown stage names are never legal.  Staying in the same stage is not a
    transition and is therefore not legal either.
    """
    target = coerce_stage(to_stage)
    return target is not None and target in legal_targets(from_stage)


def require_legal_transition(
    from_stage: PipelineStage | str,
    to_stage: PipelineStage | str,
    entity_id: str = "",
) -> None:
    """Raise ``IllegalTransitionError`` unless the move is legal."""
    if is_legal_transition(from_stage, to_stage):
        return
    src = getattr(from_stage, "value", from_stage)
    dst = getattr(to_stage, "value", to_stage)
    allowed = sorted(s.value for s in legal_targets(from_stage))
    raise IllegalTransitionError(
        f"Cannot move {entity_id or 'prospect'} from '{src}' to '{dst}'",
        from_stage=str(src),
        to_stage=str(dst),
        entity_id=entity_id,
        details={"allowed": allowed},
    )


# Score hints recorded on stage-change activities.
SCORE_ADJUSTMENTS: Mapping[tuple[PipelineStage, PipelineStage], int] = {
    (_S.COLD, _S.CONTACTED): 10,
    (_S.CONTACTED, _S.INTERESTED): 15,
    (_S.INTERESTED, _S.QUALIFIED): 20,
    (_S.QUALIFIED, _S.CLOSED_WON): 25,
}
_CLOSED_LOST_ADJUSTMENT = -20


def score_adjustment(from_stage: PipelineStage, to_stage: PipelineStage) -> int:
    """Suggested qualification delta for a stage move (0 when none applies)."""
    if (from_stage, to_stage) in SCORE_ADJUSTMENTS:
        return SCORE_ADJUSTMENTS[(from_stage, to_stage)]
    if to_stage is PipelineStage.CLOSED_LOST:
        return _CLOSED_LOST_ADJUSTMENT
    return 0


# ---------------------------------------------------------------------------
# Qualification score
# ---------------------------------------------------------------------------

def _as_breakdown(breakdown: ScoreBreakdown | Mapping[str, Any]) -> ScoreBreakdown:
    if isinstance(breakdown, ScoreBreakdown):
        return breakdown
    return ScoreBreakdown.from_mapping(breakdown)


def validate_qualification_score(breakdown: ScoreBreakdown | Mapping[str, Any]) -> bool:
    """True when no component is negative and the sum lies in [0, 100]."""
    bd = _as_breakdown(breakdown)
    if any(v < 0 for v in bd.as_dict().values()):
        return False
    return 0 <= bd.total <= 100


def score_issues(
    breakdown: ScoreBreakdown | Mapping[str, Any],
    total: float | None = None,
    field_names: Mapping[str, str] | None = None,
    total_field: str = "qualification_score",
) -> list[ValidationIssue]:
    """Every scoring-rule violation for *breakdown* (and *total*, if given).

    *field_names* maps component names to the field labels used in the
    returned issues, so callers can report against their own key names.
    """
    bd = _as_breakdown(breakdown)
    names = field_names or {}
    issues: list[ValidationIssue] = []

    for component, cap in SCORE_CAPS.items():
        value = getattr(bd, component)
        label = names.get(component, component)
        if value < 0:
            issues.append(ValidationIssue(
                field=label,
                message=f"{component} must not be negative",
                code="score_negative",
                value=value,
            ))
        elif value > cap:
            issues.append(ValidationIssue(
                field=label,
                message=f"{component} must be <= {cap}",
                code="score_component_cap",
                value=value,
            ))

    if not 0 <= bd.total <= 100:
        issues.append(ValidationIssue(
            field=total_field,
            message="Breakdown must sum to a value in [0, 100]",
            code="score_sum",
            value=bd.total,
        ))

    if total is not None and abs(total - bd.total) > SCORE_TOLERANCE:
        issues.append(ValidationIssue(
            field=total_field,
            message=(
                f"Total score {total} doesn't match sum of breakdown "
                f"scores {bd.total}"
            ),
            code="inconsistent_total",
            value={"total": total, "calculated": bd.total},
        ))
    return issues


@dataclass(frozen=True)
class QualificationBands:
    """Lower bounds of each qualification level.

    The cut points are policy, not structure; only their ordering is fixed.

    Attributes
    ----------
    high:
        Totals at or above this are ``high``.
    medium:
        Totals at or above this (and below *high*) are ``medium``.
    low:
        Totals at or above this (and below *medium*) are ``low``; anything
        lower is ``disqualified``.
    """

    high: float = 80
    medium: float = 60
    low: float = 30

    def validate(self) -> None:
        """Raise ``ValueError`` unless ``100 >= high > medium > low >= 0``."""
        if not (100 >= self.high > self.medium > self.low >= 0):
            raise ValueError(
                "bands must satisfy 100 >= high > medium > low >= 0, "
                f"got high={self.high}, medium={self.medium}, low={self.low}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> QualificationBands:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        bands = cls(**filtered)
        bands.validate()
        return bands


DEFAULT_BANDS = QualificationBands()


def derive_qualification_level(
    total: float, bands: QualificationBands = DEFAULT_BANDS
) -> QualificationLevel:
    """Band *total* into a ``QualificationLevel``.

    Monotonic: a higher total never yields a lower level.
    """
    if total >= bands.high:
        return QualificationLevel.HIGH
    if total >= bands.medium:
        return QualificationLevel.MEDIUM
    if total >= bands.low:
        return QualificationLevel.LOW
    return QualificationLevel.DISQUALIFIED


# ---------------------------------------------------------------------------
# Business size
# ---------------------------------------------------------------------------

SIZE_RANGES: Mapping[BusinessSize, tuple[int, int]] = {
    BusinessSize.MICRO: (1, 9),
    BusinessSize.SMALL: (10, 49),
    BusinessSize.MEDIUM: (50, 999),
}


def size_for_employee_count(employee_count: int | None) -> BusinessSize:
    """Size category implied by *employee_count* (``small`` when unknown)."""
    if not employee_count:
        return BusinessSize.SMALL
    if employee_count <= 9:
        return BusinessSize.MICRO
    if employee_count <= 49:
        return BusinessSize.SMALL
    return BusinessSize.MEDIUM


def employee_count_matches(employee_count: int | None, category: BusinessSize | str | None) -> bool:
    """True when *employee_count* falls in the range of *category*.

    Absent values are not a mismatch.
    """
    if employee_count is None or category is None:
        return True
    try:
        size = BusinessSize(category)
    except ValueError:
        return True  # an invalid category is reported by the schema
    low, high = SIZE_RANGES[size]
    return low <= employee_count <= high
