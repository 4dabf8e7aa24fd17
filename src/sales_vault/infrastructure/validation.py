"""Schema and business-rule validation for entity metadata and inputs.

Every entry point returns a :class:`~sales_vault.domain.values.ValidationResult`
holding *all* violations found in a single pass: the pydantic schema errors
first, then the cross-field business rules.  Business rules run over the raw
mapping and tolerate wrongly typed values (the schema already reports those),
so a single bad field never hides the others.

Persisted frontmatter accepts unknown keys; store inputs reject them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from sales_vault.domain.enums import ActivityOutcome, ActivityType, EntityKind
from sales_vault.domain.models import REQUIRED_METADATA, SCORE_FIELD_KEYS, parse_timestamp
from sales_vault.domain.pipeline import (
    employee_count_matches,
    is_legal_transition,
    score_issues,
)
from sales_vault.domain.values import ValidationIssue, ValidationResult
from sales_vault.infrastructure.schemas import (
    ActivityCreateInput,
    ActivityFrontmatter,
    CampaignCreateInput,
    CampaignFrontmatter,
    ProspectCreateInput,
    ProspectFrontmatter,
    UpdateInput,
)

logger = logging.getLogger(__name__)

__all__ = [
    "FRONTMATTER_SCHEMAS",
    "INPUT_SCHEMAS",
    "VALID_OUTCOMES",
    "is_legal_transition",
    "is_valid_outcome",
    "issues_from_pydantic",
    "parse_input",
    "validate_frontmatter",
    "validate_frontmatter_or_raise",
    "validate_input",
    "validate_update_input",
]

FRONTMATTER_SCHEMAS: Mapping[EntityKind, type[BaseModel]] = {
    EntityKind.PROSPECT: ProspectFrontmatter,
    EntityKind.CAMPAIGN: CampaignFrontmatter,
    EntityKind.ACTIVITY: ActivityFrontmatter,
}

INPUT_SCHEMAS: Mapping[EntityKind, type[BaseModel]] = {
    EntityKind.PROSPECT: ProspectCreateInput,
    EntityKind.CAMPAIGN: CampaignCreateInput,
    EntityKind.ACTIVITY: ActivityCreateInput,
}

_O = ActivityOutcome
_BASIC = (_O.POSITIVE, _O.NEUTRAL, _O.NEGATIVE)

#: Outcomes each activity type may report.
VALID_OUTCOMES: Mapping[ActivityType, frozenset[ActivityOutcome]] = {
    ActivityType.CALL: frozenset({*_BASIC, _O.NO_CONTACT, _O.BUSY, _O.VOICEMAIL}),
    ActivityType.EMAIL: frozenset({*_BASIC, _O.EMAIL_BOUNCE, _O.UNSUBSCRIBED}),
    ActivityType.MEETING: frozenset({*_BASIC, _O.MEETING_SCHEDULED}),
    ActivityType.RESEARCH: frozenset({_O.POSITIVE, _O.NEUTRAL}),
    ActivityType.NOTE: frozenset(_BASIC),
    ActivityType.VOICEMAIL: frozenset({*_BASIC, _O.NO_CONTACT}),
    ActivityType.LINKEDIN_MESSAGE: frozenset({*_BASIC, _O.NO_CONTACT}),
    ActivityType.WEBSITE_VISIT: frozenset({_O.POSITIVE, _O.NEUTRAL}),
    ActivityType.DOCUMENT_SENT: frozenset(_BASIC),
    ActivityType.FOLLOW_UP_SCHEDULED: frozenset({_O.POSITIVE, _O.NEUTRAL}),
}


def is_valid_outcome(activity_type: ActivityType | str, outcome: ActivityOutcome | str) -> bool:
    """True when *outcome* is on the whitelist of *activity_type*.

    Unknown types or outcomes are not reported here; the schema does that.
    """
    try:
        kind = ActivityType(activity_type)
        result = ActivityOutcome(outcome)
    except ValueError:
        return True
    return result in VALID_OUTCOMES[kind]


# --------------------------------------------------------------------------- #
#  Helpers                                                                     #
# --------------------------------------------------------------------------- #

def issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    """Convert a pydantic error into field-level issues."""
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        issues.append(ValidationIssue(
            field=loc,
            message=err.get("msg", "invalid value"),
            code=err.get("type", "value_error"),
            value=err.get("input"),
        ))
    return issues


def _schema_issues(schema: type[BaseModel], data: Any) -> list[ValidationIssue]:
    try:
        schema.model_validate(data)
    except ValidationError as exc:
        return issues_from_pydantic(exc)
    return []


def _num(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _range_issue(
    data: Mapping[str, Any], low_key: str, high_key: str, label: str
) -> list[ValidationIssue]:
    low, high = _num(data.get(low_key)), _num(data.get(high_key))
    if low is None or high is None or high >= low:
        return []
    return [ValidationIssue(
        field=high_key,
        message=f"{label} maximum must be >= minimum",
        code="invalid_range",
        value={low_key: low, high_key: high},
    )]


def _date_range_issue(
    data: Mapping[str, Any], start_key: str, end_key: str
) -> list[ValidationIssue]:
    start = parse_timestamp(data.get(start_key))
    end = parse_timestamp(data.get(end_key))
    if start is None or end is None or end > start:
        return []
    return [ValidationIssue(
        field=end_key,
        message=f"{end_key} must be after {start_key}",
        code="invalid_date_range",
        value=data.get(end_key),
    )]


# --------------------------------------------------------------------------- #
#  Business rules                                                              #
# --------------------------------------------------------------------------- #

def _prospect_rules(meta: Mapping[str, Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    present = {
        component: _num(meta.get(key))
        for component, key in SCORE_FIELD_KEYS.items()
        if meta.get(key) is not None
    }
    if present:
        typed = {k: v for k, v in present.items() if v is not None}
        total = _num(meta.get("qualification_score"))
        issues.extend(score_issues(typed, total=total, field_names=SCORE_FIELD_KEYS))

    count = meta.get("employee_count")
    category = meta.get("business_size")
    if isinstance(count, int) and not isinstance(count, bool) and isinstance(category, str):
        if not employee_count_matches(count, category):
            issues.append(ValidationIssue(
                field="employee_count",
                message=f"employee_count {count} is outside the '{category}' size range",
                code="inconsistent_size",
                value=count,
            ))
    return issues


def _campaign_rules(meta: Mapping[str, Any]) -> list[ValidationIssue]:
    issues = _date_range_issue(meta, "start_date", "end_date")
    issues.extend(_range_issue(meta, "min_employees", "max_employees", "Employee count"))
    issues.extend(_range_issue(meta, "min_revenue", "max_revenue", "Revenue"))
    return issues


def _activity_rules(meta: Mapping[str, Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    activity_type = meta.get("activity_type")
    outcome = meta.get("outcome")

    if isinstance(activity_type, str) and isinstance(outcome, str):
        if not is_valid_outcome(activity_type, outcome):
            issues.append(ValidationIssue(
                field="outcome",
                message=f"Outcome '{outcome}' is not valid for a '{activity_type}' activity",
                code="invalid_outcome",
                value=outcome,
            ))
        try:
            required = REQUIRED_METADATA.get(ActivityType(activity_type))
        except ValueError:
            required = None
        if required and not meta.get(required):
            issues.append(ValidationIssue(
                field=required,
                message=f"A '{activity_type}' activity requires {required}",
                code="missing_metadata",
            ))

    follow_up = meta.get("follow_up_required") is True
    has_date = _present(meta.get("follow_up_date"))
    has_type = _present(meta.get("follow_up_type"))
    if follow_up and not (has_date and has_type):
        missing = [k for k, ok in (("follow_up_date", has_date), ("follow_up_type", has_type)) if not ok]
        issues.append(ValidationIssue(
            field=missing[0],
            message=f"follow_up_required is set but {', '.join(missing)} missing",
            code="follow_up_incomplete",
        ))
    elif not follow_up and (has_date or has_type):
        issues.append(ValidationIssue(
            field="follow_up_required",
            message="follow_up_date/follow_up_type given without follow_up_required",
            code="follow_up_incomplete",
            value=meta.get("follow_up_required"),
        ))

    rules = meta.get("automation_rules")
    if meta.get("automated") is True and not (isinstance(rules, list) and rules):
        issues.append(ValidationIssue(
            field="automation_rules",
            message="Automated activities need at least one automation rule",
            code="automation_rules_required",
            value=rules,
        ))

    src, dst = meta.get("stage_change_from"), meta.get("stage_change_to")
    if _present(src) != _present(dst):
        issues.append(ValidationIssue(
            field="stage_change_to" if _present(src) else "stage_change_from",
            message="stage_change_from and stage_change_to must be given together",
            code="invalid_transition",
        ))
    elif _present(src) and not is_legal_transition(src, dst):
        issues.append(ValidationIssue(
            field="stage_change_to",
            message=f"'{src}' -> '{dst}' is not a legal stage transition",
            code="invalid_transition",
            value={"from": src, "to": dst},
        ))
    return issues


_FRONTMATTER_RULES = {
    EntityKind.PROSPECT: _prospect_rules,
    EntityKind.CAMPAIGN: _campaign_rules,
    EntityKind.ACTIVITY: _activity_rules,
}


def _prospect_input_rules(data: Mapping[str, Any]) -> list[ValidationIssue]:
    breakdown = data.get("score_breakdown")
    if not isinstance(breakdown, Mapping):
        return []
    typed = {k: v for k, v in ((k, _num(v)) for k, v in breakdown.items()) if v is not None}
    return [
        ValidationIssue(
            field=f"score_breakdown.{issue.field}" if issue.field in typed else issue.field,
            message=issue.message,
            code=issue.code,
            value=issue.value,
        )
        for issue in score_issues(typed, total_field="score_breakdown")
    ]


def _campaign_input_rules(data: Mapping[str, Any]) -> list[ValidationIssue]:
    issues = _date_range_issue(data, "start_date", "end_date")
    issues.extend(_range_issue(data, "min_employees", "max_employees", "Employee count"))
    issues.extend(_range_issue(data, "min_revenue", "max_revenue", "Revenue"))
    return issues


def _activity_input_rules(data: Mapping[str, Any]) -> list[ValidationIssue]:
    rules = dict(data)
    # An automated flag without explicit rules gets a default rule on create.
    if rules.get("automated") is True and rules.get("automation_rules") is None:
        rules["automation_rules"] = ["default"]
    return _activity_rules(rules)


_INPUT_RULES = {
    EntityKind.PROSPECT: _prospect_input_rules,
    EntityKind.CAMPAIGN: _campaign_input_rules,
    EntityKind.ACTIVITY: _activity_input_rules,
}


# --------------------------------------------------------------------------- #
#  Public API                                                                  #
# --------------------------------------------------------------------------- #

def validate_frontmatter(kind: EntityKind | str, metadata: Mapping[str, Any]) -> ValidationResult:
    """Validate a persisted frontmatter map for *kind*.

    Unknown keys are allowed and left alone.
    """
    kind = EntityKind(kind)
    if not isinstance(metadata, Mapping):
        return ValidationResult.from_issues([ValidationIssue(
            field="__root__",
            message="Frontmatter must be a mapping",
            code="type_mismatch",
            value=metadata,
        )])
    issues = _schema_issues(FRONTMATTER_SCHEMAS[kind], dict(metadata))
    issues.extend(_FRONTMATTER_RULES[kind](metadata))
    if issues:
        logger.debug("%s frontmatter invalid: %d issue(s)", kind.value, len(issues))
    return ValidationResult.from_issues(issues)


def validate_input(kind: EntityKind | str, data: Mapping[str, Any]) -> ValidationResult:
    """Validate a creation input for *kind*; unknown keys are rejected."""
    kind = EntityKind(kind)
    if not isinstance(data, Mapping):
        return ValidationResult.from_issues([ValidationIssue(
            field="__root__",
            message="Input must be a mapping",
            code="type_mismatch",
            value=data,
        )])
    issues = _schema_issues(INPUT_SCHEMAS[kind], dict(data))
    issues.extend(_INPUT_RULES[kind](data))
    return ValidationResult.from_issues(issues)


def validate_update_input(data: Mapping[str, Any]) -> ValidationResult:
    """Validate an ``{"updates": {...}, "update_reason": ...}`` request."""
    return ValidationResult.from_issues(_schema_issues(UpdateInput, data))


def parse_input(kind: EntityKind | str, data: Mapping[str, Any]) -> BaseModel:
    """Validate *data* and return the parsed input model.

    Raises
    ------
    EntityValidationError
        With every violation, if *data* is not a valid input for *kind*.
    """
    kind = EntityKind(kind)
    validate_input(kind, data).raise_if_invalid(f"Invalid {kind.value} input")
    return INPUT_SCHEMAS[kind].model_validate(dict(data))


def validate_frontmatter_or_raise(kind: EntityKind | str, metadata: Mapping[str, Any]) -> None:
    """Like :func:`validate_frontmatter`, raising ``EntityValidationError``."""
    kind = EntityKind(kind)
    validate_frontmatter(kind, metadata).raise_if_invalid(f"Invalid {kind.value} frontmatter")
