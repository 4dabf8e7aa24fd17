"""Pydantic schemas for entity frontmatter and store inputs.

Two families live here:

* ``*Frontmatter`` models describe the persisted, flat header of each entity
  file.  They allow extra keys so custom extension fields survive.
* ``*CreateInput`` / ``UpdateInput`` describe what callers hand to the
  document store.  They forbid extra keys: a typo in an input is an error,
  not a silently ignored field.

Cross-field business rules (score caps, outcome whitelists, follow-up
consistency, ...) are not expressed here; see
:mod:`sales_vault.infrastructure.validation`.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from sales_vault.domain.enums import (
    ActivityOutcome,
    ActivityType,
    AgentType,
    BusinessSize,
    CampaignStatus,
    CampaignType,
    Industry,
    PipelineStage,
)
from sales_vault.domain.models import parse_timestamp


def _ensure_date(value: Any) -> Any:
    if parse_timestamp(value) is None:
        raise ValueError("must be an ISO-8601 date or timestamp")
    return value


#: A date as stored in frontmatter: an ISO string, or a YAML date/timestamp.
IsoDate = Annotated[datetime | date | str, AfterValidator(_ensure_date)]

_PHONE_PATTERN = r"^$|^\+?[0-9\s\-()]+$"
_EMAIL_PATTERN = r"^$|^[^@\s]+@[^@\s]+\.[^@\s]+$"
_URL_PATTERN = r"^$|^https?://\S+$"


class _Open(BaseModel):
    model_config = ConfigDict(extra="allow")


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


# --------------------------------------------------------------------------- #
#  Activity metadata blocks                                                    #
# --------------------------------------------------------------------------- #

class CallMetadata(_Open):
    duration: float = Field(ge=0, le=7200, description="Call length in seconds")
    answered: bool
    voicemail_left: bool = False
    call_quality: Literal["excellent", "good", "fair", "poor"] | None = None
    transcript: str | None = Field(default=None, max_length=10000)
    recording_url: str | None = None


class EmailMetadata(_Open):
    subject: str = Field(min_length=1, max_length=200)
    template: str | None = None
    opened: bool = False
    clicked: bool = False
    bounced: bool = False
    unsubscribed: bool = False
    delivery_status: Literal["delivered", "bounced", "spam", "pending"] = "pending"


class MeetingMetadata(_Open):
    platform: Literal["zoom", "teams", "meet", "phone", "in_person"]
    duration: float = Field(ge=5, le=480, description="Meeting length in minutes")
    attendees: list[str] = Field(min_length=1)
    agenda: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list)


class ResearchMetadata(_Open):
    sources: list[str] = Field(min_length=1)
    key_findings: list[str] = Field(min_length=1)
    competitor_intel: bool = False
    digital_presence_audit: bool = False
    revenue_estimates: bool = False


# --------------------------------------------------------------------------- #
#  Persisted frontmatter                                                       #
# --------------------------------------------------------------------------- #

class _EntityFrontmatter(_Open):
    id: str | None = None
    created: IsoDate
    updated: IsoDate
    tags: list[str] = Field(default_factory=list)


class ProspectFrontmatter(_EntityFrontmatter):
    type: Literal["prospect-profile"]
    company: str = Field(min_length=1)
    industry: Industry
    city: str | None = None
    state: str | None = None
    country: str | None = None
    location: str | None = None

    business_size: BusinessSize | None = None
    employee_count: int | None = Field(default=None, ge=1)
    estimated_revenue: float | None = Field(default=None, ge=0)

    has_website: bool | None = None
    has_google_business: bool | None = None
    has_social_media: bool | None = None
    has_online_reviews: bool | None = None

    phone: str | None = Field(default=None, pattern=_PHONE_PATTERN)
    email: str | None = Field(default=None, pattern=_EMAIL_PATTERN)
    website: str | None = None
    primary_contact: str | None = None
    contact_title: str | None = None
    decision_maker: str | None = None
    social_profiles: dict[str, Any] | None = None

    pipeline_stage: PipelineStage
    qualification_score: float = Field(ge=0, le=100)
    score_business_size: float | None = None
    score_digital_presence: float | None = None
    score_competitor_gaps: float | None = None
    score_location: float | None = None
    score_industry: float | None = None
    score_revenue: float | None = None
    score_updated: IsoDate | None = None

    interactions: list[dict[str, Any]] | None = None
    competitors: dict[str, Any] | None = None


class CampaignFrontmatter(_EntityFrontmatter):
    type: Literal["campaign"]
    campaign_name: str = Field(min_length=1)
    description: str | None = None
    campaign_type: CampaignType
    status: CampaignStatus
    start_date: IsoDate
    end_date: IsoDate | None = None

    target_city: str | None = None
    target_state: str | None = Field(default=None, min_length=2, max_length=2)
    target_radius: float | None = Field(default=None, ge=1, le=500)
    target_industries: list[Industry] | None = None
    min_employees: int | None = Field(default=None, ge=1)
    max_employees: int | None = Field(default=None, ge=1)
    min_revenue: float | None = Field(default=None, ge=0)
    max_revenue: float | None = Field(default=None, ge=0)
    qualification_threshold: float | None = Field(default=None, ge=0, le=100)
    messaging: dict[str, Any] | None = None

    prospects_identified: int = Field(default=0, ge=0)
    contact_attempts: int = Field(default=0, ge=0)
    positive_responses: int = Field(default=0, ge=0)
    qualified_leads: int = Field(default=0, ge=0)
    response_rate: float = Field(default=0, ge=0, le=100)
    qualification_rate: float = Field(default=0, ge=0, le=100)
    cost_per_qualified_lead: float = Field(default=0, ge=0)

    daily_target: int | None = Field(default=None, ge=1)
    monthly_pipeline_target: float | None = Field(default=None, ge=0)


class ActivityFrontmatter(_EntityFrontmatter):
    type: Literal["activity"]
    prospect_id: str = Field(min_length=1)
    campaign_id: str | None = None
    activity_type: ActivityType
    outcome: ActivityOutcome
    date: IsoDate
    duration: float | None = Field(default=None, ge=0, le=480)
    agent_responsible: AgentType
    summary: str = ""

    call_metadata: CallMetadata | None = None
    email_metadata: EmailMetadata | None = None
    meeting_metadata: MeetingMetadata | None = None
    research_metadata: ResearchMetadata | None = None

    stage_change_from: PipelineStage | None = None
    stage_change_to: PipelineStage | None = None
    qualification_score_change: float | None = Field(default=None, ge=-100, le=100)

    follow_up_required: bool = False
    follow_up_date: IsoDate | None = None
    follow_up_type: ActivityType | None = None

    automated: bool = False
    automation_rules: list[str] | None = None


# --------------------------------------------------------------------------- #
#  Store inputs                                                                #
# --------------------------------------------------------------------------- #

class ScoreBreakdownInput(_Strict):
    business_size: float = 0
    digital_presence: float = 0
    competitor_gaps: float = 0
    location: float = 0
    industry: float = 0
    revenue_indicators: float = 0


class ProspectCreateInput(_Strict):
    business_name: str = Field(min_length=2, max_length=100)
    industry: Industry
    city: str = Field(min_length=2, max_length=50)
    state: str = Field(min_length=2, max_length=2)
    country: str = "US"

    phone: str | None = Field(default=None, pattern=_PHONE_PATTERN)
    email: str | None = Field(default=None, pattern=_EMAIL_PATTERN)
    website: str | None = Field(default=None, pattern=_URL_PATTERN)
    employee_count: int | None = Field(default=None, ge=1, le=10000)
    estimated_revenue: float | None = Field(default=None, ge=0, le=100_000_000)

    primary_contact: str | None = None
    contact_title: str | None = None
    decision_maker: str | None = None
    social_profiles: dict[str, str] | None = None
    has_google_business: bool = False
    has_social_media: bool = False
    has_online_reviews: bool = False

    score_breakdown: ScoreBreakdownInput | None = None
    notes: str = Field(default="", max_length=2000)
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class MessagingInput(_Strict):
    hook: str = ""
    value_prop: str = ""
    closing: str = ""


class CampaignCreateInput(_Strict):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(default="", max_length=500)
    campaign_type: CampaignType = CampaignType.GEOGRAPHIC

    city: str = Field(min_length=2, max_length=50)
    state: str = Field(min_length=2, max_length=2)
    radius: float = Field(default=25, ge=1, le=500)
    industries: list[Industry] = Field(min_length=1)
    min_employees: int = Field(default=1, ge=1)
    max_employees: int = Field(default=49, ge=1)
    min_revenue: float = Field(default=0, ge=0)
    max_revenue: float = Field(default=5_000_000, ge=0)
    qualification_threshold: float = Field(default=60, ge=0, le=100)

    messaging: MessagingInput | None = None
    daily_target: int = Field(default=10, ge=1, le=500)
    monthly_pipeline_target: float = Field(default=10_000, ge=0)

    start_date: datetime | None = None
    end_date: datetime | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class ActivityCreateInput(_Strict):
    prospect_id: str = Field(min_length=1)
    campaign_id: str | None = None
    activity_type: ActivityType
    outcome: ActivityOutcome
    summary: str = Field(min_length=3, max_length=500)
    notes: str = Field(default="", max_length=2000)
    date: datetime | None = None
    duration: float | None = Field(default=None, ge=0, le=480)
    agent_responsible: AgentType = AgentType.HUMAN_SALES_REP

    call_metadata: CallMetadata | None = None
    email_metadata: EmailMetadata | None = None
    meeting_metadata: MeetingMetadata | None = None
    research_metadata: ResearchMetadata | None = None

    stage_change_from: PipelineStage | None = None
    stage_change_to: PipelineStage | None = None
    qualification_score_change: float | None = Field(default=None, ge=-100, le=100)

    follow_up_required: bool = False
    follow_up_date: datetime | None = None
    follow_up_type: ActivityType | None = None

    automated: bool | None = None
    automation_rules: list[str] | None = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


#: Keys no update may touch.
IMMUTABLE_KEYS: frozenset[str] = frozenset({"id", "type", "created"})


class UpdateInput(_Strict):
    """A partial update: the keys to merge into an entity's frontmatter."""

    updates: dict[str, Any] = Field(min_length=1)
    update_reason: str | None = None

    @field_validator("updates")
    @classmethod
    def _no_immutable_keys(cls, value: dict[str, Any]) -> dict[str, Any]:
        blocked = sorted(IMMUTABLE_KEYS & value.keys())
        if blocked:
            raise ValueError(f"cannot update immutable field(s): {', '.join(blocked)}")
        return value
