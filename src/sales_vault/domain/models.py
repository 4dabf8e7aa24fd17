"""Typed entity models for prospects, campaigns and activities.

Entity files store flat, snake_case frontmatter so that notes stay easy to
edit by hand.  The models here give that flat map a nested, typed shape and
convert in both directions.  Every key a model does not own is kept in
``custom_fields`` and written back verbatim, so extension fields survive any
number of round trips.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, ClassVar

from .enums import (
    ActivityOutcome,
    ActivityType,
    AgentType,
    BusinessSize,
    CampaignStatus,
    CampaignType,
    EntityKind,
    Industry,
    PipelineStage,
    QualificationLevel,
)
from .pipeline import DEFAULT_BANDS, QualificationBands, derive_qualification_level
from .values import QualificationScore, ScoreBreakdown

# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render *value* as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of a frontmatter value to an aware datetime.

    Accepts ``datetime`` and ``date`` objects (as produced by YAML for bare
    timestamps) and ISO-8601 strings, including a trailing ``Z``.  Returns
    ``None`` for anything else.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _ts(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def _enum(cls: type, value: Any, default: Any = None) -> Any:
    try:
        return cls(value)
    except ValueError:
        return default


def _float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int_or_none(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, str)]
    return []


def _prune(data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is ``None`` so optional fields stay absent."""
    return {k: v for k, v in data.items() if v is not None}


#: Frontmatter ``type`` value written for each entity kind.
TYPE_DISCRIMINATORS: Mapping[EntityKind, str] = {
    EntityKind.PROSPECT: "prospect-profile",
    EntityKind.CAMPAIGN: "campaign",
    EntityKind.ACTIVITY: "activity",
}

#: Flat frontmatter key for each qualification breakdown component.
SCORE_FIELD_KEYS: Mapping[str, str] = {
    "business_size": "score_business_size",
    "digital_presence": "score_digital_presence",
    "competitor_gaps": "score_competitor_gaps",
    "location": "score_location",
    "industry": "score_industry",
    "revenue_indicators": "score_revenue",
}


# ---------------------------------------------------------------------------
# Entity base
# ---------------------------------------------------------------------------

@dataclass
class Entity:
    """Fields shared by every persisted record.

    ``file_path`` is where the record was read from (or written to); it is
    never stored in the frontmatter itself.
    """

    kind: ClassVar[EntityKind]
    owned_keys: ClassVar[frozenset[str]] = frozenset()

    id: str = ""
    file_path: str | None = None
    created: datetime | None = None
    updated: datetime | None = None
    tags: list[str] = field(default_factory=list)
    custom_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def _base_kwargs(cls, meta: Mapping[str, Any], file_path: str | None) -> dict[str, Any]:
        return {
            "id": _str(meta.get("id")),
            "file_path": file_path,
            "created": parse_timestamp(meta.get("created")),
            "updated": parse_timestamp(meta.get("updated")),
            "tags": _str_list(meta.get("tags")),
            "custom_fields": {
                k: v for k, v in meta.items() if k not in cls.owned_keys
            },
        }

    def _base_frontmatter(self) -> dict[str, Any]:
        return {"type": TYPE_DISCRIMINATORS[self.kind], "id": self.id}

    def _trailer(self) -> dict[str, Any]:
        trailer = {
            "created": _ts(self.created),
            "updated": _ts(self.updated),
            "tags": list(self.tags),
        }
        trailer.update(self.custom_fields)
        return trailer

    @property
    def file_stem(self) -> str:
        """File name without directory or ``.md`` suffix."""
        if not self.file_path:
            return self.id
        name = self.file_path.replace("\\", "/").rsplit("/", 1)[-1]
        return name[:-3] if name.endswith(".md") else name


_BASE_KEYS = frozenset({"type", "id", "created", "updated", "tags"})


# ---------------------------------------------------------------------------
# Prospect
# ---------------------------------------------------------------------------

@dataclass
class Location:
    city: str = ""
    state: str = ""
    country: str = "US"

    @property
    def display(self) -> str:
        """``City, ST`` as shown on cards and in the ``location`` field."""
        return ", ".join(p for p in (self.city, self.state) if p)


@dataclass
class SizeInfo:
    category: BusinessSize = BusinessSize.SMALL
    employee_count: int | None = None
    estimated_revenue: float | None = None


@dataclass
class DigitalPresence:
    has_website: bool = False
    has_google_business: bool = False
    has_social_media: bool = False
    has_online_reviews: bool = False


@dataclass
class BusinessInfo:
    name: str = ""
    industry: Industry = Industry.OTHER
    location: Location = field(default_factory=Location)
    size: SizeInfo = field(default_factory=SizeInfo)
    digital_presence: DigitalPresence = field(default_factory=DigitalPresence)


@dataclass
class ContactInfo:
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    primary_contact: str | None = None
    contact_title: str | None = None
    decision_maker: str | None = None
    social_profiles: dict[str, str] = field(default_factory=dict)


@dataclass
class Prospect(Entity):
    """A business being worked through the sales pipeline."""

    kind: ClassVar[EntityKind] = EntityKind.PROSPECT
    owned_keys: ClassVar[frozenset[str]] = _BASE_KEYS | frozenset({
        "company", "industry", "city", "state", "country", "location",
        "business_size", "employee_count", "estimated_revenue",
        "has_website", "has_google_business", "has_social_media",
        "has_online_reviews", "phone", "email", "website",
        "primary_contact", "contact_title", "decision_maker",
        "social_profiles", "pipeline_stage", "qualification_score",
        "score_updated", "interactions", "competitors",
        *SCORE_FIELD_KEYS.values(),
    })

    business: BusinessInfo = field(default_factory=BusinessInfo)
    contact: ContactInfo = field(default_factory=ContactInfo)
    pipeline_stage: PipelineStage = PipelineStage.COLD
    qualification_score: QualificationScore = field(default_factory=QualificationScore)
    interactions: list[dict[str, Any]] = field(default_factory=list)
    competitors: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        return self.business.name

    def qualification_level(self, bands: QualificationBands = DEFAULT_BANDS) -> QualificationLevel:
        return derive_qualification_level(self.qualification_score.total, bands)

    @classmethod
    def from_frontmatter(cls, meta: Mapping[str, Any], file_path: str | None = None) -> Prospect:
        breakdown = ScoreBreakdown.from_mapping({
            component: meta.get(key) for component, key in SCORE_FIELD_KEYS.items()
        })
        social = meta.get("social_profiles")
        competitors = meta.get("competitors")
        interactions = meta.get("interactions")
        return cls(
            **cls._base_kwargs(meta, file_path),
            business=BusinessInfo(
                name=_str(meta.get("company")),
                industry=_enum(Industry, meta.get("industry"), Industry.OTHER),
                location=Location(
                    city=_str(meta.get("city")),
                    state=_str(meta.get("state")),
                    country=_str(meta.get("country")) or "US",
                ),
                size=SizeInfo(
                    category=_enum(BusinessSize, meta.get("business_size"), BusinessSize.SMALL),
                    employee_count=_int_or_none(meta.get("employee_count")),
                    estimated_revenue=(
                        _float(meta["estimated_revenue"])
                        if meta.get("estimated_revenue") is not None else None
                    ),
                ),
                digital_presence=DigitalPresence(
                    has_website=bool(meta.get("has_website", False)),
                    has_google_business=bool(meta.get("has_google_business", False)),
                    has_social_media=bool(meta.get("has_social_media", False)),
                    has_online_reviews=bool(meta.get("has_online_reviews", False)),
                ),
            ),
            contact=ContactInfo(
                phone=meta.get("phone") or None,
                email=meta.get("email") or None,
                website=meta.get("website") or None,
                primary_contact=meta.get("primary_contact") or None,
                contact_title=meta.get("contact_title") or None,
                decision_maker=meta.get("decision_maker") or None,
                social_profiles=dict(social) if isinstance(social, Mapping) else {},
            ),
            pipeline_stage=_enum(PipelineStage, meta.get("pipeline_stage"), PipelineStage.COLD),
            qualification_score=QualificationScore(
                total=_float(meta.get("qualification_score")),
                breakdown=breakdown,
                last_updated=parse_timestamp(meta.get("score_updated")),
            ),
            interactions=[dict(i) for i in interactions if isinstance(i, Mapping)]
            if isinstance(interactions, list) else [],
            competitors=dict(competitors) if isinstance(competitors, Mapping) else None,
        )

    def to_frontmatter(self) -> dict[str, Any]:
        biz = self.business
        score = self.qualification_score
        meta = self._base_frontmatter()
        meta.update(_prune({
            "company": biz.name,
            "industry": biz.industry.value,
            "city": biz.location.city,
            "state": biz.location.state,
            "country": biz.location.country,
            "location": biz.location.display,
            "business_size": biz.size.category.value,
            "employee_count": biz.size.employee_count,
            "estimated_revenue": biz.size.estimated_revenue,
            "has_website": biz.digital_presence.has_website,
            "has_google_business": biz.digital_presence.has_google_business,
            "has_social_media": biz.digital_presence.has_social_media,
            "has_online_reviews": biz.digital_presence.has_online_reviews,
            "phone": self.contact.phone or "",
            "email": self.contact.email or "",
            "website": self.contact.website or "",
            "primary_contact": self.contact.primary_contact,
            "contact_title": self.contact.contact_title,
            "decision_maker": self.contact.decision_maker,
            "social_profiles": dict(self.contact.social_profiles) or None,
            "pipeline_stage": self.pipeline_stage.value,
            "qualification_score": score.total,
        }))
        for component, key in SCORE_FIELD_KEYS.items():
            meta[key] = getattr(score.breakdown, component)
        meta.update(_prune({
            "score_updated": _ts(score.last_updated),
            "interactions": [dict(i) for i in self.interactions],
            "competitors": dict(self.competitors) if self.competitors is not None else None,
        }))
        meta.update(_prune(self._trailer()))
        return meta


# ---------------------------------------------------------------------------
# Campaign
# ---------------------------------------------------------------------------

@dataclass
class Targeting:
    city: str = ""
    state: str = ""
    radius: float = 25.0
    industries: list[Industry] = field(default_factory=list)
    min_employees: int | None = None
    max_employees: int | None = None
    min_revenue: float | None = None
    max_revenue: float | None = None
    qualification_threshold: float = 60.0


@dataclass
class CampaignMetrics:
    """Counters and rates derived from activities; never edited by hand."""

    prospects_identified: int = 0
    contact_attempts: int = 0
    positive_responses: int = 0
    qualified_leads: int = 0
    response_rate: float = 0.0
    qualification_rate: float = 0.0
    cost_per_qualified_lead: float = 0.0

    KEYS: ClassVar[tuple[str, ...]] = (
        "prospects_identified", "contact_attempts", "positive_responses",
        "qualified_leads", "response_rate", "qualification_rate",
        "cost_per_qualified_lead",
    )


@dataclass
class Campaign(Entity):
    """An outreach campaign targeting a region and set of industries."""

    kind: ClassVar[EntityKind] = EntityKind.CAMPAIGN
    owned_keys: ClassVar[frozenset[str]] = _BASE_KEYS | frozenset({
        "campaign_name", "description", "campaign_type", "status",
        "start_date", "end_date", "target_city", "target_state",
        "target_radius", "target_industries", "min_employees",
        "max_employees", "min_revenue", "max_revenue",
        "qualification_threshold", "messaging", "daily_target",
        "monthly_pipeline_target", *CampaignMetrics.KEYS,
    })

    name: str = ""
    description: str = ""
    campaign_type: CampaignType = CampaignType.GEOGRAPHIC
    status: CampaignStatus = CampaignStatus.ACTIVE
    start_date: datetime | None = None
    end_date: datetime | None = None
    targeting: Targeting = field(default_factory=Targeting)
    messaging: dict[str, str] = field(default_factory=dict)
    metrics: CampaignMetrics = field(default_factory=CampaignMetrics)
    daily_target: int | None = None
    monthly_pipeline_target: float | None = None

    @classmethod
    def from_frontmatter(cls, meta: Mapping[str, Any], file_path: str | None = None) -> Campaign:
        industries = meta.get("target_industries")
        messaging = meta.get("messaging")
        metrics = CampaignMetrics()
        for key in CampaignMetrics.KEYS:
            default = getattr(metrics, key)
            value = meta.get(key, default)
            setattr(metrics, key, int(_float(value)) if isinstance(default, int) else _float(value))
        return cls(
            **cls._base_kwargs(meta, file_path),
            name=_str(meta.get("campaign_name")),
            description=_str(meta.get("description")),
            campaign_type=_enum(CampaignType, meta.get("campaign_type"), CampaignType.GEOGRAPHIC),
            status=_enum(CampaignStatus, meta.get("status"), CampaignStatus.ACTIVE),
            start_date=parse_timestamp(meta.get("start_date")),
            end_date=parse_timestamp(meta.get("end_date")),
            targeting=Targeting(
                city=_str(meta.get("target_city")),
                state=_str(meta.get("target_state")),
                radius=_float(meta.get("target_radius"), 25.0),
                industries=[
                    i for i in (_enum(Industry, v) for v in (industries or [])) if i is not None
                ] if isinstance(industries, list) else [],
                min_employees=_int_or_none(meta.get("min_employees")),
                max_employees=_int_or_none(meta.get("max_employees")),
                min_revenue=_float(meta["min_revenue"]) if meta.get("min_revenue") is not None else None,
                max_revenue=_float(meta["max_revenue"]) if meta.get("max_revenue") is not None else None,
                qualification_threshold=_float(meta.get("qualification_threshold"), 60.0),
            ),
            messaging={k: _str(v) for k, v in messaging.items()}
            if isinstance(messaging, Mapping) else {},
            metrics=metrics,
            daily_target=_int_or_none(meta.get("daily_target")),
            monthly_pipeline_target=(
                _float(meta["monthly_pipeline_target"])
                if meta.get("monthly_pipeline_target") is not None else None
            ),
        )

    def to_frontmatter(self) -> dict[str, Any]:
        tgt = self.targeting
        meta = self._base_frontmatter()
        meta.update(_prune({
            "campaign_name": self.name,
            "description": self.description,
            "campaign_type": self.campaign_type.value,
            "status": self.status.value,
            "start_date": _ts(self.start_date),
            "end_date": _ts(self.end_date),
            "target_city": tgt.city,
            "target_state": tgt.state,
            "target_radius": tgt.radius,
            "target_industries": [i.value for i in tgt.industries],
            "min_employees": tgt.min_employees,
            "max_employees": tgt.max_employees,
            "min_revenue": tgt.min_revenue,
            "max_revenue": tgt.max_revenue,
            "qualification_threshold": tgt.qualification_threshold,
            "messaging": dict(self.messaging) or None,
        }))
        for key in CampaignMetrics.KEYS:
            meta[key] = getattr(self.metrics, key)
        meta.update(_prune({
            "daily_target": self.daily_target,
            "monthly_pipeline_target": self.monthly_pipeline_target,
        }))
        meta.update(_prune(self._trailer()))
        return meta


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

#: Frontmatter key of the metadata block each activity type requires.
REQUIRED_METADATA: Mapping[ActivityType, str] = {
    ActivityType.EMAIL: "email_metadata",
    ActivityType.CALL: "call_metadata",
    ActivityType.VOICEMAIL: "call_metadata",
    ActivityType.MEETING: "meeting_metadata",
    ActivityType.RESEARCH: "research_metadata",
}

METADATA_KEYS: tuple[str, ...] = (
    "call_metadata", "email_metadata", "meeting_metadata", "research_metadata",
)


@dataclass
class ActivityImpact:
    """Optional stage change and score delta caused by an activity."""

    stage_change_from: PipelineStage | None = None
    stage_change_to: PipelineStage | None = None
    qualification_score_change: float | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.stage_change_from is None
            and self.stage_change_to is None
            and self.qualification_score_change is None
        )


@dataclass
class Activity(Entity):
    """A single touch (call, email, note, ...) against one prospect."""

    kind: ClassVar[EntityKind] = EntityKind.ACTIVITY
    owned_keys: ClassVar[frozenset[str]] = _BASE_KEYS | frozenset({
        "prospect_id", "campaign_id", "activity_type", "outcome", "date",
        "duration", "agent_responsible", "summary", "stage_change_from",
        "stage_change_to", "qualification_score_change",
        "follow_up_required", "follow_up_date", "follow_up_type",
        "automated", "automation_rules", *METADATA_KEYS,
    })

    prospect_id: str = ""
    campaign_id: str | None = None
    activity_type: ActivityType = ActivityType.NOTE
    outcome: ActivityOutcome = ActivityOutcome.NEUTRAL
    date: datetime | None = None
    duration: float | None = None
    agent_responsible: AgentType = AgentType.HUMAN_SALES_REP
    summary: str = ""
    metadata: dict[str, dict[str, Any]] = field(default_factory=dict)
    impact: ActivityImpact = field(default_factory=ActivityImpact)
    follow_up_required: bool = False
    follow_up_date: datetime | None = None
    follow_up_type: ActivityType | None = None
    automated: bool = False
    automation_rules: list[str] = field(default_factory=list)

    @classmethod
    def from_frontmatter(cls, meta: Mapping[str, Any], file_path: str | None = None) -> Activity:
        score_change = meta.get("qualification_score_change")
        return cls(
            **cls._base_kwargs(meta, file_path),
            prospect_id=_str(meta.get("prospect_id")),
            campaign_id=meta.get("campaign_id") or None,
            activity_type=_enum(ActivityType, meta.get("activity_type"), ActivityType.NOTE),
            outcome=_enum(ActivityOutcome, meta.get("outcome"), ActivityOutcome.NEUTRAL),
            date=parse_timestamp(meta.get("date")),
            duration=_float(meta["duration"]) if meta.get("duration") is not None else None,
            agent_responsible=_enum(
                AgentType, meta.get("agent_responsible"), AgentType.HUMAN_SALES_REP
            ),
            summary=_str(meta.get("summary")),
            metadata={
                key: dict(meta[key]) for key in METADATA_KEYS
                if isinstance(meta.get(key), Mapping)
            },
            impact=ActivityImpact(
                stage_change_from=_enum(PipelineStage, meta.get("stage_change_from")),
                stage_change_to=_enum(PipelineStage, meta.get("stage_change_to")),
                qualification_score_change=(
                    _float(score_change) if score_change is not None else None
                ),
            ),
            follow_up_required=bool(meta.get("follow_up_required", False)),
            follow_up_date=parse_timestamp(meta.get("follow_up_date")),
            follow_up_type=_enum(ActivityType, meta.get("follow_up_type")),
            automated=bool(meta.get("automated", False)),
            automation_rules=_str_list(meta.get("automation_rules")),
        )

    def to_frontmatter(self) -> dict[str, Any]:
        meta = self._base_frontmatter()
        meta.update(_prune({
            "prospect_id": self.prospect_id,
            "campaign_id": self.campaign_id,
            "activity_type": self.activity_type.value,
            "outcome": self.outcome.value,
            "date": _ts(self.date),
            "duration": self.duration,
            "agent_responsible": self.agent_responsible.value,
            "summary": self.summary,
        }))
        for key in METADATA_KEYS:
            if key in self.metadata:
                meta[key] = dict(self.metadata[key])
        meta.update(_prune({
            "stage_change_from": (
                self.impact.stage_change_from.value if self.impact.stage_change_from else None
            ),
            "stage_change_to": (
                self.impact.stage_change_to.value if self.impact.stage_change_to else None
            ),
            "qualification_score_change": self.impact.qualification_score_change,
            "follow_up_required": self.follow_up_required,
            "follow_up_date": _ts(self.follow_up_date),
            "follow_up_type": self.follow_up_type.value if self.follow_up_type else None,
            "automated": self.automated,
            "automation_rules": list(self.automation_rules) or None,
        }))
        meta.update(_prune(self._trailer()))
        return meta


MODEL_FOR_KIND: Mapping[EntityKind, type[Entity]] = {
    EntityKind.PROSPECT: Prospect,
    EntityKind.CAMPAIGN: Campaign,
    EntityKind.ACTIVITY: Activity,
}


def entity_from_frontmatter(
    kind: EntityKind | str, meta: Mapping[str, Any], file_path: str | None = None
) -> Entity:
    """Build the model for *kind* from a flat frontmatter map."""
    model = MODEL_FOR_KIND[EntityKind(kind)]
    return model.from_frontmatter(meta, file_path)  # type: ignore[attr-defined]
