"""Domain enumerations for the sales vault.

These enums capture the fixed vocabularies shared by every layer: pipeline
stages, industries, business sizes, entity kinds, activity types and
outcomes, agents, campaign lifecycle, and qualification levels.

All of them subclass ``str`` so that members compare equal to the plain
strings stored in note frontmatter.
"""

from enum import Enum


class PipelineStage(str, Enum):
    """Position of a prospect in the sales pipeline."""

    COLD = "cold"
    CONTACTED = "contacted"
    INTERESTED = "interested"
    QUALIFIED = "qualified"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"
    FROZEN = "frozen"  # parked, may be reactivated


class Industry(str, Enum):
    """Industry categories a prospect can belong to."""

    RESTAURANTS = "restaurants"
    RETAIL = "retail"
    PROFESSIONAL_SERVICES = "professional_services"
    HEALTHCARE = "healthcare"
    REAL_ESTATE = "real_estate"
    AUTOMOTIVE = "automotive"
    HOME_SERVICES = "home_services"
    FITNESS = "fitness"
    BEAUTY_SALONS = "beauty_salons"
    LEGAL_SERVICES = "legal_services"
    OTHER = "other"


class BusinessSize(str, Enum):
    """Size category, each implying an employee-count range."""

    MICRO = "micro"  # 1-9
    SMALL = "small"  # 10-49
    MEDIUM = "medium"  # 50-999


class EntityKind(str, Enum):
    """Kinds of entity persisted by the document store."""

    PROSPECT = "prospect"
    CAMPAIGN = "campaign"
    ACTIVITY = "activity"


class ActivityType(str, Enum):
    """What kind of touch an activity records."""

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    RESEARCH = "research"
    NOTE = "note"
    VOICEMAIL = "voicemail"
    LINKEDIN_MESSAGE = "linkedin_message"
    WEBSITE_VISIT = "website_visit"
    DOCUMENT_SENT = "document_sent"
    FOLLOW_UP_SCHEDULED = "follow_up_scheduled"


class ActivityOutcome(str, Enum):
    """Result reported for an activity."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    NO_CONTACT = "no_contact"
    BUSY = "busy"
    VOICEMAIL = "voicemail"
    EMAIL_BOUNCE = "email_bounce"
    UNSUBSCRIBED = "unsubscribed"
    MEETING_SCHEDULED = "meeting_scheduled"
    DEMO_REQUESTED = "demo_requested"
    NOT_INTERESTED = "not_interested"


class AgentType(str, Enum):
    """Who (or what) performed an activity."""

    PROSPECTING_AGENT = "prospecting_agent"
    PITCH_CREATOR_AGENT = "pitch_creator_agent"
    VOICE_AI_AGENT = "voice_ai_agent"
    EMAIL_AUTOMATION_AGENT = "email_automation_agent"
    SALES_ORCHESTRATOR_AGENT = "sales_orchestrator_agent"
    HUMAN_SALES_REP = "human_sales_rep"


class CampaignStatus(str, Enum):
    """Lifecycle status of a campaign."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class CampaignType(str, Enum):
    """How a campaign selects its targets."""

    GEOGRAPHIC = "geographic"
    INDUSTRY = "industry"
    CUSTOM = "custom"


class QualificationLevel(str, Enum):
    """Banding of a qualification total."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    DISQUALIFIED = "disqualified"


class TransitionTrigger(str, Enum):
    """Origin of a stage transition request."""

    MANUAL = "manual"
    AUTOMATED = "automated"
    AGENT = "agent"
