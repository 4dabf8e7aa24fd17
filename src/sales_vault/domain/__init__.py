"""Domain layer for the sales vault.

Re-exports all public domain types so that consumers can write::

    from sales_vault.domain import Prospect, PipelineStage, is_legal_transition
"""

# -- Enumerations -------------------------------------------------------------
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
    TransitionTrigger,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    SCORE_CAPS,
    BoardChange,
    PipelineMetrics,
    QualificationScore,
    ScoreBreakdown,
    StageTransition,
    StoreResult,
    ValidationIssue,
    ValidationResult,
    WikiLink,
)

# -- State machine ------------------------------------------------------------
from .pipeline import (
    STAGE_GRAPH,
    TERMINAL_STAGES,
    QualificationBands,
    derive_qualification_level,
    is_legal_transition,
    require_legal_transition,
    score_adjustment,
    validate_qualification_score,
)

# -- Entities -----------------------------------------------------------------
from .models import Activity, Campaign, Entity, Prospect, entity_from_frontmatter

# -- Domain Events ------------------------------------------------------------
from .events import (
    BoardSynced,
    DomainEvent,
    EntityCreated,
    EntityDeleted,
    EntityUpdated,
    StageTransitioned,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    ConfigError,
    EntityNotFoundError,
    EntityValidationError,
    FrontmatterParseError,
    IllegalTransitionError,
    SalesVaultError,
)

__all__ = [
    # enums
    "ActivityOutcome",
    "ActivityType",
    "AgentType",
    "BusinessSize",
    "CampaignStatus",
    "CampaignType",
    "EntityKind",
    "Industry",
    "PipelineStage",
    "QualificationLevel",
    "TransitionTrigger",
    # values
    "SCORE_CAPS",
    "BoardChange",
    "PipelineMetrics",
    "QualificationScore",
    "ScoreBreakdown",
    "StageTransition",
    "StoreResult",
    "ValidationIssue",
    "ValidationResult",
    "WikiLink",
    # state machine
    "STAGE_GRAPH",
    "TERMINAL_STAGES",
    "QualificationBands",
    "derive_qualification_level",
    "is_legal_transition",
    "require_legal_transition",
    "score_adjustment",
    "validate_qualification_score",
    # entities
    "Activity",
    "Campaign",
    "Entity",
    "Prospect",
    "entity_from_frontmatter",
    # events
    "BoardSynced",
    "DomainEvent",
    "EntityCreated",
    "EntityDeleted",
    "EntityUpdated",
    "StageTransitioned",
    # exceptions
    "ConfigError",
    "EntityNotFoundError",
    "EntityValidationError",
    "FrontmatterParseError",
    "IllegalTransitionError",
    "SalesVaultError",
]
