"""Domain events for the sales vault.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
document store and the Kanban synchronizer publish them after each
successful mutation; listeners (event store, dashboards, automations) react.

All events carry a ``timestamp`` and a ``source_id`` identifying the
originating component.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import EntityKind, PipelineStage, TransitionTrigger

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""


# ---------------------------------------------------------------------------
# Entity lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntityCreated(DomainEvent):
    """A new entity file was written."""

    kind: EntityKind | None = None
    entity_id: str = ""
    file_path: str = ""


@dataclass(frozen=True)
class EntityUpdated(DomainEvent):
    """An entity file was merge-updated."""

    kind: EntityKind | None = None
    entity_id: str = ""
    changed_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class EntityDeleted(DomainEvent):
    """An entity file was removed."""

    kind: EntityKind | None = None
    entity_id: str = ""


# ---------------------------------------------------------------------------
# Pipeline events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageTransitioned(DomainEvent):
    """A prospect moved along an edge of the stage graph."""

    prospect_id: str = ""
    from_stage: PipelineStage | None = None
    to_stage: PipelineStage | None = None
    triggered_by: TransitionTrigger = TransitionTrigger.MANUAL
    reason: str = ""


@dataclass(frozen=True)
class BoardSynced(DomainEvent):
    """The Kanban board was rebuilt from the prospect files."""

    card_count: int = 0
    board_path: str = ""
