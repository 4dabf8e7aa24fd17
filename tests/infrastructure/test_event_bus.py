"""Tests for EventBus and EventStore."""

from __future__ import annotations

import logging

import pytest

from sales_vault.domain.enums import EntityKind, PipelineStage
from sales_vault.domain.events import (
    BoardSynced,
    DomainEvent,
    EntityCreated,
    EntityUpdated,
    StageTransitioned,
)
from sales_vault.infrastructure.event_bus import EventBus, EventStore


def _created(entity_id: str = "p1", timestamp: float = 1.0) -> EntityCreated:
    return EntityCreated(
        source_id="test",
        timestamp=timestamp,
        kind=EntityKind.PROSPECT,
        entity_id=entity_id,
    )


class TestEventBus:
    """Test synchronous EventBus subscribe, publish, unsubscribe."""

    def test_subscribe_and_publish(self) -> None:
        bus = EventBus()
        received: list[DomainEvent] = []
        bus.subscribe(EntityCreated, received.append)

        event = _created()
        bus.publish(event)
        assert received == [event]

    def test_typed_subscription_filters_events(self) -> None:
        bus = EventBus()
        received: list[DomainEvent] = []
        bus.subscribe(EntityCreated, received.append)

        bus.publish(_created())
        bus.publish(BoardSynced(source_id="kanban", card_count=3))
        assert len(received) == 1

    def test_global_handlers_run_first(self) -> None:
        bus = EventBus()
        order: list[str] = []
        bus.subscribe(EntityCreated, lambda e: order.append("typed"))
        bus.subscribe_all(lambda e: order.append("global"))

        bus.publish(_created())
        assert order == ["global", "typed"]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        received: list[DomainEvent] = []
        bus.subscribe(EntityCreated, received.append)

        assert bus.unsubscribe(EntityCreated, received.append) is True
        assert bus.unsubscribe(EntityCreated, received.append) is False
        bus.publish(_created())
        assert received == []

    def test_failing_handler_does_not_stop_others(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = EventBus()
        received: list[DomainEvent] = []

        def broken(event: DomainEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(EntityUpdated, broken)
        bus.subscribe(EntityUpdated, received.append)

        with caplog.at_level(logging.ERROR):
            bus.publish(EntityUpdated(entity_id="p1", changed_fields=("phone",)))
        assert len(received) == 1
        assert "EntityUpdated" in caplog.text

    def test_handler_count_and_clear(self) -> None:
        bus = EventBus()
        bus.subscribe(EntityCreated, lambda e: None)
        bus.subscribe(StageTransitioned, lambda e: None)
        bus.subscribe_all(lambda e: None)

        assert bus.handler_count(EntityCreated) == 1
        assert bus.handler_count() == 3
        bus.clear()
        assert bus.handler_count() == 0


class TestEventStore:
    """Test recording and querying published events."""

    def test_attach_records_everything(self) -> None:
        bus = EventBus()
        history = EventStore()
        history.attach(bus)

        bus.publish(_created())
        bus.publish(StageTransitioned(
            prospect_id="p1",
            from_stage=PipelineStage.COLD,
            to_stage=PipelineStage.CONTACTED,
        ))
        assert len(history) == 2
        assert isinstance(history.latest, StageTransitioned)

    def test_query_filters(self) -> None:
        history = EventStore()
        history.append(_created("a", timestamp=1.0))
        history.append(BoardSynced(timestamp=2.0))
        history.append(_created("b", timestamp=3.0))

        assert [e.entity_id for e in history.query(EntityCreated)] == ["a", "b"]
        assert len(history.query(since=2.0)) == 2
        assert history.query(EntityCreated, limit=1)[0].entity_id == "b"
        assert len(history.query(DomainEvent)) == 3

    def test_max_size_drops_oldest(self) -> None:
        history = EventStore(max_size=2)
        for i in range(4):
            history.append(_created(str(i), timestamp=float(i)))
        assert [e.entity_id for e in history.query()] == ["2", "3"]

    def test_empty(self) -> None:
        history = EventStore()
        assert history.latest is None
        assert len(history) == 0
        history.append(_created())
        history.clear()
        assert len(history) == 0
