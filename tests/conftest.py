"""Shared fixtures for the sales vault test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from sales_vault.domain.enums import EntityKind
from sales_vault.domain.models import Prospect
from sales_vault.infrastructure.config import VaultConfig
from sales_vault.infrastructure.event_bus import EventBus, EventStore
from sales_vault.services.document_store import DocumentStore
from sales_vault.services.kanban import KanbanSynchronizer

START = datetime(2025, 3, 10, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic, manually advanced UTC clock."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


# ---------------------------------------------------------------------------
# Vault fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(tmp_path) -> VaultConfig:
    """Default layout rooted in a fresh temporary vault."""
    return VaultConfig(vault_path=str(tmp_path / "vault"))


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> EventStore:
    history = EventStore()
    history.attach(bus)
    return history


@pytest.fixture
def store(config: VaultConfig, bus: EventBus, clock: FakeClock) -> DocumentStore:
    """An initialized store publishing on ``bus``."""
    s = DocumentStore(config, event_bus=bus, clock=clock)
    s.initialize()
    return s


@pytest.fixture
def sync(store: DocumentStore) -> KanbanSynchronizer:
    return KanbanSynchronizer(store)


# ---------------------------------------------------------------------------
# Sample inputs
# ---------------------------------------------------------------------------


@pytest.fixture
def prospect_input() -> dict[str, Any]:
    return {
        "business_name": "Test Restaurant LLC",
        "industry": "restaurants",
        "city": "Denver",
        "state": "CO",
        "phone": "(303) 555-0100",
        "email": "owner@testrestaurant.com",
        "website": "https://testrestaurant.com",
        "employee_count": 12,
        "score_breakdown": {
            "business_size": 15,
            "digital_presence": 10,
            "competitor_gaps": 12,
            "location": 10,
            "industry": 8,
            "revenue_indicators": 5,
        },
    }


@pytest.fixture
def campaign_input() -> dict[str, Any]:
    return {
        "name": "Denver Restaurants Q2",
        "description": "Independent restaurants around downtown Denver",
        "city": "Denver",
        "state": "CO",
        "industries": ["restaurants"],
        "messaging": {
            "hook": "Your competitors show up on Google Maps. Do you?",
            "value_prop": "A website and listing in a week",
            "closing": "Can I send over two examples?",
        },
    }


@pytest.fixture
def make_prospect(store: DocumentStore, prospect_input: dict[str, Any]):
    """Factory creating a prospect from ``prospect_input`` plus overrides."""

    def _make(**overrides: Any) -> Prospect:
        result = store.create(EntityKind.PROSPECT, {**prospect_input, **overrides})
        assert result.success, result.error
        assert isinstance(result.entity, Prospect)
        return result.entity

    return _make


@pytest.fixture
def activity_input():
    """Factory for a valid call activity against *prospect_id*."""

    def _make(prospect_id: str, **overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "prospect_id": prospect_id,
            "activity_type": "call",
            "outcome": "positive",
            "summary": "Spoke with the owner about a new website",
            "duration": 6,
            "call_metadata": {"duration": 360, "answered": True},
        }
        data.update(overrides)
        return data

    return _make
