"""Event bus and in-memory event history for the sales vault.

The document store and the Kanban synchronizer publish a ``DomainEvent``
after every successful mutation.  Subscribers run synchronously, in
registration order; one that raises is logged and skipped so a broken
listener can never undo or abort the mutation that produced the event.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Sequence

from sales_vault.domain.events import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], None]


# ===================================================================== #
#  Event Bus                                                             #
# ===================================================================== #

class EventBus:
    """Thread-safe synchronous pub-sub for domain events.

    Usage::

        bus = EventBus()
        bus.subscribe(StageTransitioned, on_move)
        store = DocumentStore(config, event_bus=bus)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[type[DomainEvent], list[Handler]] = defaultdict(list)
        self._global_handlers: list[Handler] = []

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Register *handler* for *event_type* (exact type match)."""
        with self._lock:
            self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register *handler* to receive every published event."""
        with self._lock:
            self._global_handlers.append(handler)

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> bool:
        """Remove *handler* from *event_type*. Returns ``True`` if found."""
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                return True
            return False

    def publish(self, event: DomainEvent) -> None:
        """Deliver *event* to global handlers, then to typed handlers."""
        with self._lock:
            targets = list(self._global_handlers)
            targets.extend(self._handlers.get(type(event), []))

        for handler in targets:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Error in handler %r for %s", handler, type(event).__name__
                )

    def handler_count(self, event_type: type[DomainEvent] | None = None) -> int:
        """Handlers for *event_type*, or all handlers including globals."""
        with self._lock:
            if event_type is not None:
                return len(self._handlers.get(event_type, []))
            return sum(len(hs) for hs in self._handlers.values()) + len(self._global_handlers)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()


# ===================================================================== #
#  Event Store                                                           #
# ===================================================================== #

class EventStore:
    """Append-only in-memory history of published events.

    ::

        history = EventStore()
        history.attach(bus)
        ...
        history.query(StageTransitioned)
    """

    def __init__(self, max_size: int = 0) -> None:
        """*max_size* caps the history (oldest dropped first); 0 is unlimited."""
        self._events: list[DomainEvent] = []
        self._max_size = max_size
        self._lock = threading.Lock()

    def attach(self, bus: EventBus) -> None:
        """Record every event published on *bus* from now on."""
        bus.subscribe_all(self.append)

    def append(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)
            if self._max_size > 0 and len(self._events) > self._max_size:
                del self._events[: len(self._events) - self._max_size]

    def query(
        self,
        event_type: type[DomainEvent] | None = None,
        since: float | None = None,
        limit: int = 0,
    ) -> Sequence[DomainEvent]:
        """Events matching the optional filters, oldest first.

        *event_type* matches subclasses too; *limit* keeps the most recent.
        """
        with self._lock:
            result = list(self._events)
        if event_type is not None:
            result = [e for e in result if isinstance(e, event_type)]
        if since is not None:
            result = [e for e in result if e.timestamp >= since]
        if limit > 0:
            result = result[-limit:]
        return result

    @property
    def latest(self) -> DomainEvent | None:
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
