"""Domain events primitives for the modular monolith.

Events are immutable records of something that already happened to an
aggregate.  They carry the identity of the caller that triggered the change
(``actor``) so handlers never need to reach for a global "current user".
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID, uuid4

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable)."""

    aggregate_id: UUID
    actor: str = SYSTEM_ACTOR
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_log_context(self) -> Dict[str, Any]:
        """Flatten the event into JSON-friendly key/value pairs for logging."""
        context = asdict(self)
        for key, value in context.items():
            if isinstance(value, (UUID, datetime, Decimal)):
                context[key] = str(value)
        return context


class DomainEventMixin:
    """Mixin for aggregate roots that collect domain events in memory.

    Events are recorded while the aggregate is being changed and handed to
    the bus by the service once the unit of work has finished.
    """

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def clear_domain_events(self) -> None:
        if hasattr(self, "_domain_events"):
            self._domain_events.clear()

    @property
    def domain_events(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return list(self._domain_events)
