"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, Iterable, List, Type

import structlog

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class InMemoryEventBus(IEventBus):
    """Synchronous in-process event bus.

    Handlers run in the publishing thread, after the unit of work that
    produced the events has finished.  A failing handler is logged and
    skipped; the remaining handlers still run and the publisher never sees
    the error.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        handlers = self._handlers.get(type(event), [])
        logger.debug(
            "event_bus.publish",
            event_name=event.event_name,
            handler_count=len(handlers),
        )
        for handler in handlers:
            try:
                handler.handle(event)
            except Exception:
                logger.exception(
                    "event_bus.handler_failed",
                    event_name=event.event_name,
                    handler=type(handler).__name__,
                )

    def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            self.publish(event)


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
