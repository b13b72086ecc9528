"""Event handlers for Orders domain events."""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class _AuditLogHandler:
    event_key = "order.event"

    def handle(self, event: DomainEvent) -> None:
        logger.info(self.event_key, **event.to_log_context())


class OrderCreatedHandler(_AuditLogHandler, IEventHandler[OrderCreated]):
    event_key = "order.event.created"


class OrderStatusChangedHandler(_AuditLogHandler, IEventHandler[OrderStatusChanged]):
    event_key = "order.event.status_changed"


class OrderCancelledHandler(_AuditLogHandler, IEventHandler[OrderCancelled]):
    event_key = "order.event.cancelled"


class OrderDeletedHandler(_AuditLogHandler, IEventHandler[OrderDeleted]):
    event_key = "order.event.deleted"


order_created_handler = OrderCreatedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
order_cancelled_handler = OrderCancelledHandler()
order_deleted_handler = OrderDeletedHandler()
