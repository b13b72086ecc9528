"""Unit tests for Orders event handlers and the in-memory bus."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from structlog.testing import capture_logs

from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
)
from modules.orders.handlers import (
    OrderCancelledHandler,
    OrderCreatedHandler,
    OrderDeletedHandler,
    OrderStatusChangedHandler,
)
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "handler,event,event_key",
    [
        (
            OrderCreatedHandler(),
            OrderCreated(
                aggregate_id=uuid4(), client_id=1, total_amount=Decimal("125.00"), item_count=2
            ),
            "order.event.created",
        ),
        (
            OrderStatusChangedHandler(),
            OrderStatusChanged(aggregate_id=uuid4(), old_status="PENDING", new_status="CONFIRMED"),
            "order.event.status_changed",
        ),
        (
            OrderCancelledHandler(),
            OrderCancelled(aggregate_id=uuid4(), previous_status="SHIPPED"),
            "order.event.cancelled",
        ),
        (OrderDeletedHandler(), OrderDeleted(aggregate_id=uuid4()), "order.event.deleted"),
    ],
)
def test_handler_logs_event(handler, event, event_key):
    with capture_logs() as logs:
        handler.handle(event)

    (entry,) = logs
    assert entry["event"] == event_key
    assert entry["aggregate_id"] == str(event.aggregate_id)
    assert entry["event_name"] == type(event).__name__


def test_created_handler_logs_amount_as_text():
    event = OrderCreated(
        aggregate_id=uuid4(), actor="clerk", client_id=7, total_amount=Decimal("9.90"), item_count=1
    )

    with capture_logs() as logs:
        OrderCreatedHandler().handle(event)

    assert logs[0]["total_amount"] == "9.90"
    assert logs[0]["actor"] == "clerk"
    assert logs[0]["client_id"] == 7


def test_in_memory_event_bus_routes_events():
    bus = InMemoryEventBus()
    handled = []

    class CapturingHandler:
        def handle(self, event) -> None:
            handled.append(event)

    handler = CapturingHandler()
    event = OrderDeleted(aggregate_id=uuid4())

    bus.subscribe(OrderDeleted, handler)
    bus.subscribe(OrderDeleted, handler)
    bus.publish(event)
    bus.publish(OrderCancelled(aggregate_id=uuid4(), previous_status="PENDING"))

    assert handled == [event]


def test_failing_handler_is_logged_and_skipped():
    bus = InMemoryEventBus()
    handled = []

    class BrokenHandler:
        def handle(self, event) -> None:
            raise RuntimeError("boom")

    class CapturingHandler:
        def handle(self, event) -> None:
            handled.append(event)

    event = OrderDeleted(aggregate_id=uuid4())
    bus.subscribe(OrderDeleted, BrokenHandler())
    bus.subscribe(OrderDeleted, CapturingHandler())

    with capture_logs() as logs:
        bus.publish_all([event])

    assert handled == [event]
    (failure,) = [entry for entry in logs if entry["event"] == "event_bus.handler_failed"]
    assert failure["handler"] == "BrokenHandler"
    assert failure["event_name"] == "OrderDeleted"
    assert failure["log_level"] == "error"
