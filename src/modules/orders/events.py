"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created."""

    client_id: int
    total_amount: Decimal
    item_count: int


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order status changes."""

    old_status: str
    new_status: str


@dataclass(frozen=True, kw_only=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled."""

    previous_status: str


@dataclass(frozen=True)
class OrderDeleted(DomainEvent):
    """Raised when an order is physically removed."""
