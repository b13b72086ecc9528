"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``OrderItemOutputDTO``: output for a single line item, with the current
  catalog entry attached when it could be fetched.
- ``StatusHistoryDTO``: output for a status history record.
- ``OrderOutputDTO``: output with items, history and the current customer.
- ``ClientStatisticsDTO``, ``GlobalStatisticsDTO``, ``DailyStatisticsDTO``,
  ``TopClientDTO``: aggregate read models.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.customers.dtos import CustomerSnapshot
from modules.orders.constants import COMMENT_MAX_LENGTH
from modules.products.dtos import ProductSnapshot

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderItem, OrderStatusHistory


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a creation request.

    The caller sends ``product_id`` and ``quantity``.
    Name and ``unit_price`` are resolved from the product catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: int = Field(gt=0)
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    Validates:
    - ``client_id`` is a positive id.
    - ``items`` must contain at least one item.
    - Each item quantity must be positive.
    - A product appears at most once.
    """

    model_config = ConfigDict(frozen=True)

    client_id: int = Field(gt=0)
    items: List[CreateOrderItemDTO]
    comment: str = Field(default="", max_length=COMMENT_MAX_LENGTH)

    @field_validator("comment", mode="before")
    @classmethod
    def none_comment_is_empty(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_products(self):
        """Prevent duplicate product IDs in the same order."""
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    """Immutable DTO for order item API responses.

    ``product_name`` and ``unit_price`` are the values captured at creation;
    ``product`` is the catalog entry as it is now (``None`` if unavailable).
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    version: int
    product: Optional[ProductSnapshot] = None

    @classmethod
    def from_entity(
        cls, item: OrderItem, product: Optional[ProductSnapshot] = None
    ) -> OrderItemOutputDTO:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
            version=item.version,
            product=product,
        )


class StatusHistoryDTO(BaseModel):
    """Immutable DTO for order status history API responses."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    old_status: Optional[str]
    new_status: str
    actor: str
    notes: str
    created_at: datetime

    @classmethod
    def from_entity(cls, history: OrderStatusHistory) -> StatusHistoryDTO:
        return cls(
            id=history.id,
            old_status=history.old_status,
            new_status=history.new_status,
            actor=history.actor,
            notes=history.notes,
            created_at=history.created_at,
        )


class OrderOutputDTO(BaseModel):
    """Immutable DTO for order API responses."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    client_id: int
    status: str
    comment: str
    total_amount: Decimal
    version: int
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOutputDTO]
    history: List[StatusHistoryDTO]
    customer: Optional[CustomerSnapshot] = None

    @classmethod
    def from_entity(
        cls,
        order: Order,
        customer: Optional[CustomerSnapshot] = None,
        products: Optional[Dict[int, Optional[ProductSnapshot]]] = None,
    ) -> OrderOutputDTO:
        """Build an output DTO from an Order model instance.

        Assumes ``items`` and ``status_history`` are prefetched.
        """
        products = products or {}
        items = [
            OrderItemOutputDTO.from_entity(item, products.get(item.product_id))
            for item in order.line_items
        ]
        history = [StatusHistoryDTO.from_entity(h) for h in order.status_history.all()]
        return cls(
            id=order.id,
            client_id=order.client_id,
            status=order.status,
            comment=order.comment,
            total_amount=order.total_amount,
            version=order.version,
            created_by=order.created_by,
            updated_by=order.updated_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=items,
            history=history,
            customer=customer,
        )


class ClientStatisticsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: int
    total_orders: int
    total_amount: Decimal
    has_active_orders: bool


class GlobalStatisticsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_orders: int
    total_amount: Decimal
    orders_by_status: Dict[str, int]


class DailyStatisticsDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    order_count: int
    total_amount: Decimal


class TopClientDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: int
    order_count: int
    total_amount: Decimal
