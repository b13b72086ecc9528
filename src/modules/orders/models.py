"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- ``total_amount`` is always the sum of the line totals of the order's items.
- OrderItem snapshots product name and price at creation time.
- OrderItem ``line_total`` is always ``quantity * unit_price`` (calculated on save).
- Status transitions are validated against ``VALID_TRANSITIONS``.
- ``version`` is bumped by the store on every persisted mutation
  (optimistic concurrency, no row locks).
- Every status change (including the initial PENDING) gets a history record
  naming the caller that made it.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    COMMENT_MAX_LENGTH,
    MODIFIABLE_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderStatus,
)
from modules.orders.exceptions import OrderError
from shared.domain.events import SYSTEM_ACTOR, DomainEventMixin

if TYPE_CHECKING:
    from modules.products.dtos import ProductSnapshot

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Round *value* to whole cents, the precision every money column stores."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``client_id`` references a record of the external customer directory;
    there is no foreign key because the customer is not owned here.

    Items are held in memory while the order is being built (``add_item``);
    the store persists them together with the order.
    """

    client_id: models.PositiveIntegerField = models.PositiveIntegerField(db_index=True)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    comment: models.CharField = models.CharField(
        max_length=COMMENT_MAX_LENGTH, blank=True, default=""
    )
    total_amount: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=ZERO,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    created_by: models.CharField = models.CharField(max_length=150, default=SYSTEM_ACTOR)
    updated_by: models.CharField = models.CharField(max_length=150, default=SYSTEM_ACTOR)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    # ------------------------------------------------------------------
    # Items & totals
    # ------------------------------------------------------------------

    @property
    def line_items(self) -> list[OrderItem]:
        """The order's items: the in-memory buffer, loaded from the DB once."""
        if not hasattr(self, "_line_items"):
            if self._state.adding:
                self._line_items = []
            else:
                self._line_items = list(self.items.all())
        return self._line_items

    def add_item(self, item: OrderItem) -> None:
        item.order = self
        self.line_items.append(item)
        self.recalculate_total()

    def remove_item(self, item: OrderItem) -> None:
        self.line_items.remove(item)
        self.recalculate_total()

    def recalculate_total(self) -> Decimal:
        total = ZERO
        for item in self.line_items:
            total += item.compute_line_total()
        self.total_amount = total
        return total

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_be_modified(self) -> bool:
        return self.status in MODIFIABLE_STATES

    def can_be_cancelled(self) -> bool:
        return self.status not in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    def transition_to(self, new_status: str) -> str:
        """Move to *new_status* and return the previous status.

        Raises:
            OrderError: ``INVALID_TRANSITION`` if the table forbids the move.
        """
        if not self.can_transition_to(new_status):
            raise OrderError.invalid_transition(self.id, self.status, new_status)
        old_status = self.status
        self.status = new_status
        return old_status

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"Order {self.id} ({self.status})"


class OrderItem(BaseModel):
    """Line item of an Order.

    ``product_name`` and ``unit_price`` are a **snapshot** of the catalog
    entry at the time of purchase; they never change even if the catalog
    does.  ``line_total`` is always ``quantity * unit_price``.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product_id: models.PositiveIntegerField = models.PositiveIntegerField(db_index=True)
    product_name: models.CharField = models.CharField(max_length=255)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    line_total: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
        default=ZERO,
    )
    version: models.PositiveIntegerField = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    @classmethod
    def from_snapshot(cls, product: ProductSnapshot, quantity: int) -> OrderItem:
        """Build a line from the catalog entry as it is right now."""
        item = cls(
            product_id=product.id,
            product_name=product.name,
            unit_price=to_money(product.price),
            quantity=quantity,
        )
        item.compute_line_total()
        return item

    def compute_line_total(self) -> Decimal:
        self.unit_price = to_money(self.unit_price)
        self.line_total = to_money(self.quantity * self.unit_price)
        return self.line_total

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.compute_line_total()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_name} x{self.quantity} ({self.line_total})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    ``actor`` is whoever asked for the change; the HTTP layer falls back to
    the system identity for anonymous callers.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    actor: models.CharField = models.CharField(max_length=150, default=SYSTEM_ACTOR)
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
