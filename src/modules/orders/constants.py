"""Order domain constants.

Defines status choices and valid status transitions for the order
state machine.
"""

from datetime import timedelta

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    CONFIRMED = "CONFIRMED", "Confirmed"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[str] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# Comment edits and deletion are only allowed before processing starts.
MODIFIABLE_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Orders still moving through the pipeline.
ACTIVE_STATES: set[str] = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
}

COMMENT_MAX_LENGTH = 500

RECENT_ORDERS_WINDOW = timedelta(hours=24)
ATTENTION_THRESHOLD = timedelta(days=3)
ATTENTION_STATES: set[str] = {OrderStatus.PENDING, OrderStatus.CONFIRMED}
