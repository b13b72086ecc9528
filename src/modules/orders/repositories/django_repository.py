"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.

Concurrency control uses the ``version`` column instead of row locks:
every write is an ``UPDATE ... WHERE id = %s AND version = %s`` that also
bumps the version, so a writer holding a stale copy updates zero rows and
gets a ``CONCURRENT_MODIFICATION`` error instead of overwriting.

No method opens its own transaction; the service wraps the calls that
must be atomic.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import Count, F, QuerySet, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from modules.orders.constants import ACTIVE_STATES, OrderStatus
from modules.orders.exceptions import OrderError
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, order: Order, actor: str) -> Order:
        """Insert the order, its buffered items and the initial history row."""
        items = list(order.line_items)
        order.recalculate_total()
        order.status = OrderStatus.PENDING
        order.version = 0
        order.created_by = actor
        order.updated_by = actor
        order.save()

        for item in items:
            item.order = order
            item.save()

        self.add_history(order, None, OrderStatus.PENDING, actor, notes="Order created")

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            item_count=len(items),
            total_amount=str(order.total_amount),
        )
        return order

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    def update(self, order: Order, fields: Iterable[str], actor: str) -> Order:
        """Compare-and-swap write of *fields* against ``order.version``."""
        values = {field: getattr(order, field) for field in fields}
        now = timezone.now()
        rows = Order.objects.filter(pk=order.pk, version=order.version).update(
            **values,
            version=F("version") + 1,
            updated_at=now,
            updated_by=actor,
        )
        if rows == 0:
            raise self._write_conflict(order)

        order.version += 1
        order.updated_at = now
        order.updated_by = actor
        logger.info(
            "order.updated",
            order_id=str(order.id),
            fields=sorted(values),
            version=order.version,
        )
        return order

    def delete(self, entity: Order) -> None:
        """Remove the order with its items and history, if the version holds."""
        deleted, _ = Order.objects.filter(pk=entity.pk, version=entity.version).delete()
        if deleted == 0:
            raise self._write_conflict(entity)
        logger.info("order.deleted", order_id=str(entity.id), rows=deleted)

    def _write_conflict(self, order: Order) -> OrderError:
        if Order.objects.filter(pk=order.pk).exists():
            logger.warning(
                "order.version_conflict",
                order_id=str(order.id),
                expected_version=order.version,
            )
            return OrderError.concurrent_modification(order.id, order.version)
        return OrderError.order_not_found(order.id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order: Order,
        old_status: Optional[str],
        new_status: str,
        actor: str,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order=order,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            notes=notes,
        )
        # A prefetched trail would hide the new row from the next read.
        getattr(order, "_prefetched_objects_cache", {}).pop("status_history", None)
        logger.info(
            "order.history_added",
            order_id=str(order.id),
            old_status=old_status,
            new_status=new_status,
            actor=actor,
        )
        return history

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet:
        return Order.objects.prefetch_related("items", "status_history")

    def get_by_id(self, id: Any) -> Optional[Order]:
        """Retrieve an order with its items and history prefetched.

        Returns ``None`` for non-existent or malformed IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        """Lazy queryset of orders with optional ORM lookups.

        Lookups that traverse ``items`` return each order once.
        """
        queryset = self._base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
            if any(key.startswith("items__") for key in filters):
                queryset = queryset.distinct()
        return queryset

    def find_by_client(self, client_id: int) -> QuerySet:
        return self.list({"client_id": client_id})

    def find_by_status(self, status: str) -> QuerySet:
        return self.list({"status": status})

    def find_by_date_range(self, start: datetime, end: datetime) -> QuerySet:
        return self.list({"created_at__gte": start, "created_at__lte": end})

    def find_by_product(self, product_id: int) -> QuerySet:
        return self.list({"items__product_id": product_id})

    def find_created_since(self, since: datetime) -> QuerySet:
        return self.list({"created_at__gte": since})

    def find_stale(self, before: datetime, statuses: Iterable[str]) -> QuerySet:
        return self.list(
            {"created_at__lte": before, "status__in": list(statuses)}
        ).order_by("created_at")

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def client_totals(self, client_id: int) -> Dict[str, Any]:
        orders = Order.objects.filter(client_id=client_id)
        totals = orders.aggregate(count=Count("id"), amount=Sum("total_amount"))
        return {
            "count": totals["count"],
            "amount": totals["amount"] or ZERO,
            "has_active": orders.filter(status__in=ACTIVE_STATES).exists(),
        }

    def global_totals(self) -> Dict[str, Any]:
        totals = Order.objects.aggregate(count=Count("id"), amount=Sum("total_amount"))
        by_status = {status: 0 for status in OrderStatus.values}
        rows = Order.objects.order_by().values("status").annotate(count=Count("id"))
        for row in rows:
            by_status[row["status"]] = row["count"]
        return {
            "count": totals["count"],
            "amount": totals["amount"] or ZERO,
            "by_status": by_status,
        }

    def daily_totals(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        rows = (
            Order.objects.filter(created_at__gte=start, created_at__lte=end)
            .annotate(day=TruncDate("created_at"))
            .order_by()
            .values("day")
            .annotate(count=Count("id"), amount=Sum("total_amount"))
            .order_by("day")
        )
        return [
            {"day": row["day"], "count": row["count"], "amount": row["amount"] or ZERO}
            for row in rows
        ]

    def top_clients(self, limit: int) -> List[Dict[str, Any]]:
        rows = (
            Order.objects.order_by()
            .values("client_id")
            .annotate(count=Count("id"), amount=Sum("total_amount"))
            .order_by("-count", "client_id")[:limit]
        )
        return [
            {
                "client_id": row["client_id"],
                "count": row["count"],
                "amount": row["amount"] or ZERO,
            }
            for row in rows
        ]
