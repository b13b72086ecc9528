"""Order service layer (Use Cases).

Orchestrates order creation, status management, cancellation and
deletion against two external systems of record (customer directory and
product catalog) that cannot take part in a local transaction.

Creation is a sequenced protocol, not a two-phase commit:

1. validate the customer (fail fast, nothing persisted);
2. validate every requested product and quantity (all-or-nothing);
3. build the line items from the product snapshots (name and price frozen);
4. persist order, items and initial history in one unit of work;
5. enrich the response with current remote data, best-effort.

Catalog stock is checked but never reserved, so two concurrent orders can
both pass validation for the last units of a product.

Every command takes the caller identity (``actor``) explicitly; it is
recorded on the order and its history.  Domain events are published on
the event bus once the unit of work has finished.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.orders.constants import (
    ATTENTION_STATES,
    ATTENTION_THRESHOLD,
    COMMENT_MAX_LENGTH,
    RECENT_ORDERS_WINDOW,
    OrderStatus,
)
from modules.orders.dtos import (
    ClientStatisticsDTO,
    DailyStatisticsDTO,
    GlobalStatisticsDTO,
    OrderOutputDTO,
    TopClientDTO,
)
from modules.orders.enrichment import OrderEnricher
from modules.orders.events import (
    OrderCancelled,
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
)
from modules.orders.exceptions import OrderError
from modules.orders.models import Order, OrderItem

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.gateway import RemoteValidationGateway
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)

UnitOfWork = Callable[[], AbstractContextManager]


def parse_status(value: Any) -> str:
    """Normalise a status name, case-insensitively.

    Raises:
        OrderError: ``VALIDATION`` for unknown statuses.
    """
    candidate = str(value or "").strip().upper()
    if candidate not in OrderStatus.values:
        raise OrderError.validation(
            f"Unknown order status {value!r}. "
            f"Expected one of: {', '.join(OrderStatus.values)}.",
            field="status",
        )
    return OrderStatus(candidate)


def day_bounds(start: date | datetime, end: date | datetime) -> tuple[datetime, datetime]:
    """Turn a date or datetime range into aware datetimes, whole days inclusive.

    Raises:
        OrderError: ``VALIDATION`` if *start* is after *end*.
    """
    if not isinstance(start, datetime):
        start = datetime.combine(start, time.min)
    if not isinstance(end, datetime):
        end = datetime.combine(end, time.max)
    if timezone.is_naive(start):
        start = timezone.make_aware(start)
    if timezone.is_naive(end):
        end = timezone.make_aware(end)
    if start > end:
        raise OrderError.validation("start_date must not be after end_date.", field="start_date")
    return start, end


class OrderService:
    """Application service for Order use-cases.

    Receives its collaborators via constructor injection (DIP).
    ``unit_of_work`` is a factory of context managers delimiting the
    atomic part of each command (``transaction.atomic`` by default).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        gateway: RemoteValidationGateway,
        enricher: Optional[OrderEnricher] = None,
        event_bus: Optional[IEventBus] = None,
        unit_of_work: UnitOfWork = transaction.atomic,
    ) -> None:
        self._order_repo = order_repository
        self._gateway = gateway
        self._enricher = enricher or OrderEnricher(gateway)
        self._event_bus = event_bus
        self._unit_of_work = unit_of_work

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO, *, actor: str) -> OrderOutputDTO:
        """Validate remotely, snapshot, persist and return the new order.

        Raises:
            OrderError: ``CLIENT_INVALID`` or ``PRODUCT_INVALID``; nothing has
                been persisted in either case.
        """
        log = logger.bind(client_id=dto.client_id, actor=actor, item_count=len(dto.items))
        log.info("order.creation_started")

        customer = self._gateway.validate_customer(dto.client_id)
        snapshots = [
            (self._gateway.validate_product(item.product_id, item.quantity), item.quantity)
            for item in dto.items
        ]

        order = Order(client_id=dto.client_id, comment=dto.comment)
        for product, quantity in snapshots:
            order.add_item(OrderItem.from_snapshot(product, quantity))

        with self._unit_of_work():
            self._order_repo.create(order, actor)

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                actor=actor,
                client_id=order.client_id,
                total_amount=order.total_amount,
                item_count=len(order.line_items),
            )
        )
        log.info("order.created", order_id=str(order.id), total_amount=str(order.total_amount))
        self._publish_events(order)
        return self._enricher.enrich(order, customer=customer)

    def update_status(
        self,
        order_id: UUID | str,
        new_status: str,
        *,
        actor: str,
        expected_version: Optional[int] = None,
        notes: str = "",
    ) -> OrderOutputDTO:
        """Move an order along the state machine.

        Raises:
            OrderError: ``VALIDATION`` (unknown status), ``ORDER_NOT_FOUND``,
                ``INVALID_TRANSITION`` or ``CONCURRENT_MODIFICATION``.
        """
        target = parse_status(new_status)

        with self._unit_of_work():
            order = self._load(order_id)
            self._check_version(order, expected_version)
            log = logger.bind(
                order_id=str(order.id),
                current_status=order.status,
                new_status=target,
                actor=actor,
            )
            if not order.can_transition_to(target):
                log.warning("order.invalid_transition")
            old_status = order.transition_to(target)
            self._order_repo.update(order, ["status"], actor)
            self._order_repo.add_history(order, old_status, target, actor, notes)

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                actor=actor,
                old_status=old_status,
                new_status=target,
            )
        )
        log.info("order.status_updated", version=order.version)
        self._publish_events(order)
        return self._enricher.enrich(order)

    def update_comment(
        self,
        order_id: UUID | str,
        comment: Optional[str],
        *,
        actor: str,
        expected_version: Optional[int] = None,
    ) -> OrderOutputDTO:
        """Replace the comment of a modifiable order.

        Raises:
            OrderError: ``VALIDATION``, ``ORDER_NOT_FOUND``, ``NOT_MODIFIABLE``
                or ``CONCURRENT_MODIFICATION``.
        """
        comment = comment or ""
        if len(comment) > COMMENT_MAX_LENGTH:
            raise OrderError.validation(
                f"Comment must be at most {COMMENT_MAX_LENGTH} characters.",
                field="comment",
            )

        with self._unit_of_work():
            order = self._load(order_id)
            if not order.can_be_modified():
                raise OrderError.not_modifiable(order.id, order.status)
            self._check_version(order, expected_version)
            order.comment = comment
            self._order_repo.update(order, ["comment"], actor)

        logger.info("order.comment_updated", order_id=str(order.id), actor=actor)
        return self._enricher.enrich(order)

    def cancel_order(
        self, order_id: UUID | str, *, actor: str, notes: str = ""
    ) -> OrderOutputDTO:
        """Cancel any order that is not already delivered or cancelled.

        Raises:
            OrderError: ``ORDER_NOT_FOUND``, ``NOT_CANCELLABLE`` or
                ``CONCURRENT_MODIFICATION``.
        """
        with self._unit_of_work():
            order = self._load(order_id)
            log = logger.bind(order_id=str(order.id), current_status=order.status, actor=actor)
            if not order.can_be_cancelled():
                log.warning("order.cancel_not_allowed")
                raise OrderError.not_cancellable(order.id, order.status)
            old_status = order.status
            order.status = OrderStatus.CANCELLED
            self._order_repo.update(order, ["status"], actor)
            self._order_repo.add_history(
                order, old_status, OrderStatus.CANCELLED, actor, notes or "Order cancelled"
            )

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                actor=actor,
                old_status=old_status,
                new_status=OrderStatus.CANCELLED,
            )
        )
        order.add_domain_event(
            OrderCancelled(aggregate_id=order.id, actor=actor, previous_status=old_status)
        )
        log.info("order.cancelled")
        self._publish_events(order)
        return self._enricher.enrich(order)

    def delete_order(self, order_id: UUID | str, *, actor: str) -> None:
        """Physically remove a modifiable order with its items and history.

        Raises:
            OrderError: ``ORDER_NOT_FOUND``, ``NOT_MODIFIABLE`` or
                ``CONCURRENT_MODIFICATION``.
        """
        with self._unit_of_work():
            order = self._load(order_id)
            if not order.can_be_modified():
                logger.warning(
                    "order.delete_not_allowed",
                    order_id=str(order.id),
                    current_status=order.status,
                )
                raise OrderError.not_modifiable(order.id, order.status)
            self._order_repo.delete(order)

        order.add_domain_event(OrderDeleted(aggregate_id=order.id, actor=actor))
        logger.info("order.removed", order_id=str(order.id), actor=actor)
        self._publish_events(order)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID | str) -> OrderOutputDTO:
        """Retrieve a single order by ID.

        Raises:
            OrderError: ``ORDER_NOT_FOUND`` if the order does not exist.
        """
        return self._enricher.enrich(self._load(order_id))

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[OrderOutputDTO]:
        """Return every order matching the ORM *filters*, enriched."""
        return self.present(self._order_repo.list(filters))

    def query_orders(
        self,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        product_id: Optional[int] = None,
        start: Optional[date | datetime] = None,
        end: Optional[date | datetime] = None,
    ) -> QuerySet:
        """Lazy, unenriched queryset for paginated listings."""
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = parse_status(status)
        if client_id is not None:
            filters["client_id"] = client_id
        if product_id is not None:
            filters["items__product_id"] = product_id
        if start is not None and end is not None:
            start, end = day_bounds(start, end)
        elif start is not None:
            start = day_bounds(start, start)[0]
        elif end is not None:
            end = day_bounds(end, end)[1]
        if start is not None:
            filters["created_at__gte"] = start
        if end is not None:
            filters["created_at__lte"] = end
        return self._order_repo.list(filters)

    def present(self, orders: Iterable[Order]) -> List[OrderOutputDTO]:
        """Enrich already-loaded orders for a response."""
        return self._enricher.enrich_many(orders)

    def find_by_client(self, client_id: int) -> List[OrderOutputDTO]:
        return self.present(self._order_repo.find_by_client(client_id))

    def find_by_status(self, status: str) -> List[OrderOutputDTO]:
        return self.present(self._order_repo.find_by_status(parse_status(status)))

    def find_by_date_range(
        self, start: date | datetime, end: date | datetime
    ) -> List[OrderOutputDTO]:
        start, end = day_bounds(start, end)
        return self.present(self._order_repo.find_by_date_range(start, end))

    def find_by_product(self, product_id: int) -> List[OrderOutputDTO]:
        return self.present(self._order_repo.find_by_product(product_id))

    def find_recent_orders(self) -> List[OrderOutputDTO]:
        """Orders created in the last 24 hours, newest first."""
        since = timezone.now() - RECENT_ORDERS_WINDOW
        return self.present(self._order_repo.find_created_since(since))

    def find_orders_needing_attention(self) -> List[OrderOutputDTO]:
        """PENDING or CONFIRMED orders older than three days, oldest first."""
        before = timezone.now() - ATTENTION_THRESHOLD
        return self.present(self._order_repo.find_stale(before, ATTENTION_STATES))

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    def can_be_modified(self, order_id: UUID | str) -> bool:
        return self._load(order_id).can_be_modified()

    def can_be_cancelled(self, order_id: UUID | str) -> bool:
        return self._load(order_id).can_be_cancelled()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def client_statistics(self, client_id: int) -> ClientStatisticsDTO:
        totals = self._order_repo.client_totals(client_id)
        return ClientStatisticsDTO(
            client_id=client_id,
            total_orders=totals["count"],
            total_amount=totals["amount"],
            has_active_orders=totals["has_active"],
        )

    def global_statistics(self) -> GlobalStatisticsDTO:
        totals = self._order_repo.global_totals()
        return GlobalStatisticsDTO(
            total_orders=totals["count"],
            total_amount=totals["amount"],
            orders_by_status=totals["by_status"],
        )

    def daily_statistics(
        self, start: date | datetime, end: date | datetime
    ) -> List[DailyStatisticsDTO]:
        start, end = day_bounds(start, end)
        return [
            DailyStatisticsDTO(day=row["day"], order_count=row["count"], total_amount=row["amount"])
            for row in self._order_repo.daily_totals(start, end)
        ]

    def top_clients(self, limit: int = 10) -> List[TopClientDTO]:
        if limit < 1:
            raise OrderError.validation("limit must be at least 1.", field="limit")
        return [
            TopClientDTO(
                client_id=row["client_id"],
                order_count=row["count"],
                total_amount=row["amount"],
            )
            for row in self._order_repo.top_clients(limit)
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, order_id: UUID | str) -> Order:
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise OrderError.order_not_found(order_id)
        return order

    @staticmethod
    def _check_version(order: Order, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != order.version:
            raise OrderError.concurrent_modification(order.id, expected_version)

    def _publish_events(self, order: Order) -> None:
        events = order.domain_events
        order.clear_domain_events()
        if self._event_bus is None:
            return
        self._event_bus.publish_all(events)


def build_order_service() -> OrderService:
    """Wire the service with the Django store and the configured remotes."""
    from modules.orders.gateway import RemoteValidationGateway
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from shared.infrastructure.bus import event_bus

    return OrderService(
        OrderDjangoRepository(),
        RemoteValidationGateway.from_settings(),
        event_bus=event_bus,
    )
