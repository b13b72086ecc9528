"""Best-effort decoration of order views with current remote data.

The enricher attaches the customer record to each order and the catalog
entry to each line.  Every lookup is independent: a failing customer lookup
does not prevent product lookups, and one failing product does not affect
its siblings.  Nothing here raises or writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, TypeVar

import structlog

from modules.orders.dtos import OrderOutputDTO

if TYPE_CHECKING:
    from modules.customers.dtos import CustomerSnapshot
    from modules.orders.gateway import RemoteValidationGateway
    from modules.orders.models import Order
    from modules.products.dtos import ProductSnapshot

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class _LookupMemo:
    """Per-call cache so a page of orders fetches each remote record once."""

    def __init__(self) -> None:
        self.customers: Dict[int, Optional[CustomerSnapshot]] = {}
        self.products: Dict[int, Optional[ProductSnapshot]] = {}


class OrderEnricher:
    def __init__(self, gateway: RemoteValidationGateway) -> None:
        self._gateway = gateway

    def enrich(
        self, order: Order, customer: Optional[CustomerSnapshot] = None
    ) -> OrderOutputDTO:
        """Build the response view of *order*.

        *customer* may be passed when the caller already holds a fresh
        snapshot (right after validation), saving a second lookup.
        """
        memo = _LookupMemo()
        if customer is not None:
            memo.customers[order.client_id] = customer
        return self._enrich_one(order, memo)

    def enrich_many(self, orders: Iterable[Order]) -> List[OrderOutputDTO]:
        memo = _LookupMemo()
        return [self._enrich_one(order, memo) for order in orders]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enrich_one(self, order: Order, memo: _LookupMemo) -> OrderOutputDTO:
        customer = self._customer(order, memo)
        products = {
            item.product_id: self._product(order, item.product_id, memo)
            for item in order.line_items
        }
        return OrderOutputDTO.from_entity(order, customer=customer, products=products)

    def _customer(self, order: Order, memo: _LookupMemo) -> Optional[CustomerSnapshot]:
        if order.client_id not in memo.customers:
            memo.customers[order.client_id] = self._safe_lookup(
                "customer",
                order,
                lambda: self._gateway.fetch_customer(order.client_id),
                client_id=order.client_id,
            )
        return memo.customers[order.client_id]

    def _product(
        self, order: Order, product_id: int, memo: _LookupMemo
    ) -> Optional[ProductSnapshot]:
        if product_id not in memo.products:
            memo.products[product_id] = self._safe_lookup(
                "product",
                order,
                lambda: self._gateway.fetch_product(product_id),
                product_id=product_id,
            )
        return memo.products[product_id]

    @staticmethod
    def _safe_lookup(
        target: str,
        order: Order,
        lookup: Callable[[], Optional[T]],
        **context: Any,
    ) -> Optional[T]:
        # The gateway already absorbs remote errors; anything else that
        # escapes it must not fail the surrounding read either.
        try:
            return lookup()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "order.enrichment_failed",
                order_id=str(order.id),
                target=target,
                error=str(exc),
                **context,
            )
            return None
