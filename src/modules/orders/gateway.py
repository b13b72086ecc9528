"""Remote validation gateway.

Turns the outcomes of the two external lookups into order-domain answers:

* ``validate_*`` are **fail-closed**: any answer other than a usable,
  active record (not found, inactive, unavailable, out of stock, timeout,
  5xx, malformed payload) raises :class:`OrderError`.
* ``fetch_*`` are **fail-open**: any failure is logged and ``None`` is
  returned, for display enrichment only.
"""

from __future__ import annotations

from typing import Optional

import structlog
from pydantic import ValidationError as PayloadError

from modules.customers.client import CustomerDirectoryClient
from modules.customers.dtos import CustomerSnapshot
from modules.orders.exceptions import OrderError
from modules.products.client import ProductCatalogClient
from modules.products.dtos import ProductSnapshot
from shared.infrastructure.http import RemoteErrorKind, RemoteServiceError

logger = structlog.get_logger(__name__)


def _failure_reason(exc: RemoteServiceError) -> str:
    if exc.kind is RemoteErrorKind.NOT_FOUND:
        return "not_found"
    if exc.kind is RemoteErrorKind.UNAVAILABLE:
        return "remote_unavailable"
    return "remote_error"


class RemoteValidationGateway:
    """Validation and lookup of customers and products for orders."""

    def __init__(
        self,
        customer_client: CustomerDirectoryClient,
        product_client: ProductCatalogClient,
    ) -> None:
        self._customers = customer_client
        self._products = product_client

    @classmethod
    def from_settings(cls) -> RemoteValidationGateway:
        """Gateway over the process-wide clients, so connections are pooled."""
        return cls(CustomerDirectoryClient.shared(), ProductCatalogClient.shared())

    @property
    def customer_client(self) -> CustomerDirectoryClient:
        return self._customers

    @property
    def product_client(self) -> ProductCatalogClient:
        return self._products

    # ------------------------------------------------------------------
    # Validation (fail-closed)
    # ------------------------------------------------------------------

    def validate_customer(self, client_id: int) -> CustomerSnapshot:
        """Return the customer if it exists and is active.

        Raises:
            OrderError: ``CLIENT_INVALID`` with a ``reason`` of ``not_found``,
                ``inactive``, ``remote_unavailable`` or ``remote_error``.
        """
        log = logger.bind(client_id=client_id)
        try:
            customer = self._customers.get_customer(client_id)
        except RemoteServiceError as exc:
            reason = _failure_reason(exc)
            log.warning(
                "gateway.customer_rejected",
                reason=reason,
                status_code=exc.status_code,
            )
            raise OrderError.client_invalid(client_id, reason) from exc
        except PayloadError as exc:
            log.warning("gateway.customer_rejected", reason="remote_error")
            raise OrderError.client_invalid(client_id, "remote_error") from exc

        if not customer.is_active:
            log.info("gateway.customer_rejected", reason="inactive", status=customer.status)
            raise OrderError.client_invalid(client_id, "inactive")

        log.debug("gateway.customer_validated")
        return customer

    def validate_product(self, product_id: int, requested_quantity: int) -> ProductSnapshot:
        """Return the product if it is sellable in *requested_quantity*.

        Raises:
            OrderError: ``PRODUCT_INVALID`` with a ``reason`` of ``not_found``,
                ``unavailable``, ``insufficient_stock``, ``remote_unavailable``
                or ``remote_error``.
        """
        log = logger.bind(product_id=product_id, requested=requested_quantity)
        try:
            product = self._products.get_product(product_id)
        except RemoteServiceError as exc:
            reason = _failure_reason(exc)
            log.warning(
                "gateway.product_rejected",
                reason=reason,
                status_code=exc.status_code,
            )
            raise OrderError.product_invalid(product_id, reason) from exc
        except PayloadError as exc:
            log.warning("gateway.product_rejected", reason="remote_error")
            raise OrderError.product_invalid(product_id, "remote_error") from exc

        if not product.is_available:
            log.info("gateway.product_rejected", reason="unavailable", stock=product.stock)
            raise OrderError.product_invalid(
                product_id,
                "unavailable",
                requested=requested_quantity,
                available=product.stock,
            )
        if not product.has_stock(requested_quantity):
            log.info(
                "gateway.product_rejected",
                reason="insufficient_stock",
                stock=product.stock,
            )
            raise OrderError.product_invalid(
                product_id,
                "insufficient_stock",
                requested=requested_quantity,
                available=product.stock,
            )

        log.debug("gateway.product_validated")
        return product

    # ------------------------------------------------------------------
    # Lookup (fail-open)
    # ------------------------------------------------------------------

    def fetch_customer(self, client_id: int) -> Optional[CustomerSnapshot]:
        try:
            return self._customers.get_customer(client_id)
        except (RemoteServiceError, PayloadError) as exc:
            logger.warning(
                "gateway.customer_lookup_failed",
                client_id=client_id,
                error=str(exc),
            )
            return None

    def fetch_product(self, product_id: int) -> Optional[ProductSnapshot]:
        try:
            return self._products.get_product(product_id)
        except (RemoteServiceError, PayloadError) as exc:
            logger.warning(
                "gateway.product_lookup_failed",
                product_id=product_id,
                error=str(exc),
            )
            return None
