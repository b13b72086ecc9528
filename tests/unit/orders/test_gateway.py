"""Unit tests for the remote validation gateway.

Validation must fail closed on every remote outcome other than an active,
sellable record; lookups for display must fail open.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel, ValidationError

from modules.orders.exceptions import ErrorKind, OrderError
from modules.orders.gateway import RemoteValidationGateway
from shared.infrastructure.http import RemoteErrorKind, RemoteServiceError

pytestmark = pytest.mark.unit


def _remote_error(kind: RemoteErrorKind, status_code: int | None = None) -> RemoteServiceError:
    return RemoteServiceError(kind, "test.call_site", "boom", status_code)


def _payload_error() -> ValidationError:
    class _Shape(BaseModel):
        id: int

    try:
        _Shape.model_validate({"id": "not-a-number"})
    except ValidationError as exc:
        return exc
    raise AssertionError("payload unexpectedly valid")


class TestValidateCustomer:
    def test_active_customer_returned(self, gateway):
        customer = gateway.validate_customer(1)
        assert customer.id == 1
        assert customer.full_name == "Ada Lovelace"

    def test_missing_customer(self, gateway):
        with pytest.raises(OrderError) as exc_info:
            gateway.validate_customer(404)
        assert exc_info.value.kind is ErrorKind.CLIENT_INVALID
        assert exc_info.value.details.reason == "not_found"

    def test_inactive_customer(self, gateway):
        with pytest.raises(OrderError) as exc_info:
            gateway.validate_customer(2)
        assert exc_info.value.details.reason == "inactive"

    @pytest.mark.parametrize(
        "kind,status_code,reason",
        [
            (RemoteErrorKind.UNAVAILABLE, None, "remote_unavailable"),
            (RemoteErrorKind.UNAVAILABLE, 503, "remote_unavailable"),
            (RemoteErrorKind.BAD_REQUEST, 400, "remote_error"),
            (RemoteErrorKind.REMOTE_ERROR, 500, "remote_error"),
        ],
    )
    def test_remote_failures_fail_closed(self, gateway, directory, kind, status_code, reason):
        directory.fail(1, _remote_error(kind, status_code))

        with pytest.raises(OrderError) as exc_info:
            gateway.validate_customer(1)

        assert exc_info.value.kind is ErrorKind.CLIENT_INVALID
        assert exc_info.value.details.reason == reason

    def test_malformed_payload_fails_closed(self, gateway, directory):
        directory.fail(1, _payload_error())

        with pytest.raises(OrderError) as exc_info:
            gateway.validate_customer(1)

        assert exc_info.value.details.reason == "remote_error"


class TestValidateProduct:
    def test_sellable_product_returned(self, gateway):
        product = gateway.validate_product(10, 2)
        assert product.name == "Keyboard"

    def test_exact_stock_is_enough(self, gateway):
        assert gateway.validate_product(13, 1).stock == 1

    def test_missing_product(self, gateway):
        with pytest.raises(OrderError) as exc_info:
            gateway.validate_product(999, 1)
        assert exc_info.value.kind is ErrorKind.PRODUCT_INVALID
        assert exc_info.value.details.reason == "not_found"

    def test_unavailable_product(self, gateway):
        with pytest.raises(OrderError) as exc_info:
            gateway.validate_product(12, 1)
        assert exc_info.value.details.reason == "unavailable"

    def test_insufficient_stock_reports_quantities(self, gateway):
        with pytest.raises(OrderError) as exc_info:
            gateway.validate_product(11, 6)

        details = exc_info.value.details
        assert details.reason == "insufficient_stock"
        assert details.requested == 6
        assert details.available == 5

    def test_timeout_fails_closed(self, gateway, catalog):
        catalog.fail(10, _remote_error(RemoteErrorKind.UNAVAILABLE))

        with pytest.raises(OrderError) as exc_info:
            gateway.validate_product(10, 1)

        assert exc_info.value.kind is ErrorKind.PRODUCT_INVALID
        assert exc_info.value.details.reason == "remote_unavailable"


class TestLookups:
    def test_fetch_customer_returns_record(self, gateway):
        assert gateway.fetch_customer(1).id == 1

    def test_fetch_customer_absent_on_failure(self, gateway, directory):
        directory.fail(1, _remote_error(RemoteErrorKind.UNAVAILABLE))
        assert gateway.fetch_customer(1) is None
        assert gateway.fetch_customer(404) is None

    def test_fetch_product_absent_on_failure(self, gateway, catalog):
        catalog.fail(10, _remote_error(RemoteErrorKind.REMOTE_ERROR, 500))
        assert gateway.fetch_product(10) is None
        assert gateway.fetch_product(11).id == 11

    def test_inactive_records_are_still_fetched(self, gateway):
        assert gateway.fetch_customer(2) is not None
        assert gateway.fetch_product(12) is not None

    def test_clients_are_called_once_per_lookup(self):
        customers = MagicMock()
        products = MagicMock()
        gateway = RemoteValidationGateway(customers, products)

        gateway.fetch_customer(5)
        gateway.fetch_product(6)

        customers.get_customer.assert_called_once_with(5)
        products.get_product.assert_called_once_with(6)
