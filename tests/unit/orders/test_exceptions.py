from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.exceptions import ErrorCategory, ErrorKind, OrderError

pytestmark = pytest.mark.unit


class TestErrorCategories:
    @pytest.mark.parametrize(
        "kind,category",
        [
            (ErrorKind.CLIENT_INVALID, ErrorCategory.REJECTED),
            (ErrorKind.PRODUCT_INVALID, ErrorCategory.REJECTED),
            (ErrorKind.VALIDATION, ErrorCategory.VALIDATION),
            (ErrorKind.ORDER_NOT_FOUND, ErrorCategory.NOT_FOUND),
            (ErrorKind.INVALID_TRANSITION, ErrorCategory.CONFLICT),
            (ErrorKind.NOT_MODIFIABLE, ErrorCategory.CONFLICT),
            (ErrorKind.NOT_CANCELLABLE, ErrorCategory.CONFLICT),
            (ErrorKind.CONCURRENT_MODIFICATION, ErrorCategory.CONFLICT),
        ],
    )
    def test_every_kind_has_one_category(self, kind, category):
        assert kind.category is category

    def test_all_kinds_are_mapped(self):
        for kind in ErrorKind:
            assert isinstance(kind.category, ErrorCategory)


class TestConstructors:
    def test_product_invalid_carries_quantities(self):
        error = OrderError.product_invalid(10, "insufficient_stock", requested=5, available=2)

        assert error.kind is ErrorKind.PRODUCT_INVALID
        assert error.details.as_dict() == {
            "product_id": 10,
            "requested": 5,
            "available": 2,
            "reason": "insufficient_stock",
        }
        assert "requested 5, available 2" in str(error)

    def test_client_invalid_message_by_reason(self):
        assert "not found" in str(OrderError.client_invalid(7, "not_found"))
        assert "not active" in str(OrderError.client_invalid(7, "inactive"))
        assert "Unable to validate" in str(OrderError.client_invalid(7, "remote_unavailable"))

    def test_order_not_found_uses_string_id(self):
        order_id = uuid4()
        error = OrderError.order_not_found(order_id)

        assert error.category is ErrorCategory.NOT_FOUND
        assert error.details.order_id == str(order_id)

    def test_concurrent_modification_records_expected_version(self):
        error = OrderError.concurrent_modification(uuid4(), 3)

        assert error.kind is ErrorKind.CONCURRENT_MODIFICATION
        assert error.details.expected_version == 3

    def test_validation_records_field(self):
        error = OrderError.validation("bad", field="status")

        assert error.details.as_dict() == {"field": "status"}
        assert repr(error).startswith("OrderError('validation'")
