"""Integration tests for standardized error responses."""

from uuid import uuid4

import pytest
from pydantic import BaseModel, ValidationError

from modules.core.exceptions import order_error_response, pydantic_error_response
from modules.orders.exceptions import OrderError

pytestmark = pytest.mark.integration

URL = "/api/v1/orders/"


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client, remote_gateway):
        response = api_client.get(URL)
        assert response.status_code == 401
        data = response.json()
        assert data["type"] == "client_error"
        assert isinstance(data["errors"], list)
        assert data["errors"][0]["code"] == "not_authenticated"
        assert "detail" in data["errors"][0]

    def test_malformed_json_has_standard_format(self, auth_client):
        response = auth_client.post(URL, data="{", content_type="application/json")
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "client_error"
        assert data["errors"][0]["code"] == "parse_error"

    def test_nested_field_errors_are_flattened(self, auth_client):
        response = auth_client.post(
            URL,
            {"client_id": 0, "items": [{"product_id": 10, "quantity": 0}]},
            format="json",
        )
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        attrs = {error["attr"] for error in data["errors"]}
        assert attrs == {"client_id", "items.0.quantity"}
        assert all(error["code"] == "min_value" for error in data["errors"])

    def test_method_not_allowed(self, auth_client):
        response = auth_client.put(f"{URL}{uuid4()}/", {}, format="json")
        assert response.status_code == 405
        assert response.json()["errors"][0]["code"] == "method_not_allowed"

    def test_order_error_carries_context(self, auth_client):
        response = auth_client.get(f"{URL}{uuid4()}/")
        data = response.json()
        assert response.status_code == 404
        assert data["type"] == "not_found"
        assert data["errors"][0]["attr"] is None
        assert set(data["context"]) == {"order_id"}


class TestRenderers:
    @pytest.mark.parametrize(
        "error,status_code",
        [
            (OrderError.client_invalid(1, "not_found"), 400),
            (OrderError.validation("bad", field="status"), 400),
            (OrderError.order_not_found(uuid4()), 404),
            (OrderError.not_cancellable(uuid4(), "DELIVERED"), 409),
            (OrderError.concurrent_modification(uuid4(), 2), 409),
        ],
    )
    def test_category_decides_status(self, error, status_code):
        response = order_error_response(error)

        assert response.status_code == status_code
        assert response.data["type"] == str(error.category)
        assert response.data["errors"][0]["code"] == str(error.kind)

    def test_pydantic_errors(self):
        class _Payload(BaseModel):
            limit: int

        with pytest.raises(ValidationError) as exc_info:
            _Payload.model_validate({"limit": "many"})

        response = pydantic_error_response(exc_info.value)

        assert response.status_code == 400
        assert response.data["type"] == "validation_error"
        assert response.data["errors"][0]["attr"] == "limit"
