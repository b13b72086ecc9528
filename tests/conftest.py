from __future__ import annotations

from decimal import Decimal
from typing import Dict
from unittest.mock import patch

import pytest
from django.contrib.auth import get_user_model

from rest_framework.test import APIClient

from modules.customers.dtos import CustomerSnapshot
from modules.orders.gateway import RemoteValidationGateway
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.dtos import ProductSnapshot
from shared.infrastructure.bus import InMemoryEventBus
from shared.infrastructure.http import RemoteErrorKind, RemoteServiceError, close_shared_clients


# ---------------------------------------------------------------------------
# In-memory stand-ins for the remote customer directory and product catalog
# ---------------------------------------------------------------------------


class StubCustomerDirectory:
    """Answers like ``CustomerDirectoryClient`` from an in-memory dict."""

    base_url = "http://customers.test"

    def __init__(self) -> None:
        self.customers: Dict[int, CustomerSnapshot] = {}
        self.failures: Dict[int, Exception] = {}
        self.calls: list[int] = []

    def add(self, client_id: int, status: str = "ACTIVE", **fields) -> CustomerSnapshot:
        customer = CustomerSnapshot(id=client_id, status=status, **fields)
        self.customers[client_id] = customer
        return customer

    def fail(self, client_id: int, exc: Exception) -> None:
        self.failures[client_id] = exc

    def get_customer(self, client_id: int) -> CustomerSnapshot:
        self.calls.append(client_id)
        if client_id in self.failures:
            raise self.failures[client_id]
        if client_id not in self.customers:
            raise RemoteServiceError(
                RemoteErrorKind.NOT_FOUND,
                "CustomerDirectoryClient.get_customer",
                "Customer not found.",
                404,
            )
        return self.customers[client_id]

    def ping(self) -> bool:
        return True


class StubProductCatalog:
    """Answers like ``ProductCatalogClient`` from an in-memory dict."""

    base_url = "http://products.test"

    def __init__(self) -> None:
        self.products: Dict[int, ProductSnapshot] = {}
        self.failures: Dict[int, Exception] = {}
        self.calls: list[int] = []

    def add(
        self,
        product_id: int,
        price: str,
        stock: int = 100,
        status: str = "ACTIVE",
        name: str | None = None,
    ) -> ProductSnapshot:
        product = ProductSnapshot(
            id=product_id,
            name=name or f"Product {product_id}",
            price=Decimal(price),
            stock=stock,
            status=status,
        )
        self.products[product_id] = product
        return product

    def fail(self, product_id: int, exc: Exception) -> None:
        self.failures[product_id] = exc

    def get_product(self, product_id: int) -> ProductSnapshot:
        self.calls.append(product_id)
        if product_id in self.failures:
            raise self.failures[product_id]
        if product_id not in self.products:
            raise RemoteServiceError(
                RemoteErrorKind.NOT_FOUND,
                "ProductCatalogClient.get_product",
                "Product not found.",
                404,
            )
        return self.products[product_id]

    def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _close_shared_clients():
    yield
    close_shared_clients()


@pytest.fixture()
def directory() -> StubCustomerDirectory:
    stub = StubCustomerDirectory()
    stub.add(1, first_name="Ada", last_name="Lovelace", email="ada@example.com")
    stub.add(2, status="INACTIVE")
    return stub


@pytest.fixture()
def catalog() -> StubProductCatalog:
    stub = StubProductCatalog()
    stub.add(10, "50.00", stock=10, name="Keyboard")
    stub.add(11, "25.00", stock=5, name="Mouse")
    stub.add(12, "99.90", stock=3, status="INACTIVE", name="Retired monitor")
    stub.add(13, "5.00", stock=1, name="Cable")
    return stub


@pytest.fixture()
def gateway(directory, catalog) -> RemoteValidationGateway:
    return RemoteValidationGateway(directory, catalog)


@pytest.fixture()
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture()
def order_service(gateway, event_bus) -> OrderService:
    return OrderService(OrderDjangoRepository(), gateway, event_bus=event_bus)


@pytest.fixture()
def remote_gateway(gateway):
    """Route every ``build_order_service()`` to the in-memory remotes."""
    with patch.object(RemoteValidationGateway, "from_settings", return_value=gateway):
        yield gateway


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def user():
    return get_user_model().objects.create_user(username="clerk", password="testpass123")


@pytest.fixture()
def auth_client(api_client, user, remote_gateway):
    """APIClient authenticated as ``clerk`` and wired to the stub remotes."""
    api_client.force_authenticate(user=user)
    return api_client


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid
