"""Client for the external product catalog.

Only the read endpoint is used.  The catalog also exposes stock
increment/decrement endpoints, but orders never reserve stock.
"""

from __future__ import annotations

from typing import Optional

import requests

from modules.products.dtos import ProductSnapshot
from shared.infrastructure.http import RemoteServiceClient, RemoteServiceSettings


class ProductCatalogClient(RemoteServiceClient):
    """``GET /api/products/{id}`` against the product catalog."""

    service_name = "product-service"

    @classmethod
    def from_settings(
        cls, session: Optional[requests.Session] = None
    ) -> ProductCatalogClient:
        return cls(RemoteServiceSettings.from_django_settings("PRODUCT_SERVICE_URL"), session)

    def get_product(self, product_id: int) -> ProductSnapshot:
        payload = self.get_json(
            f"/api/products/{product_id}",
            call_site="ProductCatalogClient.get_product",
        )
        return ProductSnapshot.model_validate(payload)
