"""Client for the external customer directory."""

from __future__ import annotations

from typing import Optional

import requests

from modules.customers.dtos import CustomerSnapshot
from shared.infrastructure.http import RemoteServiceClient, RemoteServiceSettings


class CustomerDirectoryClient(RemoteServiceClient):
    """``GET /api/customers/{id}`` against the customer directory."""

    service_name = "customer-service"

    @classmethod
    def from_settings(
        cls, session: Optional[requests.Session] = None
    ) -> CustomerDirectoryClient:
        return cls(RemoteServiceSettings.from_django_settings("CUSTOMER_SERVICE_URL"), session)

    def get_customer(self, client_id: int) -> CustomerSnapshot:
        """Fetch a customer.

        Raises:
            RemoteServiceError: the directory could not answer.
            pydantic.ValidationError: the payload is not a customer.
        """
        payload = self.get_json(
            f"/api/customers/{client_id}",
            call_site="CustomerDirectoryClient.get_customer",
        )
        return CustomerSnapshot.model_validate(payload)
