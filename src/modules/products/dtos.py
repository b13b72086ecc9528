"""Product catalog DTOs.

``ProductSnapshot`` is the order module's read-only view of a catalog entry.
Name and price are copied into order lines when an order is created; the
catalog may change them afterwards without affecting existing orders.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ACTIVE_STATUS = "ACTIVE"


class ProductSnapshot(BaseModel):
    """Immutable view of a remote catalog entry."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    name: str = Field(validation_alias=AliasChoices("name", "nom"))
    price: Decimal = Field(ge=0, validation_alias=AliasChoices("price", "prix"))
    stock: int = Field(
        default=0,
        validation_alias=AliasChoices(
            "stock", "stock_quantity", "quantite_stock", "quantiteStock"
        ),
    )
    status: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("status", "statut")
    )
    available: Optional[bool] = None
    sku: str = ""

    @property
    def is_available(self) -> bool:
        """Sellable: flagged available (or ``ACTIVE``) with stock on hand."""
        if self.available is not None:
            flagged = self.available
        else:
            flagged = (self.status or "").upper() == ACTIVE_STATUS
        return flagged and self.stock > 0

    def has_stock(self, requested_quantity: int) -> bool:
        return self.stock >= requested_quantity
