"""Customer directory DTOs.

The customer directory is an external system of record.  These immutable
snapshots are what the order module knows about a customer: parsed from the
directory's JSON payload, never persisted locally.

The directory speaks French on the wire (``statut``, ``nom``, ``prenom``,
``telephone``); English names are accepted as well.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

ACTIVE_STATUS = "ACTIVE"


class CustomerSnapshot(BaseModel):
    """Immutable view of a remote customer record."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    status: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("status", "statut")
    )
    active: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("active", "is_active")
    )
    first_name: str = Field(
        default="", validation_alias=AliasChoices("first_name", "prenom")
    )
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "nom"))
    email: str = ""
    phone: str = Field(default="", validation_alias=AliasChoices("phone", "telephone"))

    @property
    def is_active(self) -> bool:
        """A customer may order only when the directory reports it active.

        The textual ``status`` wins over the boolean flag when both are sent.
        """
        if self.status is not None:
            return self.status.upper() == ACTIVE_STATUS
        return bool(self.active)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
