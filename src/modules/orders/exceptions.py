"""Order domain errors.

Every failure of an order use case is a single exception type,
:class:`OrderError`, tagged with an :class:`ErrorKind` and carrying a
structured :class:`ErrorDetails` payload (offending ids, requested and
available quantities, the two states of a rejected transition...).

Each kind belongs to exactly one :class:`ErrorCategory`, which is what the
API layer uses to choose an HTTP status:

=============  ================================================  ======
Category       Kinds                                             HTTP
=============  ================================================  ======
rejected       CLIENT_INVALID, PRODUCT_INVALID                   400
validation     VALIDATION                                        400
not_found      ORDER_NOT_FOUND                                   404
conflict       INVALID_TRANSITION, NOT_MODIFIABLE,               409
               NOT_CANCELLABLE, CONCURRENT_MODIFICATION
=============  ================================================  ======
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any, Dict, Optional
from uuid import UUID


class ErrorCategory(StrEnum):
    REJECTED = "rejected"
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class ErrorKind(StrEnum):
    CLIENT_INVALID = "client_invalid"
    PRODUCT_INVALID = "product_invalid"
    ORDER_NOT_FOUND = "order_not_found"
    INVALID_TRANSITION = "invalid_transition"
    NOT_MODIFIABLE = "not_modifiable"
    NOT_CANCELLABLE = "not_cancellable"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    VALIDATION = "validation"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES: dict[ErrorKind, ErrorCategory] = {
    ErrorKind.CLIENT_INVALID: ErrorCategory.REJECTED,
    ErrorKind.PRODUCT_INVALID: ErrorCategory.REJECTED,
    ErrorKind.ORDER_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: ErrorCategory.CONFLICT,
    ErrorKind.NOT_MODIFIABLE: ErrorCategory.CONFLICT,
    ErrorKind.NOT_CANCELLABLE: ErrorCategory.CONFLICT,
    ErrorKind.CONCURRENT_MODIFICATION: ErrorCategory.CONFLICT,
    ErrorKind.VALIDATION: ErrorCategory.VALIDATION,
}


@dataclass(frozen=True)
class ErrorDetails:
    """Structured payload of an :class:`OrderError`."""

    order_id: Optional[str] = None
    client_id: Optional[int] = None
    product_id: Optional[int] = None
    requested: Optional[int] = None
    available: Optional[int] = None
    current_status: Optional[str] = None
    target_status: Optional[str] = None
    expected_version: Optional[int] = None
    field: Optional[str] = None
    reason: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class OrderError(Exception):
    """A use case was understood but could not be carried out."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[ErrorDetails] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.details = details or ErrorDetails()

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    def __repr__(self) -> str:
        return f"OrderError({self.kind.value!r}, {str(self)!r}, {self.details.as_dict()!r})"

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def client_invalid(cls, client_id: int, reason: str) -> OrderError:
        messages = {
            "not_found": f"Customer {client_id} not found.",
            "inactive": f"Customer {client_id} is not active.",
        }
        message = messages.get(reason, f"Unable to validate customer {client_id}.")
        return cls(
            ErrorKind.CLIENT_INVALID,
            message,
            ErrorDetails(client_id=client_id, reason=reason),
        )

    @classmethod
    def product_invalid(
        cls,
        product_id: int,
        reason: str,
        requested: Optional[int] = None,
        available: Optional[int] = None,
    ) -> OrderError:
        if reason == "insufficient_stock":
            message = (
                f"Insufficient stock for product {product_id}: "
                f"requested {requested}, available {available}."
            )
        elif reason == "not_found":
            message = f"Product {product_id} not found."
        elif reason == "unavailable":
            message = f"Product {product_id} is not available."
        else:
            message = f"Unable to validate product {product_id}."
        return cls(
            ErrorKind.PRODUCT_INVALID,
            message,
            ErrorDetails(
                product_id=product_id,
                requested=requested,
                available=available,
                reason=reason,
            ),
        )

    @classmethod
    def order_not_found(cls, order_id: UUID | str) -> OrderError:
        return cls(
            ErrorKind.ORDER_NOT_FOUND,
            f"Order {order_id} not found.",
            ErrorDetails(order_id=str(order_id)),
        )

    @classmethod
    def invalid_transition(
        cls, order_id: UUID | str, current_status: str, target_status: str
    ) -> OrderError:
        return cls(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot transition from {current_status} to {target_status}.",
            ErrorDetails(
                order_id=str(order_id),
                current_status=str(current_status),
                target_status=str(target_status),
            ),
        )

    @classmethod
    def not_modifiable(cls, order_id: UUID | str, current_status: str) -> OrderError:
        return cls(
            ErrorKind.NOT_MODIFIABLE,
            f"Order {order_id} cannot be modified in status {current_status}.",
            ErrorDetails(order_id=str(order_id), current_status=str(current_status)),
        )

    @classmethod
    def not_cancellable(cls, order_id: UUID | str, current_status: str) -> OrderError:
        return cls(
            ErrorKind.NOT_CANCELLABLE,
            f"Cannot cancel order {order_id} in status {current_status}.",
            ErrorDetails(order_id=str(order_id), current_status=str(current_status)),
        )

    @classmethod
    def concurrent_modification(
        cls, order_id: UUID | str, expected_version: int
    ) -> OrderError:
        return cls(
            ErrorKind.CONCURRENT_MODIFICATION,
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version}).",
            ErrorDetails(order_id=str(order_id), expected_version=expected_version),
        )

    @classmethod
    def validation(cls, message: str, field: Optional[str] = None) -> OrderError:
        return cls(ErrorKind.VALIDATION, message, ErrorDetails(field=field))
