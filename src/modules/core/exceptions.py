"""API error rendering.

Every error response has the same shape::

    {
        "type": "validation_error" | "client_error" | "server_error"
                | "rejected" | "not_found" | "conflict",
        "errors": [{"code": ..., "detail": ..., "attr": ... | None}],
        "context": {...}            # order errors only
    }

Registered as ``REST_FRAMEWORK["EXCEPTION_HANDLER"]``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from modules.orders.exceptions import ErrorCategory, OrderError

logger = structlog.get_logger(__name__)

CATEGORY_STATUS: Dict[ErrorCategory, int] = {
    ErrorCategory.REJECTED: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
}


def _error(code: Any, detail: Any, attr: Optional[str] = None) -> Dict[str, Any]:
    return {"code": str(code), "detail": str(detail), "attr": attr}


def _flatten(data: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    """Flatten DRF's nested error structure into a list of errors."""
    if isinstance(data, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in data.items():
            if key == "non_field_errors":
                child = attr
            else:
                child = f"{attr}.{key}" if attr else str(key)
            errors.extend(_flatten(value, child))
        return errors
    if isinstance(data, list):
        errors = []
        for index, value in enumerate(data):
            if isinstance(value, (dict, list)):
                errors.extend(_flatten(value, f"{attr}.{index}" if attr else str(index)))
            else:
                errors.extend(_flatten(value, attr))
        return errors
    return [_error(getattr(data, "code", "invalid"), data, attr)]


def order_error_response(exc: OrderError) -> Response:
    body = {
        "type": str(exc.category),
        "errors": [_error(exc.kind, exc, exc.details.field)],
        "context": exc.details.as_dict(),
    }
    return Response(body, status=CATEGORY_STATUS[exc.category])


def pydantic_error_response(exc: PydanticValidationError) -> Response:
    errors = [
        _error(
            item["type"],
            item["msg"],
            ".".join(str(part) for part in item["loc"]) or None,
        )
        for item in exc.errors()
    ]
    return Response(
        {"type": "validation_error", "errors": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    if isinstance(exc, OrderError):
        logger.info(
            "api.order_error",
            kind=str(exc.kind),
            category=str(exc.category),
            **exc.details.as_dict(),
        )
        return order_error_response(exc)
    if isinstance(exc, PydanticValidationError):
        return pydantic_error_response(exc)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        error_type = "validation_error"
        errors = _flatten(exc.detail)
    else:
        error_type = "server_error" if response.status_code >= 500 else "client_error"
        detail = getattr(exc, "detail", str(exc))
        errors = _flatten(detail)

    response.data = {"type": error_type, "errors": errors}
    return response
