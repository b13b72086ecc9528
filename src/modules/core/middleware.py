import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()

MAX_CORRELATION_ID_LENGTH = 128


class CorrelationIdMiddleware:
    """Extract or generate a correlation ID for each request.

    Reads the ``X-Request-ID`` header; a missing or oversized value is
    replaced by a new UUID4.  The ID is stored in a ContextVar so that
    structlog binds it to every log line and the remote clients forward it
    to the customer directory and product catalog.  It is echoed back in
    the ``X-Request-ID`` response header.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID", "")
        if not cid or len(cid) > MAX_CORRELATION_ID_LENGTH:
            cid = str(uuid.uuid4())
        token = correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        logger.info(
            "request.started",
            method=request.method,
            path=request.get_full_path(),
        )
        try:
            response = self.get_response(request)
        finally:
            correlation_id_var.reset(token)

        logger.info(
            "request.finished",
            method=request.method,
            path=request.get_full_path(),
            status_code=response.status_code,
        )

        response["X-Request-ID"] = cid
        return response
