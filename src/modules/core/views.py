import time
from typing import Any, Dict

import structlog
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.customers.client import CustomerDirectoryClient
from modules.products.client import ProductCatalogClient

logger = structlog.get_logger()


def _check_remote(client) -> Dict[str, Any]:
    start = time.monotonic()
    reachable = client.ping()
    result: Dict[str, Any] = {"status": "up" if reachable else "down", "url": client.base_url}
    if reachable:
        result["response_time_ms"] = round((time.monotonic() - start) * 1000, 2)
    return result


def health_check(request: HttpRequest) -> JsonResponse:
    """Database failure is fatal (503); remote outages only degrade."""
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    # Check database
    try:
        start = time.monotonic()
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        services["database"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["database"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_db_failure")

    # Check external systems of record
    services["customer_service"] = _check_remote(CustomerDirectoryClient.shared())
    services["product_service"] = _check_remote(ProductCatalogClient.shared())
    remotes_up = all(
        services[name]["status"] == "up" for name in ("customer_service", "product_service")
    )

    if not overall_healthy:
        status_label, status_code = "unhealthy", 503
    elif not remotes_up:
        status_label, status_code = "degraded", 200
        logger.warning("health_check_remote_degraded")
    else:
        status_label, status_code = "healthy", 200

    logger.info("health_check_completed", status=status_label)

    return JsonResponse(
        {
            "status": status_label,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status_code,
    )
