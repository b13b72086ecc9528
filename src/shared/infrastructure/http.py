"""HTTP transport for the external systems of record.

The customer directory and the product catalog are reached over plain JSON
``GET`` calls.  This module owns the transport policy shared by both clients:

* bounded connect/read timeouts on every call;
* a small number of retries with short exponential backoff, limited to
  idempotent ``GET`` requests (urllib3 ``Retry`` mounted on a
  ``requests.Session``);
* an explicit, pure mapping from an upstream status code and call site to a
  typed :class:`RemoteServiceError` (:func:`decode_remote_error`);
* one shared client (and connection pool) per service and process, rebuilt
  when the remote settings change (:meth:`RemoteServiceClient.shared`).

Callers decide what a failure *means* (fail-closed for validation,
fail-open for display enrichment); this layer only classifies it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Dict, Optional, Type, TypeVar

import requests
import structlog
from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from modules.core.middleware import correlation_id_var

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = (502, 503, 504)

REMOTE_SETTINGS = frozenset(
    {
        "CUSTOMER_SERVICE_URL",
        "PRODUCT_SERVICE_URL",
        "REMOTE_CONNECT_TIMEOUT",
        "REMOTE_READ_TIMEOUT",
        "REMOTE_MAX_RETRIES",
        "REMOTE_BACKOFF_FACTOR",
    }
)

ClientT = TypeVar("ClientT", bound="RemoteServiceClient")

_shared_clients: Dict[type, "RemoteServiceClient"] = {}
_shared_lock = threading.Lock()


@dataclass(frozen=True)
class RemoteServiceSettings:
    """Timeout and retry knobs for one remote service."""

    base_url: str
    connect_timeout: float = 2.0
    read_timeout: float = 5.0
    max_retries: int = 3
    backoff_factor: float = 0.1

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_django_settings(cls, url_setting: str) -> RemoteServiceSettings:
        """Build the settings for the service whose URL lives in *url_setting*."""
        return cls(
            base_url=getattr(settings, url_setting).rstrip("/"),
            connect_timeout=settings.REMOTE_CONNECT_TIMEOUT,
            read_timeout=settings.REMOTE_READ_TIMEOUT,
            max_retries=settings.REMOTE_MAX_RETRIES,
            backoff_factor=settings.REMOTE_BACKOFF_FACTOR,
        )


class RemoteErrorKind(StrEnum):
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    REMOTE_ERROR = "remote_error"


class RemoteServiceError(Exception):
    """A call to an external service did not produce a usable answer.

    ``kind`` is ``UNAVAILABLE`` for timeouts, connection failures and 503s;
    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(
        self,
        kind: RemoteErrorKind,
        call_site: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.call_site = call_site
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.kind is RemoteErrorKind.NOT_FOUND


def _resource_label(call_site: str) -> str:
    site = call_site.lower()
    if "customer" in site:
        return "Customer"
    if "product" in site:
        return "Product"
    return "Resource"


def decode_remote_error(status_code: int, call_site: str) -> RemoteServiceError:
    """Translate an upstream error status into a :class:`RemoteServiceError`.

    400, 404 and 503 are mapped explicitly; every other status falls back to
    the generic ``REMOTE_ERROR`` kind.
    """
    if status_code == 400:
        return RemoteServiceError(
            RemoteErrorKind.BAD_REQUEST,
            call_site,
            f"Invalid request sent by {call_site}.",
            status_code,
        )
    if status_code == 404:
        return RemoteServiceError(
            RemoteErrorKind.NOT_FOUND,
            call_site,
            f"{_resource_label(call_site)} not found.",
            status_code,
        )
    if status_code == 503:
        return RemoteServiceError(
            RemoteErrorKind.UNAVAILABLE,
            call_site,
            f"Service temporarily unavailable: {call_site}.",
            status_code,
        )
    return RemoteServiceError(
        RemoteErrorKind.REMOTE_ERROR,
        call_site,
        f"Unexpected HTTP {status_code} from {call_site}.",
        status_code,
    )


def build_session(config: RemoteServiceSettings) -> requests.Session:
    """Create a session that retries idempotent reads only."""
    retry = Retry(
        total=config.max_retries,
        connect=config.max_retries,
        read=config.max_retries,
        status=config.max_retries,
        backoff_factor=config.backoff_factor,
        status_forcelist=RETRYABLE_STATUS_CODES,
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"Accept": "application/json"})
    return session


class RemoteServiceClient:
    """Base JSON client for one external service."""

    service_name = "remote-service"

    def __init__(
        self,
        config: RemoteServiceSettings,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config
        self._session = session or build_session(config)

    @classmethod
    def from_settings(
        cls: Type[ClientT], session: Optional[requests.Session] = None
    ) -> ClientT:
        raise NotImplementedError

    @classmethod
    def shared(cls: Type[ClientT]) -> ClientT:
        """Process-wide client for this service, built on first use."""
        with _shared_lock:
            client = _shared_clients.get(cls)
            if client is None:
                client = cls.from_settings()
                _shared_clients[cls] = client
                logger.debug("remote.client_created", service=cls.service_name)
            return client

    def close(self) -> None:
        self._session.close()

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def get_json(self, path: str, call_site: str) -> Any:
        """``GET`` *path* and return the decoded JSON body.

        Raises:
            RemoteServiceError: on transport failure, error status or a body
                that is not JSON.
        """
        url = f"{self._config.base_url}{path}"
        log = logger.bind(service=self.service_name, call_site=call_site, url=url)

        try:
            response = self._session.get(
                url,
                headers=self._outbound_headers(),
                timeout=self._config.timeout,
            )
        except requests.Timeout as exc:
            log.warning("remote.request_timeout")
            raise RemoteServiceError(
                RemoteErrorKind.UNAVAILABLE,
                call_site,
                f"Timed out calling {self.service_name}.",
            ) from exc
        except requests.RequestException as exc:
            log.warning("remote.request_failed", error=str(exc))
            raise RemoteServiceError(
                RemoteErrorKind.UNAVAILABLE,
                call_site,
                f"Could not reach {self.service_name}.",
            ) from exc

        if response.status_code >= 400:
            error = decode_remote_error(response.status_code, call_site)
            log.info(
                "remote.error_response",
                status_code=response.status_code,
                kind=str(error.kind),
            )
            raise error

        try:
            return response.json()
        except ValueError as exc:
            log.warning("remote.invalid_body", status_code=response.status_code)
            raise RemoteServiceError(
                RemoteErrorKind.REMOTE_ERROR,
                call_site,
                f"{self.service_name} returned a non-JSON body.",
                response.status_code,
            ) from exc

    def ping(self) -> bool:
        """Return ``True`` if the service answers any HTTP response at all."""
        try:
            self._session.head(self._config.base_url, timeout=self._config.timeout)
        except requests.RequestException:
            return False
        return True

    def _outbound_headers(self) -> dict[str, str]:
        correlation_id = correlation_id_var.get()
        if correlation_id:
            return {"X-Request-ID": correlation_id}
        return {}


def close_shared_clients() -> None:
    """Close and forget every shared client; the next ``shared()`` rebuilds."""
    with _shared_lock:
        clients = list(_shared_clients.values())
        _shared_clients.clear()
    for client in clients:
        client.close()


@receiver(setting_changed)
def _drop_stale_clients(*, setting: str, **kwargs: Any) -> None:
    if setting in REMOTE_SETTINGS:
        close_shared_clients()
