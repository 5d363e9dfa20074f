"""HTTP plumbing shared by every provider client.

Subclasses describe *what* to request (``RequestSpec``); this module sends
it with httpx and turns transport and status failures into the adapter
error taxonomy:

    401/403            -> AuthError        (not retried)
    429                -> RateLimitError   (retried)
    5xx, timeouts, I/O -> NetworkError     (retried)
    other 4xx, bad JSON-> ValidationError  (not retried)
"""

import time
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx
import structlog

from pricelens.core.exceptions import (
    AuthError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from pricelens.integrations.base import ProviderClient, RawResponse, SearchOptions
from pricelens.integrations.utils.normalizer import normalize_barcode
from pricelens.integrations.utils.rate_limiter import DomainRateLimiter

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class RequestSpec:
    """Everything needed to build one outbound request."""

    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[bytes] = None
    data: Optional[Dict[str, str]] = None


class HTTPProviderClient(ProviderClient):
    """Base class for JSON-over-HTTP provider clients.

    A new ``httpx.AsyncClient`` is opened per call so no connection state
    outlives a query. ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        rate_limiter: Optional[DomainRateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self.rate_limiter = rate_limiter
        self._transport = transport

    @abstractmethod
    def build_search_request(self, query: str, limit: int, options: SearchOptions) -> RequestSpec:
        """Describe a free-text search request."""

    def build_identifier_request(self, code: str, limit: int, options: SearchOptions) -> RequestSpec:
        """Describe a barcode lookup. Defaults to searching for the code."""
        return self.build_search_request(code, limit, options)

    async def authorize(self, client: httpx.AsyncClient, spec: RequestSpec) -> RequestSpec:
        """Hook for credentials that need their own round trip (OAuth tokens)."""
        return spec

    def check_payload(self, payload: Any) -> None:
        """Hook for provider errors reported inside a 200 response body."""

    async def fetch(self, query: str, options: SearchOptions) -> RawResponse:
        query = self.validate_query(query)
        return await self._execute(
            lambda limit: self.build_search_request(query, limit, options), options
        )

    async def fetch_identifier(self, code: str, options: SearchOptions) -> RawResponse:
        cleaned = normalize_barcode(code)
        if not cleaned:
            raise ValidationError(self.provider, f"invalid barcode: {code!r}")
        return await self._execute(
            lambda limit: self.build_identifier_request(cleaned, limit, options), options
        )

    async def _execute(
        self,
        build: Callable[[int], RequestSpec],
        options: SearchOptions,
    ) -> RawResponse:
        if not self.is_configured():
            raise AuthError(self.provider, "credentials not configured")

        spec = build(self.clamp_limit(options.limit))
        timeout = options.timeout or self._timeout

        if self.rate_limiter:
            waited = await self.rate_limiter.acquire(httpx.URL(spec.url).host)
            if waited:
                logger.debug("provider_rate_limited", provider=self.provider, waited_s=round(waited, 3))

        started = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                spec = await self.authorize(client, spec)
                request = client.build_request(
                    spec.method,
                    spec.url,
                    params=spec.params,
                    headers=spec.headers,
                    content=spec.content,
                    data=spec.data,
                )
                response = await client.send(request)
        except httpx.TimeoutException as e:
            logger.warning("provider_timeout", provider=self.provider, timeout=timeout)
            raise NetworkError(self.provider, f"request timed out after {timeout}s", original=e) from e
        except httpx.TransportError as e:
            logger.warning("provider_transport_error", provider=self.provider, error=str(e))
            raise NetworkError(self.provider, f"transport error: {e}", original=e) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        self.raise_for_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise ValidationError(self.provider, "response body is not valid JSON", original=e) from e

        self.check_payload(payload)

        logger.debug(
            "provider_call_succeeded",
            provider=self.provider,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )
        return RawResponse(
            provider=self.provider,
            payload=payload,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

    def raise_for_status(self, response: httpx.Response) -> None:
        """Map an HTTP error status onto the adapter error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        detail = f"HTTP {status}: {response.text[:200]}"
        logger.warning("provider_http_error", provider=self.provider, status_code=status)

        if status in (401, 403):
            raise AuthError(self.provider, detail)
        if status == 429:
            raise RateLimitError(
                self.provider,
                detail,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if status >= 500:
            raise NetworkError(self.provider, detail)
        raise ValidationError(self.provider, detail)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
