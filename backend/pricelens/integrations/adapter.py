"""Uniform store adapter: provider client + normalizer + retry + health."""

from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

import structlog
from tenacity import RetryCallState

from pricelens.core.exceptions import AdapterError, AuthError, UnknownError, ValidationError
from pricelens.integrations.base import (
    NormalizationResult,
    NormalizedPrice,
    NormalizedProduct,
    ProviderClient,
    RawResponse,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.health import AdapterHealth, HealthTracker
from pricelens.integrations.utils.normalizer import barcode_match_key, normalize_barcode
from pricelens.integrations.utils.retry import RetryPolicy, build_retrying

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetryingAdapter:
    """One store's adapter.

    Wraps a ``ProviderClient`` and a ``ResponseNormalizer`` with retry and
    exponential backoff, and owns the store's ``HealthTracker``. The same
    class serves every provider; what differs per store is the
    client/normalizer pair it is built with.

    Args:
        store: Store identity
        client: Provider client issuing the outbound calls
        normalizer: Maps the client's raw payloads to products
        retry_policy: Retry budget and backoff (default 3 retries from 1s)
        clock: Source of ``fetched_at`` and health timestamps
        sleep: Awaitable used between retries (default ``asyncio.sleep``)
    """

    def __init__(
        self,
        store: StoreInfo,
        client: ProviderClient,
        normalizer: ResponseNormalizer,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.store = store
        self.client = client
        self.normalizer = normalizer
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._health = HealthTracker(clock=clock)
        self.logger = logger.bind(store=store.id)

        if not self.is_enabled():
            self.logger.warning(
                "adapter_disabled",
                store_enabled=store.enabled,
                credentials_configured=client.is_configured(),
            )

    @property
    def store_id(self) -> str:
        return self.store.id

    def get_store_info(self) -> StoreInfo:
        return self.store

    def is_enabled(self) -> bool:
        """False when the store is switched off or its credentials are missing."""
        return self.store.enabled and self.client.is_configured()

    def get_health(self) -> AdapterHealth:
        return self._health.snapshot()

    async def search_products(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[NormalizedProduct]:
        """Search this store.

        Raises:
            AuthError: Adapter disabled (no network call is made) or credentials rejected
            ValidationError: Blank query or malformed provider response
            AdapterError: Retryable failure that outlived the retry budget
        """
        self._ensure_enabled()
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValidationError(self.store.id, "query must not be empty")

        options = options or SearchOptions()
        result = await self._run(
            "search_products",
            lambda: self.client.fetch(cleaned, options),
            options,
        )
        return result.products

    async def get_price_by_identifier(
        self,
        code: str,
        options: Optional[SearchOptions] = None,
    ) -> List[NormalizedPrice]:
        """Prices for one barcode/GTIN.

        Products that report a different barcode are discarded; products
        without a barcode are kept since many providers omit it.
        """
        self._ensure_enabled()
        cleaned = normalize_barcode(code)
        if not cleaned:
            raise ValidationError(self.store.id, f"invalid barcode: {code!r}")

        options = options or SearchOptions()
        result = await self._run(
            "get_price_by_identifier",
            lambda: self.client.fetch_identifier(cleaned, options),
            options,
        )

        wanted = barcode_match_key(cleaned)
        prices: List[NormalizedPrice] = []
        for product in result.products:
            if product.barcode and barcode_match_key(product.barcode) != wanted:
                continue
            prices.extend(product.prices)
        return prices

    async def test_connection(self) -> bool:
        """Run a one-result search to check credentials and reachability."""
        try:
            await self.search_products("test", SearchOptions(limit=1))
            return True
        except AdapterError as e:
            self.logger.error("connection_test_failed", error=str(e))
            return False

    def _ensure_enabled(self) -> None:
        if not self.is_enabled():
            raise AuthError(
                self.store.id,
                f"{self.store.name} adapter is not configured",
            )

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[RawResponse]],
        options: SearchOptions,
    ) -> NormalizationResult:
        normalizer = self.normalizer.with_locale(options.locale)

        async def attempt_once() -> NormalizationResult:
            try:
                raw = await call()
                return normalizer.normalize(raw, self._clock())
            except AdapterError:
                raise
            except Exception as e:
                raise UnknownError(self.store.id, f"{type(e).__name__}: {e}", original=e) from e

        retrying = build_retrying(
            self.retry_policy,
            sleep=self._sleep,
            before_sleep=lambda state: self._log_retry(operation, state),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    result = await attempt_once()
        except AdapterError as e:
            self._health.record_failure(e)
            self.logger.warning(
                "adapter_operation_failed",
                operation=operation,
                error_type=e.error_type,
                consecutive_failures=self._health.snapshot().consecutive_failures,
                error=str(e),
            )
            raise

        self._health.record_success()
        self.logger.info(
            "adapter_operation_succeeded",
            operation=operation,
            products=len(result.products),
            dropped=result.dropped,
        )
        return result

    def _log_retry(self, operation: str, state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        self.logger.warning(
            "adapter_retry_scheduled",
            operation=operation,
            attempt=state.attempt_number,
            max_retries=self.retry_policy.max_retries,
            delay=state.next_action.sleep if state.next_action else None,
            error_type=getattr(error, "error_type", None),
            retry_after=getattr(error, "retry_after", None),
            error=str(error),
        )
