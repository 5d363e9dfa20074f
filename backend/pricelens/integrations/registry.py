"""Registry of store adapters with concurrent fan-out search."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from pricelens.core.exceptions import AdapterError, UnknownError
from pricelens.integrations.adapter import RetryingAdapter
from pricelens.integrations.base import NormalizedPrice, NormalizedProduct, SearchOptions
from pricelens.integrations.health import AdapterHealth, HealthStatus

logger = structlog.get_logger(__name__)

DEFAULT_CONCURRENCY = 5


@dataclass
class AdapterOutcome:
    """Result of one adapter's call within a fan-out: data or an error."""

    store_id: str
    products: List[NormalizedProduct] = field(default_factory=list)
    prices: List[NormalizedPrice] = field(default_factory=list)
    error: Optional[AdapterError] = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def successful_products(outcomes: Dict[str, AdapterOutcome]) -> Dict[str, List[NormalizedProduct]]:
    """Products from the adapters that succeeded, keyed by store id."""
    return {store_id: o.products for store_id, o in outcomes.items() if o.ok}


def successful_prices(outcomes: Dict[str, AdapterOutcome]) -> List[NormalizedPrice]:
    """Flattened prices from the adapters that succeeded."""
    return [price for o in outcomes.values() if o.ok for price in o.prices]


class AdapterRegistry:
    """Holds one ``RetryingAdapter`` per store and fans queries out to them.

    Partial results are the normal case: every enabled adapter gets an
    entry in the returned map, holding either its data or its error.
    """

    def __init__(self, max_concurrency: int = DEFAULT_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self._adapters: Dict[str, RetryingAdapter] = {}

    def register(self, adapter: RetryingAdapter) -> None:
        """Register an adapter under its store id, replacing any previous one."""
        if not isinstance(adapter, RetryingAdapter):
            raise ValueError(f"Adapter must be a RetryingAdapter: {adapter!r}")

        self._adapters[adapter.store_id] = adapter
        logger.info(
            "adapter_registered",
            store_id=adapter.store_id,
            integration_type=adapter.store.integration_type,
            enabled=adapter.is_enabled(),
        )

    def unregister(self, store_id: str) -> None:
        if self._adapters.pop(store_id, None) is not None:
            logger.info("adapter_unregistered", store_id=store_id)

    def get(self, store_id: str) -> Optional[RetryingAdapter]:
        return self._adapters.get(store_id)

    def has_adapter(self, store_id: str) -> bool:
        return store_id in self._adapters

    def get_registered_stores(self) -> List[str]:
        return list(self._adapters.keys())

    def enabled_adapters(self, skip_down: bool = False) -> List[RetryingAdapter]:
        """Enabled adapters, optionally leaving out those currently ``down``."""
        adapters = [a for a in self._adapters.values() if a.is_enabled()]
        if skip_down:
            adapters = [a for a in adapters if a.get_health().status != HealthStatus.DOWN]
        return adapters

    def health_report(self) -> Dict[str, AdapterHealth]:
        return {store_id: a.get_health() for store_id, a in self._adapters.items()}

    async def search_all(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        *,
        skip_down: bool = False,
    ) -> Dict[str, AdapterOutcome]:
        """Search every enabled adapter concurrently.

        Never raises for adapter failures; each failure is captured in that
        store's outcome.
        """
        outcomes = await self._fan_out(
            "search_all",
            lambda adapter: adapter.search_products(query, options),
            skip_down,
        )
        for outcome, data in outcomes:
            if outcome.ok:
                outcome.products = data
        return {o.store_id: o for o, _ in outcomes}

    async def get_price_all(
        self,
        code: str,
        options: Optional[SearchOptions] = None,
        *,
        skip_down: bool = False,
    ) -> Dict[str, AdapterOutcome]:
        """Barcode lookup across every enabled adapter concurrently."""
        outcomes = await self._fan_out(
            "get_price_all",
            lambda adapter: adapter.get_price_by_identifier(code, options),
            skip_down,
        )
        for outcome, data in outcomes:
            if outcome.ok:
                outcome.prices = data
        return {o.store_id: o for o, _ in outcomes}

    async def _fan_out(
        self,
        operation: str,
        call: Callable[[RetryingAdapter], Awaitable[Any]],
        skip_down: bool,
    ) -> List[Tuple[AdapterOutcome, Any]]:
        adapters = self.enabled_adapters(skip_down=skip_down)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(adapter: RetryingAdapter) -> Tuple[AdapterOutcome, Any]:
            async with semaphore:
                started = time.monotonic()
                try:
                    data = await call(adapter)
                    error = None
                except AdapterError as e:
                    data, error = None, e
                except Exception as e:
                    logger.error(
                        "adapter_unexpected_error",
                        store_id=adapter.store_id,
                        error=str(e),
                        exc_info=True,
                    )
                    data = None
                    error = UnknownError(adapter.store_id, f"{type(e).__name__}: {e}", original=e)
                elapsed_ms = int((time.monotonic() - started) * 1000)
            return AdapterOutcome(store_id=adapter.store_id, error=error, elapsed_ms=elapsed_ms), data

        results = await asyncio.gather(*(run_one(a) for a in adapters))

        failed = [o.store_id for o, _ in results if not o.ok]
        logger.info(
            "fanout_complete",
            operation=operation,
            adapters=len(results),
            succeeded=len(results) - len(failed),
            failed=failed,
        )
        return results
