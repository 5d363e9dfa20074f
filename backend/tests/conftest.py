"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Any, List, Optional

import pytest

from pricelens.integrations.adapter import RetryingAdapter
from pricelens.integrations.base import (
    NormalizedProduct,
    ProviderClient,
    RawResponse,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.utils.normalizer import slugify_store
from pricelens.integrations.utils.retry import RetryPolicy

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FAKES
# ============================================================================


class ScriptedClient(ProviderClient):
    """Provider client that replays scripted responses or errors.

    Each call consumes the next scripted item; the last one repeats.
    """

    provider = "fake"

    def __init__(self, script: List[Any], configured: bool = True, on_fetch=None):
        self.script = list(script)
        self.configured = configured
        self.on_fetch = on_fetch
        self.calls: List[tuple] = []

    def is_configured(self) -> bool:
        return self.configured

    async def fetch(self, query: str, options: SearchOptions) -> RawResponse:
        self.calls.append(("search", query))
        return await self._next()

    async def fetch_identifier(self, code: str, options: SearchOptions) -> RawResponse:
        self.calls.append(("identifier", code))
        return await self._next()

    async def _next(self) -> RawResponse:
        if self.on_fetch:
            await self.on_fetch()
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class ItemsNormalizer(ResponseNormalizer):
    """Normalizer for the generic ``{"items": [...]}`` test payload."""

    def iter_records(self, payload: Any):
        return payload.get("items", [])

    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        if not record.get("title"):
            return None
        seller = record.get("store")
        price = self.build_price(
            record.get("price"),
            product_url=record.get("url", ""),
            fetched_at=fetched_at,
            currency=record.get("currency"),
            shipping=record.get("shipping"),
            in_stock=record.get("in_stock", True),
            store_id=slugify_store(seller) if seller else None,
            store_name=seller,
        )
        if price is None:
            return None
        return NormalizedProduct(
            name=record["title"],
            prices=[price],
            source_provider=self.source,
            fetched_at=fetched_at,
            barcode=self.extract_barcode(record),
            category=record.get("category"),
        )


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def raw(*items, provider: str = "fake") -> RawResponse:
    return RawResponse(provider=provider, payload={"items": list(items)})


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def fetched_at() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> StoreInfo:
    return StoreInfo(
        id="test-store",
        name="Test Store",
        slug="test-store",
        base_url="https://store.example.com",
    )


@pytest.fixture
def make_adapter(clock, sleeper):
    """Factory for a RetryingAdapter around a ScriptedClient.

    Returns (adapter, client).
    """

    def _make(
        script: List[Any],
        *,
        store_id: str = "test-store",
        configured: bool = True,
        enabled: bool = True,
        max_retries: int = 3,
        on_fetch=None,
    ):
        store = StoreInfo(
            id=store_id,
            name=store_id.replace("-", " ").title(),
            slug=store_id,
            base_url=f"https://{store_id}.example.com",
            enabled=enabled,
        )
        client = ScriptedClient(script, configured=configured, on_fetch=on_fetch)
        adapter = RetryingAdapter(
            store,
            client,
            ItemsNormalizer(store, "fake"),
            retry_policy=RetryPolicy(max_retries=max_retries, initial_delay=1.0),
            clock=clock,
            sleep=sleeper,
        )
        return adapter, client

    return _make


@pytest.fixture
def make_raw():
    """Build a RawResponse from item dicts: ``make_raw({"title": ..., "price": ...})``."""
    return raw
