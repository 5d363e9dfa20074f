"""Provider client wrapper that serves raw payloads from Redis."""

import json
from typing import Awaitable, Callable

import structlog

from pricelens.integrations.base import ProviderClient, RawResponse, SearchOptions
from pricelens.integrations.utils.normalizer import normalize_barcode
from pricelens.services.cache_service import CacheService, cache_key_for_provider

logger = structlog.get_logger(__name__)


class CachedProviderClient(ProviderClient):
    """Caches the decoded payload of a successful provider call.

    Failures are never cached. Reads that hit return a ``RawResponse``
    flagged ``from_cache`` and skip the network entirely.
    """

    def __init__(self, inner: ProviderClient, cache: CacheService, ttl: int):
        self.inner = inner
        self.cache = cache
        self.ttl = ttl
        self.provider = inner.provider
        self.MAX_LIMIT = inner.MAX_LIMIT
        self.DEFAULT_LIMIT = inner.DEFAULT_LIMIT

    def is_configured(self) -> bool:
        return self.inner.is_configured()

    async def fetch(self, query: str, options: SearchOptions) -> RawResponse:
        term = self.validate_query(query)
        return await self._cached("search", term, options, lambda: self.inner.fetch(term, options))

    async def fetch_identifier(self, code: str, options: SearchOptions) -> RawResponse:
        term = normalize_barcode(code) or code
        return await self._cached(
            "identifier", term, options, lambda: self.inner.fetch_identifier(code, options)
        )

    async def _cached(
        self,
        operation: str,
        term: str,
        options: SearchOptions,
        call: Callable[[], Awaitable[RawResponse]],
    ) -> RawResponse:
        key = cache_key_for_provider(
            self.provider, operation, term, self.clamp_limit(options.limit), options.category
        )

        cached = await self.cache.get(key)
        if cached is not None:
            try:
                payload = json.loads(cached)
            except ValueError:
                logger.warning("cache_entry_corrupt", provider=self.provider, key=key)
            else:
                return RawResponse(provider=self.provider, payload=payload, from_cache=True)

        raw = await call()
        await self.cache.set(key, json.dumps(raw.payload), ttl=self.ttl)
        return raw
