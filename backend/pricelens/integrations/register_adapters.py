"""Build the adapter registry from settings.

Called once during application startup. Every provider is registered;
those without credentials stay registered but disabled.
"""

from typing import Optional

import httpx
import structlog

from pricelens.config import Settings
from pricelens.integrations.adapter import RetryingAdapter
from pricelens.integrations.cache import CachedProviderClient
from pricelens.integrations.providers import PROVIDER_BUILDERS
from pricelens.integrations.registry import AdapterRegistry
from pricelens.integrations.utils.rate_limiter import DomainRateLimiter
from pricelens.integrations.utils.retry import RetryPolicy
from pricelens.services.cache_service import CacheService

logger = structlog.get_logger(__name__)


def build_default_registry(
    settings: Settings,
    *,
    cache: Optional[CacheService] = None,
    rate_limiter: Optional[DomainRateLimiter] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterRegistry:
    """Register all available providers.

    Args:
        settings: Application settings (credentials, retry, timeouts)
        cache: Raw response cache; used only when SEARCH_CACHE_ENABLED
        rate_limiter: Shared per-domain limiter (a new one by default)
        transport: httpx transport override, for tests

    Returns:
        AdapterRegistry with one adapter per provider
    """
    registry = AdapterRegistry(max_concurrency=settings.FANOUT_CONCURRENCY)
    rate_limiter = rate_limiter or DomainRateLimiter(settings.PROVIDER_RATE_LIMITS_RPM)
    policy = RetryPolicy(
        max_retries=settings.ADAPTER_MAX_RETRIES,
        initial_delay=settings.ADAPTER_INITIAL_DELAY_SECONDS,
    )
    use_cache = cache is not None and settings.SEARCH_CACHE_ENABLED

    for build in PROVIDER_BUILDERS:
        store, client, normalizer = build(
            settings,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            rate_limiter=rate_limiter,
            transport=transport,
        )
        if use_cache:
            client = CachedProviderClient(client, cache, ttl=settings.SEARCH_CACHE_TTL_SECONDS)

        registry.register(RetryingAdapter(store, client, normalizer, retry_policy=policy))

    logger.info(
        "adapter_registration_complete",
        registered=len(registry.get_registered_stores()),
        enabled=[a.store_id for a in registry.enabled_adapters()],
        cache_enabled=use_cache,
    )
    return registry
