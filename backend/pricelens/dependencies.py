"""FastAPI dependency injection providers."""

from typing import Optional

from fastapi import Request

from pricelens.config import settings
from pricelens.integrations.registry import AdapterRegistry
from pricelens.services.cache_service import CacheService, get_cache_service


def get_registry(request: Request) -> AdapterRegistry:
    """Adapter registry built during application startup."""
    return request.app.state.registry


def get_cache() -> Optional[CacheService]:
    """Response cache, or None when caching is switched off."""
    if not settings.SEARCH_CACHE_ENABLED:
        return None
    return get_cache_service()


def get_locale(locale: Optional[str] = None) -> str:
    """Display locale for formatted prices (query param ``locale``)."""
    return locale or settings.DEFAULT_LOCALE
