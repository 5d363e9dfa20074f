"""Health check endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends

from pricelens.dependencies import get_cache, get_registry
from pricelens.integrations.health import HealthStatus
from pricelens.integrations.registry import AdapterRegistry
from pricelens.schemas import AdapterHealthResponse, HealthCheckResponse
from pricelens.services.cache_service import CacheService

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    registry: AdapterRegistry = Depends(get_registry),
    cache: Optional[CacheService] = Depends(get_cache),
):
    """Return service health status.

    Reports each store adapter's health and, when caching is enabled,
    Redis connectivity. Overall status is "degraded" if any enabled
    adapter is down or Redis is unreachable.
    """
    adapters = [
        AdapterHealthResponse.from_adapter(registry.get(store_id))
        for store_id in registry.get_registered_stores()
    ]

    if cache is None:
        redis_status = "disabled"
    else:
        redis_status = "ok" if await cache.health_check() else "error: ping failed"

    any_down = any(a.enabled and a.status == HealthStatus.DOWN.value for a in adapters)
    overall_status = "degraded" if any_down or redis_status.startswith("error") else "ok"

    return HealthCheckResponse(status=overall_status, redis=redis_status, adapters=adapters)
