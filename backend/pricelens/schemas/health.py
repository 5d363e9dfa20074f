"""Health check schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from pricelens.integrations.adapter import RetryingAdapter


class AdapterHealthResponse(BaseModel):
    """Health of one store adapter."""

    store_id: str
    store_name: str
    enabled: bool
    status: str
    consecutive_failures: int = 0
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    error_message: Optional[str] = None
    checked_at: Optional[datetime] = None

    @classmethod
    def from_adapter(cls, adapter: RetryingAdapter) -> "AdapterHealthResponse":
        health = adapter.get_health()
        return cls(
            store_id=adapter.store_id,
            store_name=adapter.store.name,
            enabled=adapter.is_enabled(),
            status=health.status.value,
            consecutive_failures=health.consecutive_failures,
            last_success=health.last_success,
            last_failure=health.last_failure,
            error_message=health.error_message,
            checked_at=health.checked_at,
        )


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    redis: Optional[str] = None
    adapters: List[AdapterHealthResponse] = []
