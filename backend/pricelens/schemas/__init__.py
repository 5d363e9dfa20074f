"""Pydantic schemas for API request/response validation."""

from pricelens.schemas.common import ApiResponse
from pricelens.schemas.health import AdapterHealthResponse, HealthCheckResponse
from pricelens.schemas.prices import (
    ComparisonGroupResponse,
    ComparisonResponse,
    RankedPriceResponse,
    StoreOutcomeResponse,
)

__all__ = [
    "ApiResponse",
    "AdapterHealthResponse",
    "HealthCheckResponse",
    "ComparisonGroupResponse",
    "ComparisonResponse",
    "RankedPriceResponse",
    "StoreOutcomeResponse",
]
