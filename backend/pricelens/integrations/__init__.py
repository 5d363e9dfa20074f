"""Store integrations for fetching prices from third-party providers.

This package provides:
- Provider clients and response normalizers for each price source
- A retrying adapter that adds backoff and health tracking to a client
- A registry that fans one query out to every enabled store
"""

from .adapter import RetryingAdapter
from .base import (
    NormalizationResult,
    NormalizedPrice,
    NormalizedProduct,
    ProviderClient,
    RawResponse,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from .health import AdapterHealth, HealthStatus, HealthTracker
from .registry import AdapterOutcome, AdapterRegistry

__all__ = [
    # Contracts
    "ProviderClient",
    "ResponseNormalizer",
    # Data structures
    "StoreInfo",
    "SearchOptions",
    "NormalizedPrice",
    "NormalizedProduct",
    "NormalizationResult",
    "RawResponse",
    # Adapter and registry
    "RetryingAdapter",
    "AdapterRegistry",
    "AdapterOutcome",
    # Health
    "AdapterHealth",
    "HealthStatus",
    "HealthTracker",
]
