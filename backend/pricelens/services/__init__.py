"""Services module for price comparison and caching.

Services sit between the API and the integrations: they run fan-out
searches and turn per-store results into ranked comparisons.
"""

from pricelens.services.aggregation import (
    AggregatedResult,
    AggregationService,
    BarcodeMatcher,
    BarcodeOrNameMatcher,
    NameMatcher,
    ProductMatcher,
    RankedPrice,
)
from pricelens.services.price_comparison import ComparisonResult, PriceComparisonService

__all__ = [
    "AggregatedResult",
    "AggregationService",
    "BarcodeMatcher",
    "BarcodeOrNameMatcher",
    "NameMatcher",
    "ProductMatcher",
    "RankedPrice",
    "ComparisonResult",
    "PriceComparisonService",
]
