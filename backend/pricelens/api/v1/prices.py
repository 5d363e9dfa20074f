"""Price comparison endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pricelens.config import settings
from pricelens.dependencies import get_locale, get_registry
from pricelens.integrations.base import SearchOptions
from pricelens.integrations.registry import AdapterRegistry
from pricelens.integrations.utils.normalizer import normalize_barcode
from pricelens.schemas import ApiResponse, ComparisonResponse
from pricelens.services.aggregation import AggregationService
from pricelens.services.price_comparison import PriceComparisonService

router = APIRouter()


def _comparison_service(registry: AdapterRegistry, locale: str) -> PriceComparisonService:
    return PriceComparisonService(
        registry,
        AggregationService(currency=settings.DEFAULT_CURRENCY, locale=locale),
    )


@router.get("/search", response_model=ApiResponse[ComparisonResponse])
async def search_prices(
    q: str = Query("", description="Product search query"),
    limit: Optional[int] = Query(None, ge=1, le=200, description="Results per store"),
    category: Optional[str] = Query(None, description="Category slug, e.g. electronics"),
    max_groups: int = Query(10, ge=1, le=100, description="Matched products to return"),
    skip_down: bool = Query(False, description="Skip stores whose health is down"),
    locale: str = Depends(get_locale),
    registry: AdapterRegistry = Depends(get_registry),
):
    """Compare prices for a free-text query across every enabled store.

    Stores that fail are listed under ``stores`` with their error and do not
    affect the ranking of the others.
    """
    if not q or not q.strip():
        raise HTTPException(
            status_code=400,
            detail="Search query 'q' cannot be empty",
        )

    options = SearchOptions(limit=limit, category=category, locale=locale)
    comparison = await _comparison_service(registry, locale).compare(
        q.strip(), options, skip_down=skip_down, max_groups=max_groups
    )
    return ApiResponse(data=ComparisonResponse.from_comparison(comparison))


@router.get("/barcode/{code}", response_model=ApiResponse[ComparisonResponse])
async def barcode_prices(
    code: str,
    skip_down: bool = Query(False, description="Skip stores whose health is down"),
    locale: str = Depends(get_locale),
    registry: AdapterRegistry = Depends(get_registry),
):
    """Compare prices for one UPC/EAN/GTIN across every enabled store."""
    cleaned = normalize_barcode(code)
    if not cleaned:
        raise HTTPException(
            status_code=400,
            detail="Barcode must contain 8 to 14 digits",
        )

    options = SearchOptions(locale=locale)
    comparison = await _comparison_service(registry, locale).compare_identifier(
        cleaned, options, skip_down=skip_down
    )
    return ApiResponse(data=ComparisonResponse.from_comparison(comparison))
