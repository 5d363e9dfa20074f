"""Price comparison schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from pricelens.integrations.registry import AdapterOutcome
from pricelens.services.aggregation import AggregatedResult, RankedPrice
from pricelens.services.price_comparison import ComparisonResult


class RankedPriceResponse(BaseModel):
    """One store's price within a comparison."""

    rank: int
    is_best_deal: bool
    store_id: str
    store_name: str
    price: Decimal
    currency: str
    formatted_price: str
    shipping_cost: Decimal
    total_price: Decimal
    in_stock: bool
    product_url: str
    fetched_at: datetime
    original_price: Optional[Decimal] = None
    sale_percentage: Optional[Decimal] = None
    price_difference: Optional[Decimal] = None
    formatted_difference: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_ranked(cls, entry: RankedPrice) -> "RankedPriceResponse":
        p = entry.price
        return cls(
            rank=entry.rank,
            is_best_deal=entry.is_best_deal,
            store_id=p.store_id,
            store_name=p.store_name,
            price=p.price,
            currency=p.currency,
            formatted_price=p.formatted_price,
            shipping_cost=p.shipping_cost,
            total_price=p.total_price,
            in_stock=p.in_stock,
            product_url=p.product_url,
            fetched_at=p.fetched_at,
            original_price=p.original_price,
            sale_percentage=p.sale_percentage,
            price_difference=entry.price_difference,
            formatted_difference=entry.formatted_difference,
            metadata=p.metadata,
        )


class ComparisonGroupResponse(BaseModel):
    """Ranked prices for one matched product."""

    product_name: Optional[str] = None
    barcode: Optional[str] = None
    image: Optional[str] = None
    currency: str
    store_count: int
    price_spread: Decimal
    all_out_of_stock: bool
    best_deal_store_id: Optional[str] = None
    prices: List[RankedPriceResponse]

    @classmethod
    def from_result(cls, result: AggregatedResult) -> "ComparisonGroupResponse":
        best = result.best_deal
        return cls(
            product_name=result.product_name,
            barcode=result.barcode,
            image=result.image,
            currency=result.currency,
            store_count=result.store_count,
            price_spread=result.price_spread,
            all_out_of_stock=result.all_out_of_stock,
            best_deal_store_id=best.store_id if best else None,
            prices=[RankedPriceResponse.from_ranked(e) for e in result.entries],
        )


class StoreOutcomeResponse(BaseModel):
    """What one store returned during a fan-out."""

    store_id: str
    ok: bool
    result_count: int = 0
    elapsed_ms: int = 0
    error_type: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: AdapterOutcome) -> "StoreOutcomeResponse":
        return cls(
            store_id=outcome.store_id,
            ok=outcome.ok,
            result_count=len(outcome.products) or len(outcome.prices),
            elapsed_ms=outcome.elapsed_ms,
            error_type=outcome.error.error_type if outcome.error else None,
            error=str(outcome.error) if outcome.error else None,
        )


class ComparisonResponse(BaseModel):
    """Price comparison across every enabled store."""

    query: str
    results: List[ComparisonGroupResponse]
    stores: List[StoreOutcomeResponse]

    @classmethod
    def from_comparison(cls, comparison: ComparisonResult) -> "ComparisonResponse":
        return cls(
            query=comparison.query,
            results=[ComparisonGroupResponse.from_result(r) for r in comparison.results],
            stores=[StoreOutcomeResponse.from_outcome(o) for o in comparison.outcomes.values()],
        )
