"""Price comparison: registry fan-out followed by aggregation."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from pricelens.integrations.base import SearchOptions
from pricelens.integrations.registry import (
    AdapterOutcome,
    AdapterRegistry,
    successful_prices,
    successful_products,
)
from pricelens.services.aggregation import AggregatedResult, AggregationService

logger = structlog.get_logger(__name__)


@dataclass
class ComparisonResult:
    """Ranked groups plus what each store did."""

    query: str
    results: List[AggregatedResult] = field(default_factory=list)
    outcomes: Dict[str, AdapterOutcome] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return [store_id for store_id, o in self.outcomes.items() if o.ok]

    @property
    def failed(self) -> Dict[str, str]:
        return {store_id: str(o.error) for store_id, o in self.outcomes.items() if not o.ok}


class PriceComparisonService:
    """Runs a query against every enabled store and ranks the offers.

    Failed stores are reported in ``outcomes`` and left out of ranking;
    a comparison never fails because a store did.
    """

    def __init__(self, registry: AdapterRegistry, aggregation: Optional[AggregationService] = None):
        self.registry = registry
        self.aggregation = aggregation or AggregationService()
        self.logger = logger.bind(service="price_comparison")

    async def compare(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        *,
        skip_down: bool = False,
        max_groups: Optional[int] = None,
    ) -> ComparisonResult:
        """Search all stores and return ranked groups, most-covered first.

        Args:
            query: Free-text product query
            options: Limit, category, locale and timeout per store
            skip_down: Leave out adapters whose health is ``down``
            max_groups: Keep only this many groups
        """
        outcomes = await self.registry.search_all(query, options, skip_down=skip_down)
        groups = self.aggregation.aggregate_all(successful_products(outcomes))
        groups.sort(key=lambda r: (-r.store_count, r.lowest_total))
        if max_groups is not None:
            groups = groups[:max_groups]

        self.logger.info(
            "comparison_complete",
            query=query,
            groups=len(groups),
            stores_ok=sum(1 for o in outcomes.values() if o.ok),
            stores_failed=sum(1 for o in outcomes.values() if not o.ok),
        )
        return ComparisonResult(query=query, results=groups, outcomes=outcomes)

    async def compare_identifier(
        self,
        code: str,
        options: Optional[SearchOptions] = None,
        *,
        skip_down: bool = False,
    ) -> ComparisonResult:
        """Barcode lookup across all stores, ranked as a single product."""
        outcomes = await self.registry.get_price_all(code, options, skip_down=skip_down)
        result = self.aggregation.aggregate_prices(successful_prices(outcomes))
        results = [] if result.is_empty else [result]

        self.logger.info(
            "identifier_comparison_complete",
            code=code,
            prices=len(result.entries),
            stores_ok=sum(1 for o in outcomes.values() if o.ok),
        )
        return ComparisonResult(query=code, results=results, outcomes=outcomes)
