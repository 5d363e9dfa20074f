"""Cross-store price aggregation and best-deal ranking.

Per-store search results are grouped into logical products by a pluggable
``ProductMatcher``; each group's prices are deduplicated, ranked by total
price and annotated with the difference to the best deal.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from pricelens.integrations.base import NormalizedPrice, NormalizedProduct
from pricelens.integrations.utils.normalizer import (
    DEFAULT_CURRENCY,
    PriceNormalizer,
    barcode_match_key,
    normalize_name,
)

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Product matching
# ---------------------------------------------------------------------------


class ProductMatcher(ABC):
    """Decides which products from different stores are the same item."""

    @abstractmethod
    def match_key(self, product: NormalizedProduct) -> Optional[str]:
        """Grouping key, or None when the product cannot be matched."""

    def group(self, products: Iterable[NormalizedProduct]) -> Dict[str, List[NormalizedProduct]]:
        """Group products by key, in order of first appearance."""
        groups: Dict[str, List[NormalizedProduct]] = {}
        for product in products:
            key = self.match_key(product)
            if key is None:
                continue
            groups.setdefault(key, []).append(product)
        return groups


class BarcodeMatcher(ProductMatcher):
    """Same barcode, ignoring leading zero padding. Products without one are skipped."""

    def match_key(self, product: NormalizedProduct) -> Optional[str]:
        key = barcode_match_key(product.barcode)
        return f"barcode:{key}" if key else None


class NameMatcher(ProductMatcher):
    """Same normalized name within the same category."""

    def match_key(self, product: NormalizedProduct) -> Optional[str]:
        name = normalize_name(product.name)
        if not name:
            return None
        return f"name:{normalize_name(product.category)}|{name}"


class BarcodeOrNameMatcher(ProductMatcher):
    """Barcode when present, else name.

    A product without a barcode joins a barcode group when its normalized
    name matches a product already in that group.
    """

    def __init__(self):
        self._barcode = BarcodeMatcher()
        self._name = NameMatcher()

    def match_key(self, product: NormalizedProduct) -> Optional[str]:
        return self._barcode.match_key(product) or self._name.match_key(product)

    def group(self, products: Iterable[NormalizedProduct]) -> Dict[str, List[NormalizedProduct]]:
        products = list(products)
        groups: Dict[str, List[NormalizedProduct]] = {}
        name_to_barcode: Dict[str, str] = {}

        for product in products:
            key = self._barcode.match_key(product)
            if key is None:
                continue
            groups.setdefault(key, []).append(product)
            name_key = self._name.match_key(product)
            if name_key:
                name_to_barcode.setdefault(name_key, key)

        for product in products:
            if self._barcode.match_key(product) is not None:
                continue
            name_key = self._name.match_key(product)
            if name_key is None:
                continue
            groups.setdefault(name_to_barcode.get(name_key, name_key), []).append(product)

        return groups


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RankedPrice:
    """One price within an aggregated comparison."""

    rank: int
    price: NormalizedPrice
    is_best_deal: bool = False
    price_difference: Optional[Decimal] = None
    formatted_difference: Optional[str] = None

    @property
    def store_id(self) -> str:
        return self.price.store_id

    @property
    def total_price(self) -> Decimal:
        return self.price.total_price

    @property
    def in_stock(self) -> bool:
        return self.price.in_stock


@dataclass(frozen=True)
class AggregatedResult:
    """Ranked prices for one logical product."""

    entries: Tuple[RankedPrice, ...] = ()
    price_spread: Decimal = Decimal("0")
    store_count: int = 0
    all_out_of_stock: bool = False
    product_name: Optional[str] = None
    barcode: Optional[str] = None
    match_key: Optional[str] = None
    image: Optional[str] = None
    currency: str = DEFAULT_CURRENCY

    @property
    def best_deal(self) -> Optional[RankedPrice]:
        return next((e for e in self.entries if e.is_best_deal), None)

    @property
    def lowest_total(self) -> Optional[Decimal]:
        return self.entries[0].total_price if self.entries else None

    @property
    def highest_total(self) -> Optional[Decimal]:
        return self.entries[-1].total_price if self.entries else None

    @property
    def is_empty(self) -> bool:
        return not self.entries


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _sort_key(price: NormalizedPrice) -> Tuple[Decimal, str, str]:
    return (price.total_price, price.store_name.casefold(), price.store_id)


class AggregationService:
    """Merges per-store results into ranked price comparisons.

    Holds no state between calls; the same input always yields the same
    ranking.

    Args:
        matcher: Grouping policy (default: barcode, falling back to name)
        currency: Only prices in this currency are compared
        locale: Locale for formatted price differences
    """

    def __init__(
        self,
        matcher: Optional[ProductMatcher] = None,
        currency: str = DEFAULT_CURRENCY,
        locale: Optional[str] = None,
    ):
        self.matcher = matcher or BarcodeOrNameMatcher()
        self.currency = currency.upper()
        self.locale = locale
        self.logger = logger.bind(service="aggregation_service")

    def aggregate(self, per_store_results: Mapping[str, Sequence[NormalizedProduct]]) -> AggregatedResult:
        """Rank the product group that covers the most stores.

        Args:
            per_store_results: Products keyed by the store that returned them

        Returns:
            AggregatedResult, empty when nothing could be matched
        """
        results = self.aggregate_all(per_store_results)
        if not results:
            return AggregatedResult(currency=self.currency)
        # Stable sort keeps first-seen order among groups with equal coverage
        return sorted(results, key=lambda r: -r.store_count)[0]

    def aggregate_all(
        self, per_store_results: Mapping[str, Sequence[NormalizedProduct]]
    ) -> List[AggregatedResult]:
        """One ranked result per matched product group, in first-seen order."""
        products = [p for store_id in per_store_results for p in per_store_results[store_id]]
        groups = self.matcher.group(products)

        results = []
        for key, members in groups.items():
            result = self._build(
                [price for product in members for price in product.prices],
                match_key=key,
                representative=members[0],
                barcode=next((p.barcode for p in members if p.barcode), None),
            )
            if not result.is_empty:
                results.append(result)

        self.logger.debug("aggregation_complete", products=len(products), groups=len(results))
        return results

    def aggregate_prices(self, prices: Iterable[NormalizedPrice]) -> AggregatedResult:
        """Rank prices already known to refer to one product (e.g. a barcode lookup)."""
        return self._build(list(prices))

    def _build(
        self,
        prices: List[NormalizedPrice],
        *,
        match_key: Optional[str] = None,
        representative: Optional[NormalizedProduct] = None,
        barcode: Optional[str] = None,
    ) -> AggregatedResult:
        ordered = sorted(self._dedupe(self._same_currency(prices)), key=_sort_key)
        if not ordered:
            return AggregatedResult(currency=self.currency, match_key=match_key)

        best_index = next((i for i, p in enumerate(ordered) if p.in_stock), None)
        reference = ordered[best_index if best_index is not None else 0]

        entries = []
        for i, price in enumerate(ordered):
            if price is reference:
                difference = formatted = None
            else:
                difference = price.total_price - reference.total_price
                formatted = PriceNormalizer.format_delta(difference, self.currency, self.locale)
            entries.append(
                RankedPrice(
                    rank=i + 1,
                    price=price,
                    is_best_deal=i == best_index,
                    price_difference=difference,
                    formatted_difference=formatted,
                )
            )

        return AggregatedResult(
            entries=tuple(entries),
            price_spread=ordered[-1].total_price - ordered[0].total_price,
            store_count=len({p.store_id for p in ordered}),
            all_out_of_stock=best_index is None,
            product_name=representative.name if representative else None,
            barcode=barcode,
            match_key=match_key,
            image=representative.image if representative else None,
            currency=self.currency,
        )

    def _same_currency(self, prices: List[NormalizedPrice]) -> List[NormalizedPrice]:
        kept = [p for p in prices if p.currency.upper() == self.currency]
        if len(kept) < len(prices):
            self.logger.info(
                "foreign_currency_prices_excluded",
                excluded=len(prices) - len(kept),
                currency=self.currency,
            )
        return kept

    @staticmethod
    def _dedupe(prices: List[NormalizedPrice]) -> List[NormalizedPrice]:
        """Keep the cheapest observation per (store, URL)."""
        cheapest: Dict[Tuple[str, str], NormalizedPrice] = {}
        for price in prices:
            key = (price.store_id, price.product_url)
            current = cheapest.get(key)
            if current is None or _sort_key(price) < _sort_key(current):
                cheapest[key] = price
        return list(cheapest.values())
