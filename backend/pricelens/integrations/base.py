"""Shared data structures and contracts for store integrations.

Every provider is wired as a ``ProviderClient`` (one outbound request) plus a
``ResponseNormalizer`` (raw payload to canonical products). The retrying
adapter in ``pricelens.integrations.adapter`` combines the two.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

import structlog

from pricelens.core.exceptions import ValidationError
from pricelens.integrations.utils.normalizer import (
    DEFAULT_CURRENCY,
    PriceNormalizer,
    normalize_barcode,
)

INTEGRATION_TYPES = ("api", "affiliate", "scraping")


@dataclass(frozen=True)
class StoreInfo:
    """Identity of one price source."""

    id: str
    name: str
    slug: str
    base_url: str
    integration_type: str = "api"
    enabled: bool = True
    logo: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("id is required")
        if self.integration_type not in INTEGRATION_TYPES:
            raise ValueError(f"Invalid integration_type: {self.integration_type}")


@dataclass
class SearchOptions:
    """Per-call search options. ``limit`` is clamped by each provider."""

    limit: Optional[int] = None
    category: Optional[str] = None
    locale: Optional[str] = None
    timeout: Optional[float] = None  # seconds; aborts the outbound call


@dataclass
class NormalizedPrice:
    """One price observation from one store."""

    store_id: str
    store_name: str
    price: Decimal
    product_url: str
    fetched_at: datetime
    currency: str = DEFAULT_CURRENCY
    formatted_price: str = ""
    in_stock: bool = True
    shipping_cost: Decimal = Decimal("0")
    total_price: Optional[Decimal] = None
    original_price: Optional[Decimal] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.store_id:
            raise ValueError("store_id is required")
        if self.price is None or self.price <= 0:
            raise ValueError("price must be a positive Decimal")
        if self.shipping_cost is None:
            self.shipping_cost = Decimal("0")
        if self.shipping_cost < 0:
            raise ValueError("shipping_cost must be non-negative")
        if self.total_price is None:
            self.total_price = self.price + self.shipping_cost
        if self.total_price < self.price:
            raise ValueError("total_price must be >= price")
        if not self.currency:
            self.currency = DEFAULT_CURRENCY

    @property
    def on_sale(self) -> bool:
        return self.original_price is not None and self.original_price > self.price

    @property
    def sale_percentage(self) -> Optional[Decimal]:
        """Discount off ``original_price``, rounded to 2 places."""
        if not self.on_sale:
            return None
        return round((self.original_price - self.price) / self.original_price * 100, 2)


@dataclass
class NormalizedProduct:
    """One product observation from one provider."""

    name: str
    prices: List[NormalizedPrice]
    source_provider: str
    fetched_at: datetime
    barcode: Optional[str] = None
    brand: Optional[str] = None
    image: Optional[str] = None
    product_url: Optional[str] = None
    category: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("name is required")
        if not self.prices:
            raise ValueError("at least one price is required")


@dataclass
class RawResponse:
    """Decoded payload of one provider call."""

    provider: str
    payload: Any
    status_code: int = 200
    elapsed_ms: int = 0
    from_cache: bool = False


@dataclass
class NormalizationResult:
    """Surviving products plus how many candidate records were dropped."""

    products: List[NormalizedProduct] = field(default_factory=list)
    dropped: int = 0

    def __iter__(self):
        return iter(self.products)

    def __len__(self) -> int:
        return len(self.products)


class ProviderClient(ABC):
    """Issues one outbound request to one price-data provider.

    Implementations raise ``AdapterError`` subclasses for every failure so
    the retry layer can classify them.
    """

    provider: str = ""
    MAX_LIMIT: int = 10
    DEFAULT_LIMIT: int = 10

    @abstractmethod
    def is_configured(self) -> bool:
        """True when every credential the provider needs is present."""

    @abstractmethod
    async def fetch(self, query: str, options: SearchOptions) -> RawResponse:
        """Search the provider by free text."""

    async def fetch_identifier(self, code: str, options: SearchOptions) -> RawResponse:
        """Look up a barcode/GTIN. Defaults to a keyword search on the code."""
        return await self.fetch(code, options)

    def clamp_limit(self, limit: Optional[int]) -> int:
        """Clamp a requested result count to ``1..MAX_LIMIT``."""
        if not limit or limit < 1:
            return min(self.DEFAULT_LIMIT, self.MAX_LIMIT)
        return min(limit, self.MAX_LIMIT)

    def validate_query(self, query: Optional[str]) -> str:
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValidationError(self.provider, "query must not be empty")
        return cleaned


class ResponseNormalizer(ABC):
    """Maps a raw provider payload to canonical products.

    Subclasses yield candidate records from ``iter_records`` and turn each
    into a product in ``normalize_record``. A record that cannot become a
    valid product is dropped and counted, never raised.
    """

    # Exceptions that mean "this record is unusable"
    RECORD_ERRORS = (ValueError, TypeError, KeyError, AttributeError, InvalidOperation)

    def __init__(self, store: StoreInfo, source: str, locale: Optional[str] = None):
        self.store = store
        self.source = source
        self.locale = locale
        self.logger = structlog.get_logger(__name__).bind(store=store.id)

    @abstractmethod
    def iter_records(self, payload: Any) -> Iterable[Any]:
        """Yield candidate records. Raise ``ValidationError`` if the payload shape is wrong."""

    @abstractmethod
    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        """Convert one record, or return None to drop it."""

    def normalize(self, raw: RawResponse, fetched_at: datetime) -> NormalizationResult:
        """Normalize a raw response.

        Args:
            raw: Decoded provider response
            fetched_at: Timestamp stamped on every product and price

        Returns:
            NormalizationResult with surviving products and the dropped count
        """
        result = NormalizationResult()
        for record in self.iter_records(raw.payload):
            try:
                product = self.normalize_record(record, fetched_at)
            except self.RECORD_ERRORS as e:
                self.logger.debug("record_dropped", reason=str(e))
                product = None
            if product is None:
                result.dropped += 1
                continue
            result.products.append(product)

        if result.dropped:
            self.logger.info(
                "records_dropped",
                dropped=result.dropped,
                kept=len(result.products),
            )
        return result

    def build_price(
        self,
        amount: Any,
        *,
        product_url: str,
        fetched_at: datetime,
        currency: Optional[str] = None,
        shipping: Any = None,
        in_stock: bool = True,
        original_price: Any = None,
        store_id: Optional[str] = None,
        store_name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[NormalizedPrice]:
        """Build a price, or return None when the amount is missing or not positive."""
        price = PriceNormalizer.to_decimal(amount)
        if price is None or price <= 0:
            return None

        currency = (currency or DEFAULT_CURRENCY).upper()
        shipping_cost = PriceNormalizer.parse_shipping(shipping)
        original = PriceNormalizer.to_decimal(original_price)

        return NormalizedPrice(
            store_id=store_id or self.store.id,
            store_name=store_name or self.store.name,
            price=price,
            currency=currency,
            formatted_price=PriceNormalizer.format_price(price, currency, self.locale),
            in_stock=in_stock,
            shipping_cost=shipping_cost if shipping_cost is not None else Decimal("0"),
            original_price=original if original and original > 0 else None,
            product_url=product_url or self.store.base_url,
            fetched_at=fetched_at,
            metadata=metadata or {},
        )

    def with_locale(self, locale: Optional[str]) -> "ResponseNormalizer":
        """Copy of this normalizer that formats prices for ``locale``."""
        if not locale or locale == self.locale:
            return self
        clone = copy.copy(self)
        clone.locale = locale
        return clone

    @staticmethod
    def extract_barcode(data: Dict[str, Any]) -> Optional[str]:
        """Pick the first usable barcode from common provider field names."""
        for key in ("barcode", "upc", "ean", "gtin"):
            code = normalize_barcode(data.get(key))
            if code:
                return code
        return None
