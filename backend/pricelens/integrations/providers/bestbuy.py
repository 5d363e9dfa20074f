"""Best Buy Products API provider.

Documentation: https://bestbuyapis.github.io/api-documentation/
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from pricelens.core.exceptions import ValidationError
from pricelens.integrations.base import (
    NormalizedProduct,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.http_client import HTTPProviderClient, RequestSpec

STORE = StoreInfo(
    id="best-buy",
    name="Best Buy",
    slug="best-buy",
    base_url="https://www.bestbuy.com",
    integration_type="api",
)

SHOW_FIELDS = (
    "sku,name,salePrice,regularPrice,onSale,url,upc,manufacturer,image,"
    "onlineAvailability,shippingCost,freeShipping,categoryPath.name"
)


@dataclass(frozen=True)
class BestBuyCredentials:
    api_key: str
    category_map: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings) -> "BestBuyCredentials":
        return cls(api_key=settings.BESTBUY_API_KEY, category_map=dict(settings.BESTBUY_CATEGORY_MAP))


def _search_terms(query: str) -> str:
    """Keyword terms in the Products API filter syntax."""
    words = [w for w in re.split(r"[^0-9A-Za-z]+", query) if w]
    return "&".join(f"search={w}" for w in words)


def _upc(code: str) -> str:
    # Best Buy stores 12-digit UPC-A; EAN-13/GTIN-14 carry leading zero padding
    if len(code) > 12 and code.startswith("0"):
        return code.lstrip("0").zfill(12)
    return code


class BestBuyClient(HTTPProviderClient):
    """Products API client with keyword and UPC lookup."""

    provider = "bestbuy"
    MAX_LIMIT = 100
    DEFAULT_LIMIT = 20

    API_BASE_URL = "https://api.bestbuy.com/v1"

    def __init__(self, credentials: BestBuyCredentials, **kwargs):
        super().__init__(**kwargs)
        self.credentials = credentials

    def is_configured(self) -> bool:
        return bool(self.credentials.api_key)

    def _request(self, filters: str, limit: int) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=f"{self.API_BASE_URL}/products({filters})",
            params={
                "apiKey": self.credentials.api_key,
                "format": "json",
                "pageSize": limit,
                "show": SHOW_FIELDS,
            },
        )

    def build_search_request(self, query: str, limit: int, options: SearchOptions) -> RequestSpec:
        terms = _search_terms(query)
        if not terms:
            raise ValidationError(self.provider, f"query has no searchable terms: {query!r}")

        filters = f"({terms})"
        category_id = self.credentials.category_map.get((options.category or "").lower())
        if category_id:
            filters += f"&categoryPath.id={category_id}"
        return self._request(filters, limit)

    def build_identifier_request(self, code: str, limit: int, options: SearchOptions) -> RequestSpec:
        return self._request(f"upc={_upc(code)}", limit)


class BestBuyNormalizer(ResponseNormalizer):

    def iter_records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise ValidationError(self.source, "expected a JSON object")
        products = payload.get("products") or []
        if not isinstance(products, list):
            raise ValidationError(self.source, "products is not a list")
        return products

    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        name = record.get("name")
        if not name:
            return None

        amount = record.get("salePrice")
        if amount is None:
            amount = record.get("regularPrice")

        shipping = 0 if record.get("freeShipping") else record.get("shippingCost")
        if shipping == "":
            shipping = None

        url = record.get("url") or ""
        price = self.build_price(
            amount,
            product_url=url,
            fetched_at=fetched_at,
            shipping=shipping,
            in_stock=bool(record.get("onlineAvailability", True)),
            original_price=record.get("regularPrice"),
            metadata={"sku": record.get("sku")},
        )
        if price is None:
            return None

        categories = record.get("categoryPath") or []
        category = categories[-1].get("name") if categories else None

        return NormalizedProduct(
            name=name,
            prices=[price],
            source_provider=self.source,
            fetched_at=fetched_at,
            barcode=self.extract_barcode(record),
            brand=record.get("manufacturer"),
            image=record.get("image"),
            product_url=url or None,
            category=category,
        )


def build_bestbuy(settings, **client_kwargs):
    """Return (store, client, normalizer) for Best Buy."""
    client = BestBuyClient(BestBuyCredentials.from_settings(settings), **client_kwargs)
    return STORE, client, BestBuyNormalizer(STORE, client.provider, settings.DEFAULT_LOCALE)
