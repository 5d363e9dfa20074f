"""SerpAPI Google Shopping provider.

One query returns offers from many sellers, so each price is attributed to
its seller rather than to Google Shopping itself.
Documentation: https://serpapi.com/google-shopping-api
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from pricelens.core.exceptions import AuthError, RateLimitError, ValidationError
from pricelens.integrations.base import (
    NormalizedProduct,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.http_client import HTTPProviderClient, RequestSpec
from pricelens.integrations.utils.normalizer import normalize_url, slugify_store

STORE = StoreInfo(
    id="google-shopping",
    name="Google Shopping",
    slug="google-shopping",
    base_url="https://shopping.google.com",
    integration_type="api",
)

# Errors SerpAPI reports in a 200 body
NO_RESULTS_MARKER = "hasn't returned any results"
AUTH_MARKERS = ("invalid api key", "api key is missing")
QUOTA_MARKERS = ("run out of searches", "rate limit")


@dataclass(frozen=True)
class SerpApiCredentials:
    api_key: str
    country: str = "us"
    language: str = "en"

    @classmethod
    def from_settings(cls, settings) -> "SerpApiCredentials":
        return cls(api_key=settings.SERPAPI_API_KEY, country=settings.SERPAPI_COUNTRY)


class SerpApiClient(HTTPProviderClient):
    """Google Shopping results via SerpAPI."""

    provider = "serpapi"
    MAX_LIMIT = 100
    DEFAULT_LIMIT = 20

    SEARCH_URL = "https://serpapi.com/search.json"

    def __init__(self, credentials: SerpApiCredentials, **kwargs):
        super().__init__(**kwargs)
        self.credentials = credentials

    def is_configured(self) -> bool:
        return bool(self.credentials.api_key)

    def build_search_request(self, query: str, limit: int, options: SearchOptions) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=self.SEARCH_URL,
            params={
                "engine": "google_shopping",
                "q": query,
                "api_key": self.credentials.api_key,
                "num": limit,
                "gl": self.credentials.country,
                "hl": self.credentials.language,
            },
        )

    def check_payload(self, payload: Any) -> None:
        if not isinstance(payload, dict) or not payload.get("error"):
            return

        message = str(payload["error"])
        lowered = message.lower()
        if NO_RESULTS_MARKER in lowered:
            return
        if any(marker in lowered for marker in AUTH_MARKERS):
            raise AuthError(self.provider, message)
        if any(marker in lowered for marker in QUOTA_MARKERS):
            raise RateLimitError(self.provider, message)
        raise ValidationError(self.provider, message)


class SerpApiNormalizer(ResponseNormalizer):
    """Maps ``shopping_results`` entries to one product per seller offer."""

    def iter_records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise ValidationError(self.source, "expected a JSON object")
        results = payload.get("shopping_results") or []
        if not isinstance(results, list):
            raise ValidationError(self.source, "shopping_results is not a list")
        return results

    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        title = record.get("title")
        if not title:
            return None

        seller = (record.get("source") or "").strip() or self.store.name
        url = normalize_url(record.get("product_link") or record.get("link") or "")
        amount = record.get("extracted_price")
        if amount is None:
            amount = record.get("price")

        price = self.build_price(
            amount,
            product_url=url,
            fetched_at=fetched_at,
            shipping=record.get("delivery"),
            original_price=record.get("extracted_old_price"),
            store_id=slugify_store(seller),
            store_name=seller,
            metadata={
                "provider": self.source,
                "position": record.get("position"),
                "rating": record.get("rating"),
                "reviews": record.get("reviews"),
            },
        )
        if price is None:
            return None

        return NormalizedProduct(
            name=title,
            prices=[price],
            source_provider=self.source,
            fetched_at=fetched_at,
            barcode=self.extract_barcode(record),
            image=record.get("thumbnail"),
            product_url=url or None,
        )


def build_serpapi(settings, **client_kwargs):
    """Return (store, client, normalizer) for Google Shopping."""
    client = SerpApiClient(SerpApiCredentials.from_settings(settings), **client_kwargs)
    return STORE, client, SerpApiNormalizer(STORE, client.provider, settings.DEFAULT_LOCALE)
