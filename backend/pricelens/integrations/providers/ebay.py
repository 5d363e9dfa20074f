"""eBay Browse API provider.

Uses the OAuth 2.0 client-credentials flow; the application token is cached
until shortly before it expires.
Documentation: https://developer.ebay.com/api-docs/buy/browse/overview.html
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import httpx
import structlog

from pricelens.core.exceptions import AuthError, ValidationError
from pricelens.integrations.base import (
    NormalizedProduct,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.http_client import HTTPProviderClient, RequestSpec

logger = structlog.get_logger(__name__)

STORE = StoreInfo(
    id="ebay",
    name="eBay",
    slug="ebay",
    base_url="https://www.ebay.com",
    integration_type="api",
)

OAUTH_SCOPE = "https://api.ebay.com/oauth/api_scope"

# Refresh the token this many seconds before eBay expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class EbayCredentials:
    client_id: str
    client_secret: str
    marketplace_id: str = "EBAY_US"

    @classmethod
    def from_settings(cls, settings) -> "EbayCredentials":
        return cls(
            client_id=settings.EBAY_CLIENT_ID,
            client_secret=settings.EBAY_CLIENT_SECRET,
            marketplace_id=settings.EBAY_MARKETPLACE_ID,
        )


class EbayClient(HTTPProviderClient):
    """Browse API item_summary/search client with GTIN lookup."""

    provider = "ebay"
    MAX_LIMIT = 200
    DEFAULT_LIMIT = 20

    API_BASE_URL = "https://api.ebay.com/buy/browse/v1"
    OAUTH_URL = "https://api.ebay.com/identity/v1/oauth2/token"

    def __init__(
        self,
        credentials: EbayCredentials,
        *,
        clock: Callable[[], float] = time.monotonic,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.credentials = credentials
        self._clock = clock

        # OAuth token caching
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def is_configured(self) -> bool:
        return bool(self.credentials.client_id and self.credentials.client_secret)

    def _search_request(self, params: dict) -> RequestSpec:
        return RequestSpec(
            method="GET",
            url=f"{self.API_BASE_URL}/item_summary/search",
            params=params,
            headers={"X-EBAY-C-MARKETPLACE-ID": self.credentials.marketplace_id},
        )

    def build_search_request(self, query: str, limit: int, options: SearchOptions) -> RequestSpec:
        return self._search_request({"q": query, "limit": limit})

    def build_identifier_request(self, code: str, limit: int, options: SearchOptions) -> RequestSpec:
        return self._search_request({"gtin": code, "limit": limit})

    async def authorize(self, client: httpx.AsyncClient, spec: RequestSpec) -> RequestSpec:
        token = await self._get_access_token(client)
        spec.headers["Authorization"] = f"Bearer {token}"
        return spec

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        """Return the cached application token, requesting a new one if expired."""
        if self._access_token and self._clock() < self._token_expires_at:
            return self._access_token

        response = await client.post(
            self.OAUTH_URL,
            auth=(self.credentials.client_id, self.credentials.client_secret),
            data={"grant_type": "client_credentials", "scope": OAUTH_SCOPE},
        )
        self.raise_for_status(response)

        try:
            data = response.json()
            token = data["access_token"]
            expires_in = int(data.get("expires_in", 7200))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(self.provider, "token response is missing access_token", original=e) from e

        self._access_token = token
        self._token_expires_at = self._clock() + max(0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        logger.info("ebay_token_refreshed", expires_in=expires_in)
        return token

    def raise_for_status(self, response: httpx.Response) -> None:
        # A revoked token stays cached until expiry unless dropped here
        if response.status_code == 401 and self._access_token:
            logger.warning("ebay_token_rejected", status_code=response.status_code)
            self._access_token = None
            self._token_expires_at = 0.0
        super().raise_for_status(response)


class EbayNormalizer(ResponseNormalizer):

    def iter_records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise ValidationError(self.source, "expected a JSON object")
        items = payload.get("itemSummaries") or []
        if not isinstance(items, list):
            raise ValidationError(self.source, "itemSummaries is not a list")
        return items

    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        title = record.get("title")
        if not title:
            return None

        amount = record.get("price") or {}
        shipping_options = record.get("shippingOptions") or []
        shipping = None
        if shipping_options:
            shipping = (shipping_options[0].get("shippingCost") or {}).get("value")
        original = ((record.get("marketingPrice") or {}).get("originalPrice") or {}).get("value")

        url = record.get("itemWebUrl") or ""
        price = self.build_price(
            amount.get("value"),
            product_url=url,
            fetched_at=fetched_at,
            currency=amount.get("currency"),
            shipping=shipping,
            original_price=original,
            metadata={
                "item_id": record.get("itemId"),
                "condition": record.get("condition"),
                "seller": (record.get("seller") or {}).get("username"),
            },
        )
        if price is None:
            return None

        categories = record.get("categories") or []
        return NormalizedProduct(
            name=title,
            prices=[price],
            source_provider=self.source,
            fetched_at=fetched_at,
            barcode=self.extract_barcode(record),
            image=(record.get("image") or {}).get("imageUrl"),
            product_url=url or None,
            category=categories[0].get("categoryName") if categories else None,
        )


def build_ebay(settings, **client_kwargs):
    """Return (store, client, normalizer) for eBay."""
    client = EbayClient(EbayCredentials.from_settings(settings), **client_kwargs)
    return STORE, client, EbayNormalizer(STORE, client.provider, settings.DEFAULT_LOCALE)
