"""Amazon Product Advertising API 5.0 provider.

SearchItems requests are signed with AWS Signature Version 4.
Documentation: https://webservices.amazon.com/paapi5/documentation/
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx

from pricelens.core.exceptions import AuthError, RateLimitError, ValidationError
from pricelens.integrations.base import (
    NormalizedPrice,
    NormalizedProduct,
    ResponseNormalizer,
    SearchOptions,
    StoreInfo,
)
from pricelens.integrations.http_client import HTTPProviderClient, RequestSpec, parse_retry_after
from pricelens.integrations.utils.signing import SigV4Credentials, sign_request

STORE = StoreInfo(
    id="amazon",
    name="Amazon",
    slug="amazon",
    base_url="https://www.amazon.com",
    integration_type="affiliate",
)

HOST = "webservices.amazon.com"
REGION = "us-east-1"
SERVICE = "ProductAdvertisingAPI"
SEARCH_PATH = "/paapi5/searchitems"
SEARCH_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.SearchItems"

RESOURCES = [
    "ItemInfo.Title",
    "ItemInfo.ByLineInfo",
    "ItemInfo.ExternalIds",
    "ItemInfo.Classifications",
    "Images.Primary.Medium",
    "Offers.Listings.Price",
    "Offers.Listings.Availability.Type",
    "Offers.Listings.DeliveryInfo.IsFreeShippingEligible",
    "Offers.Listings.MerchantInfo",
    "Offers.Summaries.LowestPrice",
]

IN_STOCK_AVAILABILITY = {"NOW", "BACKORDER"}

AUTH_ERROR_CODES = {
    "InvalidSignature",
    "UnrecognizedClient",
    "InvalidPartnerTag",
    "IncompleteSignature",
    "AccessDenied",
    "AccessDeniedAwsUsers",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AmazonCredentials:
    access_key: str
    secret_key: str
    partner_tag: str
    marketplace: str = "www.amazon.com"
    search_index_map: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings) -> "AmazonCredentials":
        return cls(
            access_key=settings.AMAZON_ACCESS_KEY,
            secret_key=settings.AMAZON_SECRET_KEY,
            partner_tag=settings.AMAZON_PARTNER_TAG,
            search_index_map=dict(settings.AMAZON_SEARCH_INDEX_MAP),
        )


class AmazonClient(HTTPProviderClient):
    """PA-API SearchItems client. Barcode lookups search by keyword."""

    provider = "amazon"
    MAX_LIMIT = 10
    DEFAULT_LIMIT = 10

    def __init__(
        self,
        credentials: AmazonCredentials,
        *,
        clock: Callable[[], datetime] = _utcnow,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.credentials = credentials
        self._clock = clock
        self._signing = SigV4Credentials(
            access_key=credentials.access_key,
            secret_key=credentials.secret_key,
            region=REGION,
            service=SERVICE,
        )

    def is_configured(self) -> bool:
        c = self.credentials
        return bool(c.access_key and c.secret_key and c.partner_tag)

    def search_index(self, category: Optional[str]) -> str:
        if not category:
            return "All"
        return self.credentials.search_index_map.get(category.lower(), "All")

    def build_search_request(self, query: str, limit: int, options: SearchOptions) -> RequestSpec:
        body = {
            "Keywords": query,
            "PartnerTag": self.credentials.partner_tag,
            "PartnerType": "Associates",
            "Marketplace": self.credentials.marketplace,
            "ItemCount": limit,
            "SearchIndex": self.search_index(options.category),
            "Resources": RESOURCES,
        }
        payload = json.dumps(body, separators=(",", ":")).encode("utf-8")

        headers = sign_request(
            "POST",
            SEARCH_PATH,
            {
                "content-encoding": "amz-1.0",
                "content-type": "application/json; charset=utf-8",
                "host": HOST,
                "x-amz-target": SEARCH_TARGET,
            },
            payload,
            credentials=self._signing,
            timestamp=self._clock(),
        )
        return RequestSpec(
            method="POST",
            url=f"https://{HOST}{SEARCH_PATH}",
            headers=headers,
            content=payload,
        )

    def raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            error = _first_error(response.json())
        except ValueError:
            error = None

        # PA-API reports auth and throttling codes with a 4xx, and an empty search as 404 NoResults
        if error:
            code, message = error
            if code == "NoResults":
                return
            if code in AUTH_ERROR_CODES:
                raise AuthError(self.provider, f"HTTP {response.status_code} {code}: {message}")
            if code == "TooManyRequests":
                raise RateLimitError(
                    self.provider,
                    message,
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                )
        super().raise_for_status(response)

    def check_payload(self, payload: Any) -> None:
        if not isinstance(payload, dict) or "SearchResult" in payload:
            return
        error = _first_error(payload)
        if not error:
            return

        code, message = error
        if code == "NoResults":
            return
        if code in AUTH_ERROR_CODES:
            raise AuthError(self.provider, message)
        if code == "TooManyRequests":
            raise RateLimitError(self.provider, message)
        raise ValidationError(self.provider, f"{code}: {message}")


def _first_error(payload: Any) -> Optional[Tuple[str, str]]:
    """Code and message of the first entry in a PA-API ``Errors`` list."""
    if not isinstance(payload, dict):
        return None
    errors = payload.get("Errors")
    if not isinstance(errors, list) or not errors or not isinstance(errors[0], dict):
        return None
    code = errors[0].get("Code", "")
    return code, errors[0].get("Message", code)


class AmazonNormalizer(ResponseNormalizer):
    """Maps SearchItems results. Offer listings win over summary prices."""

    def iter_records(self, payload: Any) -> Iterable[Any]:
        if not isinstance(payload, dict):
            raise ValidationError(self.source, "expected a JSON object")
        items = (payload.get("SearchResult") or {}).get("Items") or []
        if not isinstance(items, list):
            raise ValidationError(self.source, "SearchResult.Items is not a list")
        return items

    def normalize_record(self, record: Any, fetched_at: datetime) -> Optional[NormalizedProduct]:
        info = record.get("ItemInfo") or {}
        title = (info.get("Title") or {}).get("DisplayValue")
        if not title:
            return None

        url = record.get("DetailPageURL") or ""
        prices = self._listing_prices(record, url, fetched_at)
        if not prices:
            prices = self._summary_prices(record, url, fetched_at)
        if not prices:
            return None

        brand = ((info.get("ByLineInfo") or {}).get("Brand") or {}).get("DisplayValue")
        category = ((info.get("Classifications") or {}).get("ProductGroup") or {}).get("DisplayValue")
        image = (((record.get("Images") or {}).get("Primary") or {}).get("Medium") or {}).get("URL")

        return NormalizedProduct(
            name=title,
            prices=prices,
            source_provider=self.source,
            fetched_at=fetched_at,
            barcode=self._external_id(info),
            brand=brand,
            image=image,
            product_url=url or None,
            category=category,
        )

    def _listing_prices(self, record: Dict[str, Any], url: str, fetched_at: datetime) -> List[NormalizedPrice]:
        listings = (record.get("Offers") or {}).get("Listings") or []
        prices = []
        for listing in listings:
            amount = listing.get("Price") or {}
            availability = ((listing.get("Availability") or {}).get("Type") or "NOW").upper()
            price = self.build_price(
                amount.get("Amount"),
                product_url=url,
                fetched_at=fetched_at,
                currency=amount.get("Currency"),
                in_stock=availability in IN_STOCK_AVAILABILITY,
                original_price=(amount.get("SavingBasis") or {}).get("Amount"),
                metadata={
                    "asin": record.get("ASIN"),
                    "merchant": (listing.get("MerchantInfo") or {}).get("Name"),
                    "free_shipping": (listing.get("DeliveryInfo") or {}).get("IsFreeShippingEligible"),
                },
            )
            if price is not None:
                prices.append(price)
        return prices

    def _summary_prices(self, record: Dict[str, Any], url: str, fetched_at: datetime) -> List[NormalizedPrice]:
        summaries = (record.get("Offers") or {}).get("Summaries") or []
        prices = []
        for summary in summaries:
            lowest = summary.get("LowestPrice") or {}
            price = self.build_price(
                lowest.get("Amount"),
                product_url=url,
                fetched_at=fetched_at,
                currency=lowest.get("Currency"),
                metadata={"asin": record.get("ASIN"), "summary": True},
            )
            if price is not None:
                prices.append(price)
        return prices

    @staticmethod
    def _external_id(info: Dict[str, Any]) -> Optional[str]:
        ids = info.get("ExternalIds") or {}
        for key in ("UPCs", "EANs"):
            values = (ids.get(key) or {}).get("DisplayValues") or []
            if values:
                return ResponseNormalizer.extract_barcode({"barcode": values[0]})
        return None


def build_amazon(settings, **client_kwargs):
    """Return (store, client, normalizer) for Amazon."""
    client = AmazonClient(AmazonCredentials.from_settings(settings), **client_kwargs)
    return STORE, client, AmazonNormalizer(STORE, client.provider, settings.DEFAULT_LOCALE)
