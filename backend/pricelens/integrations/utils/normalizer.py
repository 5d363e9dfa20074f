"""Data normalization utilities for price parsing, formatting and identifiers."""

import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from babel.core import UnknownLocaleError
from babel.numbers import UnknownCurrencyError, format_currency
import structlog

logger = structlog.get_logger(__name__)


DEFAULT_CURRENCY = "USD"
DEFAULT_LOCALE = "en_US"

# GTIN-8, UPC-A (12), EAN-13 and GTIN-14
BARCODE_MIN_DIGITS = 8
BARCODE_MAX_DIGITS = 14

FREE_SHIPPING_MARKERS = ("free", "no shipping")
SHIPPING_COST_PATTERN = re.compile(r"^\s*[+]?\s*[$€£¥]|^\s*\d")
# Amount with an optional leading minus, before or after a currency code or symbol
PRICE_AMOUNT_PATTERN = re.compile(r"([-−])?\s*(?:[A-Za-z]{3}\s*)?[$€£¥]?\s*(\d+(?:\.\d+)?)")

TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "ref",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
}


class PriceNormalizer:
    """Price parsing and formatting utilities.

    Prices are always carried as ``Decimal``. Formatted strings are for
    display only and are never parsed back for comparisons.
    """

    @staticmethod
    def to_decimal(value: Any) -> Optional[Decimal]:
        """Coerce a provider price field (number or string) to Decimal.

        Returns:
            Decimal value, or None when the value is missing or unparseable
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, Decimal):
            return value
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        if isinstance(value, str):
            return PriceNormalizer.clean_price_string(value)
        return None

    @staticmethod
    def clean_price_string(raw: str) -> Optional[Decimal]:
        """Parse a price string and extract numeric value.

        Handles formats like "$1,234.56", "1234.56", "USD 12.99". A leading
        minus is kept ("-$5.00" is -5.00) so callers can reject it.

        Args:
            raw: Raw price string

        Returns:
            Decimal price value, or None if parsing fails
        """
        if not raw:
            return None

        cleaned = raw.replace(",", "").strip()
        match = PRICE_AMOUNT_PATTERN.search(cleaned)
        if not match:
            return None

        sign, digits = match.groups()
        try:
            value = Decimal(digits)
        except InvalidOperation:
            return None
        return -value if sign else value

    @staticmethod
    def parse_shipping(raw: Any) -> Optional[Decimal]:
        """Parse a shipping field into a cost.

        Numbers are taken as-is. Free-text such as "Free delivery" maps to
        zero and "$5.99 delivery" to 5.99.

        Returns:
            Shipping cost, or None when the text carries no cost
        """
        if raw is None:
            return None
        if not isinstance(raw, str):
            return PriceNormalizer.to_decimal(raw)

        lowered = raw.strip().lower()
        if any(lowered.startswith(marker) for marker in FREE_SHIPPING_MARKERS):
            return Decimal("0")
        # "Delivery by Oct 21" carries a date, not a cost
        if not SHIPPING_COST_PATTERN.search(lowered):
            return None
        return PriceNormalizer.clean_price_string(lowered)

    @staticmethod
    def format_price(
        amount: Decimal,
        currency: str = DEFAULT_CURRENCY,
        locale: Optional[str] = None,
    ) -> str:
        """Format an amount for display using locale conventions.

        Falls back to "<amount> <currency>" for currencies or locales Babel
        does not know.
        """
        try:
            return format_currency(amount, currency, locale=locale or DEFAULT_LOCALE)
        except (UnknownCurrencyError, UnknownLocaleError, ValueError):
            logger.debug("price_format_fallback", currency=currency, locale=locale)
            return f"{amount:.2f} {currency}"

    @staticmethod
    def format_delta(
        delta: Decimal,
        currency: str = DEFAULT_CURRENCY,
        locale: Optional[str] = None,
    ) -> str:
        """Format a signed price difference, e.g. "+$1.01" or "-$0.50"."""
        sign = "-" if delta < 0 else "+"
        return sign + PriceNormalizer.format_price(abs(delta), currency, locale)


def normalize_barcode(code: Optional[str]) -> Optional[str]:
    """Strip a barcode down to digits and check its length.

    Returns:
        Digit string of 8 to 14 characters, or None when invalid
    """
    if not code:
        return None
    digits = re.sub(r"\D", "", str(code))
    if BARCODE_MIN_DIGITS <= len(digits) <= BARCODE_MAX_DIGITS:
        return digits
    return None


def barcode_match_key(code: Optional[str]) -> Optional[str]:
    """Barcode key that treats UPC-A, EAN-13 and GTIN-14 forms as equal."""
    digits = normalize_barcode(code)
    if digits is None:
        return None
    return digits.lstrip("0") or "0"


def normalize_name(name: Optional[str]) -> str:
    """Lowercase, strip accents and punctuation, collapse whitespace."""
    if not name:
        return ""
    text = unicodedata.normalize("NFKD", name)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return " ".join(text.split())


def slugify_store(name: str) -> str:
    """Turn a seller display name into a stable store id ("Best Buy" -> "best-buy")."""
    slug = re.sub(r"[^a-z0-9]+", "-", normalize_name(name.replace("&", " and ")))
    return slug.strip("-") or "unknown-store"


def normalize_url(url: str) -> str:
    """Normalize a URL by removing tracking parameters.

    Args:
        url: URL to normalize

    Returns:
        Normalized URL
    """
    if not url:
        return url

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)

    filtered_params = {k: v for k, v in query_params.items() if k not in TRACKING_PARAMS}
    new_query = urlencode(filtered_params, doseq=True)

    return urlunparse(
        (parsed.scheme, parsed.netloc, parsed.path, parsed.params, new_query, "")
    )
