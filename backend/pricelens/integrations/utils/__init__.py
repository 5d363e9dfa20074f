"""Integration utilities for normalization, signing, rate limiting and retry."""

from .normalizer import (
    PriceNormalizer,
    barcode_match_key,
    normalize_barcode,
    normalize_name,
    normalize_url,
    slugify_store,
)
from .rate_limiter import DomainRateLimiter, TokenBucket
from .retry import RetryPolicy, build_retrying
from .signing import SigV4Credentials, sign_request


__all__ = [
    # Normalization
    "PriceNormalizer",
    "barcode_match_key",
    "normalize_barcode",
    "normalize_name",
    "normalize_url",
    "slugify_store",
    # Rate limiting
    "DomainRateLimiter",
    "TokenBucket",
    # Retry
    "RetryPolicy",
    "build_retrying",
    # Signing
    "SigV4Credentials",
    "sign_request",
]
