"""Concrete price providers.

Each ``build_*`` function takes ``Settings`` and returns the
(store, client, normalizer) triple a ``RetryingAdapter`` is built from.
"""

from .amazon import build_amazon
from .bestbuy import build_bestbuy
from .ebay import build_ebay
from .serpapi import build_serpapi

PROVIDER_BUILDERS = (
    build_serpapi,
    build_amazon,
    build_bestbuy,
    build_ebay,
)

__all__ = [
    "PROVIDER_BUILDERS",
    "build_amazon",
    "build_bestbuy",
    "build_ebay",
    "build_serpapi",
]
