"""Application configuration via Pydantic Settings."""

from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Presentation
    DEFAULT_LOCALE: str = "en_US"
    DEFAULT_CURRENCY: str = "USD"

    # Adapter behaviour
    ADAPTER_MAX_RETRIES: int = 3
    ADAPTER_INITIAL_DELAY_SECONDS: float = 1.0
    HTTP_TIMEOUT_SECONDS: float = 30.0
    FANOUT_CONCURRENCY: int = 5
    # Host -> requests per minute, merged over the built-in provider limits
    PROVIDER_RATE_LIMITS_RPM: Dict[str, int] = {}

    # SerpAPI (Google Shopping)
    SERPAPI_API_KEY: str = ""
    SERPAPI_COUNTRY: str = "us"

    # Amazon PA-API
    AMAZON_ACCESS_KEY: str = ""
    AMAZON_SECRET_KEY: str = ""
    AMAZON_PARTNER_TAG: str = ""

    # Best Buy Products API
    BESTBUY_API_KEY: str = ""

    # eBay Browse API
    EBAY_CLIENT_ID: str = ""
    EBAY_CLIENT_SECRET: str = ""
    EBAY_MARKETPLACE_ID: str = "EBAY_US"

    # Category slug -> provider taxonomy. Overridable with a JSON object in the env.
    AMAZON_SEARCH_INDEX_MAP: Dict[str, str] = {
        "electronics": "Electronics",
        "videogames": "VideoGames",
        "kitchen": "HomeAndKitchen",
        "office": "OfficeProducts",
        "tools": "ToolsAndHomeImprovement",
        "grocery": "GroceryAndGourmetFood",
        "toys": "ToysAndGames",
        "beauty": "Beauty",
    }
    BESTBUY_CATEGORY_MAP: Dict[str, str] = {
        "electronics": "abcat0500000",
        "videogames": "abcat0700000",
        "kitchen": "abcat0912000",
        "office": "abcat0502000",
        "tools": "abcat0913000",
    }

    # Raw provider response cache
    REDIS_URL: str = "redis://localhost:6379/0"
    SEARCH_CACHE_ENABLED: bool = False
    SEARCH_CACHE_TTL_SECONDS: int = 60 * 60 * 24


settings = Settings()
