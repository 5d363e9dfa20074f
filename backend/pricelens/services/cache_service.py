"""Redis caching service for raw provider responses.

Provider payloads are cached verbatim and normalized again on every read,
so a cached entry never pins a stale ``fetched_at`` or locale format.
"""

import hashlib
import json
from typing import Optional

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from pricelens.config import settings

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "provider"


class CacheService:
    """Async Redis cache service.

    Provides simple key-value caching with TTL, pattern matching,
    and graceful error handling. A Redis failure degrades to a cache
    miss, never to a failed search.
    """

    def __init__(self, redis_url: str):
        """Initialize cache service.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)

        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Get a value from cache.

        Returns:
            Cached value as string, or None if not found or error
        """
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e))
            return None

        self.logger.debug("cache_hit" if value else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Set a value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache (string)
            ttl: Time-to-live in seconds

        Returns:
            True if successful, False on error
        """
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e))
            return False

        self.logger.debug("cache_set", key=key, ttl=ttl, value_length=len(value))
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern.

        Args:
            pattern: Redis pattern (e.g., "provider:serpapi:*")

        Returns:
            Number of keys deleted, 0 on error
        """
        try:
            redis = await self._get_redis()

            keys = []
            async for key in redis.scan_iter(match=pattern, count=100):
                keys.append(key)

            deleted = await redis.delete(*keys) if keys else 0
        except RedisError as e:
            self.logger.error("cache_pattern_delete_failed", pattern=pattern, error=str(e))
            return 0

        self.logger.info("cache_pattern_delete", pattern=pattern, keys_deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            redis = await self._get_redis()
            await redis.ping()
        except (RedisError, OSError) as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False
        return True

    async def close(self) -> None:
        """Close Redis connection. Called on application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


# Global cache instance
_cache_instance: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the global cache service instance."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = CacheService(settings.REDIS_URL)
        logger.info("cache_service_initialized", redis_url=settings.REDIS_URL)

    return _cache_instance


def cache_key_for_provider(
    provider: str,
    operation: str,
    term: str,
    limit: int,
    category: Optional[str] = None,
) -> str:
    """Generate the cache key for one provider request.

    The request parts are hashed so keys stay short and never carry raw
    user input.

    Returns:
        Key of the form "provider:<provider>:<sha256>"
    """
    parts = {
        "operation": operation,
        "term": " ".join(term.lower().split()),
        "limit": limit,
        "category": (category or "").lower(),
    }
    digest = hashlib.sha256(json.dumps(parts, sort_keys=True).encode("utf-8")).hexdigest()
    return f"{CACHE_KEY_PREFIX}:{provider}:{digest}"


async def invalidate_provider_cache(cache: CacheService, provider: Optional[str] = None) -> int:
    """Drop cached responses for one provider, or for all of them.

    Returns:
        Number of cache keys deleted
    """
    pattern = f"{CACHE_KEY_PREFIX}:{provider or '*'}:*"
    deleted = await cache.delete_pattern(pattern)
    logger.info("provider_cache_invalidated", provider=provider, keys_deleted=deleted)
    return deleted
