"""Per-host token buckets that pace outbound provider calls."""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Mapping, Optional

# Requests per minute for known provider hosts
PROVIDER_LIMITS_RPM: Dict[str, int] = {
    "serpapi.com": 60,
    "webservices.amazon.com": 60,  # PA-API: 1 req/sec
    "api.bestbuy.com": 300,  # 5 req/sec
    "api.ebay.com": 60,
}

DEFAULT_RPM = 30


class TokenBucket:
    """Token bucket that starts full and refills at ``rate`` tokens per second.

    ``acquire`` suspends only the calling coroutine while it waits.
    """

    def __init__(
        self,
        rate: float,
        capacity: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = capacity
        self.tokens = capacity
        self._clock = clock
        self._sleep = sleep
        self._last_refill = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self.tokens = min(self.capacity, self.tokens + (now - self._last_refill) * self.rate)
        self._last_refill = now

    async def acquire(self, tokens: float = 1.0) -> float:
        """Take ``tokens`` from the bucket.

        Returns:
            Seconds spent waiting for a refill
        """
        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return waited
                delay = (tokens - self.tokens) / self.rate
                waited += delay
                await self._sleep(delay)


class DomainRateLimiter:
    """One token bucket per provider host.

    A throttled provider never slows down calls to the others. Bucket
    capacity allows a burst of 10% of the per-minute limit (at least 2).

    Args:
        limits_rpm: Host -> requests per minute, merged over the defaults
        default_rpm: Limit for hosts not listed
    """

    def __init__(
        self,
        limits_rpm: Optional[Mapping[str, int]] = None,
        default_rpm: int = DEFAULT_RPM,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.limits_rpm = {**PROVIDER_LIMITS_RPM, **(limits_rpm or {})}
        self.default_rpm = default_rpm
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[str, TokenBucket] = {}

    def _new_bucket(self, rpm: int) -> TokenBucket:
        return TokenBucket(
            rate=rpm / 60.0,
            capacity=max(2.0, rpm / 10.0),
            clock=self._clock,
            sleep=self._sleep,
        )

    def bucket(self, host: str) -> TokenBucket:
        if host not in self._buckets:
            self._buckets[host] = self._new_bucket(self.limits_rpm.get(host, self.default_rpm))
        return self._buckets[host]

    async def acquire(self, host: str) -> float:
        """Wait for the host's bucket; returns seconds waited."""
        return await self.bucket(host).acquire()

    def set_limit(self, host: str, rpm: int) -> None:
        """Replace the limit for ``host`` with a fresh, full bucket."""
        self.limits_rpm[host] = rpm
        self._buckets[host] = self._new_bucket(rpm)

    def current_rpm(self, host: str) -> float:
        return self.bucket(host).rate * 60.0
