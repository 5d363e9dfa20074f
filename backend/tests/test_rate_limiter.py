"""Tests for the per-host token bucket rate limiter."""

import pytest

from pricelens.integrations.utils.rate_limiter import DEFAULT_RPM, DomainRateLimiter, TokenBucket


class FakeTime:
    """Manual clock whose sleep advances the clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def fake_time():
    return FakeTime()


class TestTokenBucket:

    async def test_burst_then_wait(self, fake_time):
        bucket = TokenBucket(rate=2.0, capacity=3, clock=fake_time.clock, sleep=fake_time.sleep)

        for _ in range(3):
            assert await bucket.acquire() == 0.0
        waited = await bucket.acquire()

        assert waited == pytest.approx(0.5)
        assert fake_time.sleeps == [pytest.approx(0.5)]

    async def test_refills_over_time(self, fake_time):
        bucket = TokenBucket(rate=1.0, capacity=2, clock=fake_time.clock, sleep=fake_time.sleep)
        await bucket.acquire()
        await bucket.acquire()

        fake_time.now += 10
        assert await bucket.acquire() == 0.0
        assert bucket.tokens == pytest.approx(1.0)

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0, capacity=1)


class TestDomainRateLimiter:

    def test_known_and_default_limits(self):
        limiter = DomainRateLimiter()

        bestbuy = limiter.bucket("api.bestbuy.com")
        assert bestbuy.rate == 5.0
        assert bestbuy.capacity == 30.0
        assert limiter.current_rpm("shop.example.com") == pytest.approx(DEFAULT_RPM)

    def test_overrides_merge_over_defaults(self):
        limiter = DomainRateLimiter({"serpapi.com": 120, "api.example.com": 6})

        assert limiter.current_rpm("serpapi.com") == pytest.approx(120.0)
        assert limiter.current_rpm("api.example.com") == pytest.approx(6.0)
        assert limiter.current_rpm("api.ebay.com") == pytest.approx(60.0)

    def test_bucket_per_host(self):
        limiter = DomainRateLimiter()

        assert limiter.bucket("serpapi.com") is limiter.bucket("serpapi.com")
        assert limiter.bucket("serpapi.com") is not limiter.bucket("api.ebay.com")

    async def test_hosts_throttled_independently(self, fake_time):
        limiter = DomainRateLimiter(
            {"slow.example.com": 6}, clock=fake_time.clock, sleep=fake_time.sleep
        )

        # capacity is max(2, 6 / 10) = 2
        await limiter.acquire("slow.example.com")
        await limiter.acquire("slow.example.com")
        assert await limiter.acquire("api.ebay.com") == 0.0
        assert await limiter.acquire("slow.example.com") == pytest.approx(10.0)

    def test_set_limit(self):
        limiter = DomainRateLimiter()
        limiter.set_limit("serpapi.com", 120)

        assert limiter.current_rpm("serpapi.com") == pytest.approx(120.0)
        assert limiter.bucket("serpapi.com").tokens == 12.0
