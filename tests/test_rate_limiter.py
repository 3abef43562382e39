"""
Tests for the token-bucket rate limiter
"""
import asyncio

import pytest

from scrapers.rate_limiter import RateLimiter, TokenBucket


class FakeClock:
    """手动推进的时钟"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestTokenBucket:
    """令牌桶测试"""

    def test_refill_is_linear_and_clamped(self):
        bucket = TokenBucket(capacity=20, rate=10, tokens=0, last_refill=0.0)

        bucket.refill(0.5)
        assert bucket.tokens == pytest.approx(5)

        bucket.refill(10.0)
        assert bucket.tokens == 20

    def test_take_never_goes_negative(self):
        bucket = TokenBucket(capacity=1, rate=0, tokens=1, last_refill=0.0)
        assert bucket.take() is True
        assert bucket.take() is False
        assert bucket.tokens == 0


class TestRateLimiter:
    """限流器测试"""

    def test_burst_is_bounded_by_capacity(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=10, capacity=20, clock=clock)

        granted = sum(1 for _ in range(25) if limiter.try_acquire("douban"))
        assert granted == 20
        assert limiter.tokens("douban") < 1

    def test_refill_after_waiting(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=10, capacity=20, clock=clock)
        for _ in range(20):
            limiter.try_acquire("douban")

        clock.advance(0.5)
        assert limiter.tokens("douban") == pytest.approx(5)

        clock.advance(100)
        assert limiter.tokens("douban") == 20

    def test_sources_are_independent(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=0, capacity=1, clock=clock)

        assert limiter.try_acquire("douban") is True
        assert limiter.try_acquire("douban") is False
        assert limiter.try_acquire("imdb") is True

    def test_configure_and_reset(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=10, capacity=20, clock=clock)

        limiter.configure("bangumi", rate=1, capacity=2)
        assert limiter.tokens("bangumi") == 2

        limiter.try_acquire("bangumi")
        limiter.reset("bangumi")
        # 重置后按默认参数重新创建
        assert limiter.tokens("bangumi") == 20

    @pytest.mark.asyncio
    async def test_acquire_times_out_when_empty(self):
        limiter = RateLimiter(rate=0, capacity=1, poll_interval=0.01)
        assert await limiter.acquire("douban", max_wait_ms=50) is True
        assert await limiter.acquire("douban", max_wait_ms=50) is False

    @pytest.mark.asyncio
    async def test_acquire_waits_for_refill(self):
        limiter = RateLimiter(rate=50, capacity=1, poll_interval=0.01)
        assert await limiter.acquire("douban", max_wait_ms=10) is True
        # 50 个/秒，约 20ms 后可再取一个
        assert await limiter.acquire("douban", max_wait_ms=500) is True

    @pytest.mark.asyncio
    async def test_concurrent_acquire_respects_capacity(self):
        limiter = RateLimiter(rate=0, capacity=5, poll_interval=0.01)
        results = await asyncio.gather(
            *(limiter.acquire("douban", max_wait_ms=30) for _ in range(8))
        )
        assert results.count(True) == 5
        assert results.count(False) == 3
