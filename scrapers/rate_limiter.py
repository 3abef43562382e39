"""
Rate Limiter
令牌桶限流器，每个站点独立计数
"""
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import asyncio
import logging
import threading
import time


logger = logging.getLogger(__name__)


@dataclass
class TokenBucket:
    """单个站点的令牌桶，tokens 始终位于 [0, capacity]"""
    capacity: float
    rate: float
    tokens: float
    last_refill: float

    def refill(self, now: float) -> None:
        """按经过的时间补充令牌: elapsed * rate，上限为容量"""
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.last_refill = now

    def take(self) -> bool:
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


class RateLimiter:
    """
    令牌桶限流器

    由调用方显式创建并注入到各抓取器中；多个并发请求只共享这里的桶状态。
    补充 + 取令牌是一个临界区，用互斥锁保护，锁不会跨越 await。
    """

    def __init__(
        self,
        rate: float = 10.0,
        capacity: float = 20.0,
        poll_interval: float = 0.1,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            rate: 每秒补充的令牌数
            capacity: 令牌桶容量
            poll_interval: 等待令牌时的轮询间隔 (秒)
            clock: 单调时钟，测试时可替换
        """
        self.default_rate = rate
        self.default_capacity = capacity
        self.poll_interval = poll_interval
        self._clock = clock or time.monotonic
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def _get_bucket(self, site: str) -> TokenBucket:
        bucket = self._buckets.get(site)
        if bucket is None:
            bucket = TokenBucket(
                capacity=self.default_capacity,
                rate=self.default_rate,
                tokens=self.default_capacity,
                last_refill=self._clock(),
            )
            self._buckets[site] = bucket
        return bucket

    def configure(self, site: str, rate: float, capacity: float) -> None:
        """为指定站点安装独立的速率/容量"""
        with self._lock:
            self._buckets[site] = TokenBucket(
                capacity=capacity,
                rate=rate,
                tokens=capacity,
                last_refill=self._clock(),
            )

    def try_acquire(self, site: str) -> bool:
        """尝试获取一个令牌 (不等待)"""
        with self._lock:
            bucket = self._get_bucket(site)
            bucket.refill(self._clock())
            return bucket.take()

    async def acquire(self, site: str, max_wait_ms: int = 5000) -> bool:
        """
        等待并获取令牌

        Args:
            site: 站点名称
            max_wait_ms: 最大等待时间 (毫秒)

        Returns:
            是否成功获取令牌；超时返回 False，由调用方决定继续还是放弃
        """
        deadline = self._clock() + max_wait_ms / 1000
        while True:
            if self.try_acquire(site):
                return True
            if self._clock() >= deadline:
                logger.debug(f"[RateLimiter] No token for '{site}' within {max_wait_ms}ms")
                return False
            await asyncio.sleep(self.poll_interval)

    def tokens(self, site: str) -> float:
        """当前令牌数 (会先补充)"""
        with self._lock:
            bucket = self._get_bucket(site)
            bucket.refill(self._clock())
            return bucket.tokens

    def reset(self, site: str) -> None:
        """重置指定站点的限制"""
        with self._lock:
            self._buckets.pop(site, None)
