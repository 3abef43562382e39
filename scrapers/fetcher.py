"""
Bounded Fetcher
带超时、限流与多地址回退的页面抓取
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple
import asyncio
import logging

import httpx

from .antibot import looks_like_challenge
from .rate_limiter import RateLimiter


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000

# 单个地址可能出现的网络层异常 (InvalidURL 不继承 HTTPError)
FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, asyncio.TimeoutError)


@dataclass
class FetchOutcome:
    """多地址抓取的结果"""
    body: str
    response: Optional[httpx.Response]
    blocked: bool
    url: str


class BoundedFetcher:
    """
    页面抓取器

    每次请求都有独立的超时 (超时即放弃该请求)，每个候选地址请求前先向限流器申请令牌。
    """

    def __init__(self, client: httpx.AsyncClient, limiter: RateLimiter, source_key: str):
        self.client = client
        self.limiter = limiter
        self.source_key = source_key

    async def throttle(self, max_wait_ms: int, source_key: Optional[str] = None) -> bool:
        key = source_key or self.source_key
        acquired = await self.limiter.acquire(key, max_wait_ms)
        if not acquired:
            logger.debug(f"[{key}] Proceeding without a rate-limit slot")
        return acquired

    async def fetch_text(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        follow_redirects: bool = True,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[httpx.Response, str]:
        """
        单次请求

        Raises:
            FETCH_ERRORS: 网络错误、非法地址或超时
        """
        timeout = timeout_ms / 1000
        response = await asyncio.wait_for(
            self.client.get(
                url,
                params=params,
                headers=headers,
                follow_redirects=follow_redirects,
                timeout=timeout,
            ),
            timeout=timeout,
        )
        return response, response.text

    async def fetch_first_clean(
        self,
        urls: Sequence[str],
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_wait_ms: int = 3000,
    ) -> FetchOutcome:
        """
        依次尝试候选地址，返回第一个非反爬页面

        全部失败时返回最后一次观察到的响应/正文，blocked 由最后一次结果判定；
        单个地址的网络异常只会让它跳到下一个地址。
        """
        last_response: Optional[httpx.Response] = None
        last_body = ""

        for url in urls:
            try:
                await self.throttle(max_wait_ms)
                response, body = await self.fetch_text(url, headers=headers, timeout_ms=timeout_ms)
            except FETCH_ERRORS as e:
                logger.warning(f"[{self.source_key}] Fetch failed for {url}: {e!r}")
                last_response, last_body = None, ""
                continue

            last_response, last_body = response, body
            if not looks_like_challenge(response, body):
                return FetchOutcome(body=body, response=response, blocked=False, url=url)
            logger.info(f"[{self.source_key}] Anti-bot challenge at {url}, trying next candidate")

        blocked = bool(last_body) and looks_like_challenge(last_response, last_body)
        return FetchOutcome(
            body=last_body,
            response=last_response,
            blocked=blocked,
            url=urls[-1] if urls else "",
        )
