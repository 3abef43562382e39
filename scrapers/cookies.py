"""
Cookie Warmup
未配置 Cookie 时，先请求一次首页以获取会话 Cookie
"""
from typing import Dict, Optional
import logging
import re

import httpx

from .fetcher import BoundedFetcher


logger = logging.getLogger(__name__)


def normalize_cookie(cookie: Optional[str]) -> str:
    if not cookie:
        return ""
    return re.sub(r";+\s*$", "", str(cookie).strip())


def merge_cookies(*cookies: Optional[str]) -> str:
    return "; ".join(c for c in (normalize_cookie(x) for x in cookies) if c)


def has_cookie(cookie: Optional[str], name: str) -> bool:
    return re.search(rf"(?:^|;\s*){re.escape(name)}=", cookie or "") is not None


def extract_cookie(response: httpx.Response, name: str) -> str:
    """从所有 Set-Cookie 头中找出指定 Cookie，返回 'name=value' 或空串"""
    pattern = re.compile(rf"(?:^|;\s*){re.escape(name)}=([^;]+)")
    for raw in response.headers.get_list("set-cookie"):
        match = pattern.search(raw)
        if match:
            return f"{name}={match.group(1)}"
    return ""


async def warmup_session_cookie(
    fetcher: BoundedFetcher,
    url: str,
    headers: Dict[str, str],
    timeout_ms: int,
    cookie_name: str = "bid",
    max_wait_ms: int = 2000,
) -> str:
    """
    预热请求

    禁止重定向请求首页并读取 Set-Cookie；任何失败 (网络、超时、无该 Cookie) 都返回空串。
    """
    try:
        await fetcher.throttle(max_wait_ms)
        response, _ = await fetcher.fetch_text(
            url,
            headers=headers,
            timeout_ms=timeout_ms,
            follow_redirects=False,
        )
    except Exception as e:
        logger.debug(f"[{fetcher.source_key}] Cookie warmup failed: {e!r}")
        return ""

    cookie = extract_cookie(response, cookie_name)
    if not cookie:
        logger.debug(f"[{fetcher.source_key}] Warmup response carried no '{cookie_name}' cookie")
    return cookie
