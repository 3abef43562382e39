"""
Anti-Bot Classifier
识别反爬挑战页 (重定向到验证域名、异常请求提示、验证码、要求开启 JavaScript)
"""
import re
from typing import Any, Optional


CHALLENGE_HOSTS = ("sec.douban.com",)

BLOCK_PAGE_MARKERS = (
    re.compile(r"sec\.douban\.com"),
    re.compile(r"检测到有异常请求|异常请求"),
    re.compile(r"请开启JavaScript|captcha|验证码"),
)


def _final_url(response: Optional[Any]) -> str:
    if response is None:
        return ""
    return str(getattr(response, "url", "") or "")


def looks_like_challenge(response: Optional[Any], body: Optional[str]) -> bool:
    """响应是否为反爬挑战页；纯函数，无网络与状态"""
    final_url = _final_url(response)
    if any(host in final_url for host in CHALLENGE_HOSTS):
        return True
    text = body or ""
    return any(marker.search(text) for marker in BLOCK_PAGE_MARKERS)
