"""
Shared test helpers: fixture pages and a routed mock HTTP client
"""
from pathlib import Path
from typing import Callable, Dict, List, Union

import httpx
import pytest

from config import BangumiSettings, CacheSettings, DoubanSettings, Settings, TmdbSettings


FIXTURES = Path(__file__).parent / "fixtures"

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding="utf-8")


class RoutedTransport:
    """
    按 'host+path' 前缀分发请求的 MockTransport 处理器

    未登记的地址返回 404；每次请求都会记录到 calls 中。
    """

    def __init__(self, routes: Dict[str, Route]):
        self.routes = routes
        self.calls: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        target = f"{request.url.host}{request.url.path}"
        self.calls.append(target)
        # 最长前缀优先
        for prefix in sorted(self.routes, key=len, reverse=True):
            if target.startswith(prefix):
                route = self.routes[prefix]
                if callable(route):
                    return route(request)
                # 每次返回新的响应对象，同一路由可被多次请求
                return httpx.Response(route.status_code, headers=route.headers, content=route.content)
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def make_settings(**overrides) -> Settings:
    """测试用配置：默认带上 bid Cookie，跳过 warmup"""
    return Settings(
        douban=overrides.pop("douban", DoubanSettings(cookie="bid=test", timeout_ms=2000)),
        bangumi=overrides.pop("bangumi", BangumiSettings(timeout_ms=2000)),
        tmdb=overrides.pop("tmdb", TmdbSettings(api_key=None, timeout_ms=2000)),
        cache=overrides.pop("cache", CacheSettings(provider="memory", ttl=60)),
        **overrides,
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()
