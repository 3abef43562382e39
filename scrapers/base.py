"""
Base Scraper
所有来源适配器的抽象基类

一个来源的生成流程被拆成四个阶段，由编排层依次调用：
prepare_headers (warmup) -> fetch_page -> extract -> enrich。
每个阶段通过返回值表达失败，不向阶段边界外抛出异常。
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

import httpx

from config import Settings, get_settings
from models import CanonicalRecord, SearchHit, SourceType, StageResult

from .fetcher import BoundedFetcher, FetchOutcome
from .rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


class BaseScraper(ABC):
    """
    来源适配器抽象基类
    所有具体适配器都需要继承此类并实现抽象方法
    """

    def __init__(
        self,
        limiter: RateLimiter,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.limiter = limiter
        self._client = client
        self._owns_client = client is None

    @property
    @abstractmethod
    def source_type(self) -> SourceType:
        """返回数据源类型"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """返回适配器名称"""
        pass

    @property
    def client(self) -> httpx.AsyncClient:
        """获取或创建 HTTP 客户端"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    def fetcher(self, source_key: Optional[str] = None) -> BoundedFetcher:
        return BoundedFetcher(self.client, self.limiter, source_key or self.source_type.value)

    @abstractmethod
    async def search(self, query: str) -> StageResult[List[SearchHit]]:
        """
        搜索接口

        Args:
            query: 搜索关键词

        Returns:
            搜索结果列表，或错误信息
        """
        pass

    async def prepare_headers(self) -> Dict[str, str]:
        """warmup 阶段：构造请求头 (需要时获取会话 Cookie)，不会失败"""
        return {}

    @abstractmethod
    async def fetch_page(self, sid: str, headers: Dict[str, str]) -> StageResult[FetchOutcome]:
        """抓取阶段"""
        pass

    @abstractmethod
    def extract(self, sid: str, outcome: FetchOutcome) -> StageResult[CanonicalRecord]:
        """解析阶段"""
        pass

    async def enrich(self, record: CanonicalRecord, headers: Dict[str, str]) -> CanonicalRecord:
        """补充阶段：尽力而为，失败时原样返回"""
        return record

    def is_configured(self) -> bool:
        """
        检查是否已正确配置
        子类可以覆盖此方法来检查必要的API密钥等
        """
        return True

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()

    async def close(self):
        """清理资源 (只关闭自己创建的客户端)"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _log_search(self, query: str, count: int):
        """记录搜索日志"""
        logger.info(f"[{self.name}] Search '{query}' returned {count} results")

    def _log_error(self, message: str, error: Exception):
        """记录错误日志"""
        logger.error(f"[{self.name}] {message}: {error}")
