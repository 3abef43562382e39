"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class DoubanSettings(BaseSettings):
    """豆瓣抓取配置"""
    cookie: Optional[str] = Field(default=None, description="预置 Cookie (可选)")
    timeout_ms: int = Field(default=10_000, description="请求超时时间(毫秒)")
    warmup_timeout_ms: Optional[int] = Field(default=None, description="warmup 请求超时(毫秒)")
    user_agent: Optional[str] = Field(default=None, description="User-Agent 覆盖")
    accept_language: Optional[str] = Field(default=None, description="Accept-Language 覆盖")
    include_awards: bool = Field(default=True, description="是否抓取获奖信息")
    include_imdb: bool = Field(default=True, description="是否抓取 IMDb 评分")

    class Config:
        env_prefix = "DOUBAN_"

    @property
    def effective_warmup_timeout_ms(self) -> int:
        if self.warmup_timeout_ms:
            return self.warmup_timeout_ms
        return min(self.timeout_ms, 4_000)


class BangumiSettings(BaseSettings):
    """Bangumi 配置"""
    timeout_ms: int = Field(default=10_000, description="请求超时时间(毫秒)")
    include_characters: bool = Field(default=True, description="是否抓取角色/声优列表")

    class Config:
        env_prefix = "BANGUMI_"


class TmdbSettings(BaseSettings):
    """TMDB API 配置"""
    api_key: Optional[str] = Field(default=None, description="TMDB API Key")
    timeout_ms: int = Field(default=10_000, description="请求超时时间(毫秒)")
    language: str = Field(default="zh-CN", description="返回语言")

    class Config:
        env_prefix = "TMDB_"


class LimiterSettings(BaseSettings):
    """令牌桶限流配置"""
    rate: float = Field(default=10.0, description="每秒补充的令牌数")
    capacity: float = Field(default=20.0, description="令牌桶容量")
    poll_interval_ms: int = Field(default=100, description="等待令牌时的轮询间隔(毫秒)")

    class Config:
        env_prefix = "LIMITER_"


class CacheSettings(BaseSettings):
    """缓存配置"""
    provider: str = Field(default="memory", description="缓存后端: memory, disk")
    ttl: int = Field(default=86400 * 2, description="缓存过期时间(秒), 0 = 不缓存")
    max_size: int = Field(default=1000, description="内存缓存最大条目数")
    cache_dir: str = Field(default="./data/cache", description="磁盘缓存目录")

    class Config:
        env_prefix = "CACHE_"


class ServiceSettings(BaseSettings):
    """服务层配置"""
    apikey: Optional[str] = Field(default=None, description="API 访问密钥 (可选)")
    disable_search: bool = Field(default=False, description="是否禁用搜索")
    author: str = Field(default="YunFeng", description="署名")

    class Config:
        env_prefix = "SERVICE_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    douban: DoubanSettings = Field(default_factory=DoubanSettings)
    bangumi: BangumiSettings = Field(default_factory=BangumiSettings)
    tmdb: TmdbSettings = Field(default_factory=TmdbSettings)
    limiter: LimiterSettings = Field(default_factory=LimiterSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            douban=DoubanSettings(),
            bangumi=BangumiSettings(),
            tmdb=TmdbSettings(),
            limiter=LimiterSettings(),
            cache=CacheSettings(),
            service=ServiceSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


