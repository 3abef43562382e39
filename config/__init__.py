"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    Settings,
    DoubanSettings,
    BangumiSettings,
    TmdbSettings,
    LimiterSettings,
    CacheSettings,
    ServiceSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "DoubanSettings",
    "BangumiSettings",
    "TmdbSettings",
    "LimiterSettings",
    "CacheSettings",
    "ServiceSettings",
    "get_settings",
]
