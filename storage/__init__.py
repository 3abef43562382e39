"""
Storage Module
存储模块 - 生成结果缓存
"""
from .cache import (
    BaseCache,
    MemoryCache,
    DiskCache,
    get_cache,
)

__all__ = [
    # Cache
    "BaseCache",
    "MemoryCache",
    "DiskCache",
    "get_cache",
]
