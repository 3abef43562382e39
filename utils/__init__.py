"""
Utils Module
通用工具函数
"""
from .logger import setup_logger
from .exceptions import (
    PtGenError,
    ConfigurationError,
    ScraperError,
    UpstreamError,
    StorageError,
    CacheError,
)

__all__ = [
    "setup_logger",
    "PtGenError",
    "ConfigurationError",
    "ScraperError",
    "UpstreamError",
    "StorageError",
    "CacheError",
]
