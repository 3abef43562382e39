"""
Custom Exceptions
自定义异常类

这些异常只在阶段内部使用，编排层会把它们转换为带错误信息的结果对象。
"""


class PtGenError(Exception):
    """基础异常类"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PtGenError):
    """配置错误"""
    pass


class ScraperError(PtGenError):
    """抓取器错误"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class UpstreamError(ScraperError):
    """上游返回非成功状态 (HTTP 状态码异常、反爬页面等)"""

    def __init__(self, message: str, source: str = None, status_code: int = None, **kwargs):
        super().__init__(message, source=source, **kwargs)
        self.status_code = status_code


class StorageError(PtGenError):
    """存储错误"""
    pass


class CacheError(StorageError):
    """缓存错误"""
    pass
