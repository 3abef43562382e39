"""
Logger Configuration
日志配置：Rich 输出到 stderr，stdout 留给 CLI 的 JSON 结果
"""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

# HTTP 客户端每个请求都会打 INFO 日志，默认压到 WARNING
NOISY_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: Union[int, str, None], default: int = logging.INFO) -> int:
    """'debug' / 'WARNING' / 10 -> 日志级别数值，无法识别时返回 default"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level or "").strip().upper())
    return value if isinstance(value, int) else default


def setup_logger(
    name: str = "",
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    use_rich: bool = True,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    配置日志记录器

    默认配置根日志器，各模块的 logging.getLogger(__name__) 都会传播到这里。

    Args:
        name: 日志记录器名称 ("" = 根日志器)
        level: 日志级别 (数值或名称)
        log_file: 额外写入的日志文件 (可选)
        use_rich: 是否使用 RichHandler
        quiet: 只输出 WARNING 及以上的第三方日志器

    Returns:
        配置好的 Logger 实例
    """
    level = resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    for noisy in quiet:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    # 重复调用只调整级别
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    if use_rich:
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(console.file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    logger.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger
