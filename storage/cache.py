"""
Cache
生成结果缓存

接口只有 get / put / delete (外加 clear / exists)；
内存实现按最后访问时间做 LRU 淘汰，磁盘实现把每个键存为一个 JSON 文件。
"""
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import hashlib
import json
import logging
import shutil
import time

from utils.exceptions import CacheError, ConfigurationError


logger = logging.getLogger(__name__)


class BaseCache(ABC):
    """
    缓存抽象基类
    """

    def __init__(self, ttl: Optional[int] = None, clock: Optional[Callable[[], float]] = None):
        """
        初始化缓存

        Args:
            ttl: 默认过期时间 (秒), None / 0 = 永不过期
            clock: 时间函数 (秒)，测试时可替换
        """
        self.ttl = ttl
        self._clock = clock or time.time

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """获取缓存值，不存在或已过期返回 None"""
        pass

    @abstractmethod
    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """写入缓存值"""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """删除缓存"""
        pass

    @abstractmethod
    def clear(self) -> None:
        """清空缓存"""
        pass

    def exists(self, key: str) -> bool:
        """检查键是否存在"""
        return self.get(key) is not None

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        ttl = ttl or self.ttl
        return self._clock() + ttl if ttl else None

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and self._clock() > expires_at

    @staticmethod
    def make_key(*parts: Any) -> str:
        """
        根据参数生成缓存键 (md5)

        Args:
            *parts: 键的组成部分
        """
        return hashlib.md5(":".join(str(p) for p in parts).encode()).hexdigest()


class MemoryCache(BaseCache):
    """
    内存缓存
    超过 max_size 时淘汰最久未访问的条目
    """

    def __init__(
        self,
        ttl: Optional[int] = None,
        max_size: int = 1000,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(ttl, clock)
        self.max_size = max_size
        # key -> (value, expires_at)；顺序即访问顺序，最久未访问在前
        self._cache: "OrderedDict[str, tuple]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._is_expired(expires_at):
            del self._cache[key]
            return None

        self._cache.move_to_end(key)
        return value

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if key not in self._cache and len(self._cache) >= self.max_size:
            self.cleanup()
            while len(self._cache) >= self.max_size:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")

        self._cache[key] = (value, self._expires_at(ttl))
        self._cache.move_to_end(key)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def cleanup(self) -> int:
        """清理过期条目，返回清理数量"""
        expired = [k for k, (_, expires_at) in self._cache.items() if self._is_expired(expires_at)]
        for key in expired:
            del self._cache[key]
        return len(expired)

    def size(self) -> int:
        """返回缓存大小"""
        return len(self._cache)


class DiskCache(BaseCache):
    """
    磁盘缓存
    每个键一个 JSON 文件，过期时间记录在元数据文件中
    """

    def __init__(
        self,
        cache_dir: str = "./data/cache",
        ttl: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(ttl, clock)
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        # 元数据文件
        self.meta_file = self.cache_dir / "_meta.json"
        self._meta: Dict[str, Dict[str, Optional[float]]] = self._load_meta()

    def _load_meta(self) -> Dict[str, Dict[str, Optional[float]]]:
        if not self.meta_file.exists():
            return {}
        try:
            with open(self.meta_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load cache metadata: {e}")
            return {}

    def _save_meta(self):
        try:
            with open(self.meta_file, "w", encoding="utf-8") as f:
                json.dump(self._meta, f)
        except OSError as e:
            raise CacheError("Failed to save cache metadata", details={"path": str(self.meta_file)}) from e

    def _get_path(self, key: str) -> Path:
        # 键里可能带有 '/' '?' 等字符，文件名使用其摘要
        return self.cache_dir / f"{self.make_key(key)}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._get_path(key)
        if not path.exists():
            return None

        if self._is_expired(self._meta.get(key, {}).get("expires_at")):
            self.delete(key)
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load cache {key}: {e}")
            return None

    def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        path = self._get_path(key)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, default=str)
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save cache {key}: {e}")
            return

        self._meta[key] = {
            "created_at": self._clock(),
            "expires_at": self._expires_at(ttl),
        }
        self._save_meta()

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.exists():
            path.unlink()
        if self._meta.pop(key, None) is not None:
            self._save_meta()

    def clear(self) -> None:
        shutil.rmtree(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._meta = {}
        self._save_meta()

    def size(self) -> int:
        """返回缓存条目数量"""
        return len(self._meta)


def get_cache(
    provider: str = "memory",
    cache_dir: str = "./data/cache",
    ttl: Optional[int] = None,
    **kwargs,
) -> BaseCache:
    """
    创建缓存实例

    Args:
        provider: 提供商 (memory, disk)
        cache_dir: 磁盘缓存目录
        ttl: 过期时间

    Returns:
        缓存实例
    """
    if provider == "memory":
        return MemoryCache(ttl=ttl, **kwargs)
    elif provider == "disk":
        return DiskCache(cache_dir=cache_dir, ttl=ttl, **kwargs)
    else:
        raise ConfigurationError(f"Unknown cache provider: {provider}")
