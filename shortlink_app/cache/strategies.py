"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Only redirect targets are cached. Every cache failure degrades to a miss,
so the datastore stays the source of truth.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """
        Set value in cache with TTL (Time To Live, seconds).

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> bool:
        """
        Delete keys from cache.

        Returns:
            True if at least one key was deleted
        """
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries"""
        pass


class RedisCache(CacheStrategy):
    """
    Redis cache implementation.

    - Shared between all app workers
    - TTL enforced by Redis
    """

    def __init__(self, redis_client, prefix: str = "shortlink:"):
        """
        Args:
            redis_client: Redis client instance (redis.Redis)
            prefix: Namespace for every key this service writes
        """
        self.redis = redis_client
        self.prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(self.prefix + key)
            return value.decode('utf-8') if value else None
        except Exception as e:
            logger.warning("Redis get error: %s", e)
            return None

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        try:
            return bool(self.redis.setex(self.prefix + key, ttl, value))
        except Exception as e:
            logger.warning("Redis set error: %s", e)
            return False

    async def delete(self, *keys: str) -> bool:
        if not keys:
            return False
        try:
            return bool(self.redis.delete(*(self.prefix + key for key in keys)))
        except Exception as e:
            logger.warning("Redis delete error: %s", e)
            return False

    async def clear(self) -> bool:
        """Remove only this service's keys"""
        try:
            keys = list(self.redis.scan_iter(match=self.prefix + "*"))
            if keys:
                self.redis.delete(*keys)
            return True
        except Exception as e:
            logger.warning("Redis clear error: %s", e)
            return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using Python dict.

    Not shared between processes, lost on restart. Expired entries are
    dropped lazily on read.
    Note: Async for interface consistency, but operations are instant.
    """

    def __init__(self):
        self._cache: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            self._cache.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        self._cache[key] = (value, time.monotonic() + ttl)
        return True

    async def delete(self, *keys: str) -> bool:
        deleted = False
        for key in keys:
            if self._cache.pop(key, None) is not None:
                deleted = True
        return deleted

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    The default: every resolution is a live datastore lookup.
    """

    async def get(self, key: str) -> Optional[str]:
        """Always a miss"""
        return None

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        return True

    async def delete(self, *keys: str) -> bool:
        return True

    async def clear(self) -> bool:
        return True
