"""
Tests for cache strategies and the cache factory.
"""
import asyncio

import pytest

from shortlink_app.cache.factory import CacheBackend, CacheFactory
from shortlink_app.cache.strategies import InMemoryCache, NullCache


@pytest.fixture(autouse=True)
def fresh_factory():
    CacheFactory.clear_instance()
    yield
    CacheFactory.clear_instance()


class TestInMemoryCache:

    def test_set_get_delete(self):
        cache = InMemoryCache()

        asyncio.run(cache.set("link:abc", "value", ttl=60))
        assert asyncio.run(cache.get("link:abc")) == "value"

        assert asyncio.run(cache.delete("link:abc", "link:other")) is True
        assert asyncio.run(cache.get("link:abc")) is None

    def test_expired_entries_are_misses(self):
        cache = InMemoryCache()

        asyncio.run(cache.set("link:abc", "value", ttl=0))

        assert asyncio.run(cache.get("link:abc")) is None

    def test_clear(self):
        cache = InMemoryCache()
        asyncio.run(cache.set("a", "1"))
        asyncio.run(cache.set("b", "2"))

        asyncio.run(cache.clear())

        assert asyncio.run(cache.get("a")) is None
        assert asyncio.run(cache.get("b")) is None


class TestNullCache:

    def test_always_misses(self):
        cache = NullCache()
        asyncio.run(cache.set("a", "1"))
        assert asyncio.run(cache.get("a")) is None


class TestCacheFactory:

    def test_creates_memory_cache_once(self):
        first = CacheFactory.create(CacheBackend.MEMORY)
        second = CacheFactory.create(CacheBackend.MEMORY)

        assert isinstance(first, InMemoryCache)
        assert first is second

    def test_creates_null_cache(self):
        assert isinstance(CacheFactory.create(CacheBackend.NULL), NullCache)
