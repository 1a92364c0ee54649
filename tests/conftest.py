"""Shared fixtures: an in-memory Redis stand-in with a controllable clock."""

from typing import Dict, Optional, Tuple

import pytest

from api_cache.cache.manager import ApiCache
from api_cache.cache.store import RedisStore
from api_cache.config import CacheConfig


class FakeRedis:
    """
    Minimal async Redis client covering the commands RedisStore issues.

    Expiry is evaluated against ``now``, which tests move with advance().
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.now:
            del self._data[key]
            return None
        return value

    def ttl_of(self, key: str) -> Optional[float]:
        if self._live(key) is None:
            return None
        expires_at = self._data[key][1]
        return None if expires_at is None else expires_at - self.now

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._data[key] = (value, self.now + ex if ex else None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def incr(self, key: str) -> int:
        current = self._live(key)
        value = int(current or 0) + 1
        expires_at = self._data[key][1] if current is not None else None
        self._data[key] = (str(value), expires_at)
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        value = self._live(key)
        if value is None:
            return False
        self._data[key] = (value, self.now + seconds)
        return True

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


@pytest.fixture
def fake_redis():
    """Create an empty fake Redis client."""
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    """Create a RedisStore over the fake client."""
    return RedisStore(fake_redis)


@pytest.fixture
def api_cache(store):
    """Create an ApiCache with default configuration."""
    return ApiCache(store, config=CacheConfig())
