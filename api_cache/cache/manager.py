"""Caching engine: read, write and invalidate cached responses.

This module provides the ApiCache class which ties together key
generation, the payload codec, TTL resolution, the write rate limiter
and the store adapter.
"""

import asyncio
import contextlib
from collections import Counter
from typing import Any, AsyncContextManager, Dict, Optional

import structlog

from api_cache.cache.codec import PayloadCodec
from api_cache.cache.keys import CacheKeyGenerator
from api_cache.cache.rate_limit import CacheWriteRateLimiter
from api_cache.cache.store import CacheStore
from api_cache.cache.ttl import resolve_ttl
from api_cache.config import CacheConfig, load_config
from api_cache.exceptions import (
    DecodeError,
    RateLimitDenied,
    SerializationError,
    StoreUnavailableError,
)
from api_cache.models import (
    CacheLookup,
    CacheStatus,
    CacheWrite,
    Payload,
    RequestDescriptor,
)

logger = structlog.get_logger(__name__)


class ApiCache:
    """
    Response cache for GET requests.

    Only GET requests are cached; every operation on another method
    returns a "not applicable" result without touching the store.

    Store and codec errors propagate to the caller. The middleware is the
    layer that turns them into cache misses or skipped writes.

    Attributes:
        store: Key-value store adapter
        config: Effective, immutable configuration
        keys: Key generator bound to the configured prefix
        codec: Payload codec
        rate_limiter: Write rate limiter
    """

    def __init__(
        self,
        store: CacheStore,
        config: Optional[CacheConfig] = None,
        use_env: bool = False,
        serialize_access: bool = False,
        rate_limiter: Optional[CacheWriteRateLimiter] = None,
        codec: Optional[PayloadCodec] = None,
    ) -> None:
        """
        Initialize the cache.

        Args:
            store: Store adapter (e.g. RedisStore)
            config: Explicit configuration; its set fields win over the environment
            use_env: Read API_CACHE_PREFIX / API_CACHE_EXPIRATION_SECONDS
            serialize_access: Run every store round trip under one lock
            rate_limiter: Custom write limiter (default: 10 writes/key/minute)
            codec: Custom codec (default: follows config.compress)
        """
        self.store = store
        self.config = load_config(config, use_env=use_env)
        self.keys = CacheKeyGenerator(self.config.prefix)
        self.codec = codec or PayloadCodec(compress=self.config.compress)
        self.rate_limiter = rate_limiter or CacheWriteRateLimiter(store)
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize_access else None
        self._stats: Counter = Counter()

        logger.info(
            "api_cache_initialized",
            prefix=self.config.prefix,
            expiration=self.config.expiration,
            endpoint_ttls=len(self.config.ttls),
            compress=self.codec.compress,
            serialize_access=serialize_access,
        )

    def _guard(self) -> AsyncContextManager[Any]:
        if self._lock is None:
            return contextlib.nullcontext()
        return self._lock

    async def get_cache(self, request: RequestDescriptor) -> CacheLookup:
        """
        Look up the cached payload for a request.

        Args:
            request: Request to look up

        Returns:
            CacheLookup with status HIT (payload set), MISS or NOT_APPLICABLE

        Raises:
            StoreUnavailableError: If the store cannot be reached
            DecodeError: If the stored value is corrupt

        Example:
            >>> lookup = await api_cache.get_cache(RequestDescriptor(method="GET", path="/users"))
            >>> lookup.hit
            False
        """
        if not request.is_cacheable:
            return CacheLookup(status=CacheStatus.NOT_APPLICABLE)

        key = self.keys.generate(request)

        try:
            async with self._guard():
                raw = await self.store.get(key)
        except StoreUnavailableError:
            self._stats["errors"] += 1
            raise

        if raw is None:
            self._stats["misses"] += 1
            logger.debug("cache_miss", key=key)
            return CacheLookup(status=CacheStatus.MISS, key=key)

        try:
            payload = self.codec.decode(raw)
        except DecodeError as e:
            self._stats["errors"] += 1
            e.key = key
            logger.error("cache_get_decode_error", key=key, error=str(e))
            raise

        self._stats["hits"] += 1
        logger.debug("cache_hit", key=key)
        return CacheLookup(status=CacheStatus.HIT, key=key, payload=payload)

    async def set_cache(self, request: RequestDescriptor, payload: Payload) -> CacheWrite:
        """
        Store a payload for a request.

        The write is first counted against the rate limiter; denied writes
        are reported as RATE_LIMITED and nothing is stored.

        Args:
            request: Request the payload answers
            payload: Value to cache (raw response bytes for the middleware)

        Returns:
            CacheWrite with status STORED, RATE_LIMITED or NOT_APPLICABLE

        Raises:
            SerializationError: If the payload cannot be encoded
            StoreUnavailableError: If the store cannot be reached
        """
        if not request.is_cacheable:
            return CacheWrite(status=CacheStatus.NOT_APPLICABLE)

        key = self.keys.generate(request)

        try:
            async with self._guard():
                await self.rate_limiter.acquire(key)
        except RateLimitDenied:
            self._stats["rate_limited"] += 1
            return CacheWrite(status=CacheStatus.RATE_LIMITED, key=key)

        ttl = resolve_ttl(
            request.method, request.path, self.config.ttls, self.config.expiration
        )

        try:
            encoded = self.codec.encode(payload)
        except SerializationError as e:
            self._stats["errors"] += 1
            e.key = key
            logger.error("cache_set_serialization_error", key=key, error=str(e))
            raise

        try:
            async with self._guard():
                await self.store.set(key, encoded, ttl)
        except StoreUnavailableError:
            self._stats["errors"] += 1
            raise

        self._stats["stores"] += 1
        logger.debug("cache_set", key=key, ttl=ttl, data_size=len(encoded))
        return CacheWrite(status=CacheStatus.STORED, key=key, ttl=ttl)

    async def invalidate_cache(self, request: RequestDescriptor) -> bool:
        """
        Delete the cached entry for a request.

        Args:
            request: Request whose entry should be removed

        Returns:
            True if an entry existed and was removed, False otherwise
            (always False for non-GET requests)

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        if not request.is_cacheable:
            return False

        key = self.keys.generate(request)

        try:
            async with self._guard():
                removed = await self.store.delete(key)
        except StoreUnavailableError:
            self._stats["errors"] += 1
            raise

        logger.info("cache_invalidated", key=key, deleted=removed > 0)
        return removed > 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get in-process cache statistics.

        Returns:
            Dictionary with hit/miss/store/rate-limit/error counters,
            the hit ratio and the rate limiter settings

        Example:
            >>> api_cache.get_stats()
            {'hits': 3, 'misses': 1, 'stores': 1, 'rate_limited': 0, 'errors': 0, ...}
        """
        hits = self._stats["hits"]
        misses = self._stats["misses"]
        lookups = hits + misses

        return {
            "hits": hits,
            "misses": misses,
            "stores": self._stats["stores"],
            "rate_limited": self._stats["rate_limited"],
            "errors": self._stats["errors"],
            "hit_ratio": round(hits / lookups, 4) if lookups else 0.0,
            "rate_limit": self.rate_limiter.get_stats(),
        }
