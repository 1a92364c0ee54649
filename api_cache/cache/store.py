"""Key-value store adapter over Redis.

This module provides the CacheStore protocol used by the caching engine
and RedisStore, its implementation on top of a pooled redis.asyncio client.
"""

import os
from typing import Optional, Protocol, runtime_checkable

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

import structlog

from api_cache.exceptions import StoreUnavailableError

logger = structlog.get_logger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for the key-value store behind the cache.

    Any object implementing these coroutines satisfies the protocol; every
    call is one round trip and raises StoreUnavailableError on transport
    failure.
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    async def set(self, key: str, value: str, ttl: int) -> bool:
        """Store ``value`` under ``key``; ttl of 0 means no expiry."""
        ...

    async def delete(self, key: str) -> int:
        """Delete ``key`` and return the number of keys removed."""
        ...

    async def incr(self, key: str) -> int:
        """Atomically increment the integer at ``key``."""
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        """Attach an expiry to ``key``."""
        ...


class RedisStore:
    """
    Redis implementation of CacheStore.

    Wraps every Redis error in StoreUnavailableError so callers deal with
    a single failure type.

    Attributes:
        client: redis.asyncio client instance
        pool: Connection pool owned by this store (None if the client was injected)
    """

    def __init__(
        self, client: redis.Redis, pool: Optional[ConnectionPool] = None
    ) -> None:
        self.client = client
        self.pool = pool

    @classmethod
    def from_url(
        cls,
        redis_url: Optional[str] = None,
        max_connections: int = 20,
        timeout: float = 5.0,
    ) -> "RedisStore":
        """
        Create a store backed by a new connection pool.

        Args:
            redis_url: Redis URL; defaults to the REDIS_URL environment variable
            max_connections: Pool size
            timeout: Socket connect and read timeout in seconds

        Returns:
            Configured RedisStore

        Example:
            >>> store = RedisStore.from_url("redis://localhost:6379/0")
            >>> await store.ping()
            True
        """
        redis_url = redis_url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL)

        pool = ConnectionPool.from_url(
            redis_url,
            max_connections=max_connections,
            decode_responses=True,  # Stored values are base64 text
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            retry_on_timeout=True,
        )
        client = redis.Redis(connection_pool=pool)

        logger.info(
            "redis_pool_initialized",
            max_connections=max_connections,
            redis_url=redis_url.split("@")[-1],  # Don't log credentials
        )

        return cls(client, pool=pool)

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.client.get(key)
        except RedisError as e:
            raise self._unavailable("get", key, e) from e

        if isinstance(value, bytes):
            value = value.decode("ascii", errors="replace")
        return value

    async def set(self, key: str, value: str, ttl: int) -> bool:
        try:
            result = await self.client.set(key, value, ex=ttl if ttl > 0 else None)
        except RedisError as e:
            raise self._unavailable("set", key, e) from e
        return bool(result)

    async def delete(self, key: str) -> int:
        try:
            return int(await self.client.delete(key))
        except RedisError as e:
            raise self._unavailable("delete", key, e) from e

    async def incr(self, key: str) -> int:
        try:
            return int(await self.client.incr(key))
        except RedisError as e:
            raise self._unavailable("incr", key, e) from e

    async def expire(self, key: str, seconds: int) -> bool:
        try:
            return bool(await self.client.expire(key, seconds))
        except RedisError as e:
            raise self._unavailable("expire", key, e) from e

    async def ping(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is healthy, False otherwise
        """
        try:
            result = await self.client.ping()
            logger.debug("redis_ping_success", result=result)
            return bool(result)

        except RedisError as e:
            logger.error(
                "redis_ping_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def close(self) -> None:
        """
        Close the client and the connection pool.

        Should be called during application shutdown.
        """
        await self.client.aclose()
        logger.info("redis_client_closed")

        if self.pool:
            await self.pool.disconnect()
            logger.info("redis_pool_disconnected")

    @staticmethod
    def _unavailable(operation: str, key: str, error: Exception) -> StoreUnavailableError:
        logger.error(
            "redis_command_failed",
            operation=operation,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )
        return StoreUnavailableError(operation, key=key, message=f"Cache store unavailable: {error}")
