"""
Fixed-window rate limiter for cache writes.

Counts writes per cache key in the store (INCR + EXPIRE) and refuses
them once a key has been written more than ``limit`` times in the
current window. Only the write path is gated; reads are never limited.
"""

from typing import Any, Dict

import structlog

from api_cache.cache.keys import rate_limit_key
from api_cache.cache.store import CacheStore
from api_cache.cache.ttl import CacheTTL
from api_cache.exceptions import RateLimitDenied, StoreUnavailableError

logger = structlog.get_logger(__name__)


class CacheWriteRateLimiter:
    """
    Store-backed fixed-window limiter.

    The first increment in a window attaches the window expiry to the
    counter; the counter disappears with it and the next write starts a
    new window. Bursts at window boundaries are admitted.

    A store failure on the increment denies the write (fail closed).
    """

    def __init__(
        self,
        store: CacheStore,
        limit: int = 10,
        window_seconds: int = CacheTTL.RATE_LIMIT_WINDOW,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            store: Store holding the counters
            limit: Maximum writes per key per window (default: 10)
            window_seconds: Window length in seconds (default: 60)
        """
        self.store = store
        self.limit = limit
        self.window_seconds = int(window_seconds)

    async def acquire(self, identity_key: str) -> int:
        """
        Count one write attempt for ``identity_key``.

        Args:
            identity_key: Cache key being written

        Returns:
            Counter value after the increment

        Raises:
            RateLimitDenied: If the limit is exceeded or the store failed
        """
        counter_key = rate_limit_key(identity_key)

        try:
            current = await self.store.incr(counter_key)
        except StoreUnavailableError as e:
            logger.warning(
                "rate_limit_store_error",
                key=counter_key,
                error=str(e),
            )
            raise RateLimitDenied(identity_key, count=None, limit=self.limit) from e

        if current == 1:
            try:
                await self.store.expire(counter_key, self.window_seconds)
            except StoreUnavailableError as e:
                # The increment went through; the write is admitted anyway
                logger.warning(
                    "rate_limit_expire_failed",
                    key=counter_key,
                    error=str(e),
                )

        if current > self.limit:
            logger.info(
                "rate_limit_denied",
                key=identity_key,
                count=current,
                limit=self.limit,
            )
            raise RateLimitDenied(identity_key, count=current, limit=self.limit)

        logger.debug(
            "rate_limit_acquired",
            key=identity_key,
            count=current,
            remaining=self.limit - current,
        )
        return current

    async def allow(self, identity_key: str) -> bool:
        """
        Check whether a write for ``identity_key`` may proceed.

        Example:
            >>> limiter = CacheWriteRateLimiter(store)
            >>> await limiter.allow("get__users__")
            True
        """
        try:
            await self.acquire(identity_key)
        except RateLimitDenied:
            return False
        return True

    def get_stats(self) -> Dict[str, Any]:
        """Return the limiter settings."""
        return {
            "limit": self.limit,
            "window_seconds": self.window_seconds,
        }
