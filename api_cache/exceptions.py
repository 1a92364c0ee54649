"""
Custom exceptions for the API response cache.

Every failure on the caching path derives from ApiCacheError so the
middleware can absorb them in one place without touching errors raised
by the wrapped request handler.
"""

from typing import Optional


class ApiCacheError(Exception):
    """
    Base exception for all cache related errors.

    Use this for catching any failure raised by the caching engine.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        """
        Initialize ApiCacheError.

        Args:
            message: Error description
            key: Cache key involved in the failing operation, if any
        """
        self.message = message
        self.key = key
        super().__init__(self.message)


class StoreUnavailableError(ApiCacheError):
    """
    Raised when the key-value store cannot be reached.

    This occurs when:
    - The connection to Redis is refused or dropped
    - A socket read or connect times out
    - Redis answers a command with an error

    Attributes:
        operation: Store command that failed (get, set, delete, incr, expire)

    Example:
        >>> raise StoreUnavailableError("get", key="get__users__")
    """

    def __init__(
        self,
        operation: str,
        key: Optional[str] = None,
        message: str = "Cache store unavailable",
    ) -> None:
        """
        Initialize StoreUnavailableError.

        Args:
            operation: Store command that failed
            key: Key the command was issued for
            message: Error description
        """
        self.operation = operation
        super().__init__(message, key=key)

    def __str__(self) -> str:
        """Return error message with the failing operation."""
        return f"{self.message} (operation: {self.operation})"


class SerializationError(ApiCacheError):
    """
    Raised when a payload cannot be serialized for storage.

    Example:
        >>> raise SerializationError("can not serialize 'function' object")
    """


class DecodeError(ApiCacheError):
    """
    Raised when a stored value cannot be decoded back into a payload.

    Covers malformed base64 text, a corrupt gzip stream and malformed
    msgpack data. Callers treat it as a cache miss.
    """


class RateLimitDenied(ApiCacheError):
    """
    Raised when a cache write is refused by the write rate limiter.

    Not a hard failure: it signals that the write should be skipped.

    Attributes:
        count: Counter value after the increment (None if the store failed)
        limit: Maximum number of writes allowed per window
    """

    def __init__(
        self,
        key: str,
        count: Optional[int],
        limit: int,
        message: str = "Cache write rate limit exceeded",
    ) -> None:
        self.count = count
        self.limit = limit
        super().__init__(message, key=key)

    def __str__(self) -> str:
        """Return formatted error message with counter information."""
        return f"{self.message} (count: {self.count}, limit: {self.limit})"
