"""Cache key generation for consistent, deterministic cache keys.

This module provides the CacheKeyGenerator class for building cache keys
from a request's method, path and query string.
"""

from operator import itemgetter
from typing import Dict
from urllib.parse import parse_qsl, urlencode

import structlog

from api_cache.models import RequestDescriptor

logger = structlog.get_logger(__name__)

KEY_SEPARATOR = "__"
RATE_LIMIT_SUFFIX = ":rate-limit"


def canonical_query(query: str) -> str:
    """
    Re-encode a query string with its parameters sorted by name.

    Repeated parameters keep their relative order. Blank values are kept.

    Example:
        >>> canonical_query("b=2&a=1&a=0")
        'a=1&a=0&b=2'
    """
    # latin-1 maps every byte to one character, so undecodable escapes survive
    pairs = parse_qsl(query, keep_blank_values=True, encoding="latin-1")
    return urlencode(sorted(pairs, key=itemgetter(0)), encoding="latin-1")


def build_key(method: str, path: str, query: str = "", prefix: str = "") -> str:
    """
    Build the cache key for a request.

    Keys follow the pattern: {prefix}{method}__{path}__{query}, lower-cased,
    with one leading "/" removed from the path and the query canonicalized.

    Args:
        method: HTTP method
        path: Request path
        query: Raw query string
        prefix: Key prefix from the cache configuration

    Returns:
        Cache key string

    Example:
        >>> build_key("GET", "/Users", "page=2&sort=name", prefix="api:")
        'api:get__users__page=2&sort=name'
    """
    path = path[1:] if path.startswith("/") else path

    return (
        prefix + method + KEY_SEPARATOR + path + KEY_SEPARATOR + canonical_query(query)
    ).lower()


def rate_limit_key(cache_key: str) -> str:
    """Key of the write counter guarding ``cache_key``."""
    return cache_key + RATE_LIMIT_SUFFIX


class CacheKeyGenerator:
    """
    Generate cache keys for requests under a fixed prefix.

    Attributes:
        prefix: Prefix prepended to every key
    """

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def generate(self, request: RequestDescriptor) -> str:
        """
        Generate the cache key for a request descriptor.

        Args:
            request: Request to build the key for

        Returns:
            Cache key string
        """
        cache_key = build_key(request.method, request.path, request.query, self.prefix)

        logger.debug(
            "cache_key_generated",
            method=request.method,
            path=request.path,
            cache_key=cache_key,
        )

        return cache_key

    @staticmethod
    def parse(cache_key: str, prefix: str = "") -> Dict[str, str]:
        """
        Split a cache key back into its components.

        Only unambiguous when neither the path nor the query contain "__".

        Args:
            cache_key: Cache key to parse
            prefix: Prefix the key was generated with

        Returns:
            Dictionary with "prefix", "method", "path" and "query"

        Raises:
            ValueError: If the key does not carry the prefix or has too few parts

        Example:
            >>> CacheKeyGenerator.parse("api:get__users__page=2", prefix="api:")
            {'prefix': 'api:', 'method': 'get', 'path': 'users', 'query': 'page=2'}
        """
        prefix = prefix.lower()
        if not cache_key.startswith(prefix):
            raise ValueError(
                f"Invalid cache key format: {cache_key}. "
                f"Expected prefix {prefix!r}"
            )

        parts = cache_key[len(prefix):].split(KEY_SEPARATOR, 2)

        if len(parts) != 3:
            raise ValueError(
                f"Invalid cache key format: {cache_key}. "
                f"Expected 3 parts separated by '{KEY_SEPARATOR}', got {len(parts)}"
            )

        return {
            "prefix": prefix,
            "method": parts[0],
            "path": parts[1],
            "query": parts[2],
        }
