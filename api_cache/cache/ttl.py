"""TTL (Time To Live) policies for cached responses.

This module resolves the expiration of a cache entry from the ordered
per-endpoint overrides in the configuration, falling back to the global
default.
"""

from enum import IntEnum
from typing import Iterable

import structlog

from api_cache.config import DEFAULT_EXPIRATION_SECONDS, EndpointTTL

logger = structlog.get_logger(__name__)


class CacheTTL(IntEnum):
    """
    Well-known durations used by the cache, in seconds.
    """

    DEFAULT = DEFAULT_EXPIRATION_SECONDS  # 24 hours
    RATE_LIMIT_WINDOW = 60  # 1 minute


def resolve_ttl(
    method: str,
    path: str,
    rules: Iterable[EndpointTTL],
    default: int = CacheTTL.DEFAULT,
) -> int:
    """
    Determine the TTL for a request.

    Rules are scanned in declaration order and the first one whose path
    and method both equal the request's wins.

    Args:
        method: HTTP method of the request
        path: Request path
        rules: Ordered endpoint overrides
        default: TTL returned when no rule matches

    Returns:
        TTL in seconds

    Example:
        >>> rules = [EndpointTTL(path="/a", method="GET", ttl=5)]
        >>> resolve_ttl("GET", "/a", rules, default=86400)
        5
        >>> resolve_ttl("GET", "/c", rules, default=86400)
        86400
    """
    for rule in rules:
        if rule.path == path and rule.method == method:
            logger.debug(
                "ttl_determined",
                method=method,
                path=path,
                ttl_seconds=rule.ttl,
                source="endpoint_override",
            )
            return rule.ttl

    logger.debug(
        "ttl_determined",
        method=method,
        path=path,
        ttl_seconds=int(default),
        source="default",
    )
    return int(default)
