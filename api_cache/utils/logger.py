"""
Logging for the response cache.

Every request that passes through the middleware ends in one
"cache_request" event. Cache components log under their module name.
"""
import logging
import os
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO") -> None:
    """
    Configure structlog for cache events.

    Events are rendered as JSON lines on stdout. With
    ENVIRONMENT=development the console renderer is used instead.

    Args:
        level: Minimum level name; unknown names fall back to INFO
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    is_dev = os.getenv("ENVIRONMENT", "production") == "development"

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if is_dev:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Configured structlog logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("cache_hit", key="get__users__page=1")
    """
    return structlog.get_logger(name)


def log_cache_request(
    method: str,
    path: str,
    cache_status: str,
    duration_ms: float,
    error: str | None = None,
    **extra: Any,
) -> None:
    """
    Log the outcome of one request that went through the cache.

    Args:
        method: HTTP method of the request
        path: Request path
        cache_status: "hit", "miss", "stored", "rate_limited", ...
        duration_ms: Time spent in the middleware in milliseconds
        error: Error message if a cache operation failed
        **extra: Additional context to log

    Example:
        >>> log_cache_request(
        ...     method="GET",
        ...     path="/users",
        ...     cache_status="hit",
        ...     duration_ms=1.8,
        ... )
    """
    logger = get_logger("cache_request")

    log_data = {
        "method": method,
        "path": path,
        "cache_status": cache_status,
        "duration_ms": round(duration_ms, 2),
        "error": error,
        **extra,
    }

    if error:
        logger.warning("cache_request_degraded", **log_data)
    else:
        logger.info("cache_request", **log_data)
