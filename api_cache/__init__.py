"""
HTTP response cache for ASGI applications.

Serves previously computed GET responses from Redis, with per-endpoint
TTLs and a write rate limit.

Example:
    >>> from api_cache import ApiCache, ApiCacheMiddleware, RedisStore
    >>> api_cache = ApiCache(RedisStore.from_url(), use_env=True)
    >>> app.add_middleware(ApiCacheMiddleware, api_cache=api_cache)
"""

from api_cache.cache import (
    ApiCache,
    CacheKeyGenerator,
    CacheStore,
    CacheTTL,
    CacheWriteRateLimiter,
    PayloadCodec,
    RedisStore,
    build_key,
    resolve_ttl,
)
from api_cache.config import CacheConfig, EndpointTTL, load_config
from api_cache.exceptions import (
    ApiCacheError,
    DecodeError,
    RateLimitDenied,
    SerializationError,
    StoreUnavailableError,
)
from api_cache.middleware import ApiCacheMiddleware, cache_middleware
from api_cache.models import (
    CacheLookup,
    CacheStatus,
    CacheWrite,
    RequestDescriptor,
)

__version__ = "1.0.0"

__all__ = [
    # Engine
    "ApiCache",
    "ApiCacheMiddleware",
    "cache_middleware",
    # Building blocks
    "CacheKeyGenerator",
    "CacheStore",
    "CacheTTL",
    "CacheWriteRateLimiter",
    "PayloadCodec",
    "RedisStore",
    "build_key",
    "resolve_ttl",
    # Configuration
    "CacheConfig",
    "EndpointTTL",
    "load_config",
    # Models
    "CacheLookup",
    "CacheStatus",
    "CacheWrite",
    "RequestDescriptor",
    # Exceptions
    "ApiCacheError",
    "DecodeError",
    "RateLimitDenied",
    "SerializationError",
    "StoreUnavailableError",
]
