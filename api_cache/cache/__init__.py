"""Redis-backed response caching.

This package provides:
- Cache key generation (CacheKeyGenerator, build_key)
- Payload encoding (PayloadCodec)
- TTL policies (CacheTTL, resolve_ttl)
- Write rate limiting (CacheWriteRateLimiter)
- Store adapter (CacheStore, RedisStore)
- Cache operations (ApiCache)
"""

from api_cache.cache.codec import PayloadCodec
from api_cache.cache.keys import CacheKeyGenerator, build_key, rate_limit_key
from api_cache.cache.manager import ApiCache
from api_cache.cache.rate_limit import CacheWriteRateLimiter
from api_cache.cache.store import CacheStore, RedisStore
from api_cache.cache.ttl import CacheTTL, resolve_ttl

__all__ = [
    # Key generation
    "CacheKeyGenerator",
    "build_key",
    "rate_limit_key",
    # Codec
    "PayloadCodec",
    # TTL policies
    "CacheTTL",
    "resolve_ttl",
    # Rate limiting
    "CacheWriteRateLimiter",
    # Store
    "CacheStore",
    "RedisStore",
    # Cache manager
    "ApiCache",
]
