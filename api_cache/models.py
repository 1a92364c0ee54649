"""
Request descriptors and cache operation results.

RequestDescriptor identifies a cacheable request independently of the
HTTP framework; CacheLookup and CacheWrite report what the engine did.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Anything msgpack can represent; the middleware stores raw body bytes.
Payload = Union[bytes, str, int, float, bool, None, List[Any], Dict[Any, Any]]


class RequestDescriptor(BaseModel):
    """
    The parts of a request that determine its cache key.

    Example:
        >>> RequestDescriptor(method="get", path="/users", query="page=2")
        RequestDescriptor(method='GET', path='/users', query='page=2')
    """

    model_config = ConfigDict(frozen=True)

    method: str = Field(
        ...,
        min_length=1,
        description="HTTP method",
    )
    path: str = Field(
        "/",
        description="Decoded request path",
    )
    query: str = Field(
        "",
        description="Raw query string without the leading '?'",
    )

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any]) -> "RequestDescriptor":
        """
        Build a descriptor from an ASGI HTTP scope.

        Args:
            scope: ASGI connection scope

        Returns:
            RequestDescriptor for the request
        """
        return cls(
            method=scope["method"],
            path=scope.get("path", "/"),
            query=scope.get("query_string", b"").decode("latin-1"),
        )

    @property
    def is_cacheable(self) -> bool:
        """Only GET requests take part in caching."""
        return self.method == "GET"


class CacheStatus(str, Enum):
    """Outcome of a cache operation."""

    HIT = "hit"
    MISS = "miss"
    STORED = "stored"
    RATE_LIMITED = "rate_limited"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class CacheLookup:
    """Result of ApiCache.get_cache."""

    status: CacheStatus
    key: Optional[str] = None
    payload: Payload = None

    @property
    def hit(self) -> bool:
        return self.status is CacheStatus.HIT


@dataclass(frozen=True)
class CacheWrite:
    """Result of ApiCache.set_cache."""

    status: CacheStatus
    key: Optional[str] = None
    ttl: Optional[int] = None

    @property
    def stored(self) -> bool:
        return self.status is CacheStatus.STORED
