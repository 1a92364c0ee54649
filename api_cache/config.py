"""
Cache configuration.

CacheConfig is immutable once built. Values can come from an explicit
object, from environment variables, or from the defaults; explicitly set
fields always win over the environment.
"""

import os
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

import structlog

logger = structlog.get_logger(__name__)

PREFIX_ENV_VAR = "API_CACHE_PREFIX"
EXPIRATION_ENV_VAR = "API_CACHE_EXPIRATION_SECONDS"

DEFAULT_EXPIRATION_SECONDS = 24 * 60 * 60  # 24 hours


class EndpointTTL(BaseModel):
    """
    TTL override for a single endpoint.

    Rules are matched on exact path and method; a TTL of 0 stores the
    entry without expiry.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        ...,
        description="Request path exactly as received, e.g. /users",
    )
    method: str = Field(
        ...,
        min_length=1,
        description="HTTP method the override applies to",
    )
    ttl: int = Field(
        ...,
        ge=0,
        description="Time to live in seconds",
    )

    @field_validator("method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        return v.upper()


class CacheConfig(BaseModel):
    """
    Configuration for the API cache.

    Attributes:
        expiration: Default TTL in seconds when no endpoint override matches
        prefix: String prepended to every cache key
        ttls: Ordered endpoint overrides, first match wins
        compress: Gzip entries before base64 encoding them
    """

    model_config = ConfigDict(frozen=True)

    expiration: int = Field(
        DEFAULT_EXPIRATION_SECONDS,
        ge=0,
        description="Default time to live in seconds",
    )
    prefix: str = Field(
        "",
        description="Prefix prepended to every cache key",
    )
    ttls: Tuple[EndpointTTL, ...] = Field(
        (),
        description="Per-endpoint TTL overrides, matched in order",
    )
    compress: bool = Field(
        True,
        description="Compress serialized payloads with gzip",
    )

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """
        Build a configuration from environment variables.

        Reads API_CACHE_PREFIX and API_CACHE_EXPIRATION_SECONDS; unset
        variables keep their defaults.

        Raises:
            ValueError: If API_CACHE_EXPIRATION_SECONDS is not a valid integer
        """
        return cls(**_read_env())


def _read_env() -> Dict[str, Any]:
    values: Dict[str, Any] = {}

    prefix = os.getenv(PREFIX_ENV_VAR)
    if prefix is not None:
        values["prefix"] = prefix

    expiration = os.getenv(EXPIRATION_ENV_VAR)
    if expiration is not None:
        try:
            values["expiration"] = int(expiration)
        except ValueError:
            raise ValueError(
                f"{EXPIRATION_ENV_VAR} must be an integer number of seconds, "
                f"got {expiration!r}"
            ) from None

    return values


def load_config(
    config: Optional[CacheConfig] = None, use_env: bool = False
) -> CacheConfig:
    """
    Resolve the effective cache configuration.

    Precedence (highest first): fields explicitly set on ``config``,
    environment variables (only when ``use_env`` is true), defaults.

    Args:
        config: Explicit configuration, if any
        use_env: Whether to read API_CACHE_* environment variables

    Returns:
        Effective CacheConfig

    Example:
        >>> cfg = load_config(CacheConfig(prefix="api:"), use_env=True)
        >>> cfg.prefix
        'api:'
    """
    base = config if config is not None else CacheConfig()

    if not use_env:
        return base

    env_values = _read_env()
    overrides = {
        name: value
        for name, value in env_values.items()
        if name not in base.model_fields_set
    }

    if overrides:
        logger.debug("cache_config_env_overrides", fields=sorted(overrides))
        # Re-validate through the constructor so env values are checked
        base = CacheConfig(**{**base.model_dump(), **overrides})

    return base
