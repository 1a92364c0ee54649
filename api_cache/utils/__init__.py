"""Shared utilities (structured logging)."""

from api_cache.utils.logger import get_logger, log_cache_request, setup_logging

__all__ = ["get_logger", "log_cache_request", "setup_logging"]
