"""
ASGI middleware serving GET responses from the cache.

On a hit the cached body is sent directly and the wrapped application
is never called. On a miss the application runs as usual; every message
it sends is forwarded to the client immediately while the body is copied
into a buffer that is cached once the response is complete.
"""
import time
from typing import Any, Callable, Iterable, Optional

from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

import structlog

from api_cache.cache.manager import ApiCache
from api_cache.exceptions import ApiCacheError, DecodeError, StoreUnavailableError
from api_cache.models import CacheStatus, RequestDescriptor
from api_cache.utils.logger import log_cache_request

logger = structlog.get_logger(__name__)

DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024  # 10 MiB


class ApiCacheMiddleware:
    """
    Cache GET responses of the wrapped ASGI application.

    Caching is best effort: store, codec and rate limit failures are
    logged and never change the response the client receives.

    Example:
        >>> app = Starlette(routes=routes)
        >>> app.add_middleware(ApiCacheMiddleware, api_cache=ApiCache(store))
    """

    def __init__(
        self,
        app: ASGIApp,
        api_cache: ApiCache,
        content_type: str = "application/json",
        cacheable_status_codes: Iterable[int] = (200,),
        max_body_size: int = DEFAULT_MAX_BODY_SIZE,
    ) -> None:
        """
        Args:
            app: Wrapped ASGI application
            api_cache: Caching engine
            content_type: Content-Type of responses served from the cache
            cacheable_status_codes: Response statuses whose bodies are cached
            max_body_size: Largest body in bytes that is buffered and cached
        """
        self.app = app
        self.api_cache = api_cache
        self.content_type = content_type
        self.cacheable_status_codes = frozenset(cacheable_status_codes)
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "GET":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        request = RequestDescriptor.from_scope(scope)

        body = await self._lookup(request)
        if body is not None:
            response = Response(
                content=body,
                status_code=200,
                media_type=self.content_type,
                headers={"X-Cache": "HIT"},
            )
            await response(scope, receive, send)
            log_cache_request(
                request.method,
                request.path,
                CacheStatus.HIT.value,
                (time.perf_counter() - started) * 1000,
            )
            return

        capture = _ResponseCapture(send, self.max_body_size)
        await self.app(scope, receive, capture.send)

        cache_status = CacheStatus.MISS.value
        error: Optional[str] = None

        if capture.overflowed:
            logger.info(
                "cache_write_skipped",
                path=request.path,
                reason="body_too_large",
                max_body_size=self.max_body_size,
            )
        elif capture.status in self.cacheable_status_codes:
            try:
                result = await self.api_cache.set_cache(request, bytes(capture.body))
                cache_status = result.status.value
            except ApiCacheError as e:
                error = str(e)
                logger.warning(
                    "cache_write_failed",
                    path=request.path,
                    error=error,
                    error_type=type(e).__name__,
                )
        else:
            logger.debug(
                "cache_write_skipped",
                path=request.path,
                status_code=capture.status,
            )

        log_cache_request(
            request.method,
            request.path,
            cache_status,
            (time.perf_counter() - started) * 1000,
            error=error,
            status_code=capture.status,
        )

    async def _lookup(self, request: RequestDescriptor) -> Optional[bytes]:
        """Return the cached body for ``request``, or None to fall through."""
        try:
            lookup = await self.api_cache.get_cache(request)
        except (DecodeError, StoreUnavailableError) as e:
            logger.warning(
                "cache_read_failed",
                path=request.path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if not lookup.hit:
            return None

        payload = lookup.payload
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        if isinstance(payload, str):
            return payload.encode("utf-8")

        logger.warning(
            "cache_payload_not_bytes",
            key=lookup.key,
            payload_type=type(payload).__name__,
        )
        return None


class _ResponseCapture:
    """Forward ASGI send messages while recording status and body.

    Buffering stops once the body exceeds ``max_body_size``; forwarding
    to the client continues unchanged.
    """

    def __init__(self, send: Send, max_body_size: int) -> None:
        self._send = send
        self._max_body_size = max_body_size
        self.status: Optional[int] = None
        self.body = bytearray()
        self.overflowed = False

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
        elif message["type"] == "http.response.body" and not self.overflowed:
            chunk = message.get("body", b"")
            if len(self.body) + len(chunk) > self._max_body_size:
                self.overflowed = True
                self.body.clear()
            else:
                self.body.extend(chunk)
        await self._send(message)


def cache_middleware(api_cache: ApiCache, **options: Any) -> Callable[[ASGIApp], ASGIApp]:
    """
    Return a decorator wrapping an ASGI app in ApiCacheMiddleware.

    Example:
        >>> app = cache_middleware(api_cache, content_type="text/html")(app)
    """

    def wrap(app: ASGIApp) -> ASGIApp:
        return ApiCacheMiddleware(app, api_cache, **options)

    return wrap
