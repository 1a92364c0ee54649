"""
Tests for the ASGI cache middleware.

Runs a small Starlette application behind ApiCacheMiddleware and drives
it through httpx.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.routing import Route

from api_cache.cache.manager import ApiCache
from api_cache.exceptions import StoreUnavailableError
from api_cache.middleware import ApiCacheMiddleware, cache_middleware
from api_cache.models import RequestDescriptor


class Backend:
    """Route handlers that count their invocations."""

    def __init__(self) -> None:
        self.calls = 0

    async def users(self, request: Request):
        self.calls += 1
        return JSONResponse(
            {"users": ["ada", "grace"], "page": request.query_params.get("page")}
        )

    async def create_user(self, request: Request):
        self.calls += 1
        return JSONResponse({"created": True}, status_code=201)

    async def missing(self, request: Request):
        self.calls += 1
        return PlainTextResponse("not found", status_code=404)

    async def stream(self, request: Request):
        self.calls += 1

        async def chunks():
            for part in (b"[1,", b"2,", b"3]"):
                yield part

        return StreamingResponse(chunks(), media_type="application/json")

    async def boom(self, request: Request):
        self.calls += 1
        raise RuntimeError("handler failed")


def build_app(api_cache: ApiCache, backend: Backend, **options) -> Starlette:
    return Starlette(
        routes=[
            Route("/users", backend.users, methods=["GET"]),
            Route("/users", backend.create_user, methods=["POST"]),
            Route("/missing", backend.missing),
            Route("/stream", backend.stream),
            Route("/boom", backend.boom),
        ],
        middleware=[Middleware(ApiCacheMiddleware, api_cache=api_cache, **options)],
    )


def client_for(app) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def client(api_cache, backend):
    return client_for(build_app(api_cache, backend))


class TestApiCacheMiddleware:
    """Test suite for ApiCacheMiddleware."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, client, backend):
        """Test that the second identical GET is served from the cache."""
        async with client:
            first = await client.get("/users?page=1")
            second = await client.get("/users?page=1")

        assert backend.calls == 1
        assert first.status_code == 200
        assert "x-cache" not in first.headers
        assert second.status_code == 200
        assert second.headers["x-cache"] == "HIT"
        assert second.headers["content-type"] == "application/json"
        assert second.content == first.content

    @pytest.mark.asyncio
    async def test_different_query_is_a_miss(self, client, backend):
        async with client:
            await client.get("/users?page=1")
            response = await client.get("/users?page=2")

        assert backend.calls == 2
        assert response.json()["page"] == "2"

    @pytest.mark.asyncio
    async def test_query_order_hits_same_entry(self, client, backend):
        async with client:
            await client.get("/users?page=1&sort=name")
            response = await client.get("/users?sort=name&page=1")

        assert backend.calls == 1
        assert response.headers["x-cache"] == "HIT"

    @pytest.mark.asyncio
    async def test_post_bypasses_cache(self, client, backend, fake_redis):
        """Test that non-GET requests always reach the handler."""
        async with client:
            first = await client.post("/users")
            second = await client.post("/users")

        assert backend.calls == 2
        assert first.status_code == second.status_code == 201
        assert fake_redis._data == {}

    @pytest.mark.asyncio
    async def test_error_responses_not_cached(self, client, backend, api_cache):
        async with client:
            await client.get("/missing")
            response = await client.get("/missing")

        assert backend.calls == 2
        assert response.status_code == 404
        lookup = await api_cache.get_cache(RequestDescriptor(method="GET", path="/missing"))
        assert not lookup.hit

    @pytest.mark.asyncio
    async def test_custom_cacheable_status_codes(self, api_cache, backend):
        app = build_app(api_cache, backend, cacheable_status_codes=(200, 404))

        async with client_for(app) as client:
            await client.get("/missing")
            response = await client.get("/missing")

        assert backend.calls == 1
        # Served from cache with the configured success status
        assert response.status_code == 200
        assert response.text == "not found"

    @pytest.mark.asyncio
    async def test_streamed_body_captured_whole(self, client, backend):
        """Test that every chunk reaches the client and the cache."""
        async with client:
            first = await client.get("/stream")
            second = await client.get("/stream")

        assert first.content == b"[1,2,3]"
        assert second.content == b"[1,2,3]"
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_oversized_body_not_cached(self, api_cache, backend, fake_redis):
        """Test that bodies above max_body_size reach the client but not the store."""
        app = build_app(api_cache, backend, max_body_size=4)

        async with client_for(app) as client:
            first = await client.get("/stream")
            second = await client.get("/stream")

        assert first.content == b"[1,2,3]"
        assert second.content == b"[1,2,3]"
        assert backend.calls == 2
        assert fake_redis._data == {}

    @pytest.mark.asyncio
    async def test_body_at_limit_is_cached(self, api_cache, backend):
        app = build_app(api_cache, backend, max_body_size=len(b"[1,2,3]"))

        async with client_for(app) as client:
            await client.get("/stream")
            await client.get("/stream")

        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_handler_exception_not_cached(self, client, backend, fake_redis):
        async with client:
            response = await client.get("/boom")

        assert response.status_code == 500
        assert backend.calls == 1
        assert fake_redis._data == {}

    @pytest.mark.asyncio
    async def test_invalidation_forces_refresh(self, client, backend, api_cache):
        async with client:
            await client.get("/users")
            removed = await api_cache.invalidate_cache(
                RequestDescriptor(method="GET", path="/users")
            )
            await client.get("/users")

        assert removed is True
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_corrupt_entry_falls_through(self, client, backend, fake_redis):
        """Test that an undecodable entry is treated as a miss and replaced."""
        await fake_redis.set("get__users__", "not-a-valid-entry!")

        async with client:
            first = await client.get("/users")
            second = await client.get("/users")

        assert first.status_code == 200
        assert first.json()["users"] == ["ada", "grace"]
        assert second.headers["x-cache"] == "HIT"
        assert backend.calls == 1

    @pytest.mark.asyncio
    async def test_non_bytes_payload_falls_through(self, client, backend, api_cache):
        await api_cache.set_cache(RequestDescriptor(method="GET", path="/users"), {"a": 1})

        async with client:
            response = await client.get("/users")

        assert backend.calls == 1
        assert response.json()["users"] == ["ada", "grace"]

    @pytest.mark.asyncio
    async def test_store_unavailable_does_not_fail_request(self, backend):
        """Test that a dead store leaves responses untouched."""
        store = AsyncMock()
        store.get = AsyncMock(side_effect=StoreUnavailableError("get"))
        store.incr = AsyncMock(return_value=1)
        store.set = AsyncMock(side_effect=StoreUnavailableError("set"))
        app = build_app(ApiCache(store), backend)

        async with client_for(app) as client:
            response = await client.get("/users")

        assert response.status_code == 200
        assert response.json()["users"] == ["ada", "grace"]
        store.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rate_limit_denial_is_absorbed(self, backend):
        """Test that a denied write still returns the handler's response."""
        store = AsyncMock()
        store.get = AsyncMock(return_value=None)
        store.incr = AsyncMock(return_value=11)
        app = build_app(ApiCache(store), backend)

        async with client_for(app) as client:
            response = await client.get("/users")

        assert response.status_code == 200
        assert response.json()["users"] == ["ada", "grace"]
        store.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_custom_content_type(self, api_cache, backend):
        app = build_app(api_cache, backend, content_type="text/plain; charset=utf-8")

        async with client_for(app) as client:
            await client.get("/users")
            response = await client.get("/users")

        assert response.headers["content-type"] == "text/plain; charset=utf-8"


@pytest.mark.asyncio
async def test_cache_middleware_decorator(api_cache):
    """Test wrapping a bare ASGI callable with cache_middleware()."""
    calls = []

    async def app(scope, receive, send):
        calls.append(scope["path"])
        await send(
            {
                "type": "http.response.start",
                "status": 200,
                "headers": [(b"content-type", b"application/json")],
            }
        )
        await send({"type": "http.response.body", "body": b'{"ok": true}'})

    wrapped = cache_middleware(api_cache)(app)

    async with client_for(wrapped) as client:
        first = await client.get("/health")
        second = await client.get("/health")

    assert calls == ["/health"]
    assert first.content == second.content == b'{"ok": true}'
