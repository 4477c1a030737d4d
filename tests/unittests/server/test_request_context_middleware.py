import asyncio

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from logcontext.context.decorators import log_context
from logcontext.main.request_context import get_request_context
from logcontext.server.middleware.request_context import RequestContextMiddleware


def build_app(**middleware_options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware, **middleware_options)

    @app.get("/context")
    async def read_context():
        return get_request_context()

    @app.get("/orders/{order_id}")
    @log_context("orderId=#order_id")
    async def read_order(order_id: str):
        return get_request_context()

    return app


@pytest.fixture
def client():
    transport = ASGITransport(app=build_app())
    return AsyncClient(transport=transport, base_url="http://test")


def http_scope(headers):
    return {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
    }


async def receive():
    return {"type": "http.request", "body": b"", "more_body": False}


async def send(message):
    pass


class TestHeaderSeeding:
    @pytest.mark.asyncio
    async def test_seeds_user_id(self, client):
        async with client:
            response = await client.get("/context", headers={"X-User-ID": "user-456"})

        assert response.json() == {"userID": "user-456"}

    @pytest.mark.asyncio
    async def test_header_lookup_is_case_insensitive(self, client):
        async with client:
            response = await client.get("/context", headers={"x-user-id": "user-456"})

        assert response.json() == {"userID": "user-456"}

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        async with client:
            response = await client.get("/context")

        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_blank_header(self, client):
        async with client:
            response = await client.get("/context", headers={"X-User-ID": "   "})

        assert response.json() == {}

    @pytest.mark.asyncio
    async def test_custom_header_and_key(self):
        app = build_app(header_name="X-Account-ID", context_key="accountId")

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/context", headers={"X-Account-ID": "acc-1"})

        assert response.json() == {"accountId": "acc-1"}

    @pytest.mark.asyncio
    async def test_combines_with_decorated_endpoint(self, client):
        async with client:
            response = await client.get("/orders/o-1", headers={"X-User-ID": "user-456"})

        assert response.json() == {"userID": "user-456", "orderId": "o-1"}

    @pytest.mark.asyncio
    async def test_value_is_stored_without_trimming(self, recording_context):
        async def app(scope, receive, send):
            pass

        middleware = RequestContextMiddleware(app, logging_context=recording_context)

        await middleware(http_scope([(b"x-user-id", b"  user-7 ")]), receive, send)

        assert ("set", ("userID", "  user-7 ")) in recording_context.calls


class TestClearing:
    @pytest.mark.asyncio
    async def test_clears_after_request(self, recording_context):
        seen = {}

        async def app(scope, receive, send):
            recording_context.set("orderId", "o-1")
            seen.update(recording_context.snapshot())

        middleware = RequestContextMiddleware(app, logging_context=recording_context)

        await middleware(http_scope([(b"x-user-id", b"user-1")]), receive, send)

        assert seen == {"userID": "user-1", "orderId": "o-1"}
        assert recording_context.snapshot() == {}
        assert recording_context.count("clear_all") == 1

    @pytest.mark.asyncio
    async def test_clears_when_app_raises(self, recording_context):
        async def app(scope, receive, send):
            raise RuntimeError("handler failed")

        middleware = RequestContextMiddleware(app, logging_context=recording_context)

        with pytest.raises(RuntimeError, match="handler failed"):
            await middleware(http_scope([(b"x-user-id", b"user-1")]), receive, send)

        assert recording_context.snapshot() == {}
        assert recording_context.count("clear_all") == 1

    @pytest.mark.asyncio
    async def test_clears_when_cancelled(self, recording_context):
        started = asyncio.Event()

        async def app(scope, receive, send):
            started.set()
            await asyncio.sleep(10)

        middleware = RequestContextMiddleware(app, logging_context=recording_context)
        task = asyncio.create_task(
            middleware(http_scope([(b"x-user-id", b"user-1")]), receive, send)
        )
        await started.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert recording_context.count("clear_all") == 1

    @pytest.mark.asyncio
    async def test_non_http_scopes_pass_through(self, recording_context):
        calls = []

        async def app(scope, receive, send):
            calls.append(scope["type"])

        middleware = RequestContextMiddleware(app, logging_context=recording_context)

        await middleware({"type": "lifespan"}, receive, send)

        assert calls == ["lifespan"]
        assert recording_context.calls == []
