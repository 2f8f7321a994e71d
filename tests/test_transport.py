from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from pyiiot._transport import AuthenticatedTransport, SessionEndedSignal
from pyiiot.config import IiotConfig
from pyiiot.exceptions import (
    IiotApiError,
    IiotAuthenticationError,
    IiotNetworkError,
    IiotSessionExpiredError,
    IiotSessionStorageError,
    IiotTransportError,
)
from pyiiot.session import MemorySessionBackend, Session, SessionStore


class _Recorder:
    def __init__(self) -> None:
        self.headers: list[Any] = []
        self.bodies: list[Any] = []
        self.queries: list[dict[str, str]] = []

    async def record(self, request: web.Request) -> None:
        self.headers.append(request.headers.copy())
        self.queries.append(dict(request.query))
        self.bodies.append(await request.json() if request.can_read_body else None)


@contextlib.asynccontextmanager
async def _serve(app: web.Application) -> AsyncIterator[tuple[IiotConfig, aiohttp.ClientSession]]:
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        async with aiohttp.ClientSession() as http:
            yield IiotConfig(base_url=str(server.make_url("/api/v1"))), http
    finally:
        await server.close()


def _app(recorder: _Recorder, status: int = 200, payload: Any = None, text: str | None = None) -> web.Application:
    async def handler(request: web.Request) -> web.StreamResponse:
        await recorder.record(request)
        if text is not None:
            return web.Response(status=status, text=text, content_type="application/json")
        return web.json_response(payload, status=status)

    app = web.Application()
    app.router.add_route("*", "/api/v1/{tail:.*}", handler)
    return app


@pytest.mark.asyncio
async def test_no_authorization_header_without_token() -> None:
    recorder = _Recorder()
    async with _serve(_app(recorder, payload={"success": True, "data": []})) as (config, http):
        transport = AuthenticatedTransport(config, SessionStore(), http)
        body = await transport.request("GET", "/devices/status")

    assert body == {"success": True, "data": []}
    assert "Authorization" not in recorder.headers[0]


@pytest.mark.asyncio
async def test_bearer_token_attached_from_session_store() -> None:
    recorder = _Recorder()
    store = SessionStore(MemorySessionBackend({"iiot_token": "abc123"}))
    async with _serve(_app(recorder, payload={"ok": True})) as (config, http):
        transport = AuthenticatedTransport(config, store, http)
        await transport.request("GET", "/sensors/recent", params={"limit": "50"})
        store.set(Session(access_token="rotated"))
        await transport.request("POST", "/auth/logout", json={"x": 1})

    assert recorder.headers[0]["Authorization"] == "Bearer abc123"
    assert recorder.queries[0] == {"limit": "50"}
    assert recorder.headers[1]["Authorization"] == "Bearer rotated"
    assert recorder.bodies[1] == {"x": 1}


@pytest.mark.asyncio
async def test_unauthorized_clears_session_and_emits_once() -> None:
    recorder = _Recorder()
    store = SessionStore(MemorySessionBackend({"iiot_token": "expired", "iiot_refresh_token": "r"}))
    signal = SessionEndedSignal()
    ended: list[None] = []
    signal.connect(lambda: ended.append(None))

    async with _serve(_app(recorder, status=401, payload={"message": "jwt expired"})) as (config, http):
        transport = AuthenticatedTransport(config, store, http, session_ended=signal)
        results = await asyncio.gather(
            transport.request("GET", "/system/metrics"),
            transport.request("GET", "/sensors/recent"),
            transport.request("GET", "/devices/status"),
            return_exceptions=True,
        )

    assert all(isinstance(result, IiotSessionExpiredError) for result in results)
    assert "jwt expired" in str(results[0])
    assert store.get().is_empty
    assert len(ended) == 1


@pytest.mark.asyncio
async def test_unauthorized_without_session_does_not_emit() -> None:
    recorder = _Recorder()
    ended: list[None] = []
    async with _serve(_app(recorder, status=401, payload={"message": "Invalid credentials"})) as (config, http):
        transport = AuthenticatedTransport(config, SessionStore(), http)
        transport.session_ended.connect(lambda: ended.append(None))
        with pytest.raises(IiotAuthenticationError) as exc_info:
            await transport.request("POST", "/auth/login", json={"email": "a", "password": "b"})

    assert exc_info.value.status_code == 401
    assert ended == []


@pytest.mark.asyncio
async def test_failing_session_ended_callback_does_not_mask_error() -> None:
    recorder = _Recorder()
    store = SessionStore(MemorySessionBackend({"iiot_token": "t"}))

    def _boom() -> None:
        raise RuntimeError("callback failed")

    async with _serve(_app(recorder, status=401, payload={})) as (config, http):
        transport = AuthenticatedTransport(config, store, http)
        transport.session_ended.connect(_boom)
        with pytest.raises(IiotSessionExpiredError):
            await transport.request("GET", "/system/metrics")


@pytest.mark.asyncio
async def test_unauthorized_with_failing_storage_still_raises_session_expired() -> None:
    class _ReadOnlyBackend(MemorySessionBackend):
        def remove_all(self) -> None:
            raise IiotSessionStorageError("read-only filesystem")

    recorder = _Recorder()
    store = SessionStore(_ReadOnlyBackend({"iiot_token": "t"}))
    ended: list[None] = []

    async with _serve(_app(recorder, status=401, payload={"message": "jwt expired"})) as (config, http):
        transport = AuthenticatedTransport(config, store, http)
        transport.session_ended.connect(lambda: ended.append(None))
        with pytest.raises(IiotSessionExpiredError) as exc_info:
            await transport.request("GET", "/system/metrics")
        with pytest.raises(IiotSessionExpiredError):
            await transport.request("GET", "/system/metrics")

    assert isinstance(exc_info.value.__cause__, IiotSessionStorageError)
    assert store.get().is_empty
    assert len(ended) == 1
    assert "Authorization" not in recorder.headers[1]


@pytest.mark.asyncio
async def test_server_error_maps_to_retryable_api_error() -> None:
    recorder = _Recorder()
    async with _serve(_app(recorder, status=503, payload={"message": "maintenance"})) as (config, http):
        transport = AuthenticatedTransport(config, SessionStore(), http)
        with pytest.raises(IiotApiError) as exc_info:
            await transport.request("GET", "/system/metrics")

    exc = exc_info.value
    assert not isinstance(exc, IiotAuthenticationError)
    assert exc.status_code == 503
    assert exc.endpoint == "/system/metrics"
    assert exc.retryable
    assert "maintenance" in str(exc)


@pytest.mark.asyncio
async def test_client_error_is_not_retryable_and_keeps_session() -> None:
    recorder = _Recorder()
    store = SessionStore(MemorySessionBackend({"iiot_token": "t"}))
    async with _serve(_app(recorder, status=404, payload={"error": {"message": "Not found"}})) as (config, http):
        transport = AuthenticatedTransport(config, store, http)
        with pytest.raises(IiotApiError) as exc_info:
            await transport.request("GET", "/devices/status")

    assert not exc_info.value.retryable
    assert "Not found" in str(exc_info.value)
    assert store.get().access_token == "t"


@pytest.mark.asyncio
async def test_invalid_json_on_success_raises_transport_error() -> None:
    recorder = _Recorder()
    async with _serve(_app(recorder, text="<html>")) as (config, http):
        transport = AuthenticatedTransport(config, SessionStore(), http)
        with pytest.raises(IiotTransportError) as exc_info:
            await transport.request("GET", "/system/metrics")

    assert not isinstance(exc_info.value, IiotApiError)


@pytest.mark.asyncio
async def test_empty_body_returns_none() -> None:
    recorder = _Recorder()
    async with _serve(_app(recorder, text="")) as (config, http):
        transport = AuthenticatedTransport(config, SessionStore(), http)
        assert await transport.request("POST", "/auth/logout") is None


@pytest.mark.asyncio
async def test_unreachable_backend_raises_network_error() -> None:
    server = test_utils.TestServer(web.Application())
    await server.start_server()
    base_url = str(server.make_url("/api/v1"))
    await server.close()

    async with aiohttp.ClientSession() as http:
        transport = AuthenticatedTransport(IiotConfig(base_url=base_url, request_timeout=2.0), SessionStore(), http)
        with pytest.raises(IiotNetworkError) as exc_info:
            await transport.request("GET", "/system/metrics")

    assert exc_info.value.retryable
    assert exc_info.value.status_code is None
