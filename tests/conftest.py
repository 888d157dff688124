"""Pytest configuration and shared fixtures: in-process Tradier look-alike servers."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
import websockets
from aiohttp import web
from aiohttp.test_utils import TestServer

SESSION_PATH = "/v1/markets/events/session"


class FakeSessionServer:
    """Answers the session POST with a canned status and body, recording each request."""

    def __init__(self, status: int = 200, body: str = '{"stream": {"sessionid": "abc123"}}'):
        self.status = status
        self.body = body
        self.requests: List[Dict[str, Any]] = []
        app = web.Application()
        app.router.add_post(SESSION_PATH, self._handle)
        self._server = TestServer(app)

    async def _handle(self, request: web.Request) -> web.Response:
        self.requests.append({
            "headers": dict(request.headers),
            "body": await request.read(),
        })
        return web.Response(status=self.status, text=self.body)

    @property
    def url(self) -> str:
        return str(self._server.make_url(SESSION_PATH))

    async def start(self):
        await self._server.start_server()

    async def stop(self):
        await self._server.close()


Behavior = Callable[["FakeStreamServer", Any], Awaitable[None]]


class FakeStreamServer:
    """WebSocket server running a scripted behavior per connection."""

    def __init__(self, behavior: Behavior, handshake_delay: float = 0.0):
        self.behavior = behavior
        self.handshake_delay = handshake_delay
        self.received: List[str] = []
        self.request_headers: List[Any] = []
        self.close_codes: List[Optional[int]] = []
        self._server = None

    @property
    def connections(self) -> int:
        return len(self.request_headers)

    @property
    def uri(self) -> str:
        port = list(self._server.sockets)[0].getsockname()[1]
        return f"ws://127.0.0.1:{port}/v1/markets/events"

    async def start(self):
        self._server = await websockets.serve(
            self._handle, "127.0.0.1", 0, process_request=self._delay_handshake
        )

    async def stop(self):
        self._server.close()
        await self._server.wait_closed()

    async def _delay_handshake(self, connection, request):
        if self.handshake_delay:
            await asyncio.sleep(self.handshake_delay)
        return None

    async def recv(self, ws) -> str:
        message = await ws.recv()
        self.received.append(message)
        return message

    async def _handle(self, ws):
        self.request_headers.append(ws.request.headers)
        await self.behavior(self, ws)
        self.close_codes.append(ws.close_code)


class MessageCollector:
    """Async handler that records messages and lets a test wait for N of them."""

    def __init__(self):
        self.messages: List[str] = []

    async def __call__(self, message: str):
        self.messages.append(message)

    async def wait_for(self, count: int, timeout: float = 5.0):
        async def _wait():
            while len(self.messages) < count:
                await asyncio.sleep(0.01)
        await asyncio.wait_for(_wait(), timeout)


@pytest_asyncio.fixture
async def session_server():
    servers: List[FakeSessionServer] = []

    async def _start(status: int = 200, body: str = '{"stream": {"sessionid": "abc123"}}'):
        server = FakeSessionServer(status, body)
        await server.start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        await server.stop()


@pytest_asyncio.fixture
async def stream_server():
    servers: List[FakeStreamServer] = []

    async def _start(behavior: Behavior, handshake_delay: float = 0.0):
        server = FakeStreamServer(behavior, handshake_delay)
        await server.start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        await server.stop()


@pytest.fixture
def collector() -> MessageCollector:
    return MessageCollector()
