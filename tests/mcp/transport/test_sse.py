"""Tests for the HTTP+SSE transport."""

import asyncio

import httpx
import pytest

from mcprepl.lib import oj
from mcprepl.mcp.protocol.errors import MCPError
from mcprepl.mcp.transport import (
    ConnectionError,
    SessionError,
    SSETransport,
    TimeoutError,
    TransportConfig,
)


class FakeSSEServer:
    """
    Push-channel server for httpx.MockTransport.

    The GET stream announces an endpoint and then relays whatever is
    placed in the outbox; POSTed requests are answered on the stream.
    """

    def __init__(self, endpoint: str = "/messages?session_id=abc"):
        self.endpoint = endpoint
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.posts: list[httpx.Request] = []
        self.stream_headers: httpx.Headers | None = None

    async def stream(self):
        if self.endpoint is not None:
            yield f"event: endpoint\ndata: {self.endpoint}\n\n".encode()
        while True:
            message = await self.outbox.get()
            if message is None:
                return
            yield f"event: message\ndata: {oj.dumps(message)}\n\n".encode()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            self.stream_headers = request.headers
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=self.stream(),
            )

        self.posts.append(request)
        body = oj.loads(request.content)
        if "id" in body and "method" in body:
            await self.outbox.put(
                {"jsonrpc": "2.0", "id": body["id"], "result": {"method": body["method"]}}
            )
        return httpx.Response(202)


def make_transport(handler, target="https://example.com/sse", **config_kwargs) -> SSETransport:
    config = TransportConfig(target=target, **config_kwargs)
    return SSETransport(config, http_transport=httpx.MockTransport(handler))


class TestSSETransport:
    @pytest.fixture
    def server(self):
        return FakeSSEServer()

    @pytest.mark.asyncio
    async def test_connect_resolves_endpoint(self, server):
        transport = make_transport(server, api_key="secret")
        await transport.connect()

        assert transport.is_connected()
        assert transport.endpoint_url == "https://example.com/messages?session_id=abc"
        assert server.stream_headers["accept"] == "text/event-stream"
        assert server.stream_headers["x-api-key"] == "secret"
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_request_answered_on_stream(self, server):
        transport = make_transport(server)
        await transport.connect()

        assert await transport.send({"jsonrpc": "2.0", "id": 3, "method": "tools/list"}) is None
        messages = transport.receive()
        message = await asyncio.wait_for(messages.__anext__(), timeout=1)
        await messages.aclose()

        assert message["id"] == 3
        assert str(server.posts[0].url) == "https://example.com/messages?session_id=abc"
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self, server):
        transport = make_transport(server)
        await transport.connect()
        await transport.disconnect()
        await transport.disconnect()

        assert not transport.is_connected()
        with pytest.raises(SessionError):
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "ping"})

    @pytest.mark.asyncio
    async def test_cross_origin_endpoint_rejected(self):
        transport = make_transport(FakeSSEServer(endpoint="https://evil.example.net/messages"))

        with pytest.raises(ConnectionError, match="origin"):
            await transport.connect()
        assert not transport.is_connected()

    @pytest.mark.asyncio
    async def test_missing_endpoint_times_out(self):
        transport = make_transport(FakeSSEServer(endpoint=None), connect_timeout=0.1)

        with pytest.raises(TimeoutError):
            await transport.connect()
        assert transport._client is None

    @pytest.mark.asyncio
    async def test_http_error_on_stream(self):
        def reject(request):
            return httpx.Response(
                401,
                json={"jsonrpc": "2.0", "id": None, "error": {"code": -32000, "message": "Unauthorized"}},
            )

        transport = make_transport(reject)
        with pytest.raises(MCPError) as exc_info:
            await transport.connect()
        assert exc_info.value.code == -32000
