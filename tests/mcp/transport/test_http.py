"""Tests for Streamable HTTP transport."""

import asyncio

import httpx
import pytest

from mcprepl.lib import oj
from mcprepl.mcp.protocol.errors import MCPError
from mcprepl.mcp.transport import (
    StreamableHTTPTransport,
    TransportConfig,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
    TransportEventType,
)


class TestTransportConfig:
    """Tests for TransportConfig validation."""

    def test_valid_url(self):
        config = TransportConfig(target="https://example.com/mcp")
        assert config.target == "https://example.com/mcp"

    def test_empty_target_rejected(self):
        with pytest.raises(ValueError, match="target is required"):
            TransportConfig(target="")

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValueError, match="timeout must be positive"):
            TransportConfig(target="https://example.com", timeout=0)

    def test_api_key_header(self):
        config = TransportConfig(
            target="https://example.com",
            api_key="secret",
            headers={"X-Trace": "1"},
        )
        assert config.request_headers() == {"X-Trace": "1", "x-api-key": "secret"}

    def test_no_api_key_header_without_key(self):
        assert "x-api-key" not in TransportConfig(target="https://example.com").request_headers()


class RecordingServer:
    """httpx handler standing in for a Streamable HTTP server."""

    def __init__(self, reply=None):
        self.requests: list[httpx.Request] = []
        self.reply = reply or self.json_reply

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "DELETE":
            return httpx.Response(200)
        return self.reply(request)

    @staticmethod
    def json_reply(request: httpx.Request) -> httpx.Response:
        body = oj.loads(request.content)
        if "id" not in body:
            return httpx.Response(202)
        return httpx.Response(
            200,
            headers={"Mcp-Session-Id": "session-123"},
            json={"jsonrpc": "2.0", "id": body["id"], "result": {"method": body["method"]}},
        )


def make_transport(handler, **config_kwargs) -> StreamableHTTPTransport:
    config = TransportConfig(target="https://example.com/mcp", **config_kwargs)
    return StreamableHTTPTransport(config, http_transport=httpx.MockTransport(handler))


class TestStreamableHTTPTransport:
    """Tests for StreamableHTTPTransport."""

    @pytest.fixture
    def server(self):
        return RecordingServer()

    @pytest.fixture
    def transport(self, server):
        return make_transport(server)

    @pytest.mark.asyncio
    async def test_connect_initializes_client(self, transport):
        """Test that connect() creates HTTP client."""
        await transport.connect()
        assert transport.is_connected()
        assert transport._client is not None
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up(self, transport):
        """Test that disconnect() releases resources."""
        await transport.connect()
        await transport.disconnect()
        await transport.disconnect()
        assert not transport.is_connected()
        assert transport._client is None

    @pytest.mark.asyncio
    async def test_send_requires_connection(self, transport):
        """Test that send() fails without connection."""
        with pytest.raises(SessionError, match="not connected"):
            await transport.send({"jsonrpc": "2.0", "method": "test", "id": 1})

    @pytest.mark.asyncio
    async def test_context_manager(self, server):
        """Test async context manager protocol."""
        async with make_transport(server) as transport:
            assert transport.is_connected()
        assert not transport.is_connected()

    @pytest.mark.asyncio
    async def test_event_emission(self, transport):
        """Test that transport emits events."""
        events = []
        transport.on_event(lambda e: events.append(e))

        await transport.connect()
        await transport.disconnect()

        event_types = [e.type for e in events]
        assert TransportEventType.CONNECTING in event_types
        assert TransportEventType.CONNECTED in event_types
        assert TransportEventType.DISCONNECTING in event_types
        assert TransportEventType.DISCONNECTED in event_types

    def test_session_id_none_initially(self, transport):
        """Test that session_id is None before first exchange."""
        assert transport.session_id is None

    @pytest.mark.asyncio
    async def test_json_reply_returned_immediately(self, transport, server):
        await transport.connect()
        reply = await transport.send({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
        await transport.disconnect()

        assert reply == {"jsonrpc": "2.0", "id": 1, "result": {"method": "tools/list"}}
        assert server.requests[0].headers["accept"] == "application/json, text/event-stream"

    @pytest.mark.asyncio
    async def test_session_id_captured_and_replayed(self, transport, server):
        await transport.connect()
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        await transport.send({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})

        assert transport.session_id == "session-123"
        assert "mcp-session-id" not in server.requests[0].headers
        assert server.requests[1].headers["mcp-session-id"] == "session-123"

        await transport.disconnect()
        delete = server.requests[-1]
        assert delete.method == "DELETE"
        assert delete.headers["mcp-session-id"] == "session-123"

    @pytest.mark.asyncio
    async def test_api_key_sent(self, server):
        transport = make_transport(server, api_key="secret")
        await transport.connect()
        await transport.send({"jsonrpc": "2.0", "id": 1, "method": "ping"})
        await transport.disconnect()

        assert server.requests[0].headers["x-api-key"] == "secret"

    @pytest.mark.asyncio
    async def test_accepted_notification(self, transport):
        await transport.connect()
        assert await transport.send({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_event_stream_reply_delivered_via_receive(self):
        def reply(request):
            body = oj.loads(request.content)
            frame = oj.dumps({"jsonrpc": "2.0", "id": body["id"], "result": {"ok": True}})
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream"},
                content=f"event: message\ndata: {frame}\n\n".encode(),
            )

        transport = make_transport(RecordingServer(reply))
        await transport.connect()
        assert await transport.send({"jsonrpc": "2.0", "id": 9, "method": "tools/list"}) is None

        messages = transport.receive()
        message = await asyncio.wait_for(messages.__anext__(), timeout=1)
        assert message == {"jsonrpc": "2.0", "id": 9, "result": {"ok": True}}
        await messages.aclose()
        await transport.disconnect()


class TestHTTPErrors:
    @pytest.mark.asyncio
    async def test_json_rpc_error_body_keeps_code(self):
        def reply(request):
            return httpx.Response(
                401,
                json={"jsonrpc": "2.0", "id": None, "error": {"code": -32000, "message": "Unauthorized"}},
            )

        transport = make_transport(RecordingServer(reply))
        await transport.connect()
        with pytest.raises(MCPError) as exc_info:
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        await transport.disconnect()

        assert exc_info.value.code == -32000
        assert exc_info.value.data == {"http_status": 401}

    @pytest.mark.asyncio
    async def test_plain_http_error(self):
        transport = make_transport(RecordingServer(lambda request: httpx.Response(404, text="Not Found")))
        await transport.connect()
        with pytest.raises(TransportError, match="HTTP 404: Not Found"):
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_connect_error_mapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(refuse)
        await transport.connect()
        with pytest.raises(ConnectionError, match="Could not reach"):
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        await transport.disconnect()

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def stall(request):
            raise httpx.ReadTimeout("timed out", request=request)

        transport = make_transport(stall)
        await transport.connect()
        with pytest.raises(TimeoutError):
            await transport.send({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        await transport.disconnect()
