"""Pytest configuration and fixtures."""

import asyncio
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import pytest

from mcprepl.mcp.protocol.errors import MCPError
from mcprepl.mcp.session.manager import SessionManager
from mcprepl.mcp.transport.base import ConnectionError, SessionError, Transport
from mcprepl.mcp.transport.types import TransportConfig, TransportKind

# Enable async tests without marking each one
pytest_plugins = ["pytest_asyncio"]

FIXTURES_DIR = Path(__file__).parent / "fixtures"

SAMPLE_TOOLS = [
    {
        "name": "get_weather",
        "description": "Current weather for a city",
        "inputSchema": {
            "type": "object",
            "properties": {"city": {"type": "string"}},
            "required": ["city"],
        },
    },
    {
        "name": "get_product",
        "description": "Look up a product by id",
        "inputSchema": {
            "type": "object",
            "properties": {"id": {"type": "string"}},
        },
    },
    {
        "name": "generate_image",
        "description": "Render an image from a prompt",
        "inputSchema": {
            "type": "object",
            "properties": {"prompt": {"type": "string"}},
        },
    },
]

Handler = Callable[[dict | None], Any]


def _default_handlers() -> dict[str, Handler]:
    return {
        "initialize": lambda params: {
            "protocolVersion": "2025-06-18",
            "capabilities": {"tools": {}},
            "serverInfo": {"name": "fake-server", "version": "0.1.0"},
        },
        "tools/list": lambda params: {"tools": SAMPLE_TOOLS},
        "tools/call": lambda params: {
            "content": [
                {"type": "text", "text": f"{params['name']}: {params.get('arguments')}"}
            ],
            "isError": False,
        },
    }


class FakeServer:
    """
    Scripted MCP server reached through FakeTransport.

    Handlers map a method to a function of the request params. A
    handler may return a result, or an MCPError to send back as a
    JSON-RPC error response.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = _default_handlers()
        self.connect_error: Exception | None = None
        self.transports: list["FakeTransport"] = []
        self.kinds: list[TransportKind] = []

    def transport_factory(self, kind: TransportKind, config: TransportConfig) -> "FakeTransport":
        transport = FakeTransport(config, self)
        self.kinds.append(kind)
        self.transports.append(transport)
        return transport

    @property
    def sent(self) -> list[dict]:
        return [message for transport in self.transports for message in transport.sent]

    def sent_methods(self) -> list[str]:
        return [message.get("method") for message in self.sent if "method" in message]

    def respond(self, message: dict) -> dict | None:
        if "method" not in message or "id" not in message:
            return None

        handler = self.handlers.get(message["method"])
        if handler is None:
            return {
                "jsonrpc": "2.0",
                "id": message["id"],
                "error": {"code": -32601, "message": f"Method not found: {message['method']}"},
            }

        outcome = handler(message.get("params"))
        if isinstance(outcome, MCPError):
            return {"jsonrpc": "2.0", "id": message["id"], "error": outcome.to_dict()}
        return {"jsonrpc": "2.0", "id": message["id"], "result": outcome}


class FakeTransport(Transport):
    """In-memory transport answering requests through a FakeServer."""

    def __init__(self, config: TransportConfig, server: FakeServer):
        super().__init__(config)
        self.server = server
        self.sent: list[dict] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._inbox: asyncio.Queue[dict | None] = asyncio.Queue()
        self._connected = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.server.connect_error is not None:
            raise self.server.connect_error
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False
        self._inbox.put_nowait(None)

    async def send(self, message: dict) -> dict | None:
        if not self._connected:
            raise SessionError("Transport not connected")
        self.sent.append(message)
        return self.server.respond(message)

    async def receive(self) -> AsyncIterator[dict]:
        while True:
            message = await self._inbox.get()
            if message is None:
                break
            yield message

    def is_connected(self) -> bool:
        return self._connected

    def push(self, message: dict) -> None:
        """Deliver a server-initiated message."""
        self._inbox.put_nowait(message)

    def drop(self) -> None:
        """Simulate the server going away."""
        self._connected = False
        self._inbox.put_nowait(None)


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def fake_transport(fake_server):
    return fake_server.transport_factory(
        TransportKind.STDIO, TransportConfig(target="/path/to/server")
    )


@pytest.fixture
def manager(fake_server):
    return SessionManager(
        transport_factory=fake_server.transport_factory,
        request_timeout=2.0,
    )


@pytest.fixture
def echo_server_path():
    """Stdlib-only MCP server script speaking newline-delimited JSON."""
    return FIXTURES_DIR / "echo_server.py"


@pytest.fixture
def unreachable_error():
    return ConnectionError("Could not reach server")
