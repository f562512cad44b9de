"""
MCP Transport Layer.

Three interchangeable transports behind one interface:
- stdio: local server process over stdin/stdout
- sse: HTTP+SSE push channel with a POST side channel
- http: Streamable HTTP request/response exchanges
"""

from mcprepl.mcp.transport.types import (
    API_KEY_HEADER,
    TransportConfig,
    TransportEvent,
    TransportEventType,
    TransportKind,
    UnsupportedTransportError,
)
from mcprepl.mcp.transport.base import Transport, TransportError, ConnectionError, TimeoutError, SessionError
from mcprepl.mcp.transport.stdio import StdioTransport, resolve_command, is_shell_command
from mcprepl.mcp.transport.sse import SSETransport
from mcprepl.mcp.transport.http import StreamableHTTPTransport
from mcprepl.mcp.transport.factory import TransportFactory, create_transport

__all__ = [
    "API_KEY_HEADER",
    "Transport",
    "TransportConfig",
    "TransportEvent",
    "TransportEventType",
    "TransportKind",
    "UnsupportedTransportError",
    "TransportError",
    "ConnectionError",
    "TimeoutError",
    "SessionError",
    "StdioTransport",
    "SSETransport",
    "StreamableHTTPTransport",
    "TransportFactory",
    "create_transport",
    "resolve_command",
    "is_shell_command",
]
