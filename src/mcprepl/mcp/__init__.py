"""
MCP (Model Context Protocol) client core.

Submodules:
- transport: stdio, SSE, and Streamable HTTP transports behind one interface
- protocol: JSON-RPC 2.0 client, initialize handshake, error classification
- session: session lifecycle, tool catalog, tool invocation
- config: startup configuration and the auto-connect decision
"""

from mcprepl.mcp.transport import (
    Transport,
    TransportConfig,
    TransportKind,
    TransportError,
    UnsupportedTransportError,
    create_transport,
)
from mcprepl.mcp.protocol import (
    MCPError,
    Diagnostic,
    KNOWN_ERRORS,
    ProtocolClient,
    classify,
)
from mcprepl.mcp.session import (
    SessionManager,
    SessionState,
    SessionStatus,
    ToolCatalog,
    ToolDescriptor,
    CallResult,
    NotConnectedError,
    ToolNotFoundError,
    SessionConnectError,
    ToolCallError,
)
from mcprepl.mcp.config import ClientConfig, ConnectParams, should_auto_connect

__all__ = [
    # Transport
    "Transport",
    "TransportConfig",
    "TransportKind",
    "TransportError",
    "UnsupportedTransportError",
    "create_transport",
    # Protocol
    "MCPError",
    "Diagnostic",
    "KNOWN_ERRORS",
    "ProtocolClient",
    "classify",
    # Session
    "SessionManager",
    "SessionState",
    "SessionStatus",
    "ToolCatalog",
    "ToolDescriptor",
    "CallResult",
    "NotConnectedError",
    "ToolNotFoundError",
    "SessionConnectError",
    "ToolCallError",
    # Config
    "ClientConfig",
    "ConnectParams",
    "should_auto_connect",
]
