"""
MCP Protocol Core.

JSON-RPC 2.0 message framing, request/response correlation, the
initialize handshake, and classification of protocol failures.
"""

from mcprepl.mcp.protocol.messages import (
    MessageKind,
    Response,
    build_notification,
    build_request,
    message_kind,
)
from mcprepl.mcp.protocol.errors import (
    MCPError,
    AUTHENTICATION_ERROR,
    INVALID_SESSION,
    METHOD_NOT_FOUND,
    INVALID_PARAMETERS,
    INTERNAL_ERROR,
    PARSE_ERROR,
    REQUEST_TIMEOUT,
    REQUEST_CANCELLED,
)
from mcprepl.mcp.protocol.diagnostics import (
    Diagnostic,
    ErrorInfo,
    KNOWN_ERRORS,
    classify,
    format_error,
)
from mcprepl.mcp.protocol.client import ProtocolClient
from mcprepl.mcp.protocol.negotiation import (
    ClientInfo,
    ServerInfo,
    NegotiationResult,
    IncompatibleProtocolError,
    negotiate,
)

__all__ = [
    # Messages
    "MessageKind",
    "Response",
    "build_notification",
    "build_request",
    "message_kind",
    # Errors
    "MCPError",
    "AUTHENTICATION_ERROR",
    "INVALID_SESSION",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMETERS",
    "INTERNAL_ERROR",
    "PARSE_ERROR",
    "REQUEST_TIMEOUT",
    "REQUEST_CANCELLED",
    # Diagnostics
    "Diagnostic",
    "ErrorInfo",
    "KNOWN_ERRORS",
    "classify",
    "format_error",
    # Client
    "ProtocolClient",
    "ClientInfo",
    "ServerInfo",
    "NegotiationResult",
    "IncompatibleProtocolError",
    "negotiate",
]
