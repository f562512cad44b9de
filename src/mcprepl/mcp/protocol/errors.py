"""Protocol error types and error codes."""

from dataclasses import dataclass
from typing import Any

# Standard JSON-RPC 2.0 error codes
JSONRPC_PARSE_ERROR = -32700
INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603

# MCP server error codes (-32000 to -32099 reserved for implementation)
AUTHENTICATION_ERROR = -32000
INVALID_SESSION = -32001
METHOD_NOT_FOUND = -32002
INVALID_PARAMETERS = -32003
INTERNAL_ERROR = -32004
PARSE_ERROR = -32005

# Client-local codes, outside the server range
REQUEST_CANCELLED = -32800
REQUEST_TIMEOUT = -32801

# Error code to message mapping
ERROR_MESSAGES = {
    JSONRPC_PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
    JSONRPC_METHOD_NOT_FOUND: "Method not found",
    JSONRPC_INVALID_PARAMS: "Invalid params",
    JSONRPC_INTERNAL_ERROR: "Internal error",
    REQUEST_CANCELLED: "Request cancelled",
    REQUEST_TIMEOUT: "Request timeout",
}


@dataclass
class MCPError(Exception):
    """
    MCP protocol error.

    Represents an error response from the server, or a client-side
    failure of a single request (timeout, cancellation).
    """

    code: int
    message: str
    data: Any = None

    def __post_init__(self):
        # Set exception message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-RPC error object."""
        error = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_dict(cls, error: dict[str, Any]) -> "MCPError":
        """Create from JSON-RPC error object."""
        return cls(
            code=error.get("code", JSONRPC_INTERNAL_ERROR),
            message=error.get("message", "Unknown error"),
            data=error.get("data"),
        )

    @classmethod
    def method_not_found(cls, method: str) -> "MCPError":
        """Create a JSON-RPC method not found error."""
        return cls(
            code=JSONRPC_METHOD_NOT_FOUND,
            message=f"Method not found: {method}",
            data={"method": method},
        )

    @classmethod
    def timeout(cls, timeout_seconds: float) -> "MCPError":
        """Create a request timeout error."""
        return cls(
            code=REQUEST_TIMEOUT,
            message=f"Request timed out after {timeout_seconds}s",
            data={"timeout": timeout_seconds},
        )

    @classmethod
    def cancelled(cls, reason: str | None = None) -> "MCPError":
        """Create a request cancelled error."""
        return cls(
            code=REQUEST_CANCELLED,
            message=reason or ERROR_MESSAGES[REQUEST_CANCELLED],
        )

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"MCPError(code={self.code}, message={self.message!r}, data={self.data})"
