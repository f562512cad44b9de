"""
Classification of transport and protocol failures.

Failures arrive in many shapes: MCPError instances, httpx errors,
raw JSON-RPC error payloads, or arbitrary objects. classify() probes
them for a JSON-RPC style code and message and attaches remediation
text for the well-known MCP server codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from mcprepl.mcp.protocol.errors import (
    AUTHENTICATION_ERROR,
    INVALID_SESSION,
    METHOD_NOT_FOUND,
    INVALID_PARAMETERS,
    INTERNAL_ERROR,
    PARSE_ERROR,
)

UNKNOWN_ERROR_MESSAGE = "Unknown error"


@dataclass(frozen=True)
class ErrorInfo:
    """Remediation record for a well-known error code."""

    code: int
    name: str
    description: str
    common_cause: str
    how_to_handle: str


KNOWN_ERRORS: Mapping[int, ErrorInfo] = MappingProxyType(
    {
        AUTHENTICATION_ERROR: ErrorInfo(
            code=AUTHENTICATION_ERROR,
            name="Authentication Error",
            description="Missing or invalid authentication token",
            common_cause="The API key or authentication credentials are missing or invalid",
            how_to_handle="Check your API_KEY constant and ensure it's valid",
        ),
        INVALID_SESSION: ErrorInfo(
            code=INVALID_SESSION,
            name="Invalid Session",
            description="Session ID not found or expired",
            common_cause="The session has expired or was not properly initialized",
            how_to_handle="Reconnect to reinitialize the session",
        ),
        METHOD_NOT_FOUND: ErrorInfo(
            code=METHOD_NOT_FOUND,
            name="Method Not Found",
            description="The requested method does not exist",
            common_cause="Called a tool or method that is not available on this server",
            how_to_handle="List available tools and verify the method name",
        ),
        INVALID_PARAMETERS: ErrorInfo(
            code=INVALID_PARAMETERS,
            name="Invalid Parameters",
            description="Missing or invalid parameters",
            common_cause="The parameters provided do not match the expected schema",
            how_to_handle="Check the tool schema and validate your input parameters",
        ),
        INTERNAL_ERROR: ErrorInfo(
            code=INTERNAL_ERROR,
            name="Internal Error",
            description="Server-side exception occurred",
            common_cause="An unexpected error occurred on the server",
            how_to_handle="Check server logs for details. This may be a bug in the MCP server",
        ),
        PARSE_ERROR: ErrorInfo(
            code=PARSE_ERROR,
            name="Parse Error",
            description="Invalid JSON format",
            common_cause="The request contained malformed JSON",
            how_to_handle="Verify your JSON syntax. Use proper escaping and formatting",
        ),
    }
)


@dataclass(frozen=True)
class Diagnostic:
    """A failure reduced to its message, optional code, and remediation."""

    message: str
    code: Any = None
    info: ErrorInfo | None = None

    @property
    def has_code(self) -> bool:
        return self.code is not None

    @property
    def is_known(self) -> bool:
        """True when the code matched one of the well-known MCP codes."""
        return self.info is not None

    @property
    def is_unknown_code(self) -> bool:
        return self.code is not None and self.info is None

    @property
    def name(self) -> str | None:
        return self.info.name if self.info else None

    @property
    def how_to_handle(self) -> str | None:
        return self.info.how_to_handle if self.info else None

    def format(self) -> str:
        """Render the multi-line report shown to users."""
        lines = [f"Error: {self.message}"]
        if self.info is not None:
            lines += [
                "",
                "MCP Error Details:",
                f"   Code: {self.info.code}",
                f"   Name: {self.info.name}",
                f"   Description: {self.info.description}",
                f"   Common Cause: {self.info.common_cause}",
                f"   How to Handle: {self.info.how_to_handle}",
            ]
        elif self.code is not None:
            lines += ["", f"Error Code: {self.code} (unknown MCP error code)"]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


def _field(obj: Any, name: str) -> Any:
    """Read name from a mapping key or an attribute; None if absent or unreadable."""
    if obj is None:
        return None
    try:
        if isinstance(obj, Mapping):
            return obj.get(name)
        return getattr(obj, name, None)
    except Exception:
        return None


def _probe(obj: Any, *path: str) -> Any:
    for name in path:
        obj = _field(obj, name)
        if obj is None:
            return None
    return obj


def extract_code(error: Any) -> Any:
    """First present of error.code, error.error.code, error.response.error.code."""
    for path in (("code",), ("error", "code"), ("response", "error", "code")):
        code = _probe(error, *path)
        if code is not None:
            return code
    return None


def extract_message(error: Any) -> str:
    """First non-empty of error.message, error.error.message, str(error)."""
    for path in (("message",), ("error", "message")):
        message = _probe(error, *path)
        if message:
            try:
                return str(message)
            except Exception:
                continue

    if error is None:
        return UNKNOWN_ERROR_MESSAGE
    try:
        text = str(error)
    except Exception:
        return UNKNOWN_ERROR_MESSAGE
    return text or UNKNOWN_ERROR_MESSAGE


def normalize_code(code: Any) -> Any:
    """JSON numbers such as -32000.0 name the same code as -32000."""
    if isinstance(code, bool):
        return None
    if isinstance(code, float) and code.is_integer():
        return int(code)
    return code


def lookup(code: Any) -> ErrorInfo | None:
    """Remediation record for code, if it is one of the well-known codes."""
    code = normalize_code(code)
    if not isinstance(code, int):
        return None
    return KNOWN_ERRORS.get(code)


def classify(error: Any) -> Diagnostic:
    """
    Reduce any failure object to a Diagnostic.

    Never raises: every probe tolerates missing, oddly typed, or
    misbehaving fields.
    """
    try:
        code = normalize_code(extract_code(error))
        message = extract_message(error)
        return Diagnostic(message=message, code=code, info=lookup(code))
    except Exception:
        return Diagnostic(message=UNKNOWN_ERROR_MESSAGE)


def format_error(error: Any) -> str:
    """Classify error and render it for display."""
    return classify(error).format()
