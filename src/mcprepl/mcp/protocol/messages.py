"""JSON-RPC 2.0 framing for the client side of an MCP connection."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from mcprepl.mcp.protocol.errors import MCPError

JSONRPC_VERSION = "2.0"

_request_ids = itertools.count(1)


def next_request_id() -> int:
    """Process-wide monotonically increasing request id."""
    return next(_request_ids)


class MessageKind(Enum):
    """Shape of an incoming frame."""

    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    INVALID = "invalid"


def message_kind(message: Mapping[str, Any]) -> MessageKind:
    has_id = "id" in message
    has_method = "method" in message
    if has_method:
        return MessageKind.REQUEST if has_id else MessageKind.NOTIFICATION
    if has_id:
        return MessageKind.RESPONSE
    return MessageKind.INVALID


def build_request(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Frame a client request with a fresh id."""
    message: dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": next_request_id(),
        "method": method,
    }
    if params is not None:
        message["params"] = params
    return message


def build_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def build_result(request_id: str | int, result: Any) -> dict[str, Any]:
    """Reply to a server-initiated request."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def build_error(request_id: str | int | None, error: MCPError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_dict()}


@dataclass(frozen=True)
class Response:
    """
    A server reply matched against a pending request.

    `key` is the id as a string so that `1` and `"1"` correlate the
    same way regardless of how the server echoes it.
    """

    key: str | None
    result: Any = None
    error: MCPError | None = None

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "Response":
        raw_id = message.get("id")
        key = str(raw_id) if raw_id is not None else None
        error = message.get("error")
        if isinstance(error, Mapping):
            return cls(key=key, error=MCPError.from_dict(dict(error)))
        return cls(key=key, result=message.get("result"))
