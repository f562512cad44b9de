"""Mapping from transport kind to transport implementation."""

from __future__ import annotations

from typing import Callable

from mcprepl.mcp.transport.base import Transport
from mcprepl.mcp.transport.http import StreamableHTTPTransport
from mcprepl.mcp.transport.sse import SSETransport
from mcprepl.mcp.transport.stdio import StdioTransport
from mcprepl.mcp.transport.types import TransportConfig, TransportKind

TransportFactory = Callable[[TransportKind, TransportConfig], Transport]

TRANSPORT_CLASSES: dict[TransportKind, type[Transport]] = {
    TransportKind.STDIO: StdioTransport,
    TransportKind.SSE: SSETransport,
    TransportKind.HTTP: StreamableHTTPTransport,
}


def create_transport(kind: TransportKind | str, config: TransportConfig) -> Transport:
    """
    Build an unconnected transport of the requested kind.

    Raises:
        UnsupportedTransportError: If kind is not a supported transport name.
    """
    kind = TransportKind.parse(kind)
    return TRANSPORT_CLASSES[kind](config)
