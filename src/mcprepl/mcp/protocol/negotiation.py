"""MCP initialize handshake."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcprepl.mcp.protocol.client import ProtocolClient

logger = logging.getLogger(__name__)

# Protocol version constants
PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_VERSIONS = ["2025-11-25", "2025-06-18", "2025-03-26", "2024-11-05"]


class IncompatibleProtocolError(Exception):
    """Server protocol version is not compatible with client."""

    def __init__(self, message: str, server_version: str | None = None):
        super().__init__(message)
        self.server_version = server_version


@dataclass
class ClientInfo:
    """Information about this client sent during initialization."""

    name: str = "mcp-cli"
    version: str = "1.0.0"

    def to_dict(self) -> dict[str, str]:
        """Convert to wire format."""
        return {"name": self.name, "version": self.version}


@dataclass
class ServerInfo:
    """Information about the connected server."""

    name: str
    version: str

    @classmethod
    def from_dict(cls, data: dict) -> "ServerInfo":
        """Create from server response."""
        return cls(
            name=data.get("name", "unknown"),
            version=data.get("version", "unknown"),
        )

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"


@dataclass
class NegotiationResult:
    """Result of a completed initialize handshake."""

    protocol_version: str
    server_info: ServerInfo
    server_capabilities: dict[str, Any] = field(default_factory=dict)
    instructions: str | None = None

    def supports(self, feature: str) -> bool:
        """Check if the server declared a capability ('tools', 'resources', ...)."""
        return feature in self.server_capabilities

    def __str__(self) -> str:
        features = sorted(self.server_capabilities)
        return (
            f"NegotiationResult(version={self.protocol_version}, "
            f"server={self.server_info}, features={features})"
        )


async def negotiate(
    client: "ProtocolClient",
    client_info: ClientInfo | None = None,
    timeout: float = 10.0,
) -> NegotiationResult:
    """
    Perform the initialization handshake.

    Sends initialize with this client's info, validates the server's
    protocol version, and sends the initialized notification.

    Raises:
        IncompatibleProtocolError: If server version not supported.
        MCPError: If the server rejects initialization.
    """
    client_info = client_info or ClientInfo()
    logger.debug(f"Starting initialize handshake as {client_info.name}")

    response = await client.request(
        "initialize",
        {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": client_info.to_dict(),
        },
        timeout=timeout,
    )
    if not isinstance(response, dict):
        raise IncompatibleProtocolError("Server sent an empty initialize result")

    server_version = response.get("protocolVersion", "")
    if server_version not in SUPPORTED_VERSIONS:
        raise IncompatibleProtocolError(
            f"Server protocol version '{server_version}' not supported. "
            f"Supported versions: {SUPPORTED_VERSIONS}",
            server_version=server_version,
        )

    server_info = ServerInfo.from_dict(response.get("serverInfo") or {})
    logger.info(f"Connected to server: {server_info} (protocol {server_version})")

    await client.notify("notifications/initialized")
    logger.debug("Sent initialized notification")

    return NegotiationResult(
        protocol_version=server_version,
        server_info=server_info,
        server_capabilities=response.get("capabilities") or {},
        instructions=response.get("instructions"),
    )
