"""Ownership of the single active MCP session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from mcprepl.mcp.config import ClientConfig, should_auto_connect
from mcprepl.mcp.protocol.client import ProtocolClient
from mcprepl.mcp.protocol.diagnostics import classify
from mcprepl.mcp.protocol.negotiation import (
    ClientInfo,
    NegotiationResult,
    ServerInfo,
    negotiate,
)
from mcprepl.mcp.protocol.pagination import list_all_tools
from mcprepl.mcp.session.catalog import ToolCatalog, ToolDescriptor
from mcprepl.mcp.session.errors import (
    NotConnectedError,
    SessionConnectError,
    ToolCallError,
)
from mcprepl.mcp.session.invoker import CallResult, ToolInvoker
from mcprepl.mcp.session.state import (
    SessionState,
    SessionStateMachine,
    StateTransitionCallback,
)
from mcprepl.mcp.transport.base import Transport
from mcprepl.mcp.transport.factory import TransportFactory, create_transport
from mcprepl.mcp.transport.types import TransportConfig, TransportEvent, TransportKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot of the session for display."""

    state: SessionState
    kind: TransportKind | None = None
    target: str | None = None
    server: ServerInfo | None = None
    tool_count: int = 0

    @property
    def connected(self) -> bool:
        return self.state == SessionState.CONNECTED

    def __str__(self) -> str:
        if not self.connected:
            return "Not connected"
        return f"Connected via {self.kind} to {self.target}"


@dataclass
class ActiveSession:
    """Everything that belongs to one live connection."""

    kind: TransportKind
    target: str
    api_key: str | None
    transport: Transport
    client: ProtocolClient
    negotiation: NegotiationResult | None = None


class SessionManager:
    """
    Owns at most one session and its tool catalog.

    Every connection gets a fresh transport and protocol client; on
    disconnect both are dropped together with the catalog, so nothing
    from a previous session can leak into the next one.
    """

    def __init__(
        self,
        transport_factory: TransportFactory = create_transport,
        request_timeout: float = 60.0,
        connect_timeout: float = 10.0,
        client_info: ClientInfo | None = None,
    ):
        """
        Initialize the session manager.

        Args:
            transport_factory: Builds a transport for a kind and config.
            request_timeout: Per-request timeout, including initialize.
            connect_timeout: Timeout for establishing network connections.
            client_info: Name and version announced to servers.
        """
        self._transport_factory = transport_factory
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self.client_info = client_info or ClientInfo()

        self._machine = SessionStateMachine()
        self._catalog = ToolCatalog()
        self._session: ActiveSession | None = None
        self._invoker = ToolInvoker(self)

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def is_connected(self) -> bool:
        return self._machine.is_connected

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def negotiation(self) -> NegotiationResult | None:
        return self._session.negotiation if self._session else None

    def on_state_change(self, callback: StateTransitionCallback) -> None:
        """Register callback for state changes."""
        self._machine.on_transition(callback)

    def status(self) -> SessionStatus:
        """Current state, transport kind, and target."""
        session = self._session
        if session is None or not self._machine.is_connected:
            return SessionStatus(state=self._machine.state)
        return SessionStatus(
            state=self._machine.state,
            kind=session.kind,
            target=session.target,
            server=session.negotiation.server_info if session.negotiation else None,
            tool_count=len(self._catalog),
        )

    async def connect(
        self,
        kind: TransportKind | str,
        target: str,
        api_key: str | None = None,
    ) -> SessionStatus:
        """
        Open a session, replacing any current one.

        The server's tools are loaded as part of connecting.

        Raises:
            UnsupportedTransportError: kind is not a supported transport.
            SessionConnectError: The connection or handshake failed; the
                manager is left disconnected.
        """
        kind = TransportKind.parse(kind)

        if self._session is not None or not self._machine.is_disconnected:
            logger.info("Closing current session before reconnecting")
            await self.disconnect()

        logger.info(f"Connecting via {kind} to {target}")
        self._machine.transition(SessionState.CONNECTING)

        client: ProtocolClient | None = None
        try:
            config = TransportConfig(
                target=target,
                api_key=api_key,
                timeout=self.request_timeout,
                connect_timeout=self.connect_timeout,
            )
            transport = self._transport_factory(kind, config)
            transport.on_event(self._log_transport_event)
            client = ProtocolClient(transport, request_timeout=self.request_timeout)

            await client.connect()
            negotiation = await negotiate(
                client, self.client_info, timeout=self.request_timeout
            )

            self._session = ActiveSession(
                kind=kind,
                target=target,
                api_key=api_key,
                transport=transport,
                client=client,
                negotiation=negotiation,
            )
            self._machine.transition(SessionState.CONNECTED)
        except asyncio.CancelledError:
            await self._teardown(client)
            raise
        except Exception as e:
            await self._teardown(client)
            diagnostic = classify(e)
            logger.error(f"Connection via {kind} to {target} failed: {diagnostic.message}")
            raise SessionConnectError(
                f"Failed to connect via {kind} to {target}", diagnostic
            ) from e

        logger.info(f"Connected via {kind} to {target}")
        await self._refresh_catalog_after_connect(client)
        return self.status()

    async def connect_from_config(self, config: ClientConfig) -> SessionStatus | None:
        """
        Connect using configured parameters, if there are any.

        Returns:
            The new status, or None when the configuration names no server.

        Raises:
            UnsupportedTransportError: The configured transport is unknown.
            SessionConnectError: The connection attempt failed.
        """
        params = should_auto_connect(config)
        if params is None:
            logger.info("No automatic connection configured")
            return None
        logger.info(f"Attempting automatic {params.kind} connection to {params.target}")
        return await self.connect(params.kind, params.target, params.api_key)

    async def disconnect(self) -> bool:
        """
        Close the session. Safe to call when already disconnected.

        Returns:
            True if a session was closed, False if there was none.
        """
        session = self._session
        if session is None:
            if not self._machine.is_disconnected:
                await self._teardown(None)
            logger.debug("Disconnect requested with no active session")
            return False

        await self._teardown(session.client)
        logger.info(f"Disconnected from {session.target}")
        return True

    async def require_connection(self) -> ProtocolClient:
        """
        Protocol client of the live session.

        A connection that dropped since the last operation is torn down
        here, so callers see a plain "not connected" instead of a hang.

        Raises:
            NotConnectedError: There is no usable session.
        """
        session = self._session
        if session is None or not self._machine.is_connected:
            raise NotConnectedError()

        if not session.client.is_connected:
            logger.warning(f"Connection to {session.target} was lost")
            await self._teardown(session.client)
            raise NotConnectedError("Connection lost. Not connected.")

        return session.client

    async def list_tools(self, refresh: bool = True) -> list[ToolDescriptor]:
        """
        Tools offered by the server.

        Args:
            refresh: Re-fetch from the server instead of using the cache.

        Raises:
            NotConnectedError: No active session.
            ToolCallError: The listing failed; carries a Diagnostic.
        """
        client = await self.require_connection()
        if refresh or not self._catalog.loaded:
            await self._reload_catalog(client)
        return self._catalog.tools()

    async def show_tool(self, name: str) -> ToolDescriptor | None:
        """Descriptor for one tool, or None if the server has no such tool."""
        await self.require_connection()
        if not self._catalog.loaded:
            await self.list_tools()
        return self._catalog.lookup(name)

    async def call(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> CallResult:
        """Invoke a tool; see ToolInvoker.call."""
        return await self._invoker.call(name, arguments)

    async def _reload_catalog(self, client: ProtocolClient) -> int:
        try:
            return await self._catalog.reload(lambda: list_all_tools(client))
        except Exception as e:
            diagnostic = classify(e)
            logger.warning(f"Listing tools failed: {diagnostic.message}")
            raise ToolCallError("Failed to list tools", diagnostic) from e

    async def _refresh_catalog_after_connect(self, client: ProtocolClient) -> None:
        negotiation = self.negotiation
        if negotiation is not None and not negotiation.supports("tools"):
            logger.info("Server does not advertise tools")
            await self._catalog.reload(_no_tools)
            return
        try:
            count = await self._reload_catalog(client)
        except ToolCallError:
            # Connection stands; the next listing retries
            return
        logger.info(f"Loaded {count} tools")

    async def _teardown(self, client: ProtocolClient | None) -> None:
        """Close the transport and reset to DISCONNECTED."""
        if client is not None:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error while closing connection: {e}")

        self._catalog.clear()
        self._session = None
        if not self._machine.is_disconnected:
            self._machine.transition(SessionState.DISCONNECTED)

    def _log_transport_event(self, event: TransportEvent) -> None:
        logger.debug(f"Transport event: {event}")


async def _no_tools() -> list[dict[str, Any]]:
    return []
