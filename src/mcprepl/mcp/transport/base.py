"""Abstract base transport and error types."""

import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Callable

from mcprepl.mcp.transport.types import TransportConfig, TransportEvent

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConnectionError(TransportError):
    """Failed to establish connection to server."""

    pass


class TimeoutError(TransportError):
    """Request or connection timed out."""

    pass


class SessionError(TransportError):
    """Session-related error (expired, invalid, not established)."""

    pass


class Transport(ABC):
    """
    Abstract base class for MCP transports.

    Every transport exposes the same lifecycle: connect (may fail),
    disconnect (safe to call repeatedly), and JSON-RPC frame exchange
    through send() and receive(). Callers never need to know which
    concrete kind they hold.
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(self, event: TransportEvent) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.debug(f"Transport event handler failed: {e}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the MCP server.

        Raises:
            ConnectionError: If connection cannot be established.
            TimeoutError: If connection times out.
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close connection and release all resources.

        This method must be safe to call multiple times.
        """
        pass

    @abstractmethod
    async def send(self, message: dict) -> dict | None:
        """
        Send a JSON-RPC message to the server.

        Transports that receive a direct reply return it. Otherwise
        None is returned and the reply arrives through receive().

        Raises:
            TransportError: If send fails.
            SessionError: If the transport is not connected.
        """
        pass

    @abstractmethod
    def receive(self) -> AsyncIterator[dict]:
        """
        Async iterator yielding JSON-RPC messages from the server.

        The iterator ends when the underlying stream closes.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if transport is currently connected."""
        pass

    @property
    def session_id(self) -> str | None:
        """Server-assigned session ID, for transports that have one."""
        return None

    @property
    def description(self) -> str:
        """Short human-readable label used in log messages."""
        return f"{type(self).__name__}({self.config.target})"

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.disconnect()
