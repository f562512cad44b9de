"""MCP protocol client implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcprepl.mcp.transport.base import Transport, TransportError, SessionError
from mcprepl.mcp.protocol.messages import (
    MessageKind,
    Response,
    build_error,
    build_notification,
    build_request,
    build_result,
    message_kind,
)
from mcprepl.mcp.protocol.errors import MCPError

logger = logging.getLogger(__name__)


class ProtocolClient:
    """
    JSON-RPC 2.0 endpoint bound to one transport.

    Handles request/response correlation and shutdown. Server-initiated
    pings are answered; any other server request is refused with
    method-not-found. An instance lives exactly as long as one
    connection; reconnecting means building a new one.
    """

    def __init__(
        self,
        transport: Transport,
        request_timeout: float = 60.0,
    ):
        """
        Initialize protocol client.

        Args:
            transport: Transport layer for communication.
            request_timeout: Default timeout for requests in seconds.
        """
        self.transport = transport
        self.request_timeout = request_timeout

        self._pending_requests: dict[str, asyncio.Future[Any]] = {}
        self._receive_task: asyncio.Task | None = None
        self._opened = False
        self._closing = False
        self._closed = False

    @property
    def is_connected(self) -> bool:
        """True while the transport is open and the receive loop is alive."""
        if not self._opened or self._closing or self._closed:
            return False
        if self._receive_task is not None and self._receive_task.done():
            return False
        return self.transport.is_connected()

    @property
    def session_id(self) -> str | None:
        """Current session ID from transport."""
        return self.transport.session_id

    async def connect(self) -> None:
        """
        Open the transport and start the message receiver.

        Raises:
            TransportError: If the transport cannot be opened.
        """
        if self._opened:
            raise SessionError("Client already connected")

        await self.transport.connect()
        self._opened = True
        self._receive_task = asyncio.create_task(
            self._receive_loop(),
            name="mcp-receive-loop",
        )

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Send a request and wait for the response.

        Args:
            method: The RPC method name.
            params: Optional method parameters.
            timeout: Request timeout (defaults to self.request_timeout).

        Returns:
            The result from the response.

        Raises:
            MCPError: On timeout, cancellation, or error response.
            TransportError: If the transport fails or closes mid-request.
        """
        if not self.is_connected:
            raise SessionError("Client not connected")

        request = build_request(method, params)
        request_id = str(request["id"])
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        effective_timeout = timeout if timeout is not None else self.request_timeout

        try:
            immediate_response = await self.transport.send(request)

            if immediate_response is not None:
                self._handle_response(immediate_response)

            return await asyncio.wait_for(future, timeout=effective_timeout)

        except asyncio.TimeoutError:
            raise MCPError.timeout(effective_timeout)

        finally:
            self._pending_requests.pop(request_id, None)

    async def notify(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        """
        Send a notification (fire-and-forget).

        Args:
            method: The notification method name.
            params: Optional method parameters.
        """
        if not self.is_connected:
            raise SessionError("Client not connected")

        immediate = await self.transport.send(build_notification(method, params))
        if immediate is not None:
            await self._handle_message(immediate)

    async def close(self) -> None:
        """Close connection and cleanup resources. Safe to call repeatedly."""
        if self._closing or self._closed:
            return

        self._closing = True
        try:
            if self._receive_task and not self._receive_task.done():
                self._receive_task.cancel()
                try:
                    await self._receive_task
                except asyncio.CancelledError:
                    pass
            self._receive_task = None

            self._fail_pending(MCPError.cancelled("Client closing"))

            await self.transport.disconnect()
        finally:
            self._closed = True

    def _fail_pending(self, error: Exception) -> None:
        for future in list(self._pending_requests.values()):
            if not future.done():
                future.set_exception(error)
        self._pending_requests.clear()

    async def _receive_loop(self) -> None:
        """Background task processing incoming messages."""
        try:
            async for message in self.transport.receive():
                if self._closing:
                    break
                await self._handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Receive loop error: {e}")
        finally:
            if not self._closing:
                # Stream ended on its own: nothing more can arrive
                logger.warning(f"Connection to {self.transport.description} closed")
                self._fail_pending(TransportError("Connection closed"))

    async def _handle_message(self, message: dict) -> None:
        """Route incoming message by shape."""
        try:
            kind = message_kind(message)
            if kind is MessageKind.RESPONSE:
                self._handle_response(message)
            elif kind is MessageKind.REQUEST:
                await self._handle_server_request(message)
            elif kind is MessageKind.NOTIFICATION:
                logger.debug(f"Ignoring notification: {message['method']}")
            else:
                logger.warning(f"Unknown message type: {message}")
        except Exception as e:
            logger.error(f"Error handling message: {e}")

    def _handle_response(self, message: dict) -> None:
        """Complete pending request future with response."""
        response = Response.from_message(message)

        if response.key is None:
            if response.error is not None:
                # Error without an id: fail everything waiting
                self._fail_pending(response.error)
            else:
                logger.warning("Received response without id")
            return

        future = self._pending_requests.get(response.key)
        if future is None:
            logger.warning(f"No pending request for id: {response.key}")
            return

        if future.done():
            return

        if response.error is not None:
            future.set_exception(response.error)
        else:
            future.set_result(response.result)

    async def _handle_server_request(self, message: dict) -> None:
        """Answer pings; refuse everything else."""
        method = message["method"]
        if method == "ping":
            logger.debug("Received ping request")
            reply = build_result(message["id"], {})
        else:
            logger.debug(f"Refusing server request: {method}")
            reply = build_error(message["id"], MCPError.method_not_found(method))

        await self.transport.send(reply)

    async def __aenter__(self) -> "ProtocolClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
