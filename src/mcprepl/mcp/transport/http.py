"""Streamable HTTP transport implementation for MCP."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator

import httpx

from mcprepl.lib import oj
from mcprepl.mcp.protocol.errors import MCPError
from mcprepl.mcp.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
)
from mcprepl.mcp.transport.sse_parser import iter_sse_events
from mcprepl.mcp.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)


def error_from_http_response(response: httpx.Response) -> Exception:
    """
    Build the exception for a failed HTTP exchange.

    Servers usually explain a rejected request with a JSON-RPC error
    body; that code is kept so the failure can be classified. Anything
    else becomes a plain TransportError.
    """
    try:
        body = oj.loads(response.content) if response.content else None
    except oj.JSONDecodeError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error = MCPError.from_dict(body["error"])
        if error.data is None:
            error.data = {"http_status": response.status_code}
        return error

    text = response.text.strip()
    return TransportError(
        f"HTTP {response.status_code}: {text or response.reason_phrase}"
    )


class StreamableHTTPTransport(Transport):
    """
    Streamable HTTP transport.

    This transport supports:
    - HTTP POST for client-to-server messages
    - Server-Sent Events (SSE) replies for server-to-client streaming
    - Session management via Mcp-Session-Id header
    """

    MCP_SESSION_HEADER = "Mcp-Session-Id"

    def __init__(
        self,
        config: TransportConfig,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._session_id: str | None = None
        self._connected: bool = False
        self._response_queue: asyncio.Queue[dict | None] = asyncio.Queue()
        self._sse_tasks: set[asyncio.Task] = set()
        self._closing: bool = False

    async def connect(self) -> None:
        """
        Initialize HTTP client and prepare for communication.

        The MCP session itself is established on the first message
        exchange, so an unreachable server is reported by the first
        request rather than here.
        """
        if self._connected:
            return

        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTING,
                timestamp=time.time(),
                data={"url": self.config.target},
            )
        )

        try:
            timeout = httpx.Timeout(
                connect=self.config.connect_timeout,
                read=self.config.timeout,
                write=self.config.timeout,
                pool=self.config.timeout,
            )

            # Don't use base_url as httpx adds trailing slashes which break some servers
            self._client = httpx.AsyncClient(
                timeout=timeout,
                headers=self.config.request_headers(),
                verify=self.config.verify_ssl,
                transport=self._http_transport,
            )
            self._connected = True
            self._closing = False

            self._emit_event(
                TransportEvent(
                    type=TransportEventType.CONNECTED,
                    timestamp=time.time(),
                )
            )

        except Exception as e:
            raise ConnectionError(f"Failed to initialize HTTP client: {e}", cause=e)

    async def disconnect(self) -> None:
        """Close all connections and cleanup resources."""
        if not self._connected and self._client is None:
            return

        self._closing = True

        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTING,
                timestamp=time.time(),
            )
        )

        for task in list(self._sse_tasks):
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._sse_tasks.clear()

        if self._client:
            if self._session_id:
                await self._terminate_session()
            await self._client.aclose()
            self._client = None

        self._connected = False
        self._session_id = None
        # Wake any receive() iterator still waiting
        self._response_queue.put_nowait(None)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTED,
                timestamp=time.time(),
            )
        )

    async def _terminate_session(self) -> None:
        """Tell the server the session is over; failures are not fatal."""
        try:
            await self._client.delete(
                self.config.target,
                headers={self.MCP_SESSION_HEADER: self._session_id},
            )
        except httpx.HTTPError as e:
            logger.debug(f"Session termination request failed: {e}")

    async def send(self, message: dict) -> dict | None:
        """
        Send a JSON-RPC message via HTTP POST.

        Returns:
            Immediate response if server responds directly, None if SSE-upgraded.
        """
        if not self._client or not self._connected:
            raise SessionError("Transport not connected")

        if self._closing:
            raise SessionError("Transport is closing")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }

        if self._session_id:
            headers[self.MCP_SESSION_HEADER] = self._session_id

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

        try:
            # Use full URL to avoid trailing slash issues with base_url
            response = await self._client.post(
                self.config.target,
                content=oj.dumpb(message),
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out: {e}", cause=e)
        except httpx.ConnectError as e:
            raise ConnectionError(
                f"Could not reach {self.config.target}: {e}", cause=e
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", cause=e)

        # Extract session ID from response
        if self.MCP_SESSION_HEADER in response.headers:
            new_session = response.headers[self.MCP_SESSION_HEADER]
            if self._session_id != new_session:
                self._session_id = new_session
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.SESSION_ESTABLISHED,
                        timestamp=time.time(),
                        data={"session_id": self._session_id},
                    )
                )

        if response.status_code >= 400:
            raise error_from_http_response(response)

        if response.status_code == 202:
            # Accepted - no immediate response, results via SSE
            return None

        content_type = response.headers.get("Content-Type", "")

        if "text/event-stream" in content_type:
            self._start_sse_stream(response)
            return None

        if "application/json" in content_type and response.content:
            try:
                result = oj.loads(response.content)
            except oj.JSONDecodeError as e:
                raise TransportError(f"Failed to parse response: {e}", cause=e)
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.MESSAGE_RECEIVED,
                    timestamp=time.time(),
                    data={"id": result.get("id") if isinstance(result, dict) else None},
                )
            )
            return result if isinstance(result, dict) else None

        return None

    def _start_sse_stream(self, response: httpx.Response) -> None:
        """Start background task to process an SSE reply."""
        task = asyncio.create_task(self._process_sse_stream(response))
        self._sse_tasks.add(task)
        task.add_done_callback(self._sse_tasks.discard)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.SSE_OPENED,
                timestamp=time.time(),
            )
        )

    async def _process_sse_stream(self, response: httpx.Response) -> None:
        """Process Server-Sent Events stream in background."""
        try:
            async for event in iter_sse_events(response):
                if event.get("event", "message") != "message" or "data" not in event:
                    continue
                try:
                    message = oj.loads(event["data"])
                except oj.JSONDecodeError:
                    logger.warning(f"Skipping malformed SSE data: {event['data'][:200]}")
                    continue
                if not isinstance(message, dict):
                    continue
                await self._response_queue.put(message)
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.MESSAGE_RECEIVED,
                        timestamp=time.time(),
                        data={"id": message.get("id"), "method": message.get("method")},
                    )
                )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                logger.error(f"SSE reply stream failed: {e}")
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.ERROR,
                        timestamp=time.time(),
                        error=e,
                    )
                )
        finally:
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.SSE_CLOSED,
                    timestamp=time.time(),
                )
            )

    async def receive(self) -> AsyncIterator[dict]:
        """Yield messages delivered over SSE replies."""
        while self._connected and not self._closing:
            message = await self._response_queue.get()
            if message is None:
                break
            yield message

    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._connected and not self._closing

    @property
    def session_id(self) -> str | None:
        """Current MCP session ID."""
        return self._session_id

    @property
    def description(self) -> str:
        return f"http({self.config.target})"
