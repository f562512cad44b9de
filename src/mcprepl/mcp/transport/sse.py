"""SSE (Server-Sent Events) transport for remote MCP servers."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator
from urllib.parse import urljoin, urlparse

import httpx

from mcprepl.lib import oj
from mcprepl.mcp.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    TimeoutError,
    SessionError,
)
from mcprepl.mcp.transport.http import error_from_http_response
from mcprepl.mcp.transport.sse_parser import iter_sse_events
from mcprepl.mcp.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)


def remove_request_params(url: str) -> str:
    return urljoin(url, urlparse(url).path)


class SSETransport(Transport):
    """
    Transport for servers using the HTTP+SSE protocol.

    Protocol:
    1. GET the server URL as an event stream; the first 'endpoint'
       event names the URL that accepts client messages
    2. POST each JSON-RPC frame to that endpoint (200 or 202)
    3. Read JSON-RPC replies from 'message' events on the stream
    """

    def __init__(
        self,
        config: TransportConfig,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._stream_response: httpx.Response | None = None
        self._endpoint_url: str | None = None
        self._endpoint_ready = asyncio.Event()
        self._reader_task: asyncio.Task | None = None
        self._reader_error: Exception | None = None
        self._queue: asyncio.Queue[dict | None] = asyncio.Queue()
        self._connected = False
        self._closing = False

    @property
    def endpoint_url(self) -> str | None:
        """URL that accepts client-to-server messages."""
        return self._endpoint_url

    async def connect(self) -> None:
        """Open the event stream and wait for the endpoint announcement."""
        if self._connected:
            return

        url = self.config.target
        logger.info(f"Connecting to SSE endpoint: {remove_request_params(url)}")
        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTING,
                timestamp=time.time(),
                data={"url": url},
            )
        )

        self._closing = False
        self._client = httpx.AsyncClient(
            headers=self.config.request_headers(),
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout),
            verify=self.config.verify_ssl,
            transport=self._http_transport,
        )

        try:
            await self._open_stream(url)
            try:
                await asyncio.wait_for(
                    self._endpoint_ready.wait(),
                    timeout=self.config.connect_timeout,
                )
            except asyncio.TimeoutError:
                raise TimeoutError("Timeout waiting for SSE endpoint event")

            if self._reader_error is not None:
                raise self._reader_error
            if not self._endpoint_url:
                raise ConnectionError("Event stream closed before an endpoint was announced")
            if self._reader_task is None or self._reader_task.done():
                raise ConnectionError("Event stream closed during connect")

        except BaseException:
            await self.disconnect()
            raise

        self._connected = True
        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTED,
                timestamp=time.time(),
                data={"endpoint": self._endpoint_url},
            )
        )

    async def _open_stream(self, url: str) -> None:
        request = self._client.build_request(
            "GET",
            url,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Timed out connecting to {url}: {e}", cause=e)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Could not reach {url}: {e}", cause=e)

        if response.status_code >= 400:
            await response.aread()
            await response.aclose()
            raise error_from_http_response(response)

        self._stream_response = response
        self._reader_task = asyncio.create_task(
            self._read_stream(response),
            name="mcp-sse-reader",
        )
        self._emit_event(
            TransportEvent(
                type=TransportEventType.SSE_OPENED,
                timestamp=time.time(),
            )
        )

    async def _read_stream(self, response: httpx.Response) -> None:
        """Route stream events until the server closes the stream."""
        try:
            async for event in iter_sse_events(response):
                kind = event.get("event", "message")
                data = event.get("data", "")

                if kind == "endpoint":
                    self._set_endpoint(data.strip())
                elif kind == "message":
                    try:
                        message = oj.loads(data)
                    except oj.JSONDecodeError:
                        logger.warning(f"Skipping malformed SSE data: {data[:200]}")
                        continue
                    if isinstance(message, dict):
                        await self._queue.put(message)
                        self._emit_event(
                            TransportEvent(
                                type=TransportEventType.MESSAGE_RECEIVED,
                                timestamp=time.time(),
                                data={"id": message.get("id"), "method": message.get("method")},
                            )
                        )
                else:
                    logger.debug(f"Ignoring SSE event: {kind}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._closing:
                logger.error(f"SSE stream failed: {e}")
                self._emit_event(
                    TransportEvent(
                        type=TransportEventType.ERROR,
                        timestamp=time.time(),
                        error=e,
                    )
                )
            if not self._endpoint_ready.is_set():
                self._reader_error = TransportError(f"SSE stream failed: {e}", cause=e)
        finally:
            self._connected = False
            self._endpoint_ready.set()
            self._queue.put_nowait(None)
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.SSE_CLOSED,
                    timestamp=time.time(),
                )
            )

    def _set_endpoint(self, endpoint: str) -> None:
        endpoint_url = urljoin(self.config.target, endpoint)
        target = urlparse(self.config.target)
        parsed = urlparse(endpoint_url)
        if (parsed.scheme, parsed.netloc) != (target.scheme, target.netloc):
            self._reader_error = ConnectionError(
                f"Endpoint origin does not match connection origin: {endpoint_url}"
            )
        else:
            self._endpoint_url = endpoint_url
            logger.debug(f"SSE endpoint: {endpoint_url}")
        self._endpoint_ready.set()

    async def disconnect(self) -> None:
        """Close the event stream and HTTP client."""
        if self._client is None:
            return

        self._closing = True
        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTING,
                timestamp=time.time(),
            )
        )

        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._reader_task = None

        if self._stream_response is not None:
            await self._stream_response.aclose()
            self._stream_response = None

        await self._client.aclose()
        self._client = None
        self._connected = False
        self._endpoint_url = None
        self._queue.put_nowait(None)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTED,
                timestamp=time.time(),
            )
        )

    async def send(self, message: dict) -> dict | None:
        """POST a frame to the announced endpoint; replies arrive on the stream."""
        if not self.is_connected() or self._client is None or not self._endpoint_url:
            raise SessionError("Transport not connected")

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )

        try:
            response = await self._client.post(
                self._endpoint_url,
                content=oj.dumpb(message),
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(f"Request timed out: {e}", cause=e)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error: {e}", cause=e)

        if response.status_code not in (200, 202):
            raise error_from_http_response(response)
        return None

    async def receive(self) -> AsyncIterator[dict]:
        """Yield JSON-RPC messages from the event stream."""
        while not self._closing:
            message = await self._queue.get()
            if message is None:
                break
            yield message

    def is_connected(self) -> bool:
        return self._connected and not self._closing

    @property
    def description(self) -> str:
        return f"sse({self.config.target})"
