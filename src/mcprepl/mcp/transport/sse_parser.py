"""Server-Sent Events parsing shared by the network transports."""

from __future__ import annotations

from typing import AsyncIterator

import httpx


def parse_sse_event(event_str: str) -> dict[str, str] | None:
    """
    Parse a single SSE event into its components.

    SSE format:
        event: <event-type>
        data: <data>
        id: <id>

    Multiple data lines are joined with newlines. Comment lines
    (starting with a colon) are skipped.
    """
    if not event_str.strip():
        return None

    event: dict[str, str] = {}
    data_lines: list[str] = []

    for line in event_str.split("\n"):
        line = line.rstrip("\r")
        if not line or line.startswith(":"):
            continue

        field, sep, value = line.partition(":")
        if not sep:
            continue
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field in ("event", "id", "retry"):
            event[field] = value.strip()

    if data_lines:
        event["data"] = "\n".join(data_lines)

    return event if event else None


async def iter_sse_events(response: httpx.Response) -> AsyncIterator[dict[str, str]]:
    """
    Yield parsed events from a streaming httpx response.

    httpx splits lines on CR, LF and CRLF across chunk boundaries, so
    events are assembled line by line and a blank line closes one.
    """
    lines: list[str] = []

    async for line in response.aiter_lines():
        line = line.rstrip("\r\n")
        if line:
            lines.append(line)
            continue
        event = parse_sse_event("\n".join(lines))
        lines = []
        if event:
            yield event

    # Trailing event without terminating blank line
    event = parse_sse_event("\n".join(lines))
    if event:
        yield event
