"""Cursor pagination for MCP list operations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcprepl.mcp.protocol.client import ProtocolClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100


async def list_all(
    client: "ProtocolClient",
    method: str,
    items_key: str,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> list[dict[str, Any]]:
    """
    Fetch every page of a cursor-paginated list method.

    Cursors are opaque; they are passed back exactly as received.

    Args:
        client: The protocol client to use.
        method: RPC method (e.g. "tools/list").
        items_key: Key in the result holding the items (e.g. "tools").
        max_pages: Safety limit on the number of pages fetched.
    """
    all_items: list[dict[str, Any]] = []
    cursor: str | None = None

    for page_num in range(max_pages):
        params = {"cursor": cursor} if cursor else None
        logger.debug(f"Fetching page: method={method}, cursor={cursor}")

        result = await client.request(method, params) or {}
        items = result.get(items_key) or []
        all_items.extend(item for item in items if isinstance(item, dict))

        cursor = result.get("nextCursor")
        if not cursor:
            logger.debug(f"Fetched {len(all_items)} items in {page_num + 1} pages")
            return all_items

    logger.warning(
        f"Reached max_pages limit ({max_pages}) for {method}, "
        f"there may be more results"
    )
    return all_items


async def list_all_tools(client: "ProtocolClient") -> list[dict[str, Any]]:
    """Fetch the complete tools/list result."""
    return await list_all(client, "tools/list", "tools")
