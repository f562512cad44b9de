"""Tool invocation with client-side guards."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from mcprepl.mcp.protocol.diagnostics import classify
from mcprepl.mcp.session.errors import PreconditionError, ToolCallError, ToolNotFoundError

if TYPE_CHECKING:
    from mcprepl.mcp.session.manager import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class CallResult:
    """Outcome of one tools/call round trip."""

    content: list[Any] = field(default_factory=list)
    """Content blocks exactly as the server returned them."""

    is_error: bool = False
    """The server's isError flag: the tool ran and reported a failure."""

    structured_content: Any = None

    @classmethod
    def from_result(cls, result: Any) -> "CallResult":
        if not isinstance(result, dict):
            return cls()
        content = result.get("content")
        return cls(
            content=content if isinstance(content, list) else [],
            is_error=bool(result.get("isError", False)),
            structured_content=result.get("structuredContent"),
        )


class ToolInvoker:
    """
    Forwards tool calls to the active session.

    Calls for unknown tools are rejected locally so doomed requests
    never reach the server. Exactly one attempt is made per call.
    """

    def __init__(self, manager: "SessionManager"):
        self._manager = manager

    async def call(
        self,
        name: str,
        arguments: Mapping[str, Any] | None = None,
    ) -> CallResult:
        """
        Invoke a tool by name.

        Raises:
            NotConnectedError: No active session.
            ToolNotFoundError: name is not in the current catalog.
            PreconditionError: arguments is not a mapping.
            ToolCallError: The round trip failed; carries a Diagnostic.
        """
        client = await self._manager.require_connection()

        if self._manager.catalog.lookup(name) is None:
            raise ToolNotFoundError(name)

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise PreconditionError("Tool arguments must be a JSON object.")

        logger.info(f"Calling tool {name}")
        try:
            result = await client.request(
                "tools/call",
                {"name": name, "arguments": dict(arguments)},
            )
        except Exception as e:
            diagnostic = classify(e)
            logger.warning(f"Tool {name} failed: {diagnostic.message}")
            raise ToolCallError(f"Failed to call tool {name}", diagnostic) from e

        call_result = CallResult.from_result(result)
        if call_result.is_error:
            logger.info(f"Tool {name} reported an error result")
        return call_result
