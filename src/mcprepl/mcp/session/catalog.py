"""Cache of the tools advertised by the connected server."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator

from mcprepl.lib import oj

logger = logging.getLogger(__name__)

NO_TOOLS_MESSAGE = "No tools available."


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool as advertised by tools/list."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDescriptor":
        """Create from the wire shape (inputSchema)."""
        return cls(
            name=str(data["name"]),
            description=data.get("description") or "",
            input_schema=data.get("inputSchema") or data.get("input_schema") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def summary(self) -> str:
        return f"- {self.name}: {self.description}"


ToolFetcher = Callable[[], Awaitable[list[dict[str, Any]]]]


class ToolCatalog:
    """
    Ordered, name-keyed set of tools for the current session.

    Readers always see either the previous list or the complete new
    one: reload() builds the replacement before swapping it in.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        """True once a reload has completed since the last clear()."""
        return self._loaded

    async def reload(self, fetch: ToolFetcher) -> int:
        """
        Replace the cached tools with a fresh listing.

        Returns:
            Number of tools now cached; zero is a valid result.
        """
        raw_tools = await fetch()

        tools: dict[str, ToolDescriptor] = {}
        for raw in raw_tools:
            try:
                tool = ToolDescriptor.from_dict(raw)
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed tool entry {raw!r}: {e}")
                continue
            if tool.name in tools:
                logger.warning(f"Duplicate tool name from server: {tool.name}")
            tools[tool.name] = tool

        self._tools = tools
        self._loaded = True
        logger.debug(f"Tool catalog loaded with {len(tools)} tools")
        return len(tools)

    def clear(self) -> None:
        self._tools = {}
        self._loaded = False

    def lookup(self, name: str) -> ToolDescriptor | None:
        """Descriptor for name, or None when the server has no such tool."""
        return self._tools.get(name)

    def tools(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def render(self, verbose: bool = False) -> str:
        """
        Text listing for display.

        The compact form is one "- name: description" line per tool;
        the verbose form is indented JSON including input schemas.
        """
        if not self._tools:
            return NO_TOOLS_MESSAGE
        if verbose:
            return oj.dumps([tool.to_dict() for tool in self._tools.values()], indent=True)
        return "\n".join(tool.summary() for tool in self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __bool__(self) -> bool:
        return bool(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._tools.values()))
