"""REPL command parsing and dispatch."""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass
from enum import Enum, auto
from typing import Awaitable, Callable, Mapping

from mcprepl.lib import oj
from mcprepl.mcp.config import (
    ClientConfig,
    ConfigError,
    load_env_file,
    merge_env,
)
from mcprepl.mcp.protocol.diagnostics import Diagnostic, classify
from mcprepl.mcp.session.catalog import NO_TOOLS_MESSAGE
from mcprepl.mcp.session.errors import ClassifiedError, PreconditionError
from mcprepl.mcp.session.manager import SessionManager
from mcprepl.mcp.transport.types import TransportKind, UnsupportedTransportError

logger = logging.getLogger(__name__)

WELCOME = "MCP Client REPL. Type 'help' for commands."
UNKNOWN_COMMAND = "Unknown command. Type 'help' for a list of commands."
NO_AUTO_CONNECT = (
    "No automatic connection "
    "(use MCP_SERVER_URL or MCP_TRANSPORT environment variables for this)"
)
CALL_FORMAT_EXAMPLE = 'Format example: call get_product {"id":"P0234"}'

HELP_TEXT = """Commands:
  connect sse|http|stdio <url_or_script> [apiKey]  Connect to MCP server
  connectenv <file>                                Load environment variables from file, disconnect, and reconnect
  disconnect                                       Disconnect from MCP server
  status                                           Show connection status
  tools [full]                                     List available tools (add 'full' for complete details)
  tool <toolName>                                  Show full description for a single tool
  call <toolName> <JSON>                           Call a tool with JSON arguments e.g. call generate_image {"prompt": "A beautiful sunset"}
  help                                             Show this help
  exit                                             Exit the REPL"""


def split_args(args: str, posix: bool = os.name != "nt") -> list[str]:
    """
    Split command arguments, honoring quotes.

    Outside POSIX, backslashes stay literal so Windows paths such as
    C:\\srv\\server.py survive; surrounding quotes are stripped by hand
    because non-POSIX shlex keeps them.
    """
    if posix:
        return shlex.split(args)
    return [_unquote(part) for part in shlex.split(args, posix=False)]


def _unquote(part: str) -> str:
    if len(part) >= 2 and part[0] == part[-1] and part[0] in "\"'":
        return part[1:-1]
    return part


class ReplyKind(Enum):
    TEXT = auto()
    INFO = auto()
    SUCCESS = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass(frozen=True)
class Reply:
    """One block of output produced by a command."""

    kind: ReplyKind
    text: str
    title: str | None = None
    diagnostic: Diagnostic | None = None

    @classmethod
    def plain(cls, text: str) -> "Reply":
        return cls(ReplyKind.TEXT, text)

    @classmethod
    def info(cls, text: str, title: str | None = None) -> "Reply":
        return cls(ReplyKind.INFO, text, title)

    @classmethod
    def success(cls, text: str, title: str | None = None) -> "Reply":
        return cls(ReplyKind.SUCCESS, text, title)

    @classmethod
    def warning(cls, text: str, title: str | None = None) -> "Reply":
        return cls(ReplyKind.WARNING, text, title)

    @classmethod
    def error(
        cls,
        text: str,
        title: str | None = None,
        diagnostic: Diagnostic | None = None,
    ) -> "Reply":
        return cls(ReplyKind.ERROR, text, title, diagnostic)

    @classmethod
    def from_diagnostic(cls, title: str, diagnostic: Diagnostic) -> "Reply":
        return cls(ReplyKind.ERROR, diagnostic.format(), title, diagnostic)

    def render(self) -> str:
        """Plain-text form, title first when there is one."""
        if self.title:
            return f"{self.title}\n{self.text}"
        return self.text


Handler = Callable[[str], Awaitable[list[Reply]]]


class CommandDispatcher:
    """
    Maps REPL input lines to session manager operations.

    Commands never raise for operation failures; every outcome comes
    back as a list of Reply values for the front-end to display.
    """

    def __init__(
        self,
        manager: SessionManager,
        env: Mapping[str, str] | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            manager: Session manager the commands operate on.
            env: Environment snapshot used for automatic connections.
                connectenv layers files on top of it; os.environ is never
                modified.
        """
        self.manager = manager
        self.env: dict[str, str] = dict(env or {})
        self.exit_requested = False
        self._handlers: dict[str, Handler] = {
            "help": self._help,
            "exit": self._exit,
            "status": self._status,
            "connect": self._connect,
            "connectenv": self._connectenv,
            "disconnect": self._disconnect,
            "tools": self._tools,
            "tool": self._tool,
            "call": self._call,
        }

    @property
    def commands(self) -> list[str]:
        return list(self._handlers)

    async def startup(self) -> list[Reply]:
        """Greeting plus the automatic connection attempt."""
        return [Reply.plain(WELCOME)] + await self.auto_connect()

    async def dispatch(self, line: str) -> list[Reply]:
        """Run one input line."""
        line = line.strip()
        if not line:
            return []

        command, _, rest = line.partition(" ")
        handler = self._handlers.get(command)
        if handler is None:
            return [Reply.plain(UNKNOWN_COMMAND)]

        logger.debug(f"Dispatching {command!r}")
        try:
            return await handler(rest.strip())
        except PreconditionError as e:
            return [Reply.warning(str(e))]
        except ClassifiedError as e:
            return [Reply.from_diagnostic(e.summary, e.diagnostic)]
        except ConfigError as e:
            return [Reply.error(str(e))]
        except Exception as e:
            logger.exception(f"Command {command!r} failed")
            return [Reply.from_diagnostic(f"Command {command} failed", classify(e))]

    async def auto_connect(self) -> list[Reply]:
        """Connect from the current environment if it names a server."""
        try:
            config = ClientConfig.from_env(self.env)
        except ConfigError as e:
            return [Reply.error(str(e), title="Invalid configuration")]

        if not config.server_target or not config.transport:
            return [Reply.info(NO_AUTO_CONNECT)]

        self.manager.request_timeout = config.request_timeout
        replies = [
            Reply.info(
                f"Attempting automatic {config.transport} connection "
                f"from config to {config.server_target}"
            )
        ]
        try:
            status = await self.manager.connect_from_config(config)
        except UnsupportedTransportError as e:
            replies.append(Reply.error(str(e)))
            return replies
        except ClassifiedError as e:
            replies.append(Reply.from_diagnostic("Automatic connection failed", e.diagnostic))
            return replies

        if status is not None:
            replies.append(self._connected_reply())
        return replies

    async def _help(self, args: str) -> list[Reply]:
        return [Reply.plain(HELP_TEXT)]

    async def _exit(self, args: str) -> list[Reply]:
        self.exit_requested = True
        if await self.manager.disconnect():
            return [Reply.info("Disconnected.")]
        return []

    async def _status(self, args: str) -> list[Reply]:
        return [Reply.plain(str(self.manager.status()))]

    async def _connect(self, args: str) -> list[Reply]:
        usage = Reply.plain("Usage: connect sse|http|stdio <url_or_script> [apiKey]")
        try:
            parts = split_args(args)
        except ValueError as e:
            return [Reply.error(f"Could not parse arguments: {e}"), usage]
        if len(parts) < 2:
            return [usage]

        kind_name, target = parts[0], parts[1]
        api_key = parts[2] if len(parts) > 2 else None
        try:
            kind = TransportKind.parse(kind_name)
        except UnsupportedTransportError:
            return [Reply.plain(f"Unknown transport type: {kind_name}")]

        replies = [Reply.info(f"Connecting via {kind} to {target}")]
        try:
            await self.manager.connect(kind, target, api_key)
        except ClassifiedError as e:
            replies.append(Reply.from_diagnostic(e.summary, e.diagnostic))
            return replies
        replies.append(self._connected_reply())
        return replies

    async def _connectenv(self, args: str) -> list[Reply]:
        if not args:
            return [Reply.plain("Usage: connectenv <file>")]

        replies: list[Reply] = []
        if await self.manager.disconnect():
            replies.append(Reply.info("Disconnected."))

        replies.append(Reply.info(f"Loading environment variables from {args}"))
        try:
            values = load_env_file(args)
        except ConfigError as e:
            replies.append(Reply.error(str(e), title=f"Failed to load environment file {args}"))
            return replies

        self.env = merge_env(self.env, values)
        replies.append(Reply.success(f"Environment variables loaded from {args}"))
        return replies + await self.auto_connect()

    async def _disconnect(self, args: str) -> list[Reply]:
        status = self.manager.status()
        if await self.manager.disconnect():
            return [Reply.info(f"Disconnected from {status.target}")]
        return [Reply.plain("Not connected.")]

    async def _tools(self, args: str) -> list[Reply]:
        full = "full" in args.split()
        await self.manager.list_tools(refresh=True)
        catalog = self.manager.catalog
        if not catalog:
            return [Reply.plain(NO_TOOLS_MESSAGE)]
        if full:
            return [Reply.plain(f"Available tools (full details):\n{catalog.render(verbose=True)}")]
        return [Reply.plain(f"Available tools:\n{catalog.render()}")]

    async def _tool(self, args: str) -> list[Reply]:
        name = args.split()[0] if args else ""
        if not name:
            return [Reply.plain("Usage: tool <toolName>")]

        tool = await self.manager.show_tool(name)
        if tool is None:
            return [Reply.warning(f"Tool {name} not found.")]
        return [Reply.plain(f"Tool: {tool.name}\n{oj.dumps(tool.to_dict(), indent=True)}")]

    async def _call(self, args: str) -> list[Reply]:
        name, _, raw_json = args.partition(" ")
        if not name:
            return [Reply.plain("Usage: call <toolName> <JSON>")]

        raw_json = raw_json.strip() or "{}"
        try:
            arguments = oj.loads(raw_json)
        except oj.JSONDecodeError as e:
            return [Reply.error(f"Invalid JSON: {e}"), Reply.plain(CALL_FORMAT_EXAMPLE)]
        if not isinstance(arguments, dict):
            return [
                Reply.error("Tool arguments must be a JSON object."),
                Reply.plain(CALL_FORMAT_EXAMPLE),
            ]

        replies = [Reply.info(f"Invoking tool: {name} with arguments: {oj.dumps(arguments)}")]
        result = await self.manager.call(name, arguments)
        body = oj.dumps(result.content, indent=True)
        if result.is_error:
            replies.append(Reply.warning(body, title="Tool reported an error"))
        else:
            replies.append(Reply.success(body, title="Tool result"))
        return replies

    def _connected_reply(self) -> Reply:
        status = self.manager.status()
        tools = len(self.manager.catalog)
        suffix = "" if tools == 1 else "s"
        text = f"{status} ({tools} tool{suffix} available)"
        if status.server is not None:
            text += f"\nServer: {status.server}"
        return Reply.success(text)
