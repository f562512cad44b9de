"""Stdio transport for local MCP servers."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator

from mcprepl.lib import oj
from mcprepl.mcp.transport.base import (
    Transport,
    TransportError,
    ConnectionError,
    SessionError,
)
from mcprepl.mcp.transport.types import (
    TransportConfig,
    TransportEvent,
    TransportEventType,
)

logger = logging.getLogger(__name__)

# Characters that only make sense to a shell
SHELL_METACHARACTERS = frozenset("&|;<>$`()")

# Leading tokens that name an interpreter or launcher rather than a script
INTERPRETER_TOKENS = (
    "npx",
    "uvx",
    "uv",
    "node",
    "deno",
    "bun",
    "python",
    "python3",
    "bash",
    "sh",
    "docker",
    "cd",
)

# Environment variables to inherit by default
DEFAULT_INHERITED_ENV_VARS = (
    [
        "APPDATA",
        "HOMEDRIVE",
        "HOMEPATH",
        "LOCALAPPDATA",
        "PATH",
        "PATHEXT",
        "PROCESSOR_ARCHITECTURE",
        "SYSTEMDRIVE",
        "SYSTEMROOT",
        "TEMP",
        "USERNAME",
        "USERPROFILE",
    ]
    if sys.platform == "win32"
    else ["HOME", "LOGNAME", "PATH", "SHELL", "TERM", "USER"]
)

# Timeout for process termination before falling back to force kill
PROCESS_TERMINATION_TIMEOUT = 2.0

# Largest single JSON-RPC line accepted from the child
STREAM_LIMIT = 16 * 1024 * 1024

STDERR_TAIL_LINES = 20


def get_default_environment() -> dict[str, str]:
    """Environment variables deemed safe to pass to a child server."""
    env: dict[str, str] = {}

    for key in DEFAULT_INHERITED_ENV_VARS:
        value = os.environ.get(key)
        if value is None:
            continue
        if value.startswith("()"):
            # Skip exported shell functions
            continue
        env[key] = value

    return env


def is_shell_command(target: str) -> bool:
    """
    Decide whether a stdio target must be run through a shell.

    Whitespace, shell metacharacters, or a leading interpreter token
    all mean the target is a command line rather than a single path.
    A path that merely contains a space is therefore treated as a
    command line too; quote-free paths with spaces are not supported.
    """
    stripped = target.strip()
    if any(ch.isspace() for ch in stripped):
        return True
    if any(ch in SHELL_METACHARACTERS for ch in stripped):
        return True
    return bool(stripped) and stripped.split(maxsplit=1)[0] in INTERPRETER_TOKENS


@dataclass
class StdioCommand:
    """The resolved program and arguments for a stdio target."""

    command: str
    args: list[str] = field(default_factory=list)
    shell: bool = False

    def __str__(self) -> str:
        return " ".join([self.command, *self.args])


def _shell_executable() -> str:
    return shutil.which("bash") or "/bin/sh"


def resolve_command(target: str) -> StdioCommand:
    """
    Turn a stdio target into the program to spawn.

    Shell command lines run under ``bash -c``. Plain paths run
    directly: Python scripts under the current interpreter,
    JavaScript under node, and anything else as the program itself.
    """
    target = target.strip()
    if is_shell_command(target):
        return StdioCommand(_shell_executable(), ["-c", target], shell=True)

    suffix = Path(target).suffix.lower()
    if suffix == ".py":
        return StdioCommand(sys.executable, [target])
    if suffix in (".js", ".mjs", ".cjs"):
        return StdioCommand("node", [target])
    return StdioCommand(target)


class StdioTransport(Transport):
    """
    Transport that talks to a local MCP server over stdin/stdout.

    Frames are newline-delimited JSON. The child's stderr is drained
    into the log so a chatty server can never block on a full pipe.
    """

    def __init__(
        self,
        config: TransportConfig,
        env: dict[str, str] | None = None,
        cwd: str | Path | None = None,
    ):
        super().__init__(config)
        self.command = resolve_command(config.target)
        self.env = env
        self.cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task | None = None
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._write_lock = asyncio.Lock()
        self._connected = False
        self._closing = False

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def stderr_tail(self) -> list[str]:
        """Most recent lines the server wrote to stderr."""
        return list(self._stderr_tail)

    async def connect(self) -> None:
        """Spawn the server process."""
        if self._connected:
            return

        if not self.command.shell and self.command.args:
            script_path = Path(self.command.args[0])
            if not script_path.exists():
                raise ConnectionError(f"Server script not found: {script_path}")

        self._emit_event(
            TransportEvent(
                type=TransportEventType.CONNECTING,
                timestamp=time.time(),
                data={"command": str(self.command)},
            )
        )

        env = get_default_environment()
        if self.env:
            env.update(self.env)

        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command.command,
                *self.command.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=self.cwd,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise ConnectionError(
                f"Failed to spawn process '{self.command}': {e}", cause=e
            )

        self._connected = True
        self._closing = False
        self._stderr_task = asyncio.create_task(
            self._drain_stderr(),
            name="mcp-stdio-stderr",
        )
        logger.debug(f"Spawned {self.command} (pid {self._process.pid})")

        self._emit_event(
            TransportEvent(
                type=TransportEventType.PROCESS_STARTED,
                timestamp=time.time(),
                data={"pid": self._process.pid},
            )
        )

    async def disconnect(self) -> None:
        """Terminate the server process and release pipes."""
        if self._process is None:
            return

        self._closing = True
        process = self._process

        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTING,
                timestamp=time.time(),
            )
        )

        if process.stdin and not process.stdin.is_closing():
            process.stdin.close()

        if process.returncode is None:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(
                        process.wait(), timeout=PROCESS_TERMINATION_TIMEOUT
                    )
                except asyncio.TimeoutError:
                    logger.warning(f"Process {process.pid} did not exit, killing")
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                pass

        if self._stderr_task and not self._stderr_task.done():
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
        self._stderr_task = None

        self._process = None
        self._connected = False

        self._emit_event(
            TransportEvent(
                type=TransportEventType.DISCONNECTED,
                timestamp=time.time(),
                data={"returncode": process.returncode},
            )
        )

    async def send(self, message: dict) -> dict | None:
        """Write one JSON-RPC frame to the child's stdin."""
        if not self.is_connected() or self._process is None:
            raise SessionError("Transport not connected")

        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            raise SessionError("Server stdin is closed")

        line = oj.dumps(message) + "\n"

        async with self._write_lock:
            try:
                stdin.write(line.encode("utf-8"))
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise TransportError(f"Server process closed its input: {e}", cause=e)

        self._emit_event(
            TransportEvent(
                type=TransportEventType.MESSAGE_SENT,
                timestamp=time.time(),
                data={"method": message.get("method"), "id": message.get("id")},
            )
        )
        return None

    async def receive(self) -> AsyncIterator[dict]:
        """Yield JSON-RPC frames read from the child's stdout."""
        if self._process is None or self._process.stdout is None:
            return

        stdout = self._process.stdout
        while True:
            try:
                raw = await stdout.readline()
            except ValueError as e:
                # Line exceeded STREAM_LIMIT
                logger.error(f"Dropping oversized message from server: {e}")
                continue

            if not raw:
                break

            text = raw.decode("utf-8", errors="replace").strip()
            if not text:
                continue

            try:
                message = oj.loads(text)
            except oj.JSONDecodeError:
                logger.warning(f"Ignoring non-JSON output from server: {text[:200]}")
                continue

            if not isinstance(message, dict):
                logger.warning(f"Ignoring non-object JSON from server: {text[:200]}")
                continue

            self._emit_event(
                TransportEvent(
                    type=TransportEventType.MESSAGE_RECEIVED,
                    timestamp=time.time(),
                    data={"id": message.get("id"), "method": message.get("method")},
                )
            )
            yield message

        if not self._closing:
            returncode = self._process.returncode if self._process else None
            tail = "; ".join(self._stderr_tail)
            logger.warning(
                f"Server process closed stdout (returncode={returncode})"
                + (f": {tail}" if tail else "")
            )
            self._emit_event(
                TransportEvent(
                    type=TransportEventType.PROCESS_EXITED,
                    timestamp=time.time(),
                    data={"returncode": returncode},
                )
            )
        self._connected = False

    async def _drain_stderr(self) -> None:
        """Forward the child's stderr to the log."""
        if self._process is None or self._process.stderr is None:
            return
        stderr = self._process.stderr
        try:
            while True:
                raw = await stderr.readline()
                if not raw:
                    break
                text = raw.decode("utf-8", errors="replace").rstrip()
                if text:
                    self._stderr_tail.append(text)
                    logger.debug(f"[server stderr] {text}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Stopped reading server stderr: {e}")

    def is_connected(self) -> bool:
        """Check if the child process is running and the pipes are open."""
        return (
            self._connected
            and not self._closing
            and self._process is not None
            and self._process.returncode is None
        )

    @property
    def description(self) -> str:
        return f"stdio({self.command})"
