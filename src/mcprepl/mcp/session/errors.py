"""Errors raised by the session manager."""

from mcprepl.mcp.protocol.diagnostics import Diagnostic


class SessionManagerError(Exception):
    """Base exception for session manager failures."""

    pass


class PreconditionError(SessionManagerError):
    """
    A client-side check failed before any network operation.

    These are plain user guidance; they never carry a Diagnostic.
    """

    pass


class NotConnectedError(PreconditionError):
    """An operation needs a connection and there is none."""

    def __init__(self, message: str = "Not connected."):
        super().__init__(message)


class ToolNotFoundError(PreconditionError):
    """The requested tool is not in the current catalog."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool {name} not found.")


class ClassifiedError(SessionManagerError):
    """A transport or protocol failure, reduced to a Diagnostic."""

    def __init__(self, summary: str, diagnostic: Diagnostic):
        self.summary = summary
        self.diagnostic = diagnostic
        super().__init__(f"{summary}: {diagnostic.message}")


class SessionConnectError(ClassifiedError):
    """Connecting failed; the session is left disconnected."""

    pass


class ToolCallError(ClassifiedError):
    """A tool call or tool listing failed in transit or on the server."""

    pass
