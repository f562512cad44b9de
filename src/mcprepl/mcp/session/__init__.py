"""
MCP Session Layer.

Owns the single active connection: lifecycle state, the cached tool
catalog, and guarded tool invocation.
"""

from mcprepl.mcp.session.state import (
    SessionState,
    SessionStateMachine,
    InvalidStateTransition,
)
from mcprepl.mcp.session.catalog import ToolCatalog, ToolDescriptor, NO_TOOLS_MESSAGE
from mcprepl.mcp.session.errors import (
    SessionManagerError,
    PreconditionError,
    NotConnectedError,
    ToolNotFoundError,
    ClassifiedError,
    SessionConnectError,
    ToolCallError,
)
from mcprepl.mcp.session.invoker import CallResult, ToolInvoker
from mcprepl.mcp.session.manager import SessionManager, SessionStatus

__all__ = [
    # State
    "SessionState",
    "SessionStateMachine",
    "InvalidStateTransition",
    # Catalog
    "ToolCatalog",
    "ToolDescriptor",
    "NO_TOOLS_MESSAGE",
    # Errors
    "SessionManagerError",
    "PreconditionError",
    "NotConnectedError",
    "ToolNotFoundError",
    "ClassifiedError",
    "SessionConnectError",
    "ToolCallError",
    # Invocation
    "CallResult",
    "ToolInvoker",
    "SessionManager",
    "SessionStatus",
]
