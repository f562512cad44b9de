"""REPL command layer."""

from mcprepl.repl.commands import CommandDispatcher, Reply, ReplyKind, HELP_TEXT

__all__ = ["CommandDispatcher", "Reply", "ReplyKind", "HELP_TEXT"]
