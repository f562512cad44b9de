"""Textual front-end for the MCP REPL."""

from __future__ import annotations

import logging

from textual import work
from textual.app import App, ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Footer, Input

from mcprepl.repl.commands import CommandDispatcher, Reply
from mcprepl.ui.widgets import LoadingIndicator, OutputLine, widget_for

logger = logging.getLogger(__name__)

PROMPT = "mcp> "


class ReplApp(App[None]):
    """
    Scrolling output above a single command input.

    One command runs at a time; the input is disabled while it does.
    """

    TITLE = "MCP Client REPL"

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+l", "clear", "Clear"),
    ]

    CSS = """
    #output {
        height: 1fr;
        padding: 0 1;
    }

    #command {
        dock: bottom;
        margin-bottom: 1;
    }
    """

    def __init__(self, dispatcher: CommandDispatcher):
        super().__init__()
        self.dispatcher = dispatcher

    def compose(self) -> ComposeResult:
        yield VerticalScroll(id="output")
        yield Input(placeholder=PROMPT.strip(), id="command")
        yield Footer()

    def on_mount(self) -> None:
        self.run_startup()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        line = event.value
        event.input.value = ""
        if not line.strip():
            return
        await self._append([OutputLine(f"{PROMPT}{line}", classes="echo")])
        self.run_command(line)

    @work(exclusive=True, group="commands")
    async def run_startup(self) -> None:
        await self._run(self.dispatcher.startup(), "Connecting...")

    @work(exclusive=True, group="commands")
    async def run_command(self, line: str) -> None:
        await self._run(self.dispatcher.dispatch(line), "Working...")
        if self.dispatcher.exit_requested:
            self.exit()

    async def _run(self, pending, message: str) -> None:
        command_input = self.query_one("#command", Input)
        command_input.disabled = True
        loading = LoadingIndicator(message)
        await self._append([loading])
        try:
            replies: list[Reply] = await pending
        finally:
            await loading.remove()
            command_input.disabled = False
            command_input.focus()
        await self._append([widget_for(reply) for reply in replies])

    async def _append(self, widgets) -> None:
        if not widgets:
            return
        output = self.query_one("#output", VerticalScroll)
        await output.mount_all(widgets)
        output.scroll_end(animate=False)

    async def action_clear(self) -> None:
        await self.query_one("#output", VerticalScroll).remove_children()

    async def action_quit(self) -> None:
        await self.dispatcher.manager.disconnect()
        self.exit()
