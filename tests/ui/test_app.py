"""Tests for the Textual front-end."""

import pytest

from mcprepl.repl.commands import HELP_TEXT, NO_AUTO_CONNECT, CommandDispatcher, Reply
from mcprepl.ui.app import ReplApp
from mcprepl.ui.widgets import (
    ErrorDisplay,
    InfoDisplay,
    OutputLine,
    SuccessDisplay,
    WarningDisplay,
    widget_for,
)


class TestWidgetFor:
    @pytest.mark.parametrize(
        "reply, widget_type",
        [
            (Reply.plain("text"), OutputLine),
            (Reply.info("info"), InfoDisplay),
            (Reply.success("yay"), SuccessDisplay),
            (Reply.warning("hmm"), WarningDisplay),
            (Reply.error("no"), ErrorDisplay),
        ],
    )
    def test_reply_kinds(self, reply, widget_type):
        assert type(widget_for(reply)) is widget_type


class TestReplApp:
    @pytest.mark.asyncio
    async def test_startup_and_help(self, manager):
        app = ReplApp(CommandDispatcher(manager, env={}))

        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert any(
                isinstance(widget, InfoDisplay) and widget.message == NO_AUTO_CONNECT
                for widget in app.query(InfoDisplay)
            )

            app.query_one("#command").value = "help"
            await pilot.press("enter")
            await app.workers.wait_for_complete()
            await pilot.pause()

            lines = [line.plain_text for line in app.query(OutputLine)]
            assert "mcp> help" in lines
            assert HELP_TEXT in lines
