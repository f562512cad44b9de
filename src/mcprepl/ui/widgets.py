"""Display widgets for REPL output."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Static

from mcprepl.repl.commands import Reply, ReplyKind


class LoadingIndicator(Widget):
    """Animated loading indicator with spinner."""

    DEFAULT_CSS = """
    LoadingIndicator {
        height: 1;
        color: $primary;
    }
    """

    FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]

    def __init__(
        self,
        message: str = "Working...",
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        super().__init__(name=name, id=id, classes=classes)
        self.message = message
        self._frame = 0
        self._timer = None

    def compose(self) -> ComposeResult:
        yield Static(f"{self.FRAMES[0]} {self.message}", id="loading-text", markup=False)

    def on_mount(self) -> None:
        self._timer = self.set_interval(0.1, self._animate)

    def on_unmount(self) -> None:
        if self._timer:
            self._timer.stop()

    def _animate(self) -> None:
        self._frame = (self._frame + 1) % len(self.FRAMES)
        try:
            text = self.query_one("#loading-text", Static)
        except NoMatches:
            return  # removed mid-animation
        text.update(f"{self.FRAMES[self._frame]} {self.message}")

    def update_message(self, message: str) -> None:
        self.message = message


class OutputLine(Static):
    """Unstyled output such as listings and echoed input."""

    DEFAULT_CSS = """
    OutputLine {
        margin: 0 0;
    }

    OutputLine.echo {
        color: $text-muted;
        margin-top: 1;
    }
    """

    def __init__(self, text: str, *, classes: str | None = None) -> None:
        super().__init__(text, markup=False, classes=classes)
        self.plain_text = text


class MessageDisplay(Widget):
    """
    Bordered message block with an optional title.

    Subclasses only set the icon and colours.
    """

    ICON = ""

    DEFAULT_CSS = """
    MessageDisplay {
        height: auto;
        padding: 0 1;
        margin: 0 0;
    }

    MessageDisplay .message-title {
        text-style: bold;
    }
    """

    def __init__(
        self,
        message: str,
        title: str | None = None,
        *,
        name: str | None = None,
        id: str | None = None,
        classes: str | None = None,
    ) -> None:
        """
        Initialize the display.

        Args:
            message: Body text, shown verbatim.
            title: Optional heading above the body.
            name: Widget name.
            id: Widget ID.
            classes: CSS classes.
        """
        super().__init__(name=name, id=id, classes=classes)
        self.title = title
        self.message = message

    def compose(self) -> ComposeResult:
        if self.title:
            yield Static(f"{self.ICON} {self.title}".strip(), classes="message-title", markup=False)
        yield Static(self.message, classes="message-body", markup=False)


class ErrorDisplay(MessageDisplay):
    """Error block; the body is a formatted diagnostic where one exists."""

    ICON = "❌"

    DEFAULT_CSS = """
    ErrorDisplay {
        background: $error 20%;
        border: solid $error;
    }

    ErrorDisplay .message-title {
        color: $error;
    }
    """


class InfoDisplay(MessageDisplay):
    ICON = "ℹ️"

    DEFAULT_CSS = """
    InfoDisplay {
        color: $primary;
    }
    """


class SuccessDisplay(MessageDisplay):
    ICON = "✅"

    DEFAULT_CSS = """
    SuccessDisplay {
        background: $success 20%;
        border: solid $success;
    }

    SuccessDisplay .message-title {
        color: $success;
    }
    """


class WarningDisplay(MessageDisplay):
    ICON = "⚠️"

    DEFAULT_CSS = """
    WarningDisplay {
        background: $warning 20%;
        border: solid $warning;
    }

    WarningDisplay .message-title {
        color: $warning;
    }
    """


_DISPLAYS: dict[ReplyKind, type[MessageDisplay]] = {
    ReplyKind.INFO: InfoDisplay,
    ReplyKind.SUCCESS: SuccessDisplay,
    ReplyKind.WARNING: WarningDisplay,
    ReplyKind.ERROR: ErrorDisplay,
}


def widget_for(reply: Reply) -> Widget:
    """Widget that renders reply."""
    display = _DISPLAYS.get(reply.kind)
    if display is None:
        return OutputLine(reply.render())
    return display(reply.text, reply.title)
