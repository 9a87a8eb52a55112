"""Report sinks.

Color handling is decided once, from the configured ``ColorChoice``, when the
console is built; nothing downstream inspects the terminal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.text import Text

from monitorbot.differ import DiffLine, LineKind

if TYPE_CHECKING:
    from monitorbot.config import ColorChoice

LINE_STYLES: dict[LineKind, str] = {
    LineKind.REMOVED: "bright_red",
    LineKind.ADDED: "bright_green",
    LineKind.COMMON: "",
}
ERROR_STYLE = "bold bright_red"


def build_console(
    color: ColorChoice,
    file: TextIO | None = None,
    *,
    stderr: bool = False,
) -> Console:
    """Create a console for ``file`` (stdout, or stderr if requested, when None).

    ``auto`` colors only when the stream is a terminal (rich also honours
    ``NO_COLOR``); ``always`` and ``never`` force the choice.
    """
    if color == "always":
        return Console(
            file=file,
            stderr=stderr,
            force_terminal=True,
            color_system="standard",
            highlight=False,
        )
    if color == "never":
        return Console(file=file, stderr=stderr, color_system=None, highlight=False)
    return Console(file=file, stderr=stderr, highlight=False)


class ConsoleSink:
    """DiffSink that prints to a rich Console."""

    def __init__(self, console: Console) -> None:
        self._console = console

    def write_line(self, line: DiffLine) -> None:
        self._console.print(Text(str(line), style=LINE_STYLES[line.kind]), soft_wrap=True)

    def write_text(self, text: str) -> None:
        self._console.print(Text(text), soft_wrap=True)


def print_error(console: Console, message: str) -> None:
    console.print(Text(message, style=ERROR_STYLE), soft_wrap=True)
