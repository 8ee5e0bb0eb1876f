"""Local terminal handling for the shell client."""

from __future__ import annotations

import asyncio
import os
import sys
import termios
from collections.abc import Callable
from typing import BinaryIO, TextIO

from rich.console import Console
from rich.control import Control, ControlType
from rich.text import Text

READ_SIZE = 4096

WAITING_MESSAGE = "Server unavailable (waiting to reconnect)"


def running_in_emacs() -> bool:
    """Emacs shell buffers mangle raw keystrokes such as the arrow keys."""
    return bool(os.environ.get("EMACS") or os.environ.get("INSIDE_EMACS"))


def shell_banner(emacs: bool | None = None) -> Text:
    """Welcome text shown each time the client (re)connects."""
    if emacs is None:
        emacs = running_in_emacs()

    lines = ["", "Welcome to the server-side interactive shell!"]
    if not emacs:
        lines += ["", "Use the up and down arrow keys to recall shell history."]
    lines += [
        "",
        "Type .reload to restart the server and the shell.",
        "Type .exit to leave the shell.",
        "Type .help for additional help.",
        "",
        "",
    ]
    return Text("\n".join(lines), style="green")


def _raw_attributes(attrs: list) -> list:
    """Raw input, but keep output processing so ``\\n`` still starts a new line."""
    attrs = list(attrs)
    attrs[6] = list(attrs[6])
    attrs[0] &= ~(
        termios.BRKINT | termios.ICRNL | termios.INPCK | termios.ISTRIP | termios.IXON
    )
    attrs[1] |= termios.OPOST | termios.ONLCR
    attrs[2] |= termios.CS8
    attrs[3] &= ~(termios.ECHO | termios.ICANON | termios.IEXTEN | termios.ISIG)
    attrs[6][termios.VMIN] = 1
    attrs[6][termios.VTIME] = 0
    return attrs


class Terminal:
    """The client's own stdin/stdout."""

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: BinaryIO | None = None,
        console: Console | None = None,
    ) -> None:
        self._stdin_fd = (stdin or sys.stdin).fileno()
        self._stdout = stdout or sys.stdout.buffer
        self.console = console or Console()
        self._saved_attrs: list | None = None
        self._reading = False

    @property
    def is_tty(self) -> bool:
        return os.isatty(self._stdin_fd)

    def start_reading(
        self, on_data: Callable[[bytes], None], on_eof: Callable[[], None]
    ) -> None:
        """Deliver stdin bytes to ``on_data`` until stop_reading()."""
        if self._reading:
            return
        loop = asyncio.get_running_loop()

        def on_readable() -> None:
            data = os.read(self._stdin_fd, READ_SIZE)
            if data:
                on_data(data)
            else:
                self.stop_reading()
                on_eof()

        try:
            loop.add_reader(self._stdin_fd, on_readable)
        except PermissionError:
            # Regular files cannot be polled; they never block, so read them now
            while data := os.read(self._stdin_fd, READ_SIZE):
                on_data(data)
            on_eof()
            return
        self._reading = True

    def stop_reading(self) -> None:
        if self._reading:
            asyncio.get_running_loop().remove_reader(self._stdin_fd)
            self._reading = False

    def write(self, data: bytes) -> None:
        self._stdout.write(data)
        self._stdout.flush()

    def overwrite(self, text: Text | str | None = None) -> None:
        """Replace the current line with ``text`` instead of scrolling."""
        self.console.control(
            Control(
                (ControlType.ERASE_IN_LINE, 2),
                (ControlType.CURSOR_MOVE_TO_COLUMN, 0),
            )
        )
        if text:
            self.console.print(text, end="")

    def set_raw(self, enabled: bool) -> None:
        """Toggle raw passthrough of keystrokes. No-op when stdin is not a TTY."""
        if not self.is_tty:
            return
        if enabled:
            if self._saved_attrs is None:
                self._saved_attrs = termios.tcgetattr(self._stdin_fd)
                termios.tcsetattr(
                    self._stdin_fd, termios.TCSANOW, _raw_attributes(self._saved_attrs)
                )
        elif self._saved_attrs is not None:
            termios.tcsetattr(self._stdin_fd, termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None
