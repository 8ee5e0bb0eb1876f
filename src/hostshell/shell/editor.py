"""Host-side line editing for raw-mode shell clients.

Clients forward keystrokes untouched, so the host does the echoing, erasing
and history recall a terminal would normally do. Clients that send whole
``\\n``-terminated lines (pipes, tests) work too.
"""

from __future__ import annotations

import codecs
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

CTRL_C = "\x03"
CTRL_D = "\x04"
CTRL_U = "\x15"
ESC = "\x1b"
BACKSPACES = ("\x7f", "\x08")

ERASE_LINE = "\r\x1b[K"


class EventKind(Enum):
    LINE = "line"
    INTERRUPT = "interrupt"
    EOF = "eof"


@dataclass(frozen=True)
class EditorEvent:
    kind: EventKind
    text: str = ""


class LineEditor:
    """Turns a stream of keystrokes into submitted lines.

    Echo output goes through ``write`` as keys are consumed, so it stays in
    order with whatever the session writes between lines.
    """

    def __init__(
        self,
        write: Callable[[bytes], None],
        history: list[str] | None = None,
        prompt: str = "",
    ) -> None:
        self._write = write
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending: deque[str] = deque()
        self._buffer: list[str] = []
        self._escape: str | None = None
        self._after_cr = False
        self.prompt = prompt
        self.set_history(history or [])

    def set_history(self, history: list[str]) -> None:
        """Replace the recall list (oldest first) and reset the cursor."""
        self._history = list(history)
        self._history_index = len(self._history)
        self._draft = ""

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    def feed(self, data: bytes) -> None:
        self._pending.extend(self._decoder.decode(data))

    def next_event(self) -> EditorEvent | None:
        """Consume pending keys up to the next event, or None when drained."""
        while self._pending:
            char = self._pending.popleft()
            event = self._handle(char)
            if event is not None:
                return event
        return None

    def _echo(self, text: str) -> None:
        if text:
            self._write(text.encode("utf-8"))

    def _handle(self, char: str) -> EditorEvent | None:
        if self._escape is not None:
            self._handle_escape(char)
            return None

        after_cr, self._after_cr = self._after_cr, False

        if char == "\r":
            self._after_cr = True
            return self._submit()
        if char == "\n":
            if after_cr:
                return None
            return self._submit()
        if char == ESC:
            self._escape = ""
            return None
        if char in BACKSPACES:
            if self._buffer:
                self._buffer.pop()
                self._echo("\b \b")
            return None
        if char == CTRL_C:
            self._buffer.clear()
            self._history_index = len(self._history)
            self._echo("^C\n")
            return EditorEvent(EventKind.INTERRUPT)
        if char == CTRL_D:
            if not self._buffer:
                self._echo("\n")
                return EditorEvent(EventKind.EOF)
            return None
        if char == CTRL_U:
            self._replace_line("")
            return None
        if char == "\t":
            char = "    "
        elif char < " ":
            return None

        self._buffer.extend(char)
        self._echo(char)
        return None

    def _handle_escape(self, char: str) -> None:
        # ESC [ ... final  or  ESC O final
        if self._escape == "":
            if char in "[O":
                self._escape = char
            else:
                self._escape = None
            return
        if "\x40" <= char <= "\x7e":
            sequence = self._escape + char
            self._escape = None
            if sequence in ("[A", "OA"):
                self._recall(-1)
            elif sequence in ("[B", "OB"):
                self._recall(1)
            return
        self._escape += char

    def _recall(self, step: int) -> None:
        index = self._history_index + step
        if index < 0 or index > len(self._history):
            return
        if self._history_index == len(self._history):
            self._draft = self.buffer
        self._history_index = index
        if index == len(self._history):
            self._replace_line(self._draft)
        else:
            self._replace_line(self._history[index])

    def _replace_line(self, text: str) -> None:
        self._buffer = list(text)
        self._echo(ERASE_LINE + self.prompt + text)

    def _submit(self) -> EditorEvent:
        line = self.buffer
        self._buffer.clear()
        self._history_index = len(self._history)
        self._draft = ""
        self._echo("\n")
        return EditorEvent(EventKind.LINE, line)
