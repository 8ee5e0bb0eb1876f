"""One interactive shell session bound to one client connection."""

from __future__ import annotations

import asyncio
import builtins
import io
import logging
import re
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from rich.pretty import pretty_repr

from hostshell.shell.editor import EventKind, LineEditor
from hostshell.shell.evaluator import Evaluator
from hostshell.shell.history import HistoryHandle, open_history
from hostshell.shell.protocol import sanitize_output, sentinel_line

logger = logging.getLogger(__name__)

READ_SIZE = 4096
CONTINUATION_PROMPT = "... "
INTERRUPT_HINT = "(To exit, press Ctrl+D or type .exit)\n"

COMMANDS = {
    "break": "Terminate current command input and display new prompt",
    "exit": "Disconnect from server and leave shell",
    "help": "Show this help information",
    "reload": "Restart the server and the shell",
}

_COMMAND_RE = re.compile(r"^\.([A-Za-z]\w*)\s*$")


class SessionEnd(Enum):
    """How a session finished."""

    EXIT = "exit"  # intentional stop; the client is told to exit
    RELOAD = "reload"  # host restart; the client reconnects
    DISCONNECT = "disconnect"  # client went away or host closed the stream


class SessionOutput:
    """Write side of a session's stream.

    Safe to call from evaluator worker threads: writes are handed to the
    event loop. Everything written here is stripped of the control byte
    reserved for the exit sentinel.
    """

    def __init__(
        self, writer: asyncio.StreamWriter, loop: asyncio.AbstractEventLoop
    ) -> None:
        self._writer = writer
        self._loop = loop

    @property
    def closing(self) -> bool:
        return self._writer.is_closing()

    def write(self, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8", errors="replace")
        self._dispatch(sanitize_output(data))

    def write_control(self, data: bytes) -> None:
        """Write protocol bytes verbatim."""
        self._dispatch(data)

    def _dispatch(self, data: bytes) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._write_now(data)
            return
        try:
            self._loop.call_soon_threadsafe(self._write_now, data)
        except RuntimeError:
            # Loop already closed: the session is gone and the output with it
            logger.debug("session_output_dropped", extra={"bytes": len(data)})

    def _write_now(self, data: bytes) -> None:
        if not self._writer.is_closing():
            self._writer.write(data)

    def print(
        self,
        *args: Any,
        sep: str | None = " ",
        end: str | None = "\n",
        file: Any = None,
        flush: bool = False,
    ) -> None:
        """``print`` replacement bound into the session context."""
        if file is not None:
            builtins.print(*args, sep=sep, end=end, file=file, flush=flush)
            return
        buffer = io.StringIO()
        builtins.print(*args, sep=sep, end=end, file=buffer)
        self.write(buffer.getvalue())

    async def drain(self) -> None:
        try:
            await self._writer.drain()
        except ConnectionError as e:
            logger.debug("session_drain_failed", extra={"error.message": str(e)})

    async def close(self) -> None:
        if not self._writer.is_closing():
            self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError as e:
            logger.debug("session_close_failed", extra={"error.message": str(e)})


class ShellSession:
    """REPL over a client connection.

    Accepted lines are recorded in the shared history before they are
    evaluated. Lines are evaluated one at a time, in order, against a
    namespace private to this session.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        *,
        session_id: int,
        evaluator: Evaluator,
        history_path: Path,
        prompt: str = "> ",
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        self.id = session_id
        self._reader = reader
        self._writer = writer
        self._evaluator = evaluator
        self._history_path = history_path
        self._prompt_text = prompt
        self._on_reload = on_reload
        self._pending: list[str] = []
        self._history: HistoryHandle | None = None
        self.context: dict[str, Any] = {}
        self.output = SessionOutput(writer, asyncio.get_running_loop())
        self.editor = LineEditor(self.output.write)

    async def run(self) -> SessionEnd:
        """Serve the connection until the session ends, then close it."""
        end = SessionEnd.DISCONNECT
        logger.info("shell_session_started", extra={"session.id": self.id})

        try:
            history = await self._open_history()
            if history is None:
                end = await self._start()
            else:
                async with history:
                    self._history = history
                    end = await self._start()
        except ConnectionError as e:
            logger.debug(
                "shell_session_connection_lost",
                extra={"session.id": self.id, "error.message": str(e)},
            )
        finally:
            if end is SessionEnd.EXIT:
                # The sentinel must be flushed before the stream closes
                self.output.write_control(sentinel_line())
                await self.output.drain()
            await self.output.close()
            logger.info(
                "shell_session_ended",
                extra={"session.id": self.id, "reason": end.value},
            )

        return end

    async def close(self) -> None:
        """Close the stream without telling the client to exit."""
        await self.output.close()

    async def _start(self) -> SessionEnd:
        if self._history is not None:
            self.editor.set_history(self._history.entries)
        self.context = self._create_context()
        self._show_prompt()
        return await self._serve()

    async def _open_history(self) -> HistoryHandle | None:
        try:
            return await open_history(self._history_path)
        except OSError as e:
            logger.warning(
                "history_open_failed",
                extra={"file.path": str(self._history_path), "error.message": str(e)},
            )
            return None

    def _create_context(self) -> dict[str, Any]:
        def exit_session(code: Any = None) -> None:
            raise SystemExit(code)

        return {
            "__name__": "__shell__",
            "__builtins__": builtins,
            "print": self.output.print,
            "exit": exit_session,
            "quit": exit_session,
            "session": self,
        }

    def _show_prompt(self) -> None:
        prompt = CONTINUATION_PROMPT if self._pending else self._prompt_text
        self.editor.prompt = prompt
        self.output.write(prompt)

    async def _serve(self) -> SessionEnd:
        while True:
            event = self.editor.next_event()
            if event is None:
                data = await self._reader.read(READ_SIZE)
                if not data:
                    if self.output.closing:
                        return SessionEnd.DISCONNECT
                    # Client finished sending (piped input): end like Ctrl+D
                    return SessionEnd.EXIT
                self.editor.feed(data)
                continue

            if event.kind is EventKind.EOF:
                return SessionEnd.EXIT

            if event.kind is EventKind.INTERRUPT:
                if self._pending:
                    self._pending.clear()
                else:
                    self.output.write(INTERRUPT_HINT)
                self._show_prompt()
                continue

            end = await self._accept(event.text)
            if end is not None:
                return end
            self._show_prompt()

    async def _accept(self, line: str) -> SessionEnd | None:
        if self._history is not None:
            self._history.record(line)
            self.editor.set_history(self._history.entries)

        if match := _COMMAND_RE.match(line.strip()):
            return self._run_command(match.group(1))

        self._pending.append(line)
        source = "\n".join(self._pending)
        if not source.strip():
            self._pending.clear()
            return None
        if self._evaluator.is_incomplete(source):
            return None

        self._pending.clear()
        return await self._evaluate(source)

    def _run_command(self, name: str) -> SessionEnd | None:
        if name == "exit":
            return SessionEnd.EXIT
        if name == "reload":
            logger.info("shell_reload_requested", extra={"session.id": self.id})
            if self._on_reload is not None:
                self._on_reload()
            return SessionEnd.RELOAD
        if name == "help":
            width = max(len(command) for command in COMMANDS) + 2
            for command, text in sorted(COMMANDS.items()):
                self.output.write(f".{command.ljust(width)}{text}\n")
            return None
        if name == "break":
            self._pending.clear()
            return None
        self.output.write("Invalid REPL keyword\n")
        return None

    async def _evaluate(self, source: str) -> SessionEnd | None:
        try:
            result = await self._evaluator.evaluate(source, self.context)
            if result is not None:
                self.context["_"] = result
                self.output.write(pretty_repr(result) + "\n")
        except SystemExit:
            return SessionEnd.EXIT
        except Exception as e:
            self.output.write(self._evaluator.format_error(e))
        return None
