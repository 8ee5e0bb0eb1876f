"""Shell client: attaches the local terminal to a host's shell socket.

The client survives host restarts. When the connection drops it keeps
retrying at a fixed delay, unless the host said goodbye with the exit
sentinel or the socket file vanished after we had been connected (the host
tore the endpoint down on purpose).
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.text import Text

from hostshell.shell.protocol import SentinelScanner, sanitize_output
from hostshell.shell.terminal import WAITING_MESSAGE, shell_banner

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 0.1  # seconds
READ_SIZE = 4096


class LocalTerminal(Protocol):
    """What the client needs from the local terminal."""

    def start_reading(self, on_data, on_eof) -> None: ...

    def stop_reading(self) -> None: ...

    def write(self, data: bytes) -> None: ...

    def overwrite(self, text: Text | str | None = None) -> None: ...

    def set_raw(self, enabled: bool) -> None: ...


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXITING = "exiting"


class ShellClient:
    """Connection state machine for one client process."""

    def __init__(
        self,
        socket_path: Path,
        terminal: LocalTerminal,
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        emacs: bool | None = None,
    ) -> None:
        self._socket_path = socket_path
        self._terminal = terminal
        self._reconnect_delay = reconnect_delay
        self._emacs = emacs
        self.state = ConnectionState.DISCONNECTED
        self.attempts = 0
        self._first_time_connecting = True
        self._timer: asyncio.TimerHandle | None = None
        self._dial_task: asyncio.Task[None] | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._scanner = SentinelScanner()
        self._done: asyncio.Future[int] | None = None

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    async def run(self) -> int:
        """Connect and keep the session going until the client should exit.

        Returns:
            Process exit code.
        """
        self._done = asyncio.get_running_loop().create_future()
        self.connect()
        try:
            return await self._done
        finally:
            self.close()

    def close(self) -> None:
        """Stop for good: no further dials, connection and terminal released."""
        self._exit(0)
        if self._dial_task is not None and not self._dial_task.done():
            self._dial_task.cancel()
        self._tear_down()

    def connect(self) -> None:
        """Dial the socket. No-op while connected or dialing."""
        if self.state in (ConnectionState.CONNECTED, ConnectionState.EXITING):
            return
        if self._dial_task is not None and not self._dial_task.done():
            return
        self.state = ConnectionState.CONNECTING
        self._dial_task = asyncio.create_task(self._connect_and_pipe())

    def reconnect(self, delay: float | None = None) -> None:
        """Schedule one connection attempt. Coalesces with a pending one."""
        if self.state is ConnectionState.EXITING or self._timer is not None:
            return
        self.state = ConnectionState.CONNECTING
        self._terminal.overwrite(Text(WAITING_MESSAGE, style="yellow"))
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self._reconnect_delay if delay is None else delay, self._on_timer
        )

    def _on_timer(self) -> None:
        self._timer = None
        self.connect()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _connect_and_pipe(self) -> None:
        self.attempts += 1
        try:
            reader, writer = await asyncio.open_unix_connection(
                str(self._socket_path)
            )
        except ConnectionRefusedError:
            # Socket file exists but nobody is listening: host is restarting
            logger.debug("shell_connect_refused", extra={"attempt": self.attempts})
            self.state = ConnectionState.DISCONNECTED
            self.reconnect()
            return
        except FileNotFoundError:
            # Before the first connection the host may still be starting up;
            # after it, a missing socket means the host removed it on purpose
            logger.debug("shell_socket_missing", extra={"attempt": self.attempts})
            self.state = ConnectionState.DISCONNECTED
            if self._first_time_connecting:
                self.reconnect()
            else:
                self._exit(0)
            return
        except OSError as e:
            logger.debug(
                "shell_connect_failed",
                extra={"attempt": self.attempts, "error.message": str(e)},
            )
            self.state = ConnectionState.DISCONNECTED
            self.reconnect()
            return

        self._on_connect(writer)
        try:
            await self._pipe_output(reader)
        finally:
            self._on_close()

    def _on_connect(self, writer: asyncio.StreamWriter) -> None:
        self._first_time_connecting = False
        self._cancel_timer()
        self.state = ConnectionState.CONNECTED
        self._writer = writer
        self._scanner.reset()
        logger.debug("shell_connected", extra={"socket": str(self._socket_path)})

        self._terminal.overwrite(shell_banner(self._emacs))
        self._terminal.set_raw(True)
        self._terminal.start_reading(self._on_input, self._on_input_eof)

    def _on_input(self, data: bytes) -> None:
        if self._writer is not None and not self._writer.is_closing():
            self._writer.write(data)

    def _on_input_eof(self) -> None:
        # Half-close: the host finishes the session and says goodbye
        if self._writer is not None and self._writer.can_write_eof():
            self._writer.write_eof()

    async def _pipe_output(self, reader: asyncio.StreamReader) -> None:
        while True:
            try:
                data = await reader.read(READ_SIZE)
            except ConnectionError as e:
                logger.debug("shell_read_failed", extra={"error.message": str(e)})
                return
            if not data:
                return
            self._scanner.feed(data)
            self._terminal.write(sanitize_output(data))

    def _on_close(self) -> None:
        self._tear_down()
        if self.state is ConnectionState.EXITING:
            return
        if self._scanner.exit_on_close:
            self._exit(0)
        else:
            self.reconnect()

    def _tear_down(self) -> None:
        """Unwire both directions and restore the terminal."""
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        self._terminal.stop_reading()
        self._terminal.set_raw(False)
        writer.close()
        if self.state is ConnectionState.CONNECTED:
            self.state = ConnectionState.DISCONNECTED

    def _exit(self, code: int) -> None:
        self._cancel_timer()
        self.state = ConnectionState.EXITING
        logger.debug("shell_client_exiting", extra={"code": code})
        if self._done is not None and not self._done.done():
            self._done.set_result(code)
