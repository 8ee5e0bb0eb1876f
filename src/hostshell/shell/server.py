"""Shell server: owns the listener and every live session of a host."""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
import signal
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

from hostshell.shell.endpoint import EndpointError, bind_endpoint, unbind_endpoint
from hostshell.shell.evaluator import Evaluator, PythonEvaluator
from hostshell.shell.session import ShellSession

logger = logging.getLogger(__name__)


def restart_host() -> None:
    """Default ``.reload`` action: ask the host process to shut down.

    The host's runner closes every session without the exit sentinel, so
    attached clients wait for the next host instance.
    """
    os.kill(os.getpid(), signal.SIGTERM)


class ShellServer:
    """Serves interactive shells on a Unix domain socket.

    Usage:
        async with ShellServer(socket_path, history_path) as server:
            ...
    """

    def __init__(
        self,
        socket_path: Path,
        history_path: Path,
        *,
        evaluator: Evaluator | None = None,
        prompt: str = "> ",
        on_reload: Callable[[], None] | None = restart_host,
    ) -> None:
        """Initialize shell server.

        Args:
            socket_path: Path to the Unix domain socket.
            history_path: Path to the shared history file.
            evaluator: Command evaluator (default: PythonEvaluator).
            prompt: Primary prompt shown to clients.
            on_reload: Called when a client asks for a host restart.
        """
        self._socket_path = socket_path
        self._history_path = history_path
        self._evaluator = evaluator or PythonEvaluator()
        self._prompt = prompt
        self._on_reload = on_reload
        self._server: asyncio.Server | None = None
        self._sessions: set[ShellSession] = set()
        self._ids = itertools.count(1)

    async def start(self) -> bool:
        """Start listening.

        A bind failure disables the shell for this host run but is not
        raised: the host process keeps running without it.

        Returns:
            True if the endpoint is bound.
        """
        if self._server is not None:
            return True
        try:
            self._server = await bind_endpoint(
                self._socket_path, self._handle_connection
            )
        except EndpointError as e:
            logger.error(
                "shell_disabled",
                extra={"socket": str(self._socket_path), "error.message": str(e)},
            )
            return False

        logger.info("shell_server_started", extra={"socket": str(self._socket_path)})
        return True

    async def stop(self) -> None:
        """Stop listening and close all sessions without the exit sentinel.

        The socket file stays in place so attached clients keep retrying
        until the next host binds it.
        """
        if self._server is None:
            return
        self._server.close()
        await self.close_sessions()
        await self._server.wait_closed()
        self._server = None
        logger.info("shell_server_stopped")

    async def unbind(self) -> OSError | None:
        """Remove the socket file and disconnect every attached client.

        Clients then find the endpoint gone and exit instead of retrying.
        """
        error = unbind_endpoint(self._socket_path)
        if error is None:
            await self.close_sessions()
        return error

    async def close_sessions(self) -> None:
        for session in list(self._sessions):
            await session.close()

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Run one session for an accepted client connection."""
        session = ShellSession(
            reader,
            writer,
            session_id=next(self._ids),
            evaluator=self._evaluator,
            history_path=self._history_path,
            prompt=self._prompt,
            on_reload=self._on_reload,
        )
        self._sessions.add(session)
        try:
            await session.run()
        except Exception:
            logger.exception("shell_session_error", extra={"session.id": session.id})
        finally:
            self._sessions.discard(session)

    async def __aenter__(self) -> ShellServer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    @property
    def socket_path(self) -> Path:
        """Get the socket path."""
        return self._socket_path

    @property
    def history_path(self) -> Path:
        return self._history_path

    @property
    def is_running(self) -> bool:
        """Check if server is running."""
        return self._server is not None

    @property
    def sessions(self) -> frozenset[ShellSession]:
        return frozenset(self._sessions)
