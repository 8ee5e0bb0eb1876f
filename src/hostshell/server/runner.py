"""Standalone host process orchestration."""

from __future__ import annotations

import asyncio
import logging
import os
import signal as signal_module

from hostshell.config import ShellConfig
from hostshell.shell import Evaluator, ShellServer

logger = logging.getLogger(__name__)


class HostRunner:
    """Owns the shell server lifecycle with coordinated signal shutdown.

    First SIGTERM/SIGINT stops gracefully: sessions are closed without the
    exit sentinel, so attached clients wait for the next host. A second
    signal exits immediately.
    """

    def __init__(
        self,
        config: ShellConfig,
        *,
        evaluator: Evaluator | None = None,
    ) -> None:
        self._config = config
        self._stop = asyncio.Event()
        self.restart_requested = False
        self.server = ShellServer(
            config.socket_path,
            config.history_path,
            evaluator=evaluator,
            prompt=config.prompt,
            on_reload=self.request_restart,
        )

    def request_restart(self) -> None:
        """Stop serving; the caller re-executes the host afterwards."""
        self.restart_requested = True
        self._stop.set()

    def request_stop(self) -> None:
        self._stop.set()

    async def run(self) -> int:
        """Serve until stopped.

        Returns:
            Process exit code (1 if the shell socket could not be bound).
        """
        loop = asyncio.get_running_loop()
        shutdown_count = 0

        def handle_signal() -> None:
            nonlocal shutdown_count
            shutdown_count += 1

            if shutdown_count == 1:
                logger.info("host_shutting_down")
                self._stop.set()
            else:
                logger.warning("host_force_shutdown")
                os._exit(1)

        signals = (signal_module.SIGTERM, signal_module.SIGINT)
        for sig in signals:
            loop.add_signal_handler(sig, handle_signal)

        try:
            if not await self.server.start():
                return 1
            await self._stop.wait()
            return 0
        finally:
            await self.server.stop()
            for sig in signals:
                loop.remove_signal_handler(sig)
