"""Serve command: run a standalone shell host."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Annotated

import typer

from hostshell.cli.console import console


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config_path: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        local_dir: Annotated[
            Path | None,
            typer.Option(
                "--local-dir",
                "-d",
                help="Directory holding the shell socket and history",
            ),
        ] = None,
    ) -> None:
        """Run a host process that serves Python shells to clients.

        Type .reload in a connected shell to restart this process; attached
        clients reconnect on their own.
        """
        from hostshell.cli.runtime import load_cli_config
        from hostshell.logging import configure_logging
        from hostshell.server import HostRunner

        config = load_cli_config(config_path, local_dir)
        configure_logging(
            level=config.log_level,
            use_rich=True,
            log_to_file=config.log_to_file,
            logs_dir=config.logs_path,
        )

        runner = HostRunner(config)
        console.print(f"[dim]Serving shells on {config.socket_path}[/dim]")
        code = asyncio.run(runner.run())

        if runner.restart_requested:
            console.print("[dim]Restarting...[/dim]")
            # orig_argv keeps "-m hostshell" when started that way
            os.execv(sys.executable, sys.orig_argv)

        raise typer.Exit(code)
