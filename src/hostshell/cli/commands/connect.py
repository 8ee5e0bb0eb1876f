"""Connect command: attach this terminal to a host's shell."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer


def register(app: typer.Typer) -> None:
    """Register the connect command."""

    @app.command()
    def connect(
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
        """Open an interactive shell inside the running host.

        Waits for the host if it is not up yet, and reconnects whenever the
        host restarts.
        """
        from hostshell.cli.console import console
        from hostshell.cli.runtime import load_cli_config
        from hostshell.logging import configure_logging
        from hostshell.shell import ShellClient, Terminal

        config = load_cli_config(config_path, local_dir)
        # Only problems go to stderr; stdout belongs to the session
        configure_logging(level=config.log_level or "WARNING")

        client = ShellClient(
            config.socket_path,
            Terminal(console=console),
            reconnect_delay=config.reconnect_delay,
        )
        try:
            code = asyncio.run(client.run())
        except KeyboardInterrupt:
            console.print()
            code = 0
        raise typer.Exit(code)
