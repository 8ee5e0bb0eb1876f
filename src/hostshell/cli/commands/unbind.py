"""Unbind command: remove the shell socket so attached clients exit."""

from pathlib import Path
from typing import Annotated

import typer

from hostshell.cli.console import error, success, warning


def register(app: typer.Typer) -> None:
    """Register the unbind command."""

    @app.command()
    def unbind(
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
        """Remove the shell socket file.

        Clients that lose their connection afterwards find the socket gone
        and exit instead of waiting for the host.
        """
        from hostshell.cli.runtime import load_cli_config
        from hostshell.shell.endpoint import unbind_endpoint

        config = load_cli_config(config_path, local_dir)
        err = unbind_endpoint(config.socket_path)
        if isinstance(err, FileNotFoundError):
            warning(f"No shell socket at {config.socket_path}")
            return
        if err is not None:
            error(f"Could not remove {config.socket_path}: {err.strerror or err}")
            raise typer.Exit(1)
        success(f"Removed {config.socket_path}")
