"""History command: show the shared shell history."""

from pathlib import Path
from typing import Annotated

import typer

from hostshell.cli.console import console, dim


def register(app: typer.Typer) -> None:
    """Register the history command."""

    @app.command()
    def history(
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
        limit: Annotated[
            int | None,
            typer.Option(
                "--limit",
                "-n",
                min=1,
                help="Only show the most recent N entries",
            ),
        ] = None,
    ) -> None:
        """Print the merged shell history, oldest first."""
        from hostshell.cli.runtime import load_cli_config
        from hostshell.shell.history import read_history

        config = load_cli_config(config_path, local_dir)
        entries = read_history(config.history_path)
        if not entries:
            dim("No shell history yet")
            return

        if limit is not None:
            entries = entries[-limit:]
        for entry in entries:
            console.print(entry, markup=False, highlight=False)
