"""Shared config bootstrap for CLI entrypoints."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from hostshell.cli.console import error
from hostshell.config import ConfigError, ShellConfig, load_config


def load_cli_config(
    config_path: Path | None = None,
    local_dir: Path | None = None,
) -> ShellConfig:
    """Load config for a command, exiting with status 1 on bad config."""
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        error(str(e))
        raise typer.Exit(1) from None
    except (ConfigError, ValidationError) as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None

    if local_dir is not None:
        config = config.model_copy(
            update={"local_dir": local_dir.expanduser().resolve()}
        )
    return config
