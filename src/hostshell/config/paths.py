"""Centralized path management for hostshell.

All shell state (socket, history, logs) lives under a single project-local
directory. The directory can be overridden with the HOSTSHELL_LOCAL_DIR
environment variable.

Default location: ./.hostshell/local (relative to the working directory
the host or client was started from).
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "HOSTSHELL_LOCAL_DIR"

SOCKET_NAME = "shell.sock"
HISTORY_NAME = "shell-history"


@lru_cache(maxsize=1)
def get_local_dir() -> Path:
    """Get the project-local directory for shell state.

    Resolution order:
    1. HOSTSHELL_LOCAL_DIR environment variable (if set)
    2. ./.hostshell/local

    Returns:
        Path to the local directory.
    """
    if env_dir := os.environ.get(ENV_VAR):
        return Path(env_dir).expanduser().resolve()

    return Path.cwd() / ".hostshell" / "local"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_local_dir() / "config.toml"


def get_socket_path(local_dir: Path | None = None) -> Path:
    """Get the shell socket path (the rendezvous point for clients)."""
    return (local_dir or get_local_dir()) / SOCKET_NAME


def get_history_path(local_dir: Path | None = None) -> Path:
    """Get the shared shell history file path."""
    return (local_dir or get_local_dir()) / HISTORY_NAME


def get_logs_path(local_dir: Path | None = None) -> Path:
    """Get the logs directory path."""
    return (local_dir or get_local_dir()) / "logs"


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for debugging/display."""
    return {
        "local": get_local_dir(),
        "config": get_config_path(),
        "socket": get_socket_path(),
        "history": get_history_path(),
        "logs": get_logs_path(),
    }
