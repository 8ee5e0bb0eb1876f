"""CLI command modules."""

from hostshell.cli.commands import (
    config,
    connect,
    history,
    serve,
    unbind,
)

__all__ = [
    "config",
    "connect",
    "history",
    "serve",
    "unbind",
]
