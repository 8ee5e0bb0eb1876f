"""Standalone host process for hostshell."""

from hostshell.server.runner import HostRunner

__all__ = [
    "HostRunner",
]
