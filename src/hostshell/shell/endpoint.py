"""Unix domain socket endpoint for shell clients.

The socket file is the rendezvous point: its presence means a host is (or was)
serving shells, its absence means the host is not shell-enabled or tore the
endpoint down on purpose. Binding always replaces the file, so a stale socket
left by a previous host cannot be mistaken for a live one.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[
    [asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]
]


class EndpointError(Exception):
    """The shell endpoint could not be created."""

    def __init__(self, path: Path, cause: OSError):
        super().__init__(f"Cannot bind shell socket {path}: {cause}")
        self.path = path
        self.cause = cause


def remove_stale_endpoint(path: Path) -> None:
    """Remove a leftover socket file, logging anything but a missing file."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            "stale_socket_remove_failed",
            extra={"socket": str(path), "error.message": str(e)},
        )


async def bind_endpoint(path: Path, handler: ConnectionHandler) -> asyncio.Server:
    """Create a listener bound to ``path``.

    The listener is bound under a staging name next to ``path`` and renamed
    over it, so a client dialing while a host restarts finds the old file or
    the new listener, never a missing socket.

    Raises:
        EndpointError: If the socket cannot be created. Not retried.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise EndpointError(path, e) from e

    staging = path.with_name(f".{path.name}.{os.getpid()}")
    remove_stale_endpoint(staging)

    kwargs: dict[str, Any] = {}
    if sys.version_info >= (3, 13):
        # The file outlives the listener; only unbind_endpoint() removes it
        kwargs["cleanup_socket"] = False

    try:
        server = await asyncio.start_unix_server(handler, path=str(staging), **kwargs)
    except OSError as e:
        raise EndpointError(path, e) from e

    try:
        # Owner only; this is the only access control clients get
        staging.chmod(0o600)
        staging.replace(path)
    except OSError as e:
        server.close()
        await server.wait_closed()
        remove_stale_endpoint(staging)
        raise EndpointError(path, e) from e

    logger.info("shell_endpoint_bound", extra={"socket": str(path)})
    return server


def unbind_endpoint(path: Path) -> OSError | None:
    """Remove the socket file.

    Returns the error instead of raising, including when the file is already
    gone. Callers that own the listener should also close their sessions so
    attached clients observe the teardown.
    """
    try:
        path.unlink()
    except OSError as e:
        return e
    logger.info("shell_endpoint_unbound", extra={"socket": str(path)})
    return None
