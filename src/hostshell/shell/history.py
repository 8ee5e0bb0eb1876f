"""Persistent shell history shared by every session of a host.

The backing file holds one command per line, oldest first, and is only ever
appended to. Each session opens its own handle, seeds its in-memory history
from a deduplicated merge of the file, and appends every accepted line
synchronously so history survives the host being killed right after a command.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

import aiofiles

logger = logging.getLogger(__name__)

# Serializes appends from concurrent sessions so lines never interleave.
_append_lock = threading.Lock()


def has_content(line: str) -> bool:
    """Whether a line contains at least one non-whitespace character."""
    return bool(line.strip())


def merge_history(lines: Iterable[str]) -> list[str]:
    """Deduplicate stored lines, keeping the most recent occurrence of each.

    Scans from the newest line to the oldest, keeps the first occurrence of
    each exact text, drops blank lines, then restores oldest-first order.
    ``["a", "b", "a"]`` merges to ``["b", "a"]``.
    """
    seen: set[str] = set()
    merged: list[str] = []
    for line in reversed(list(lines)):
        if not has_content(line) or line in seen:
            continue
        seen.add(line)
        merged.append(line)
    merged.reverse()
    return merged


class HistoryHandle:
    """An open history file plus the session's merged in-memory history."""

    def __init__(self, path: Path, fd: int, entries: list[str]) -> None:
        self.path = path
        self._fd = fd
        self._entries = entries

    @property
    def entries(self) -> list[str]:
        """Merged history, oldest first."""
        return list(self._entries)

    @property
    def closed(self) -> bool:
        return self._fd < 0

    def record(self, line: str) -> OSError | None:
        """Append an accepted line to the backing file.

        Blank lines are ignored. Failures are logged and returned rather than
        raised; a command that could not be recorded still runs.
        """
        if not has_content(line) or self.closed:
            return None

        if line in self._entries:
            self._entries.remove(line)
        self._entries.append(line)

        data = (line + "\n").encode("utf-8")
        try:
            with _append_lock:
                while data:
                    written = os.write(self._fd, data)
                    data = data[written:]
        except OSError as e:
            logger.warning(
                "history_append_failed",
                extra={"file.path": str(self.path), "error.message": str(e)},
            )
            return e
        return None

    def close(self) -> None:
        """Release the file descriptor. Safe to call more than once."""
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1

    async def __aenter__(self) -> HistoryHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


async def open_history(path: Path) -> HistoryHandle:
    """Open the history file for appending and load its merged contents.

    The file (and its parent directory) is created if absent.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o600)
    try:
        async with aiofiles.open(path, encoding="utf-8", errors="replace") as f:
            content = await f.read()
    except BaseException:
        os.close(fd)
        raise

    entries = merge_history(content.split("\n"))
    logger.debug(
        "history_loaded", extra={"file.path": str(path), "count": len(entries)}
    )
    return HistoryHandle(path, fd, entries)


def read_history(path: Path) -> list[str]:
    """Load the merged history without opening it for writing."""
    if not path.exists():
        return []
    return merge_history(path.read_text(encoding="utf-8", errors="replace").split("\n"))
