"""Wire conventions shared by the session host and the client connector.

The stream is raw bytes with ``\\n`` as the only structure. The host ends an
intentional shutdown by writing the exit sentinel as the final line before
closing its side. The sentinel starts with a NUL control byte; the host strips
NUL from all other session output, so ordinary output can never forge it.
"""

EXIT_MESSAGE = "Shell exiting..."
CONTROL_BYTE = b"\x00"
EXIT_SENTINEL = CONTROL_BYTE + EXIT_MESSAGE.encode()


def sentinel_line() -> bytes:
    """Bytes the host writes to signal an intentional stop."""
    return EXIT_SENTINEL + b"\n"


def sanitize_output(data: bytes) -> bytes:
    """Drop control bytes reserved for in-band signaling."""
    return data.replace(CONTROL_BYTE, b"")


class SentinelScanner:
    """Tracks line boundaries on the host's output to spot the exit sentinel.

    ``exit_on_close`` is True only when the most recent complete line was the
    sentinel and nothing followed it.
    """

    def __init__(self) -> None:
        self._partial = bytearray()
        self._last_line_was_sentinel = False

    def feed(self, data: bytes) -> None:
        self._partial += data
        while (index := self._partial.find(b"\n")) >= 0:
            line = bytes(self._partial[:index]).rstrip(b"\r")
            del self._partial[: index + 1]
            self._last_line_was_sentinel = line == EXIT_SENTINEL

    @property
    def exit_on_close(self) -> bool:
        return self._last_line_was_sentinel and not self._partial

    def reset(self) -> None:
        self._partial.clear()
        self._last_line_was_sentinel = False
