"""Tests for the exit sentinel convention."""

from hostshell.shell.protocol import (
    EXIT_MESSAGE,
    EXIT_SENTINEL,
    SentinelScanner,
    sanitize_output,
    sentinel_line,
)


class TestSentinel:
    def test_sentinel_is_marked_with_control_byte(self):
        assert EXIT_SENTINEL == b"\x00" + EXIT_MESSAGE.encode()
        assert sentinel_line() == EXIT_SENTINEL + b"\n"

    def test_sanitize_strips_control_byte(self):
        assert sanitize_output(b"a\x00b\x00\n") == b"ab\n"

    def test_sanitized_output_cannot_forge_sentinel(self):
        forged = sanitize_output(sentinel_line())
        assert forged == b"Shell exiting...\n"
        scanner = SentinelScanner()
        scanner.feed(forged)
        assert not scanner.exit_on_close


class TestSentinelScanner:
    def test_detects_final_line(self):
        scanner = SentinelScanner()
        scanner.feed(b"> 1\n1\n> .exit\n")
        scanner.feed(sentinel_line())
        assert scanner.exit_on_close

    def test_detects_sentinel_split_across_chunks(self):
        scanner = SentinelScanner()
        line = sentinel_line()
        scanner.feed(b"> " + line[:3])
        assert not scanner.exit_on_close
        scanner.feed(b"")
        scanner.feed(line[3:])
        # The prompt shares the line, so it is not the sentinel
        assert not scanner.exit_on_close

        scanner.reset()
        scanner.feed(line[:5])
        scanner.feed(line[5:])
        assert scanner.exit_on_close

    def test_output_after_sentinel_clears_flag(self):
        scanner = SentinelScanner()
        scanner.feed(sentinel_line())
        scanner.feed(b"more")
        assert not scanner.exit_on_close
        scanner.feed(b"\n")
        assert not scanner.exit_on_close

    def test_missing_newline_is_not_a_sentinel(self):
        scanner = SentinelScanner()
        scanner.feed(EXIT_SENTINEL)
        assert not scanner.exit_on_close

    def test_tolerates_crlf(self):
        scanner = SentinelScanner()
        scanner.feed(EXIT_SENTINEL + b"\r\n")
        assert scanner.exit_on_close

    def test_reset(self):
        scanner = SentinelScanner()
        scanner.feed(sentinel_line())
        scanner.reset()
        assert not scanner.exit_on_close
