"""Tests for shell sessions served over a real Unix socket."""

import asyncio
import os
import threading
from typing import Any

import pytest

from hostshell.shell import EXIT_SENTINEL, PythonEvaluator, ShellServer
from hostshell.shell.history import open_history
from hostshell.shell.session import INTERRUPT_HINT

SENTINEL_LINE = EXIT_SENTINEL + b"\n"


class BlockingEvaluator(PythonEvaluator):
    """Sessions see ``entered`` (a list) and ``release`` (a threading.Event)."""

    def __init__(self) -> None:
        super().__init__()
        self.entered: list[int] = []
        self.release = threading.Event()

    async def evaluate(self, source: str, context: dict[str, Any]) -> Any:
        context.setdefault("entered", self.entered)
        context.setdefault("release", self.release)
        return await super().evaluate(source, context)


class TestExitProtocol:
    @pytest.mark.asyncio
    async def test_exit_command_ends_with_sentinel(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "1 + 1", ".exit")

        assert output.startswith(b"> ")
        assert b"2\n" in output
        assert output.endswith(SENTINEL_LINE)
        assert output.count(EXIT_SENTINEL) == 1

    @pytest.mark.asyncio
    async def test_ctrl_d_ends_with_sentinel(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "x = 1", "\x04")

        assert output.endswith(SENTINEL_LINE)

    @pytest.mark.asyncio
    async def test_exit_builtin_ends_with_sentinel(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "exit()", "1 + 1")

        assert output.endswith(SENTINEL_LINE)
        assert b"2\n" not in output

    @pytest.mark.asyncio
    async def test_input_eof_ends_with_sentinel(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "'piped'", eof=True)

        assert b"'piped'\n" in output
        assert output.endswith(SENTINEL_LINE)

    @pytest.mark.asyncio
    async def test_output_cannot_forge_sentinel(self, shell_server, converse):
        output = await converse(
            shell_server.socket_path,
            "print('\\x00Shell exiting...')",
            "'still here'",
            ".exit",
        )

        assert output.count(EXIT_SENTINEL) == 1
        assert output.endswith(SENTINEL_LINE)
        assert b"\nShell exiting...\n" in output

    @pytest.mark.asyncio
    async def test_reload_closes_without_sentinel(
        self, shell_server, converse, reloads
    ):
        output = await converse(shell_server.socket_path, ".reload", "1 + 1")

        assert reloads == [1]
        assert EXIT_SENTINEL not in output
        assert b"2\n" not in output


class TestEvaluation:
    @pytest.mark.asyncio
    async def test_commands_run_in_submission_order(self, shell_server, converse):
        output = await converse(
            shell_server.socket_path,
            "seen = []",
            "seen.append(1)",
            "seen.append(2)",
            "seen.append(3)",
            "seen",
            ".exit",
        )

        assert b"[1, 2, 3]\n" in output

    @pytest.mark.asyncio
    async def test_error_does_not_end_session(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "1 / 0", "'ok'", ".exit")

        assert b"ZeroDivisionError: division by zero" in output
        assert b"'ok'\n" in output
        assert output.endswith(SENTINEL_LINE)

    @pytest.mark.asyncio
    async def test_print_goes_to_client(self, shell_server, converse):
        output = await converse(
            shell_server.socket_path, "print('hello', 'world')", ".exit"
        )
        assert b"hello world\n" in output

    @pytest.mark.asyncio
    async def test_last_result_is_kept(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "6 * 7", "_ + 1", ".exit")
        assert b"43\n" in output

    @pytest.mark.asyncio
    async def test_multiline_input(self, shell_server, converse):
        output = await converse(
            shell_server.socket_path,
            "def f():",
            "    return 41 + 1",
            "",
            "f()",
            ".exit",
        )

        assert b"... " in output
        assert b"42\n" in output

    @pytest.mark.asyncio
    async def test_break_discards_pending_input(self, shell_server, converse):
        output = await converse(
            shell_server.socket_path,
            "def f():",
            "    x = 1",
            ".break",
            "'fresh'",
            ".exit",
        )

        assert b"'fresh'\n" in output
        assert b"Error" not in output

    @pytest.mark.asyncio
    async def test_context_is_per_session(self, shell_server, converse):
        await converse(shell_server.socket_path, "secret = 1", ".exit")
        output = await converse(shell_server.socket_path, "secret", ".exit")

        assert b"NameError" in output

    @pytest.mark.asyncio
    async def test_sessions_run_concurrently(
        self, tmp_path, gated_evaluator, converse
    ):
        server = ShellServer(
            tmp_path / "shell.sock",
            tmp_path / "shell-history",
            evaluator=gated_evaluator,
        )
        async with server:
            waiting = asyncio.create_task(
                converse(
                    server.socket_path, "await gate.wait()", "'released'", ".exit"
                )
            )
            await asyncio.sleep(0.05)
            assert not waiting.done()

            other = await converse(server.socket_path, "1 + 1", ".exit")
            assert b"2\n" in other
            assert not waiting.done()

            gated_evaluator.gate.set()
            output = await asyncio.wait_for(waiting, 5)

        assert b"'released'\n" in output

    @pytest.mark.asyncio
    async def test_blocked_sessions_do_not_starve_others(
        self, tmp_path, converse, wait_until
    ):
        evaluator = BlockingEvaluator()
        server = ShellServer(
            tmp_path / "shell.sock",
            tmp_path / "shell-history",
            evaluator=evaluator,
        )
        # One more than asyncio's default executor would run at once
        count = min(32, (os.cpu_count() or 1) + 4) + 1

        async with server:
            blocked = [
                asyncio.create_task(
                    converse(
                        server.socket_path,
                        "entered.append(1) or release.wait(10)",
                        ".exit",
                        timeout=15,
                    )
                )
                for _ in range(count)
            ]
            try:
                await wait_until(lambda: len(evaluator.entered) == count)

                other = await asyncio.wait_for(
                    converse(server.socket_path, "6 * 7", ".exit"), 2
                )
                assert b"42\n" in other
                assert not any(task.done() for task in blocked)
            finally:
                evaluator.release.set()
                outputs = await asyncio.gather(*blocked)

        assert all(b"True\n" in output for output in outputs)


class TestDotCommands:
    @pytest.mark.asyncio
    async def test_help_lists_commands(self, shell_server, converse):
        output = await converse(shell_server.socket_path, ".help", ".exit")

        for command in (b".break", b".exit", b".help", b".reload"):
            assert command in output

    @pytest.mark.asyncio
    async def test_unknown_command(self, shell_server, converse):
        output = await converse(shell_server.socket_path, ".nope", ".exit")
        assert b"Invalid REPL keyword" in output

    @pytest.mark.asyncio
    async def test_ctrl_c_shows_hint(self, shell_server, converse):
        output = await converse(shell_server.socket_path, "abc\x03", ".exit")

        assert b"^C\n" in output
        assert INTERRUPT_HINT.encode() in output


class TestSessionHistory:
    @pytest.mark.asyncio
    async def test_accepted_lines_are_recorded(self, shell_server, converse):
        await converse(shell_server.socket_path, "a = 1", "", "1 / 0", "a = 1", ".exit")

        lines = shell_server.history_path.read_text().splitlines()
        assert lines == ["a = 1", "1 / 0", "a = 1", ".exit"]

    @pytest.mark.asyncio
    async def test_history_is_recalled_in_next_session(self, shell_server, converse):
        await converse(shell_server.socket_path, "40 + 2", ".exit")

        # Two steps up skips the recorded .exit
        output = await converse(shell_server.socket_path, "\x1b[A\x1b[A", ".exit")

        assert b"42\n" in output

    @pytest.mark.asyncio
    async def test_history_failure_does_not_block_commands(self, tmp_path, converse):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        server = ShellServer(tmp_path / "shell.sock", blocker / "shell-history")

        async with server:
            output = await converse(server.socket_path, "1 + 1", ".exit")

        assert b"2\n" in output
        assert output.endswith(SENTINEL_LINE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "lines",
        [
            (".exit",),
            ("exit()",),
            ("1 / 0", ".exit"),
            (".reload",),
        ],
    )
    async def test_history_handle_released_when_session_ends(
        self, shell_server, converse, monkeypatch, lines
    ):
        handles = []

        async def tracking_open(path):
            handle = await open_history(path)
            handles.append(handle)
            return handle

        monkeypatch.setattr("hostshell.shell.session.open_history", tracking_open)

        await converse(shell_server.socket_path, *lines)

        assert len(handles) == 1
        assert handles[0].closed
