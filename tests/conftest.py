"""Shared test fixtures and fakes."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
from rich.text import Text

from hostshell.config.paths import ENV_VAR, get_local_dir
from hostshell.shell import PythonEvaluator, ShellServer

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def local_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point HOSTSHELL_LOCAL_DIR at a fresh temporary directory."""
    path = tmp_path / "local"
    monkeypatch.setenv(ENV_VAR, str(path))
    get_local_dir.cache_clear()
    yield path
    get_local_dir.cache_clear()


@pytest.fixture
def config_toml_content() -> str:
    """Sample TOML configuration."""
    return """
prompt = "py> "
reconnect_delay = 0.25
log_level = "DEBUG"
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path


# =============================================================================
# Shell Fixtures
# =============================================================================


class FakeTerminal:
    """Records what the client shows and lets tests type into it."""

    def __init__(self) -> None:
        self.output = bytearray()
        self.overwrites: list[str] = []
        self.raw_calls: list[bool] = []
        self.reading = False
        self._on_data: Callable[[bytes], None] | None = None
        self._on_eof: Callable[[], None] | None = None

    def start_reading(self, on_data, on_eof) -> None:
        self.reading = True
        self._on_data = on_data
        self._on_eof = on_eof

    def stop_reading(self) -> None:
        self.reading = False

    def write(self, data: bytes) -> None:
        self.output += data

    def overwrite(self, text: Text | str | None = None) -> None:
        self.overwrites.append(str(text) if text is not None else "")

    def set_raw(self, enabled: bool) -> None:
        self.raw_calls.append(enabled)

    def type(self, data: bytes) -> None:
        assert self.reading and self._on_data is not None
        self._on_data(data)

    def end_input(self) -> None:
        assert self.reading and self._on_eof is not None
        self.reading = False
        self._on_eof()

    def banners(self) -> int:
        welcome = "Welcome to the server-side interactive shell!"
        return sum(welcome in text for text in self.overwrites)

    def waiting(self) -> int:
        return sum("Server unavailable" in text for text in self.overwrites)


@pytest.fixture
def terminal() -> FakeTerminal:
    return FakeTerminal()


class GatedEvaluator(PythonEvaluator):
    """PythonEvaluator whose sessions share an ``asyncio.Event`` named gate."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def evaluate(self, source: str, context: dict[str, Any]) -> Any:
        context.setdefault("gate", self.gate)
        return await super().evaluate(source, context)


@pytest.fixture
def gated_evaluator() -> GatedEvaluator:
    return GatedEvaluator()


@pytest.fixture
def reloads() -> list[int]:
    """Records .reload requests made against shell_server."""
    return []


@pytest.fixture
async def shell_server(
    tmp_path: Path, reloads: list[int]
) -> AsyncGenerator[ShellServer, None]:
    """A listening ShellServer under tmp_path."""
    server = ShellServer(
        tmp_path / "shell.sock",
        tmp_path / "shell-history",
        on_reload=lambda: reloads.append(1),
    )
    assert await server.start()
    yield server
    await server.stop()


@pytest.fixture
def wait_until() -> Callable[..., Awaitable[None]]:
    """Poll a predicate until it holds, failing after a timeout."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.01)

    return _wait


@pytest.fixture
def converse() -> Callable[..., Awaitable[bytes]]:
    """Send lines to a shell socket and collect everything until the host closes."""

    async def _converse(
        socket_path: Path,
        *lines: str,
        eof: bool = False,
        timeout: float = 5.0,
    ) -> bytes:
        reader, writer = await asyncio.open_unix_connection(str(socket_path))
        try:
            for line in lines:
                writer.write(line.encode() + b"\n")
            if eof:
                writer.write_eof()
            await writer.drain()
            return await asyncio.wait_for(reader.read(), timeout)
        finally:
            writer.close()

    return _converse


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
