"""Configuration models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from hostshell.config.paths import (
    HISTORY_NAME,
    SOCKET_NAME,
    get_local_dir,
)


class ConfigError(Exception):
    """Configuration error."""

    pass


class ShellConfig(BaseModel):
    """Root configuration model.

    Only presentation and timing knobs live here; the wire protocol and the
    history format are fixed.
    """

    local_dir: Path = Field(default_factory=get_local_dir)
    socket_name: str = SOCKET_NAME
    history_name: str = HISTORY_NAME

    prompt: str = "> "
    # Fixed delay between reconnect attempts, in seconds
    reconnect_delay: float = Field(default=0.1, gt=0)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    log_to_file: bool = False

    @property
    def socket_path(self) -> Path:
        return self.local_dir / self.socket_name

    @property
    def history_path(self) -> Path:
        return self.local_dir / self.history_name

    @property
    def logs_path(self) -> Path:
        return self.local_dir / "logs"
