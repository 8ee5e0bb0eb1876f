"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from hostshell.config.models import ConfigError, ShellConfig
from hostshell.config.paths import get_config_path

RECONNECT_DELAY_ENV = "HOSTSHELL_RECONNECT_DELAY"


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("hostshell.toml"),  # Current directory
        get_config_path(),  # <local>/config.toml (or HOSTSHELL_LOCAL_DIR)
    ]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides where not set in config."""
    if config.get("reconnect_delay") is None:
        if value := os.environ.get(RECONNECT_DELAY_ENV):
            try:
                config["reconnect_delay"] = float(value)
            except ValueError as e:
                raise ConfigError(f"Invalid {RECONNECT_DELAY_ENV}: {value!r}") from e
    return config


def load_config(path: Path | None = None) -> ShellConfig:
    """Load configuration from TOML file.

    Unlike an explicit path, a missing default file is not an error: the
    shell runs fine on defaults.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated ShellConfig instance.

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
        ConfigError: If the file is not valid TOML.
        pydantic.ValidationError: If values fail validation.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _apply_env_overrides(raw_config)

    return ShellConfig.model_validate(raw_config)
