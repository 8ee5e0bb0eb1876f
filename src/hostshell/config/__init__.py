"""Configuration module."""

from hostshell.config.loader import load_config
from hostshell.config.models import ConfigError, ShellConfig
from hostshell.config.paths import (
    get_config_path,
    get_history_path,
    get_local_dir,
    get_logs_path,
    get_socket_path,
)

__all__ = [
    "ConfigError",
    "ShellConfig",
    "get_config_path",
    "get_history_path",
    "get_local_dir",
    "get_logs_path",
    "get_socket_path",
    "load_config",
]
