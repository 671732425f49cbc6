"""Utility functions for filemanager."""

from filemanager.core.utils.config import (
    ConfigError,
    env_flag,
    load_and_resolve_config,
    resolve_config_inheritance,
)
from filemanager.core.utils.env import load_env_file_if_present

__all__ = [
    "load_env_file_if_present",
    "load_and_resolve_config",
    "resolve_config_inheritance",
    "env_flag",
    "ConfigError",
]
