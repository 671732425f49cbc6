"""Configuration loading for named blob backends.

Backend configuration lives in a plain Python module exposing a dict (by
default ``configs.blob_backends.CONFIGURATION``). Entries may extend one
another through the ``"__inherits__"`` key.
"""

from __future__ import annotations

import importlib
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

INHERITS_KEY = "__inherits__"
_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when configuration loading or resolution fails."""

    pass


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable ("1", "true", "yes", "on")."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def load_config_from_module(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: Any | None = None,
) -> Any:
    """Import ``module_path`` and return its ``config_name`` attribute.

    A module that cannot be imported or lacks the attribute yields ``default``.

    Examples:
        >>> config = load_config_from_module("configs.blob_backends")
        >>> custom = load_config_from_module("myapp.storage_settings", "BACKENDS")
    """
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        logger.warning(f"Could not import module '{module_path}': {e}")
        return default

    if not hasattr(module, config_name):
        logger.warning(f"Module '{module_path}' does not have attribute '{config_name}'")
        return default

    logger.debug(f"Loaded configuration from {module_path}.{config_name}")
    return getattr(module, config_name)


def resolve_config_inheritance(config_dict: dict[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Expand ``__inherits__`` references into fully merged entries.

    Child keys override parent keys. Chains of any depth are followed.

    Raises:
        ConfigError: If inheritance is circular or names a missing parent

    Examples:
        >>> config = {
        ...     "shared": {"type": "minio", "endpoint": "localhost:9000", "bucket": "files"},
        ...     "tenant-a": {"__inherits__": "shared", "bucket": "tenant-a"},
        ... }
        >>> resolve_config_inheritance(config)["tenant-a"]["endpoint"]
        'localhost:9000'
    """
    resolved_configs: dict[str, dict[str, Any]] = {}

    def _resolve(name: str, chain: tuple[str, ...]) -> dict[str, Any]:
        if name in chain:
            raise ConfigError(f"Circular inheritance detected: {' -> '.join(chain + (name,))}")

        if name in resolved_configs:
            return resolved_configs[name]

        config = config_dict[name]
        parent_name = config.get(INHERITS_KEY)

        if parent_name is None:
            resolved = dict(config)
        else:
            if parent_name not in config_dict:
                raise ConfigError(
                    f"Configuration '{name}' inherits from '{parent_name}', "
                    f"but '{parent_name}' not found"
                )
            resolved = dict(_resolve(parent_name, chain + (name,)))
            resolved.update({k: v for k, v in config.items() if k != INHERITS_KEY})
            logger.debug(f"Resolved inheritance for '{name}' from '{parent_name}'")

        resolved_configs[name] = resolved
        return resolved

    for name in config_dict:
        _resolve(name, ())

    return resolved_configs


def load_and_resolve_config(
    module_path: str,
    config_name: str = "CONFIGURATION",
    default: dict[str, dict[str, Any]] | None = None,
) -> dict[str, dict[str, Any]]:
    """Load a configuration dict from a module and resolve its inheritance."""
    raw_config = load_config_from_module(module_path, config_name, default)

    if not isinstance(raw_config, dict):
        logger.warning(f"Invalid configuration loaded from {module_path}, using default")
        return default or {}

    resolved = resolve_config_inheritance(raw_config)
    logger.info(f"Loaded and resolved {len(resolved)} configurations from {module_path}")
    return resolved
