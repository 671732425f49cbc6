"""Backend registry for named blob storage backends."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from filemanager.core.storage.backends.azure_backend import AzureBlobBackend
from filemanager.core.storage.backends.filesystem_backend import FilesystemBackend
from filemanager.core.storage.backends.minio_backend import MinIOBackend
from filemanager.core.storage.blob import BlobStorageBackend
from filemanager.core.utils.config import load_and_resolve_config

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_MODULE = "configs.blob_backends"


class BackendConfigError(Exception):
    """Raised when backend configuration is invalid."""

    pass


class BackendNotFoundError(Exception):
    """Raised when a named backend is not found in configuration."""

    pass


class BlobBackendRegistry:
    """Registry resolving backend names to container-bound backends.

    Each configured backend names a storage account or root plus a default
    container. Callers pick the tenant container per request. Only the
    configured default container is cached; a backend bound to any other
    container is built fresh on every call and belongs to the caller.

    Examples:
        >>> registry = BlobBackendRegistry()
        >>> backend = registry.get_backend("local")
        >>> tenant = registry.get_backend("minio", container="tenant-42")
    """

    def __init__(self, configuration: dict[str, dict[str, Any]] | None = None):
        """Initialize the registry.

        Args:
            configuration: Backend configuration dict. If None, loads and resolves
                          ``configs.blob_backends.CONFIGURATION``
        """
        if configuration is None:
            configuration = load_and_resolve_config(DEFAULT_CONFIG_MODULE, default={})

        self._config = configuration
        self._backend_cache: dict[str, BlobStorageBackend] = {}

    def create_backend(
        self, config: dict[str, Any], container: str | None = None
    ) -> BlobStorageBackend:
        """Create a backend instance from configuration.

        Args:
            config: Backend configuration dict with "type" and backend-specific params
            container: Container to bind to, overriding the configured one

        Raises:
            BackendConfigError: If configuration is invalid
        """
        backend_type = config.get("type")

        if not backend_type:
            raise BackendConfigError("Backend configuration must specify 'type'")

        if backend_type == "filesystem":
            base_path = config.get("base_path")
            if not base_path:
                raise BackendConfigError("Filesystem backend requires 'base_path'")

            return FilesystemBackend(
                base_path=Path(base_path),
                container=container or config.get("container", "default"),
            )

        elif backend_type == "minio":
            self._require(config, "MinIO", ["endpoint", "access_key", "secret_key"])
            bucket = container or config.get("bucket")
            if not bucket:
                raise BackendConfigError("MinIO backend requires 'bucket' or a container name")

            return MinIOBackend(
                endpoint=config["endpoint"],
                access_key=config["access_key"],
                secret_key=config["secret_key"],
                bucket=bucket,
                secure=config.get("secure", True),
                region=config.get("region"),
            )

        elif backend_type == "azure":
            self._require(config, "Azure", ["connection_string"])
            name = container or config.get("container")
            if not name:
                raise BackendConfigError("Azure backend requires 'container' or a container name")

            return AzureBlobBackend(
                connection_string=config["connection_string"],
                container=name,
                copy_timeout=config.get("copy_timeout", 60.0),
            )

        else:
            raise BackendConfigError(f"Unknown backend type: {backend_type}")

    @staticmethod
    def _require(config: dict[str, Any], label: str, fields: list[str]) -> None:
        missing = [f for f in fields if not config.get(f)]
        if missing:
            raise BackendConfigError(
                f"{label} backend missing required fields: {', '.join(missing)}"
            )

    def get_backend(
        self, name: str, container: str | None = None, use_cache: bool = True
    ) -> BlobStorageBackend:
        """Get a backend instance by name.

        Args:
            name: Configured backend name (e.g., "local", "minio", "azurite")
            container: Container to bind to; defaults to the configured one
            use_cache: Whether to reuse the cached default-container backend.
                Ignored when ``container`` is given

        Raises:
            BackendNotFoundError: If the name is not configured
            BackendConfigError: If backend configuration is invalid
        """
        use_cache = use_cache and container is None
        if use_cache and name in self._backend_cache:
            return self._backend_cache[name]

        if name not in self._config:
            available = ", ".join(self._config.keys())
            raise BackendNotFoundError(
                f"Backend '{name}' not found in configuration. "
                f"Available backends: {available or 'none'}"
            )

        backend = self.create_backend(self._config[name], container)
        if use_cache:
            self._backend_cache[name] = backend

        logger.info(f"Created backend for '{name}' (container: {backend.container})")
        return backend

    def list_backends(self) -> list[str]:
        return list(self._config.keys())

    def register(self, name: str, config: dict[str, Any]) -> None:
        """Register (or replace) a backend configuration."""
        self._config[name] = config
        self._backend_cache.pop(name, None)

    def clear_cache(self) -> None:
        self._backend_cache.clear()


_default_registry: BlobBackendRegistry | None = None


def get_default_registry() -> BlobBackendRegistry:
    """Get the process-wide registry, loading configuration on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = BlobBackendRegistry()
    return _default_registry


def get_blob_backend(name: str, container: str | None = None) -> BlobStorageBackend:
    """Get a blob backend by name from the default registry.

    Examples:
        >>> from filemanager.core.storage import get_blob_backend
        >>> backend = get_blob_backend("local", container="tenant-42")
    """
    return get_default_registry().get_backend(name, container)
