"""Tests for the named backend registry."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from filemanager.core.storage import (
    BackendConfigError,
    BackendNotFoundError,
    BlobBackendRegistry,
)
from filemanager.core.storage.backends import FilesystemBackend


class TestBlobBackendRegistry:
    """Test suite for BlobBackendRegistry."""

    def test_create_filesystem_backend(self, tmp_path):
        """Test creating filesystem backend from config."""
        registry = BlobBackendRegistry({})

        backend = registry.create_backend({"type": "filesystem", "base_path": str(tmp_path)})

        assert isinstance(backend, FilesystemBackend)
        assert backend.container == "default"

    def test_create_filesystem_backend_with_container(self, tmp_path):
        registry = BlobBackendRegistry({})
        config = {"type": "filesystem", "base_path": str(tmp_path), "container": "shared"}

        assert registry.create_backend(config).container == "shared"
        assert registry.create_backend(config, container="tenant").container == "tenant"

    def test_create_minio_backend(self):
        """Test creating MinIO backend from config."""
        registry = BlobBackendRegistry({})

        config = {
            "type": "minio",
            "endpoint": "localhost:9000",
            "access_key": "key",
            "secret_key": "secret",
            "bucket": "bucket",
        }

        with patch("filemanager.core.storage.registry.MinIOBackend") as mock_minio:
            registry.create_backend(config)
            registry.create_backend(config, container="tenant")

        first, second = mock_minio.call_args_list
        assert first.kwargs["bucket"] == "bucket"
        assert first.kwargs["secure"] is True
        assert second.kwargs["bucket"] == "tenant"

    def test_create_minio_backend_needs_bucket(self):
        registry = BlobBackendRegistry({})
        config = {
            "type": "minio",
            "endpoint": "localhost:9000",
            "access_key": "key",
            "secret_key": "secret",
        }

        with pytest.raises(BackendConfigError, match="requires 'bucket'"):
            registry.create_backend(config)

    def test_create_azure_backend(self):
        registry = BlobBackendRegistry({})
        config = {"type": "azure", "connection_string": "UseDevelopmentStorage=true"}

        with patch("filemanager.core.storage.registry.AzureBlobBackend") as mock_azure:
            registry.create_backend(config, container="tenant")

        mock_azure.assert_called_once_with(
            connection_string="UseDevelopmentStorage=true",
            container="tenant",
            copy_timeout=60.0,
        )

    def test_create_azure_backend_needs_container(self):
        registry = BlobBackendRegistry({})

        with pytest.raises(BackendConfigError, match="requires 'container'"):
            registry.create_backend({"type": "azure", "connection_string": "x"})

    def test_create_backend_missing_type(self):
        """Test error when type is missing from config."""
        registry = BlobBackendRegistry({})

        with pytest.raises(BackendConfigError, match="must specify 'type'"):
            registry.create_backend({})

    def test_create_backend_unknown_type(self):
        """Test error with unknown backend type."""
        registry = BlobBackendRegistry({})

        with pytest.raises(BackendConfigError, match="Unknown backend type"):
            registry.create_backend({"type": "unknown"})

    def test_create_backend_missing_required_fields(self):
        """Test error when required fields are missing."""
        registry = BlobBackendRegistry({})

        # Filesystem without base_path
        with pytest.raises(BackendConfigError, match="requires 'base_path'"):
            registry.create_backend({"type": "filesystem"})

        # MinIO without credentials
        with pytest.raises(BackendConfigError, match="missing required fields"):
            registry.create_backend({"type": "minio", "endpoint": "localhost:9000"})

        # Azure without a connection string
        with pytest.raises(BackendConfigError, match="connection_string"):
            registry.create_backend({"type": "azure", "container": "files"})

    def test_get_backend(self, tmp_path):
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)
        backend = registry.get_backend("dev", container="tenant")

        assert isinstance(backend, FilesystemBackend)
        assert backend.container == "tenant"

    def test_get_backend_not_found(self):
        """Test error when backend name not found."""
        registry = BlobBackendRegistry({})

        with pytest.raises(BackendNotFoundError, match="'nonexistent' not found"):
            registry.get_backend("nonexistent")

    def test_get_backend_caches_default_container(self, tmp_path):
        """Test that the configured default container backend is reused."""
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)

        assert registry.get_backend("dev") is registry.get_backend("dev")

    def test_get_backend_builds_tenant_containers_per_call(self, tmp_path):
        """Tenant containers are not kept in the registry."""
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)
        first = registry.get_backend("dev", "tenant-a")
        second = registry.get_backend("dev", "tenant-a")

        assert first is not second
        assert first.container == second.container == "tenant-a"
        assert registry._backend_cache == {}

    def test_many_tenants_do_not_grow_cache(self, tmp_path):
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)
        registry.get_backend("dev")
        for i in range(50):
            registry.get_backend("dev", f"tenant-{i}")

        assert list(registry._backend_cache) == ["dev"]

    def test_get_backend_with_use_cache_false(self, tmp_path):
        """Test getting backend without caching."""
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)

        backend1 = registry.get_backend("dev", use_cache=False)
        backend2 = registry.get_backend("dev", use_cache=False)

        assert backend1 is not backend2

    def test_list_backends(self):
        """Test listing configured backends."""
        registry = BlobBackendRegistry({"dev": {}, "prod": {}, "test": {}})

        assert set(registry.list_backends()) == {"dev", "prod", "test"}

    def test_register_backend(self, tmp_path):
        """Test registering a new backend."""
        registry = BlobBackendRegistry({})

        registry.register("new_backend", {"type": "filesystem", "base_path": str(tmp_path)})

        assert "new_backend" in registry.list_backends()
        assert isinstance(registry.get_backend("new_backend"), FilesystemBackend)

    def test_register_clears_cache(self, tmp_path):
        """Registering a name drops its cached backend."""
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)
        default = registry.get_backend("dev")

        registry.register("dev", {"type": "filesystem", "base_path": str(tmp_path / "new")})
        replaced = registry.get_backend("dev")

        assert replaced is not default
        assert replaced._get_blob_path("a.txt").is_relative_to(tmp_path / "new")

    def test_clear_cache(self, tmp_path):
        """Test clearing backend cache."""
        config = {"dev": {"type": "filesystem", "base_path": str(tmp_path)}}

        registry = BlobBackendRegistry(config)

        backend1 = registry.get_backend("dev")
        registry.clear_cache()
        backend2 = registry.get_backend("dev")

        assert backend1 is not backend2

    def test_loads_default_config(self):
        """Test that registry loads configs.blob_backends if none provided."""
        registry = BlobBackendRegistry()

        backends = registry.list_backends()

        assert {"default", "local", "minio", "azure", "azurite", "tmp"} <= set(backends)

    def test_default_config_resolves_inheritance(self):
        registry = BlobBackendRegistry()

        with patch("filemanager.core.storage.registry.AzureBlobBackend") as mock_azure:
            registry.get_backend("azurite", container="tenant")

        assert "devstoreaccount1" in mock_azure.call_args.kwargs["connection_string"]


class TestGlobalRegistryFunctions:
    """Test global registry utility functions."""

    def test_get_default_registry(self):
        """Test getting default global registry."""
        from filemanager.core.storage.registry import get_default_registry

        registry1 = get_default_registry()
        registry2 = get_default_registry()

        assert registry1 is registry2

    def test_get_blob_backend(self):
        """Test get_blob_backend convenience function."""
        from filemanager.core.storage.registry import get_blob_backend

        backend = get_blob_backend("tmp", container="registry-test")

        assert isinstance(backend, FilesystemBackend)
        assert backend.container == "registry-test"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
