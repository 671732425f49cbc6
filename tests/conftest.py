from __future__ import annotations

import os

import pytest
from minio.error import S3Error

from filemanager.core.storage.backends import FilesystemBackend
from filemanager.service import FileManagerService


@pytest.fixture
def fs_backend(tmp_path):
    """Filesystem backend bound to a per-test container."""
    return FilesystemBackend(base_path=tmp_path / "blobs", container="test-user-container")


@pytest.fixture
def file_manager(fs_backend):
    """File manager whose container is dropped after the test."""
    service = FileManagerService(fs_backend)
    yield service
    service.get_container().delete_if_exists()


@pytest.fixture
def temp_files(tmp_path):
    """Factory writing local files of 128 random bytes."""
    created = []

    def _make(count: int = 1) -> list:
        for _ in range(count):
            path = tmp_path / f"upload-{len(created)}.tmp"
            path.write_bytes(os.urandom(128))
            created.append(path)
        return created[-count:]

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove storage-related environment variables for the test."""
    for key in [
        "FILEMANAGER_BACKEND",
        "BLOB_STORAGE_PATH",
        "MINIO_ENDPOINT",
        "MINIO_BUCKET",
        "MINIO_SECURE",
        "AZURE_STORAGE_CONNECTION_STRING",
        "AZURE_STORAGE_CONTAINER",
    ]:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def s3_error():
    """Factory for minio S3Error instances with a given error code."""

    def _make(code: str, resource: str = "/") -> S3Error:
        return S3Error(
            code=code,
            message=code,
            resource=resource,
            request_id="",
            host_id="",
            response=None,
        )

    return _make
