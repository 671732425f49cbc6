"""Blob storage backend configuration.

This module defines the CONFIGURATION dict which maps backend names to their
connection parameters. The container given to the registry (or on the command
line) overrides the configured default container.

Example usage:
    from filemanager import FileManagerService

    files = FileManagerService.from_name("local", container="tenant-42")

Environment overrides:
    # Point the "default" backend at MinIO or Azure instead of the filesystem
    export FILEMANAGER_BACKEND=minio

Configuration inheritance:
    "minio": {"type": "minio", "endpoint": "localhost:9000", ...},
    "minio.archive": {
        "__inherits__": "minio",
        "bucket": "archive",
    }
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from filemanager.core.utils.config import env_flag
from filemanager.core.utils.env import load_env_file_if_present

load_env_file_if_present()
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Well-known development account for the Azurite emulator
AZURITE_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=http;AccountName=devstoreaccount1;"
    "AccountKey=Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw==;"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
)


def _resolve_default_base_path() -> Path:
    """Return the default filesystem storage root."""
    configured_path = os.environ.get("BLOB_STORAGE_PATH")
    if configured_path:
        return Path(configured_path).expanduser()

    return PROJECT_ROOT / "var" / "blob_storage"


DEFAULT_BASE_PATH = _resolve_default_base_path()


def _build_filesystem_config() -> dict[str, Any]:
    return {
        "type": "filesystem",
        "base_path": str(DEFAULT_BASE_PATH),
        "container": "default",
    }


def _build_minio_config() -> dict[str, Any]:
    return {
        "type": "minio",
        "endpoint": os.getenv("MINIO_ENDPOINT", "localhost:9000"),
        "access_key": os.getenv("MINIO_ACCESS_KEY", "minioadmin"),
        "secret_key": os.getenv("MINIO_SECRET_KEY", "minioadmin"),
        "bucket": os.getenv("MINIO_BUCKET", "filemanager"),
        "secure": env_flag("MINIO_SECURE"),
    }


def _build_azure_config() -> dict[str, Any]:
    return {
        "type": "azure",
        "connection_string": os.getenv(
            "AZURE_STORAGE_CONNECTION_STRING", AZURITE_CONNECTION_STRING
        ),
        "container": os.getenv("AZURE_STORAGE_CONTAINER", "filemanager"),
    }


_BUILDERS = {
    "filesystem": _build_filesystem_config,
    "minio": _build_minio_config,
    "azure": _build_azure_config,
}


def _build_default_config() -> dict[str, Any]:
    """Pick the backend behind the "default" name from FILEMANAGER_BACKEND."""
    backend_type = os.getenv("FILEMANAGER_BACKEND", "filesystem").strip().lower()
    return _BUILDERS.get(backend_type, _build_filesystem_config)()


CONFIGURATION = {
    # What the CLI uses unless told otherwise
    "default": _build_default_config(),
    # Local directory tree, one sub-directory per container
    "local": _build_filesystem_config(),
    # MinIO / S3-compatible server
    "minio": _build_minio_config(),
    # Azure Blob Storage (Azurite emulator unless a connection string is set)
    "azure": _build_azure_config(),
    "azurite": {
        "__inherits__": "azure",
        "connection_string": AZURITE_CONNECTION_STRING,
    },
    # Scratch space
    "tmp": {
        "__inherits__": "local",
        "base_path": "/tmp/filemanager",
    },
}
