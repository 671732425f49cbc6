"""Storage backend implementations."""

from filemanager.core.storage.backends.azure_backend import AzureBlobBackend
from filemanager.core.storage.backends.filesystem_backend import FilesystemBackend
from filemanager.core.storage.backends.minio_backend import MinIOBackend

__all__ = [
    "AzureBlobBackend",
    "FilesystemBackend",
    "MinIOBackend",
]
