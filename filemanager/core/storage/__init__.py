"""Container-scoped blob storage backends and their registry."""

from filemanager.core.storage.blob import (
    BlobAlreadyExistsError,
    BlobListResult,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBackend,
    BlobStorageConnectionError,
    BlobStorageError,
)
from filemanager.core.storage.registry import (
    BackendConfigError,
    BackendNotFoundError,
    BlobBackendRegistry,
    get_blob_backend,
    get_default_registry,
)

__all__ = [
    # Blob storage
    "BlobStorageBackend",
    "BlobMetadata",
    "BlobListResult",
    "BlobStorageError",
    "BlobNotFoundError",
    "BlobAlreadyExistsError",
    "BlobStorageConnectionError",
    # Registry
    "BlobBackendRegistry",
    "BackendConfigError",
    "BackendNotFoundError",
    "get_default_registry",
    "get_blob_backend",
]
