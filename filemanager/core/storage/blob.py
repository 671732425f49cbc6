"""Blob storage backend contract.

Every backend is bound to a single container (bucket) and exposes S3-like
operations on flat string keys. Folder semantics are layered on top by
:mod:`filemanager.service`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import BinaryIO


@dataclass
class BlobMetadata:
    """Metadata for a stored blob."""

    key: str
    size: int
    content_type: str | None
    last_modified: datetime | None
    etag: str | None
    custom_metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class BlobListResult:
    """Result from listing blobs."""

    blobs: list[BlobMetadata]
    prefixes: list[str]  # Common prefixes (directories)
    is_truncated: bool
    next_marker: str | None


class BlobStorageBackend(ABC):
    """Abstract base class for container-scoped blob storage backends."""

    @property
    @abstractmethod
    def container(self) -> str:
        """Name of the container this backend is bound to."""
        pass

    # Container operations

    @abstractmethod
    def container_exists(self) -> bool:
        """Check whether the container exists."""
        pass

    @abstractmethod
    def create_container(self) -> bool:
        """Create the container if it does not exist.

        Returns:
            True if the container was created, False if it already existed
        """
        pass

    @abstractmethod
    def delete_container(self) -> bool:
        """Delete the container and everything in it.

        Returns:
            True if a container was deleted, False if there was none
        """
        pass

    # Blob operations

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store a blob.

        Args:
            key: Object key (path) for the blob
            data: Binary data or file-like object
            content_type: MIME type of the content
            metadata: Custom metadata key-value pairs

        Returns:
            ETag or version ID of the stored blob
        """
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Retrieve a blob.

        Raises:
            BlobNotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def get_stream(self, key: str) -> BinaryIO:
        """Retrieve a blob as a stream.

        Raises:
            BlobNotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete a blob.

        Raises:
            BlobNotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def delete_many(self, keys: list[str]) -> dict[str, bool]:
        """Delete multiple blobs.

        Returns:
            Dictionary mapping keys to success status
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a blob exists."""
        pass

    @abstractmethod
    def get_metadata(self, key: str) -> BlobMetadata:
        """Get metadata for a blob without downloading it.

        Raises:
            BlobNotFoundError: If the blob doesn't exist
        """
        pass

    @abstractmethod
    def list_blobs(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_results: int = 1000,
        marker: str | None = None,
        include_metadata: bool = False,
    ) -> BlobListResult:
        """List blobs with optional prefix filtering.

        Args:
            prefix: Only list blobs with this prefix
            delimiter: Delimiter for grouping (e.g., '/' for directories)
            max_results: Maximum number of results to return
            marker: Continuation token for pagination
            include_metadata: Populate content type and custom metadata

        Returns:
            List result with blobs and pagination info
        """
        pass

    @abstractmethod
    def generate_presigned_url(
        self, key: str, expiration: timedelta = timedelta(hours=1), method: str = "GET"
    ) -> str:
        """Generate a presigned URL for temporary access."""
        pass

    @abstractmethod
    def copy(self, source_key: str, dest_key: str, metadata: dict[str, str] | None = None) -> None:
        """Copy a blob to a new location.

        Args:
            source_key: Source object key
            dest_key: Destination object key
            metadata: Replacement custom metadata for the copy. When None the
                source metadata is carried over.

        Raises:
            BlobNotFoundError: If the source doesn't exist
        """
        pass

    @abstractmethod
    def get_size(self, key: str) -> int:
        """Get the size of a blob in bytes.

        Raises:
            BlobNotFoundError: If the blob doesn't exist
        """
        pass


# Custom exceptions


class BlobStorageError(Exception):
    """Base exception for blob storage errors."""

    pass


class BlobNotFoundError(BlobStorageError):
    """Raised when a blob is not found."""

    pass


class BlobAlreadyExistsError(BlobStorageError):
    """Raised when trying to create a blob that already exists."""

    pass


class BlobStorageConnectionError(BlobStorageError):
    """Raised when connection to storage backend fails."""

    pass
