"""Azure Blob Storage backend implementation."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime, timedelta
from io import BytesIO
from typing import BinaryIO

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import (
    BlobPrefix,
    BlobSasPermissions,
    BlobServiceClient,
    ContentSettings,
    generate_blob_sas,
)

from filemanager.core.storage.blob import (
    BlobListResult,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBackend,
    BlobStorageError,
)

logger = logging.getLogger(__name__)

COPY_POLL_INTERVAL = 0.5


class AzureBlobBackend(BlobStorageBackend):
    """Azure Blob Storage implementation of blob storage backend."""

    def __init__(self, connection_string: str, container: str, copy_timeout: float = 60.0):
        """Initialize Azure backend.

        Args:
            connection_string: Storage account connection string
            container: Blob container to bind to
            copy_timeout: Seconds to wait for a pending server-side copy
        """
        self._service = BlobServiceClient.from_connection_string(connection_string)
        self._container_name = container
        self._container = self._service.get_container_client(container)
        self._copy_timeout = copy_timeout

    @property
    def container(self) -> str:
        return self._container_name

    def container_exists(self) -> bool:
        try:
            return self._container.exists()
        except AzureError as e:
            raise BlobStorageError(f"Failed to check container {self._container_name}: {e}")

    def create_container(self) -> bool:
        try:
            self._container.create_container()
            logger.info(f"Created container: {self._container_name}")
            return True
        except ResourceExistsError:
            return False
        except AzureError as e:
            raise BlobStorageError(f"Failed to create container {self._container_name}: {e}")

    def delete_container(self) -> bool:
        try:
            self._container.delete_container()
            logger.info(f"Deleted container: {self._container_name}")
            return True
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise BlobStorageError(f"Failed to delete container {self._container_name}: {e}")

    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store a blob in Azure."""
        try:
            result = self._container.get_blob_client(key).upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(
                    content_type=content_type or "application/octet-stream"
                ),
                metadata=metadata,
            )
            etag = result.get("etag")
            logger.info(f"Stored blob: {key} (etag: {etag})")
            return etag

        except AzureError as e:
            raise BlobStorageError(f"Failed to store blob {key}: {e}")

    def get(self, key: str) -> bytes:
        """Retrieve a blob from Azure."""
        try:
            return self._container.download_blob(key).readall()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob not found: {key}")
        except AzureError as e:
            raise BlobStorageError(f"Failed to retrieve blob {key}: {e}")

    def get_stream(self, key: str) -> BinaryIO:
        """Retrieve a blob as an in-memory stream."""
        return BytesIO(self.get(key))

    def delete(self, key: str) -> None:
        """Delete a blob from Azure."""
        try:
            self._container.delete_blob(key)
            logger.info(f"Deleted blob: {key}")
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob not found: {key}")
        except AzureError as e:
            raise BlobStorageError(f"Failed to delete blob {key}: {e}")

    def delete_many(self, keys: list[str]) -> dict[str, bool]:
        """Delete multiple blobs one at a time."""
        results = {}

        for key in keys:
            try:
                self.delete(key)
                results[key] = True
            except BlobStorageError as e:
                logger.warning(f"Failed to delete {key}: {e}")
                results[key] = False

        logger.info(f"Deleted {sum(results.values())} of {len(keys)} blobs")
        return results

    def exists(self, key: str) -> bool:
        """Check if a blob exists in Azure."""
        try:
            return self._container.get_blob_client(key).exists()
        except AzureError as e:
            raise BlobStorageError(f"Failed to check blob existence {key}: {e}")

    def _to_metadata(self, props) -> BlobMetadata:
        content_settings = props.content_settings
        return BlobMetadata(
            key=props.name,
            size=props.size,
            content_type=content_settings.content_type if content_settings else None,
            last_modified=props.last_modified,
            etag=props.etag,
            custom_metadata=dict(props.metadata or {}),
        )

    def get_metadata(self, key: str) -> BlobMetadata:
        """Get metadata for a blob in Azure."""
        try:
            props = self._container.get_blob_client(key).get_blob_properties()
        except ResourceNotFoundError:
            raise BlobNotFoundError(f"Blob not found: {key}")
        except AzureError as e:
            raise BlobStorageError(f"Failed to get metadata for {key}: {e}")

        metadata = self._to_metadata(props)
        metadata.key = key
        return metadata

    def list_blobs(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_results: int = 1000,
        marker: str | None = None,
        include_metadata: bool = False,
    ) -> BlobListResult:
        """List blobs in Azure."""
        include = ["metadata"] if include_metadata else None

        try:
            if delimiter is None:
                pages = self._container.list_blobs(
                    name_starts_with=prefix, include=include, results_per_page=max_results
                ).by_page(continuation_token=marker)
                page = next(pages, [])
                blobs = [self._to_metadata(props) for props in page]
                next_marker = pages.continuation_token
                return BlobListResult(
                    blobs=blobs,
                    prefixes=[],
                    is_truncated=next_marker is not None,
                    next_marker=next_marker,
                )

            # Hierarchical listing is small enough to walk in one go
            blobs = []
            prefixes = []
            for item in self._container.walk_blobs(
                name_starts_with=prefix, include=include, delimiter=delimiter
            ):
                if isinstance(item, BlobPrefix):
                    prefixes.append(item.name)
                else:
                    blobs.append(self._to_metadata(item))

            return BlobListResult(
                blobs=blobs, prefixes=sorted(prefixes), is_truncated=False, next_marker=None
            )

        except ResourceNotFoundError:
            # Container not created yet
            return BlobListResult(blobs=[], prefixes=[], is_truncated=False, next_marker=None)
        except AzureError as e:
            raise BlobStorageError(f"Failed to list blobs: {e}")

    def generate_presigned_url(
        self, key: str, expiration: timedelta = timedelta(hours=1), method: str = "GET"
    ) -> str:
        """Generate a SAS URL for the blob.

        Requires the account key to be part of the connection string.
        """
        account_key = getattr(self._service.credential, "account_key", None)
        if not account_key:
            raise BlobStorageError("Presigned URLs require an account key credential")

        method = method.upper()
        permission = BlobSasPermissions(
            read=method == "GET",
            write=method == "PUT",
            delete=method == "DELETE",
        )
        blob_client = self._container.get_blob_client(key)
        token = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self._container_name,
            blob_name=key,
            account_key=account_key,
            permission=permission,
            expiry=datetime.now(UTC) + expiration,
        )
        return f"{blob_client.url}?{token}"

    def copy(self, source_key: str, dest_key: str, metadata: dict[str, str] | None = None) -> None:
        """Server-side copy, waiting for the copy to leave the pending state."""
        source = self._container.get_blob_client(source_key)
        dest = self._container.get_blob_client(dest_key)

        try:
            if not source.exists():
                raise BlobNotFoundError(f"Source blob not found: {source_key}")

            copy = dest.start_copy_from_url(source.url, metadata=metadata)
            status = copy.get("copy_status")
            deadline = time.monotonic() + self._copy_timeout
            while status == "pending":
                if time.monotonic() > deadline:
                    dest.abort_copy(copy["copy_id"])
                    raise BlobStorageError(f"Timed out copying {source_key} -> {dest_key}")
                time.sleep(COPY_POLL_INTERVAL)
                status = dest.get_blob_properties().copy.status

            if status != "success":
                raise BlobStorageError(f"Copy {source_key} -> {dest_key} ended with {status}")

        except AzureError as e:
            raise BlobStorageError(f"Failed to copy blob: {e}")

        logger.info(f"Copied blob: {source_key} -> {dest_key}")

    def get_size(self, key: str) -> int:
        """Get the size of a blob in Azure."""
        return self.get_metadata(key).size
