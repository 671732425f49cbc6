"""MinIO backend implementation for blob storage."""

from __future__ import annotations

import logging
from datetime import timedelta
from io import BytesIO
from typing import BinaryIO

from minio import Minio
from minio.commonconfig import REPLACE, CopySource
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

from filemanager.core.storage.blob import (
    BlobListResult,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBackend,
    BlobStorageConnectionError,
    BlobStorageError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}
_USER_META_PREFIX = "x-amz-meta-"


def _user_metadata(raw) -> dict[str, str]:
    """Extract user metadata from S3 response headers, without the amz prefix."""
    if not raw:
        return {}
    metadata = {}
    for name, value in raw.items():
        lowered = name.lower()
        if lowered.startswith(_USER_META_PREFIX):
            metadata[lowered[len(_USER_META_PREFIX) :]] = value
    return metadata


class MinIOBackend(BlobStorageBackend):
    """MinIO implementation of blob storage backend. The container is a bucket."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = True,
        region: str | None = None,
        auto_create: bool = False,
    ):
        """Initialize MinIO backend.

        Args:
            endpoint: MinIO server endpoint (e.g., 'localhost:9000')
            access_key: Access key (user ID)
            secret_key: Secret key (password)
            bucket: Bucket name to use
            secure: Use HTTPS if True
            region: Optional region name
            auto_create: Create the bucket immediately instead of on first write
        """
        self._bucket = bucket
        self._region = region
        self._client = Minio(
            endpoint=endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
            region=region,
        )

        if auto_create:
            try:
                self.create_container()
            except BlobStorageError as e:
                raise BlobStorageConnectionError(f"Failed to connect to MinIO: {e}")

    @property
    def container(self) -> str:
        return self._bucket

    def container_exists(self) -> bool:
        try:
            return self._client.bucket_exists(self._bucket)
        except S3Error as e:
            raise BlobStorageError(f"Failed to check bucket {self._bucket}: {e}")

    def create_container(self) -> bool:
        try:
            if self._client.bucket_exists(self._bucket):
                logger.debug(f"Using existing bucket: {self._bucket}")
                return False
            self._client.make_bucket(self._bucket, location=self._region)
            logger.info(f"Created bucket: {self._bucket}")
            return True
        except S3Error as e:
            raise BlobStorageError(f"Failed to create bucket {self._bucket}: {e}")

    def delete_container(self) -> bool:
        try:
            if not self._client.bucket_exists(self._bucket):
                return False

            objects = self._client.list_objects(self._bucket, recursive=True)
            errors = self._client.remove_objects(
                self._bucket, (DeleteObject(obj.object_name) for obj in objects)
            )
            failed = [err.object_name for err in errors]
            if failed:
                raise BlobStorageError(
                    f"Failed to empty bucket {self._bucket}: {len(failed)} objects not deleted"
                )

            self._client.remove_bucket(self._bucket)
            logger.info(f"Deleted bucket: {self._bucket}")
            return True

        except S3Error as e:
            raise BlobStorageError(f"Failed to delete bucket {self._bucket}: {e}")

    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store a blob in MinIO."""
        try:
            if isinstance(data, bytes):
                stream = BytesIO(data)
                length = len(data)
            else:
                # Measure the stream without consuming it
                start_pos = data.tell()
                data.seek(0, 2)
                length = data.tell() - start_pos
                data.seek(start_pos)
                stream = data

            result = self._client.put_object(
                bucket_name=self._bucket,
                object_name=key,
                data=stream,
                length=length,
                content_type=content_type or "application/octet-stream",
                metadata=metadata,
            )

            logger.info(f"Stored blob: {key} (etag: {result.etag})")
            return result.etag

        except S3Error as e:
            raise BlobStorageError(f"Failed to store blob {key}: {e}")

    def get(self, key: str) -> bytes:
        """Retrieve a blob from MinIO."""
        try:
            response = self._client.get_object(self._bucket, key)
            try:
                return response.read()
            finally:
                response.close()
                response.release_conn()

        except S3Error as e:
            if e.code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Blob not found: {key}")
            raise BlobStorageError(f"Failed to retrieve blob {key}: {e}")

    def get_stream(self, key: str) -> BinaryIO:
        """Retrieve a blob as a stream from MinIO."""
        try:
            return self._client.get_object(self._bucket, key)

        except S3Error as e:
            if e.code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Blob not found: {key}")
            raise BlobStorageError(f"Failed to retrieve blob stream {key}: {e}")

    def delete(self, key: str) -> None:
        """Delete a blob from MinIO."""
        # S3 deletes are idempotent, so check first to report missing keys
        if not self.exists(key):
            raise BlobNotFoundError(f"Blob not found: {key}")

        try:
            self._client.remove_object(self._bucket, key)
            logger.info(f"Deleted blob: {key}")

        except S3Error as e:
            raise BlobStorageError(f"Failed to delete blob {key}: {e}")

    def delete_many(self, keys: list[str]) -> dict[str, bool]:
        """Delete multiple blobs from MinIO."""
        try:
            errors = self._client.remove_objects(self._bucket, [DeleteObject(key) for key in keys])

            # All keys succeed unless reported in the error iterator
            error_keys = {err.object_name for err in errors}
            results = {key: key not in error_keys for key in keys}

            logger.info(f"Deleted {sum(results.values())} of {len(keys)} blobs")
            return results

        except S3Error as e:
            raise BlobStorageError(f"Failed to delete multiple blobs: {e}")

    def exists(self, key: str) -> bool:
        """Check if a blob exists in MinIO."""
        try:
            self._client.stat_object(self._bucket, key)
            return True
        except S3Error as e:
            if e.code in _NOT_FOUND_CODES:
                return False
            raise BlobStorageError(f"Failed to check blob existence {key}: {e}")

    def get_metadata(self, key: str) -> BlobMetadata:
        """Get metadata for a blob in MinIO."""
        try:
            stat = self._client.stat_object(self._bucket, key)

            return BlobMetadata(
                key=key,
                size=stat.size,
                content_type=stat.content_type,
                last_modified=stat.last_modified,
                etag=stat.etag,
                custom_metadata=_user_metadata(stat.metadata),
            )

        except S3Error as e:
            if e.code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Blob not found: {key}")
            raise BlobStorageError(f"Failed to get metadata for {key}: {e}")

    def list_blobs(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_results: int = 1000,
        marker: str | None = None,
        include_metadata: bool = False,
    ) -> BlobListResult:
        """List blobs in MinIO."""
        try:
            objects = self._client.list_objects(
                bucket_name=self._bucket,
                prefix=prefix,
                recursive=(delimiter is None),
                start_after=marker,
                include_user_meta=include_metadata,
            )

            blobs = []
            prefixes = set()

            for obj in objects:
                if obj.is_dir:
                    prefixes.add(obj.object_name)
                    continue

                # MinIO doesn't support limit, so we break manually
                if len(blobs) >= max_results:
                    return BlobListResult(
                        blobs=blobs,
                        prefixes=sorted(prefixes),
                        is_truncated=True,
                        next_marker=blobs[-1].key,
                    )

                blobs.append(
                    BlobMetadata(
                        key=obj.object_name,
                        size=obj.size,
                        content_type=obj.content_type if include_metadata else None,
                        last_modified=obj.last_modified,
                        etag=obj.etag,
                        custom_metadata=_user_metadata(obj.metadata) if include_metadata else {},
                    )
                )

            return BlobListResult(
                blobs=blobs, prefixes=sorted(prefixes), is_truncated=False, next_marker=None
            )

        except S3Error as e:
            if e.code == "NoSuchBucket":
                return BlobListResult(blobs=[], prefixes=[], is_truncated=False, next_marker=None)
            raise BlobStorageError(f"Failed to list blobs: {e}")

    def generate_presigned_url(
        self, key: str, expiration: timedelta = timedelta(hours=1), method: str = "GET"
    ) -> str:
        """Generate a presigned URL for MinIO."""
        try:
            return self._client.get_presigned_url(
                method.upper(), self._bucket, key, expires=expiration
            )

        except S3Error as e:
            raise BlobStorageError(f"Failed to generate presigned URL for {key}: {e}")

    def copy(self, source_key: str, dest_key: str, metadata: dict[str, str] | None = None) -> None:
        """Copy a blob in MinIO, optionally replacing its user metadata."""
        try:
            source = CopySource(self._bucket, source_key)

            if metadata is None:
                self._client.copy_object(
                    bucket_name=self._bucket,
                    object_name=dest_key,
                    source=source,
                )
            else:
                # REPLACE drops every header, so the content type must be resent
                stat = self._client.stat_object(self._bucket, source_key)
                headers = dict(metadata)
                if stat.content_type:
                    headers["Content-Type"] = stat.content_type
                self._client.copy_object(
                    bucket_name=self._bucket,
                    object_name=dest_key,
                    source=source,
                    metadata=headers,
                    metadata_directive=REPLACE,
                )

            logger.info(f"Copied blob: {source_key} -> {dest_key}")

        except S3Error as e:
            if e.code in _NOT_FOUND_CODES:
                raise BlobNotFoundError(f"Source blob not found: {source_key}")
            raise BlobStorageError(f"Failed to copy blob: {e}")

    def get_size(self, key: str) -> int:
        """Get the size of a blob in MinIO."""
        return self.get_metadata(key).size
