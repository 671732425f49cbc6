"""Filesystem backend implementation for blob storage."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import UTC, datetime, timedelta
from io import BytesIO
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote, unquote

from filemanager.core.storage.blob import (
    BlobListResult,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBackend,
    BlobStorageError,
)

logger = logging.getLogger(__name__)

# Sub-directories of a container directory
BLOBS_DIR = "blobs"
META_DIR = "meta"
FOLDERS_DIR = "folders"

_INVALID_SEGMENTS = {"", ".", ".."}


class FilesystemBackend(BlobStorageBackend):
    """Filesystem implementation of blob storage backend.

    Each container is a directory under ``base_path`` with three trees, so no
    blob key can collide with bookkeeping files:

    - ``blobs/<key>``: blob content
    - ``meta/<key>``: JSON metadata, mirroring the blobs tree
    - ``folders/<percent-encoded key>``: JSON metadata of folder placeholder
      keys (keys ending in "/"), which have no content
    """

    def __init__(self, base_path: str | Path, container: str = "default"):
        """Initialize filesystem backend.

        Args:
            base_path: Base directory holding one directory per container
            container: Container (directory) name to bind to
        """
        self._base_path = Path(base_path)
        self._container = container
        self._root = self._base_path / container
        self._blobs_root = self._root / BLOBS_DIR
        self._meta_root = self._root / META_DIR
        self._folders_root = self._root / FOLDERS_DIR
        logger.info(f"Initialized filesystem backend at: {self._root}")

    @property
    def container(self) -> str:
        return self._container

    def container_exists(self) -> bool:
        return self._root.is_dir()

    def create_container(self) -> bool:
        if self._root.is_dir():
            return False
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created container: {self._container}")
        return True

    def delete_container(self) -> bool:
        if not self._root.exists():
            return False
        try:
            shutil.rmtree(self._root)
        except OSError as e:
            raise BlobStorageError(f"Failed to delete container {self._container}: {e}")
        logger.info(f"Deleted container: {self._container}")
        return True

    @staticmethod
    def _check_key(key: str) -> None:
        """Reject keys that would resolve outside the container directory."""
        body = key[:-1] if key.endswith("/") else key
        if any(segment in _INVALID_SEGMENTS for segment in body.split("/")):
            raise BlobStorageError(f"Invalid blob key: {key!r}")

    def _get_blob_path(self, key: str) -> Path:
        """Get the full path for a blob file."""
        self._check_key(key)
        return self._blobs_root / key

    def _get_metadata_path(self, key: str) -> Path:
        """Get the path for the metadata file associated with a blob."""
        self._check_key(key)
        if key.endswith("/"):
            return self._folders_root / quote(key, safe="")
        return self._meta_root / key

    def _save_metadata(
        self,
        key: str,
        size: int,
        content_type: str | None = None,
        custom_metadata: dict[str, str] | None = None,
    ) -> None:
        metadata = {
            "key": key,
            "size": size,
            "content_type": content_type or "application/octet-stream",
            "last_modified": datetime.now(UTC).isoformat(),
            "custom_metadata": custom_metadata or {},
        }

        metadata_path = self._get_metadata_path(key)
        metadata_path.parent.mkdir(parents=True, exist_ok=True)

        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2)

    def _load_metadata(self, key: str) -> dict:
        metadata_path = self._get_metadata_path(key)

        if not metadata_path.is_file():
            if key.endswith("/"):
                raise BlobNotFoundError(f"Blob not found: {key}")

            # Blob written without metadata, synthesize from the file itself
            blob_path = self._get_blob_path(key)
            if not blob_path.is_file():
                raise BlobNotFoundError(f"Blob not found: {key}")

            stat = blob_path.stat()
            return {
                "key": key,
                "size": stat.st_size,
                "content_type": "application/octet-stream",
                "last_modified": datetime.fromtimestamp(stat.st_mtime, UTC).isoformat(),
                "custom_metadata": {},
            }

        with open(metadata_path) as f:
            return json.load(f)

    def put(
        self,
        key: str,
        data: bytes | BinaryIO,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Store a blob in the filesystem.

        Folder placeholder keys (ending in "/") only record metadata.
        """
        try:
            if key.endswith("/"):
                self._save_metadata(key, 0, content_type, metadata)
                etag = str(int(self._get_metadata_path(key).stat().st_mtime * 1000000))
                logger.info(f"Stored folder placeholder: {key}")
                return etag

            blob_path = self._get_blob_path(key)
            blob_path.parent.mkdir(parents=True, exist_ok=True)

            if isinstance(data, bytes):
                blob_path.write_bytes(data)
                size = len(data)
            elif hasattr(data, "read"):
                size = 0
                with open(blob_path, "wb") as f:
                    while chunk := data.read(8192):
                        f.write(chunk)
                        size += len(chunk)
            else:
                raise BlobStorageError(f"Invalid data type for key {key}")

            self._save_metadata(key, size, content_type, metadata)

            # Use file modification time as etag equivalent
            etag = str(int(blob_path.stat().st_mtime * 1000000))
            logger.info(f"Stored blob: {key} ({size} bytes)")
            return etag

        except BlobStorageError:
            raise
        except OSError as e:
            raise BlobStorageError(f"Failed to store blob {key}: {e}")

    def get(self, key: str) -> bytes:
        """Retrieve a blob from the filesystem."""
        if key.endswith("/"):
            self._load_metadata(key)
            return b""

        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        try:
            return blob_path.read_bytes()
        except OSError as e:
            raise BlobStorageError(f"Failed to retrieve blob {key}: {e}")

    def get_stream(self, key: str) -> BinaryIO:
        """Retrieve a blob as a stream from the filesystem."""
        if key.endswith("/"):
            return BytesIO(self.get(key))

        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        try:
            return open(blob_path, "rb")
        except OSError as e:
            raise BlobStorageError(f"Failed to retrieve blob stream {key}: {e}")

    def delete(self, key: str) -> None:
        """Delete a blob from the filesystem."""
        if not self.exists(key):
            raise BlobNotFoundError(f"Blob not found: {key}")

        metadata_path = self._get_metadata_path(key)
        try:
            if not key.endswith("/"):
                blob_path = self._get_blob_path(key)
                blob_path.unlink()
                self._cleanup_empty_dirs(blob_path.parent, self._blobs_root)
            if metadata_path.exists():
                metadata_path.unlink()
                self._cleanup_empty_dirs(metadata_path.parent, self._meta_root)
        except OSError as e:
            raise BlobStorageError(f"Failed to delete blob {key}: {e}")

        logger.info(f"Deleted blob: {key}")

    @staticmethod
    def _cleanup_empty_dirs(path: Path, stop: Path) -> None:
        """Remove empty parent directories up to ``stop``."""
        while path != stop and path.is_dir() and not any(path.iterdir()):
            path.rmdir()
            path = path.parent

    def delete_many(self, keys: list[str]) -> dict[str, bool]:
        """Delete multiple blobs from the filesystem."""
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
        """Check if a blob exists in the filesystem."""
        if key.endswith("/"):
            return self._get_metadata_path(key).is_file()
        return self._get_blob_path(key).is_file()

    def get_metadata(self, key: str) -> BlobMetadata:
        """Get metadata for a blob in the filesystem."""
        try:
            metadata_dict = self._load_metadata(key)
            return BlobMetadata(
                key=key,
                size=metadata_dict["size"],
                content_type=metadata_dict.get("content_type"),
                last_modified=datetime.fromisoformat(metadata_dict["last_modified"]),
                etag=None,  # Filesystem doesn't have etags
                custom_metadata=metadata_dict.get("custom_metadata", {}),
            )

        except BlobStorageError:
            raise
        except (OSError, ValueError, KeyError) as e:
            raise BlobStorageError(f"Failed to get metadata for {key}: {e}")

    def _iter_stored_keys(self):
        """Yield (key, path) for every stored blob, sorted by key.

        ``path`` is the content file, or the metadata file for placeholders.
        """
        entries = []
        if self._blobs_root.is_dir():
            for path in self._blobs_root.rglob("*"):
                if path.is_file():
                    entries.append((path.relative_to(self._blobs_root).as_posix(), path))
        if self._folders_root.is_dir():
            for path in self._folders_root.iterdir():
                entries.append((unquote(path.name), path))
        yield from sorted(entries)

    def list_blobs(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        max_results: int = 1000,
        marker: str | None = None,
        include_metadata: bool = False,
    ) -> BlobListResult:
        """List blobs in the filesystem."""
        prefix = prefix or ""
        blobs: list[BlobMetadata] = []
        prefixes: set[str] = set()

        try:
            for key, path in self._iter_stored_keys():
                if not key.startswith(prefix):
                    continue
                # Marker is exclusive, like S3's start-after
                if marker is not None and key <= marker:
                    continue

                # Collapse anything below the next delimiter into a prefix
                if delimiter:
                    remaining = key[len(prefix) :]
                    if delimiter in remaining:
                        prefixes.add(prefix + remaining.split(delimiter)[0] + delimiter)
                        continue

                if len(blobs) >= max_results:
                    return BlobListResult(
                        blobs=blobs,
                        prefixes=sorted(prefixes),
                        is_truncated=True,
                        next_marker=blobs[-1].key,
                    )

                if include_metadata:
                    blobs.append(self.get_metadata(key))
                else:
                    stat = path.stat()
                    blobs.append(
                        BlobMetadata(
                            key=key,
                            size=0 if key.endswith("/") else stat.st_size,
                            content_type=None,
                            last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
                            etag=None,
                        )
                    )

        except OSError as e:
            raise BlobStorageError(f"Failed to list blobs: {e}")

        return BlobListResult(
            blobs=blobs, prefixes=sorted(prefixes), is_truncated=False, next_marker=None
        )

    def generate_presigned_url(
        self, key: str, expiration: timedelta = timedelta(hours=1), method: str = "GET"
    ) -> str:
        """Return a file:// URL; the filesystem has no signed access."""
        blob_path = self._get_blob_path(key)

        if not blob_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")

        return blob_path.absolute().as_uri()

    def copy(self, source_key: str, dest_key: str, metadata: dict[str, str] | None = None) -> None:
        """Copy a blob in the filesystem."""
        if not self.exists(source_key):
            raise BlobNotFoundError(f"Source blob not found: {source_key}")

        try:
            source_meta = self._load_metadata(source_key)
            if not source_key.endswith("/"):
                dest_path = self._get_blob_path(dest_key)
                dest_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(self._get_blob_path(source_key), dest_path)

            custom_metadata = source_meta.get("custom_metadata", {}) if metadata is None else metadata
            self._save_metadata(
                dest_key,
                source_meta["size"],
                source_meta.get("content_type"),
                custom_metadata,
            )
        except OSError as e:
            raise BlobStorageError(f"Failed to copy blob: {e}")

        logger.info(f"Copied blob: {source_key} -> {dest_key}")

    def get_size(self, key: str) -> int:
        """Get the size of a blob in the filesystem."""
        if key.endswith("/"):
            return self.get_metadata(key).size

        blob_path = self._get_blob_path(key)
        if not blob_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")
        return blob_path.stat().st_size
