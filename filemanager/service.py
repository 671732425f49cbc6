"""File and folder operations over a container-scoped blob backend.

Blob stores are flat: there are only keys. Folders are emulated by the
convention that a key prefix ending in "/" is a folder, and an empty
placeholder blob at ``<folder>/`` keeps an otherwise empty folder listable.

Blob stores also lack an atomic rename, so every rename or move is a copy to
the new key followed by a delete of the old one. A failure between the two
steps leaves both copies in place, and folder operations may stop half way
through their batch. Nothing here rolls that back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import BinaryIO

from filemanager.core.storage.blob import (
    BlobAlreadyExistsError,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageBackend,
)
from filemanager.core.storage.registry import BlobBackendRegistry, get_default_registry
from filemanager.core.utils.paths import (
    DELIMITER,
    FILENAME_METADATA_KEY,
    basename,
    display_name,
    encode_display_name,
    folder_prefix,
    is_folder_key,
    normalize_key,
    parent_prefix,
)

logger = logging.getLogger(__name__)

FOLDER_CONTENT_TYPE = "application/x-directory"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class BlobKind(Enum):
    FILE = "file"
    FOLDER = "folder"


@dataclass
class BlobEntry:
    """A stored file, or a folder inferred from a key prefix."""

    path: str
    name: str
    kind: BlobKind
    content_type: str | None = None
    size: int = 0
    last_modified: datetime | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind is BlobKind.FOLDER

    @classmethod
    def from_metadata(cls, metadata: BlobMetadata) -> BlobEntry:
        return cls(
            path=metadata.key,
            name=display_name(metadata.key, metadata.custom_metadata),
            kind=BlobKind.FOLDER if is_folder_key(metadata.key) else BlobKind.FILE,
            content_type=metadata.content_type,
            size=metadata.size,
            last_modified=metadata.last_modified,
        )

    @classmethod
    def folder(cls, prefix: str) -> BlobEntry:
        return cls(path=prefix, name=basename(prefix), kind=BlobKind.FOLDER)


class BlobContainer:
    """Handle on the container a service operates in."""

    def __init__(self, backend: BlobStorageBackend):
        self._backend = backend

    @property
    def name(self) -> str:
        return self._backend.container

    def exists(self) -> bool:
        return self._backend.container_exists()

    def create_if_not_exists(self) -> bool:
        return self._backend.create_container()

    def delete_if_exists(self) -> bool:
        return self._backend.delete_container()

    def __repr__(self) -> str:
        return f"BlobContainer({self.name!r})"


class FileManagerService:
    """Folder-aware file operations for one container.

    Paths are forward-slash separated; a leading "/" is ignored. Lookups of
    missing files return None instead of raising. Any other backend failure
    surfaces as :class:`~filemanager.core.storage.blob.BlobStorageError`.
    """

    def __init__(self, backend: BlobStorageBackend):
        self._backend = backend

    @classmethod
    def from_name(
        cls,
        name: str,
        container: str | None = None,
        registry: BlobBackendRegistry | None = None,
    ) -> FileManagerService:
        """Build a service for a configured backend name and container."""
        registry = registry or get_default_registry()
        return cls(registry.get_backend(name, container))

    @property
    def backend(self) -> BlobStorageBackend:
        return self._backend

    def get_container(self) -> BlobContainer:
        """Return the container, creating it on first use."""
        container = BlobContainer(self._backend)
        if container.create_if_not_exists():
            logger.info(f"Created container {container.name}")
        return container

    # Files

    def add_file(
        self,
        path: str,
        content_type: str | None,
        name: str,
        data: bytes,
        overwrite: bool = True,
    ) -> BlobEntry:
        """Upload ``data`` to ``path`` with ``name`` as its display name.

        Raises:
            BlobAlreadyExistsError: If ``overwrite`` is false and the path is taken
            BlobStorageError: If the upload fails
        """
        key = normalize_key(path)
        self.get_container()

        if not overwrite and self._backend.exists(key):
            raise BlobAlreadyExistsError(f"Blob already exists: {key}")

        self._backend.put(
            key,
            data,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            metadata={FILENAME_METADATA_KEY: encode_display_name(name)},
        )
        logger.info(f"Added file {key} to {self._backend.container}")
        return self._backend_entry(key)

    def get_file(self, path: str) -> BlobEntry | None:
        """Return the entry stored at ``path``, or None if there is none."""
        key = normalize_key(path)
        try:
            return self._backend_entry(key)
        except BlobNotFoundError:
            logger.debug(f"No blob at {key}")
            return None

    def get_file_content(self, path: str) -> bytes | None:
        """Download the bytes stored at ``path``, or None if there is none."""
        try:
            return self._backend.get(normalize_key(path))
        except BlobNotFoundError:
            return None

    def open_file(self, path: str) -> BinaryIO | None:
        """Open the blob at ``path`` for streaming reads, or None if there is none.

        The caller closes the returned stream.
        """
        try:
            return self._backend.get_stream(normalize_key(path))
        except BlobNotFoundError:
            return None

    def get_file_url(self, path: str, expiration: timedelta = timedelta(hours=1)) -> str | None:
        """Presigned download URL for ``path``, or None if there is none."""
        key = normalize_key(path)
        if not self._backend.exists(key):
            return None
        return self._backend.generate_presigned_url(key, expiration)

    def file_exists(self, path: str) -> bool:
        return self._backend.exists(normalize_key(path))

    def delete_file(self, path: str) -> int:
        """Delete one blob, or every blob under ``path`` when it ends in "/".

        Deleting something that does not exist is a no-op.

        Returns:
            Number of blobs deleted
        """
        key = normalize_key(path)

        if is_folder_key(path):
            keys = [blob.key for blob in self._iter_blobs(key)]
            if not keys:
                return 0
            results = self._backend.delete_many(keys)
            deleted = sum(results.values())
            logger.info(f"Deleted folder {key} ({deleted} blobs)")
            return deleted

        try:
            self._backend.delete(key)
        except BlobNotFoundError:
            logger.debug(f"Nothing to delete at {key}")
            return 0
        return 1

    def rename_file(self, entry: BlobEntry, new_name: str) -> BlobEntry:
        """Rename a file within its folder; the display name follows."""
        source = normalize_key(entry.path)
        dest = normalize_key(parent_prefix(source) + new_name)
        self._relocate(source, dest, {FILENAME_METADATA_KEY: encode_display_name(new_name)})
        return self._backend_entry(dest)

    def move_file(self, entry: BlobEntry, new_path: str) -> BlobEntry:
        """Move a file into the folder ``new_path``, keeping its file name."""
        source = normalize_key(entry.path)
        dest = folder_prefix(new_path) + basename(source)
        self._relocate(source, dest)
        return self._backend_entry(dest)

    def _relocate(self, source: str, dest: str, metadata: dict[str, str] | None = None) -> None:
        if source == dest:
            return
        # Copy first so a failure never loses the only copy
        self._backend.copy(source, dest, metadata)
        self._backend.delete(source)
        logger.info(f"Moved {source} -> {dest}")

    # Folders

    def add_folder(self, parent_path: str, name: str) -> BlobEntry:
        """Create ``name`` under ``parent_path`` as an empty placeholder blob."""
        prefix = folder_prefix(folder_prefix(parent_path) + name)
        self.get_container()
        self._backend.put(
            prefix,
            b"",
            content_type=FOLDER_CONTENT_TYPE,
            metadata={FILENAME_METADATA_KEY: encode_display_name(name)},
        )
        logger.info(f"Added folder {prefix} to {self._backend.container}")
        return BlobEntry(
            path=prefix, name=name, kind=BlobKind.FOLDER, content_type=FOLDER_CONTENT_TYPE
        )

    def rename_folder(self, entry: BlobEntry, new_name: str) -> BlobEntry:
        """Rename a folder in place: "docs/old/" becomes "docs/<new_name>/"."""
        source = folder_prefix(entry.path)
        dest = folder_prefix(parent_prefix(source) + new_name)
        self._relocate_folder(source, dest)
        return BlobEntry.folder(dest)

    def move_folder(self, entry: BlobEntry, new_path: str) -> BlobEntry:
        """Move a folder into ``new_path``: "old/" moved to "archive" becomes "archive/old/"."""
        source = folder_prefix(entry.path)
        dest = folder_prefix(new_path) + basename(source) + DELIMITER
        self._relocate_folder(source, dest)
        return BlobEntry.folder(dest)

    def _relocate_folder(self, source: str, dest: str) -> None:
        if source == dest:
            return
        if dest.startswith(source):
            raise ValueError(f"Cannot move folder {source} into itself ({dest})")

        blobs = list(self._iter_blobs(source))
        for blob in blobs:
            self._backend.copy(blob.key, dest + blob.key[len(source) :])
        if blobs:
            self._backend.delete_many([blob.key for blob in blobs])
        logger.info(f"Moved folder {source} -> {dest} ({len(blobs)} blobs)")

    def get_folder_files(self, prefix: str = "") -> list[BlobEntry]:
        """Every file whose key starts with the folder ``prefix``, at any depth.

        Folder placeholders are not files and are left out.
        """
        folder = folder_prefix(prefix)
        return [
            BlobEntry.from_metadata(blob)
            for blob in self._iter_blobs(folder, include_metadata=True)
            if not is_folder_key(blob.key)
        ]

    def get_child_folders(self, prefix: str = "") -> list[BlobEntry]:
        """Folders one level below ``prefix``, each listed once."""
        folder = folder_prefix(prefix)
        children: set[str] = set()

        marker = None
        while True:
            result = self._backend.list_blobs(prefix=folder, delimiter=DELIMITER, marker=marker)
            children.update(result.prefixes)
            # Some stores report child placeholders as blobs rather than prefixes
            children.update(blob.key for blob in result.blobs if is_folder_key(blob.key))

            if not result.is_truncated:
                break
            marker = result.next_marker

        children.discard(folder)

        return [BlobEntry.folder(child) for child in sorted(children)]

    # Helpers

    def _backend_entry(self, key: str) -> BlobEntry:
        return BlobEntry.from_metadata(self._backend.get_metadata(key))

    def _iter_blobs(
        self, prefix: str, delimiter: str | None = None, include_metadata: bool = False
    ) -> Iterator[BlobMetadata]:
        """Page through every blob under ``prefix``."""
        marker = None
        while True:
            result = self._backend.list_blobs(
                prefix=prefix,
                delimiter=delimiter,
                marker=marker,
                include_metadata=include_metadata,
            )
            yield from result.blobs

            if not result.is_truncated:
                break
            marker = result.next_marker
