"""File manager over blob storage.

This package provides:
- Container-scoped blob backends (filesystem, MinIO, Azure Blob Storage)
- A registry resolving configured backend names to backends
- FileManagerService: files and emulated folders on top of a backend
"""

from filemanager.service import BlobContainer, BlobEntry, BlobKind, FileManagerService

__all__ = ["BlobContainer", "BlobEntry", "BlobKind", "FileManagerService"]
