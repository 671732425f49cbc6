"""Key helpers for emulating folders over flat blob keys.

Keys never start with "/". A key ending in "/" names a folder.
"""

from __future__ import annotations

import posixpath
from urllib.parse import quote, unquote

DELIMITER = "/"

# Blob metadata must be ASCII, so display names are stored percent-encoded
FILENAME_METADATA_KEY = "filename"


def normalize_key(path: str) -> str:
    """Strip leading slashes so "/temp/a.txt" and "temp/a.txt" address the same blob.

    Raises:
        ValueError: If the path has "." or ".." segments
    """
    key = path.replace("\\", DELIMITER).lstrip(DELIMITER)
    if any(segment in (".", "..") for segment in key.split(DELIMITER)):
        raise ValueError(f"Relative segments are not allowed in paths: {path!r}")
    return key


def folder_prefix(path: str) -> str:
    """Normalize a folder path to a prefix ending in the delimiter ("" for the root)."""
    key = normalize_key(path)
    if not key:
        return ""
    return key if key.endswith(DELIMITER) else key + DELIMITER


def is_folder_key(key: str) -> bool:
    return key.endswith(DELIMITER)


def parent_prefix(key: str) -> str:
    """Return the prefix of the folder that contains ``key`` ("" at the root)."""
    parent = posixpath.dirname(key.rstrip(DELIMITER))
    return parent + DELIMITER if parent else ""


def basename(key: str) -> str:
    """Last path segment of a file or folder key."""
    return posixpath.basename(key.rstrip(DELIMITER))


def encode_display_name(name: str) -> str:
    return quote(name, safe="")


def display_name(key: str, metadata: dict[str, str] | None) -> str:
    """Resolve the display name: the metadata filename if set, else the last segment."""
    for meta_key, value in (metadata or {}).items():
        if meta_key.lower() == FILENAME_METADATA_KEY and value:
            return unquote(value)
    return basename(key)
