#!/usr/bin/env python
"""Command line access to a FileManagerService container."""

from __future__ import annotations

import argparse
import logging
import mimetypes
import shutil
import sys
from pathlib import Path

from filemanager.core.storage import BackendConfigError, BackendNotFoundError, BlobStorageError
from filemanager.core.utils.paths import folder_prefix, is_folder_key, normalize_key, parent_prefix
from filemanager.service import BlobContainer, BlobEntry, BlobKind, FileManagerService

logger = logging.getLogger(__name__)


def _format_entry(entry: BlobEntry) -> str:
    if entry.kind is BlobKind.FOLDER:
        return f"{'<dir>':>12}  {entry.path}"
    modified = entry.last_modified.strftime("%Y-%m-%d %H:%M") if entry.last_modified else ""
    return f"{entry.size:>12}  {modified:16}  {entry.path}  ({entry.name})"


def _entry_for(files: FileManagerService, path: str) -> BlobEntry | None:
    if is_folder_key(path):
        return BlobEntry.folder(normalize_key(path))
    return files.get_file(path)


def cmd_add(files: FileManagerService, args: argparse.Namespace) -> int:
    source = Path(args.source)
    content_type = args.content_type or mimetypes.guess_type(source.name)[0]
    entry = files.add_file(
        args.path,
        content_type,
        args.name or source.name,
        source.read_bytes(),
        overwrite=not args.no_overwrite,
    )
    print(_format_entry(entry))
    return 0


def cmd_get(files: FileManagerService, args: argparse.Namespace) -> int:
    stream = files.open_file(args.path)
    if stream is None:
        print(f"Not found: {args.path}", file=sys.stderr)
        return 1
    try:
        if args.output:
            with open(args.output, "wb") as out:
                shutil.copyfileobj(stream, out)
        else:
            shutil.copyfileobj(stream, sys.stdout.buffer)
    finally:
        stream.close()
    return 0


def cmd_rm(files: FileManagerService, args: argparse.Namespace) -> int:
    deleted = files.delete_file(args.path)
    print(f"Deleted {deleted} blob(s)")
    return 0


def cmd_mv(files: FileManagerService, args: argparse.Namespace) -> int:
    entry = _entry_for(files, args.path)
    if entry is None:
        print(f"Not found: {args.path}", file=sys.stderr)
        return 1
    if entry.is_folder:
        moved = files.move_folder(entry, args.dest)
    else:
        moved = files.move_file(entry, args.dest)
    print(_format_entry(moved))
    return 0


def cmd_rename(files: FileManagerService, args: argparse.Namespace) -> int:
    entry = _entry_for(files, args.path)
    if entry is None:
        print(f"Not found: {args.path}", file=sys.stderr)
        return 1
    if entry.is_folder:
        renamed = files.rename_folder(entry, args.new_name)
    else:
        renamed = files.rename_file(entry, args.new_name)
    print(_format_entry(renamed))
    return 0


def cmd_mkdir(files: FileManagerService, args: argparse.Namespace) -> int:
    print(_format_entry(files.add_folder(args.parent, args.name)))
    return 0


def cmd_ls(files: FileManagerService, args: argparse.Namespace) -> int:
    folder = folder_prefix(args.prefix)
    direct_files = [
        entry for entry in files.get_folder_files(folder) if parent_prefix(entry.path) == folder
    ]
    for entry in files.get_child_folders(folder) + direct_files:
        print(_format_entry(entry))
    return 0


def cmd_dirs(files: FileManagerService, args: argparse.Namespace) -> int:
    for entry in files.get_child_folders(args.prefix):
        print(entry.path)
    return 0


def cmd_drop_container(files: FileManagerService, args: argparse.Namespace) -> int:
    container = BlobContainer(files.backend)
    if container.delete_if_exists():
        print(f"Deleted container {container.name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage files and folders in blob storage")
    parser.add_argument("--backend", default="default", help="Configured backend name")
    parser.add_argument("--container", help="Container to operate in (default: configured)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Upload a local file")
    p.add_argument("source", help="Local file to upload")
    p.add_argument("path", help="Destination path in the container")
    p.add_argument("--name", help="Display name (default: local file name)")
    p.add_argument("--content-type", help="MIME type (default: guessed)")
    p.add_argument("--no-overwrite", action="store_true", help="Fail if the path exists")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("get", help="Download a file")
    p.add_argument("path")
    p.add_argument("-o", "--output", help="Write to this file instead of stdout")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("rm", help="Delete a file, or a folder when the path ends in /")
    p.add_argument("path")
    p.set_defaults(func=cmd_rm)

    p = sub.add_parser("mv", help="Move a file or folder (trailing /) into another folder")
    p.add_argument("path")
    p.add_argument("dest")
    p.set_defaults(func=cmd_mv)

    p = sub.add_parser("rename", help="Rename a file or folder (trailing /)")
    p.add_argument("path")
    p.add_argument("new_name")
    p.set_defaults(func=cmd_rename)

    p = sub.add_parser("mkdir", help="Create a folder")
    p.add_argument("parent", help="Parent folder ('' for the root)")
    p.add_argument("name")
    p.set_defaults(func=cmd_mkdir)

    p = sub.add_parser("ls", help="List folders and files in a folder")
    p.add_argument("prefix", nargs="?", default="")
    p.set_defaults(func=cmd_ls)

    p = sub.add_parser("dirs", help="List child folders")
    p.add_argument("prefix", nargs="?", default="")
    p.set_defaults(func=cmd_dirs)

    p = sub.add_parser("drop-container", help="Delete the container and everything in it")
    p.set_defaults(func=cmd_drop_container)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        files = FileManagerService.from_name(args.backend, args.container)
        return args.func(files, args)
    except (BackendConfigError, BackendNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except (BlobStorageError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
