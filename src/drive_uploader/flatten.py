"""Turn a local selection of files and folders into flat transfer units."""

from __future__ import annotations

import logging
import mimetypes
import os
import posixpath
import stat
from collections.abc import Iterable

from drive_uploader.exceptions import LocalIOError
from drive_uploader.models import TransferUnit

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
HIDDEN_PREFIX = "."


def guess_mime_type(path: str) -> str:
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or DEFAULT_MIME_TYPE


def _to_posix(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


def file_unit(path: str, base_path: str | None = None, size: int | None = None) -> TransferUnit:
    """Describe one regular file, relative to base_path when given."""
    if size is None:
        try:
            size = os.stat(path).st_size
        except OSError as e:
            raise LocalIOError(f"Cannot read {path}: {e}") from e

    relative_path = _to_posix(os.path.relpath(path, base_path)) if base_path else None
    return TransferUnit(
        path=path,
        name=os.path.basename(path),
        size=size,
        mime_type=guess_mime_type(path),
        relative_path=relative_path,
    )


def walk_directory(dir_path: str, base_path: str | None = None) -> list[TransferUnit]:
    """Recursively collect the files below dir_path.

    Hidden entries are skipped, symlinks are not followed, and unreadable
    directories are skipped.
    """
    base = base_path or dir_path
    units: list[TransferUnit] = []

    try:
        with os.scandir(dir_path) as entries:
            children = list(entries)
    except OSError as e:
        logger.warning(f"Skipping unreadable directory {dir_path}: {e}")
        return units

    for entry in children:
        if entry.name.startswith(HIDDEN_PREFIX):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                units.extend(walk_directory(entry.path, base))
            elif entry.is_file(follow_symlinks=False):
                units.append(file_unit(entry.path, base, entry.stat(follow_symlinks=False).st_size))
        except (OSError, LocalIOError) as e:
            logger.warning(f"Skipping {entry.path}: {e}")

    return units


def flatten(paths: Iterable[str]) -> list[TransferUnit]:
    """Flatten selected paths into transfer units.

    A selected directory keeps its own name as the first segment of each
    unit's relative path; directly selected files get no relative path.

    Raises:
        LocalIOError: If a selected path is missing or unreadable
    """
    units: list[TransferUnit] = []
    for raw_path in paths:
        path = os.path.abspath(os.path.expanduser(raw_path.rstrip(os.sep) or raw_path))
        try:
            mode = os.stat(path).st_mode
        except OSError as e:
            raise LocalIOError(f"Cannot read {path}: {e}") from e

        if stat.S_ISDIR(mode):
            units.extend(walk_directory(path, os.path.dirname(path)))
        elif stat.S_ISREG(mode):
            units.append(file_unit(path))
        else:
            logger.warning(f"Skipping {path}: not a regular file or directory")

    logger.debug(f"Flattened {len(units)} file(s) from the selection")
    return units


def folder_prefixes(units: Iterable[TransferUnit]) -> set[str]:
    """Every directory path implied by the units' relative paths.

    "a/b/c.txt" implies "a" and "a/b".
    """
    prefixes: set[str] = set()
    for unit in units:
        directory = unit.relative_dir
        if not directory or directory == ".":
            continue
        parts = directory.split("/")
        for depth in range(1, len(parts) + 1):
            prefixes.add(posixpath.join(*parts[:depth]))
    return prefixes


def needs_structure(units: Iterable[TransferUnit]) -> bool:
    """True when some unit must be placed inside a recreated folder."""
    return any(unit.relative_dir not in (None, ".") for unit in units)


def total_size(units: Iterable[TransferUnit]) -> int:
    return sum(unit.size for unit in units)


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable form."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}" if unit != "B" else f"{size_bytes} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"
