"""Recreate the local folder structure in the remote store."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable
from typing import Protocol

from drive_uploader.flatten import folder_prefixes
from drive_uploader.models import ROOT_FOLDER_ID, RemoteFolder, TransferUnit

logger = logging.getLogger(__name__)

SELECTION_ROOT = "."

# Local relative directory path -> remote folder id
FolderPathIndex = dict[str, str]


class FolderAPI(Protocol):
    async def find_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder | None: ...

    async def create_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder: ...


def _depth(path: str) -> int:
    return path.count("/") + 1


def sort_by_depth(paths: Iterable[str]) -> list[str]:
    """Shallowest first, so a parent is always resolved before its children."""
    return sorted(paths, key=lambda path: (_depth(path), path))


def seed_index(destination_id: str | None) -> FolderPathIndex:
    """Start an index whose selection root maps to the chosen destination."""
    if destination_id and destination_id != ROOT_FOLDER_ID:
        return {SELECTION_ROOT: destination_id}
    return {}


async def ensure_folder(api: FolderAPI, name: str, parent_id: str | None = None) -> RemoteFolder:
    """Reuse the folder called name under parent_id, creating it if absent."""
    existing = await api.find_folder(name, parent_id)
    if existing is not None:
        logger.debug(f"Reusing folder {name} ({existing.id})")
        return existing
    return await api.create_folder(name, parent_id)


async def ensure_hierarchy(
    api: FolderAPI,
    units: Iterable[TransferUnit],
    destination_id: str | None = None,
) -> FolderPathIndex:
    """Make sure every directory implied by the units exists remotely.

    Returns the index from relative directory path to remote folder id.
    AuthExpiredError (like any other error) propagates and aborts the build.
    """
    index = seed_index(destination_id)

    for folder_path in sort_by_depth(folder_prefixes(units)):
        parent_path = posixpath.dirname(folder_path) or SELECTION_ROOT
        name = posixpath.basename(folder_path)
        parent_id = index.get(parent_path)

        folder = await ensure_folder(api, name, parent_id)
        index[folder_path] = folder.id

    return index
