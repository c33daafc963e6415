"""Remote folder listing for destination pickers."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from drive_uploader.models import ROOT_FOLDER_ID, ROOT_FOLDER_NAME, DefaultFolder, FolderListing, RemoteFolder

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " > "
MAX_PATH_HOPS = 10


def build_folder_path(
    folder_id: str,
    folder_map: Mapping[str, RemoteFolder],
    root_ids: Iterable[str] = (ROOT_FOLDER_ID,),
) -> str:
    """Describe where a folder lives by walking up its parent chain.

    The folder's own name is not part of the path. Chains that reach the root
    start with "My Drive". The walk stops after MAX_PATH_HOPS parents or on the
    first folder seen twice.
    """
    roots = set(root_ids)
    folder = folder_map.get(folder_id)
    if folder is None:
        return ""

    parts: list[str] = []
    visited = {folder.id}
    current_id = folder.parent_id

    for _ in range(MAX_PATH_HOPS):
        if not current_id or current_id in roots or current_id in visited:
            break
        parent = folder_map.get(current_id)
        if parent is None:
            break
        visited.add(current_id)
        parts.insert(0, parent.name)
        current_id = parent.parent_id

    if current_id in visited:
        logger.warning(f"Parent cycle detected above folder {folder.name} ({folder.id})")

    if current_id in roots:
        parts.insert(0, ROOT_FOLDER_NAME)
    return PATH_SEPARATOR.join(parts)


def build_listings(folders: Sequence[RemoteFolder], root_ids: Iterable[str] = (ROOT_FOLDER_ID,)) -> list[FolderListing]:
    roots = tuple(root_ids)
    folder_map = {folder.id: folder for folder in folders}
    return [
        FolderListing(id=folder.id, name=folder.name, display_path=build_folder_path(folder.id, folder_map, roots))
        for folder in folders
    ]


def folder_choices(
    listings: Sequence[FolderListing],
    default_folder: DefaultFolder | None,
    identity_id: str | None,
) -> list[FolderListing]:
    """Order destinations for a picker.

    The identity's default folder comes first, then the root, then everything
    else in listing order.
    """
    default_id = None
    if default_folder and default_folder.account_id == identity_id:
        default_id = default_folder.id

    root = FolderListing(id=ROOT_FOLDER_ID, name=ROOT_FOLDER_NAME, display_path="")
    head = [listing for listing in listings if listing.id == default_id and default_id != ROOT_FOLDER_ID]
    rest = [listing for listing in listings if listing.id != default_id]
    return head + [root] + rest
