"""Main DriveUploader class tying sessions, folders and uploads together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable

from drive_uploader import accounts
from drive_uploader._internal.drive_api import DriveAPI
from drive_uploader._internal.oauth import OAuthClient
from drive_uploader.auth import SessionAuthenticator
from drive_uploader.config import Settings
from drive_uploader.exceptions import RemoteStoreError
from drive_uploader.flatten import flatten, needs_structure
from drive_uploader.folders import build_listings
from drive_uploader.hierarchy import ensure_hierarchy, seed_index
from drive_uploader.models import (
    ROOT_FOLDER_ID,
    BatchSummary,
    DefaultFolder,
    FolderListing,
    Identity,
    Preferences,
)
from drive_uploader.report import summarize
from drive_uploader.storage import PreferenceStore, TokenStore, load_preferences, save_preferences
from drive_uploader.transfer import ProgressCallback, Sleep, upload_all

logger = logging.getLogger(__name__)

ApiFactory = Callable[[str], Any]


class DriveUploader:
    """Upload local files and folders to Google Drive for one of several accounts.

    Operations that change preferences take the current Preferences and return
    the updated record; call save_preferences() to persist it.

    Example:
        uploader = DriveUploader()
        prefs = uploader.load_preferences()
        identity = uploader.resolve_identity(prefs)
        prefs, summary = asyncio.run(uploader.run_upload(prefs, ["photos/"], identity))
        uploader.save_preferences(prefs)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        preferences_path: Path | str | None = None,
        store: PreferenceStore | None = None,
        authenticator: SessionAuthenticator | None = None,
        api_factory: ApiFactory | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the uploader.

        Args:
            settings: Endpoints, client id and retry limits
            preferences_path: Where preferences and credentials are stored
            store: Preference store to use instead of the file at preferences_path
            authenticator: Session authenticator (built from settings if omitted)
            api_factory: Builds a remote store client from an access token
            sleep: Coroutine used for retry backoff
        """
        self.settings = settings or Settings()
        self._store = store or PreferenceStore(preferences_path or self.settings.preferences_path)
        self._authenticator = authenticator or SessionAuthenticator(
            OAuthClient(self.settings), TokenStore(self._store)
        )
        self._api_factory = api_factory or (lambda token: DriveAPI(token, self.settings))
        self._sleep = sleep

    @property
    def authenticator(self) -> SessionAuthenticator:
        return self._authenticator

    def load_preferences(self) -> Preferences:
        return load_preferences(self._store)

    def save_preferences(self, prefs: Preferences) -> None:
        save_preferences(self._store, prefs)

    # Identities

    def list_identities(self, prefs: Preferences) -> list[Identity]:
        return list(prefs.identities)

    async def add_identity(self, prefs: Preferences) -> tuple[Preferences, Identity]:
        """Connect a new account through the browser."""
        return await self._authenticator.perform_interactive_authorization(prefs)

    async def reauthenticate(self, prefs: Preferences, identity_id: str) -> tuple[Preferences, Identity]:
        """Sign an account in again after its refresh token stopped working."""
        return await self._authenticator.reauthenticate(prefs, identity_id)

    def remove_identity(self, prefs: Preferences, identity_id: str) -> Preferences:
        identity = accounts.get_identity(prefs, identity_id)
        self._authenticator.forget(identity)
        logger.info(f"Removed account {identity.email}")
        return accounts.remove_identity(prefs, identity_id)

    def set_default_identity(self, prefs: Preferences, identity_id: str) -> Preferences:
        return accounts.set_default_identity(prefs, identity_id)

    def resolve_identity(self, prefs: Preferences, identity_id: str | None = None) -> Identity | None:
        """The requested identity, or the last used / default / first one."""
        if identity_id:
            return accounts.get_identity(prefs, identity_id)
        return accounts.resolve_identity(prefs)

    # Folders

    def get_default_folder(self, prefs: Preferences, identity: Identity) -> DefaultFolder | None:
        return accounts.get_default_folder(prefs, identity.id)

    def set_default_folder(self, prefs: Preferences, folder_id: str, name: str, identity: Identity) -> Preferences:
        return accounts.set_default_folder(prefs, folder_id, name, identity.id)

    def clear_default_folder(self, prefs: Preferences) -> Preferences:
        return accounts.clear_default_folder(prefs)

    async def list_remote_folders(self, identity: Identity) -> list[FolderListing]:
        """List the account's folders with their parent paths.

        Raises:
            AuthExpiredError: If the account must be re-authenticated
        """
        token = await self._authenticator.obtain_valid_token(identity)
        async with self._api_factory(token) as api:
            folders = await api.list_folders()
            root_ids = [ROOT_FOLDER_ID]
            try:
                root_ids.append(await api.get_root_folder_id())
            except RemoteStoreError as e:
                logger.warning(f"Could not resolve the root folder id: {e}")
        return build_listings(folders, root_ids)

    # Uploads

    async def run_upload(
        self,
        prefs: Preferences,
        paths: Sequence[str],
        identity: Identity,
        destination_id: str | None = None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[Preferences, BatchSummary]:
        """Upload the selection under destination_id (None for the root).

        Returns:
            The preferences with the identity marked as last used, and the
            batch summary. An empty selection yields BatchSummary.empty().

        Raises:
            AuthExpiredError: If no valid token can be obtained or the session
                expires while recreating folders
            LocalIOError: If a selected path cannot be read
        """
        units = flatten(paths) if paths else []
        if not units:
            logger.info("Nothing to upload")
            return prefs, BatchSummary.empty()

        token = await self._authenticator.obtain_valid_token(identity)
        async with self._api_factory(token) as api:
            index = seed_index(destination_id)
            if needs_structure(units):
                logger.info("Creating folder structure")
                index = await ensure_hierarchy(api, units, destination_id)

            outcomes = await upload_all(
                api,
                units,
                destination_id,
                index,
                max_attempts=self.settings.max_attempts,
                backoff_base=self.settings.backoff_base,
                sleep=self._sleep,
                on_progress=on_progress,
            )

        summary = summarize(outcomes, destination_id, self.settings)
        logger.info(f"Uploaded {summary.success_count}/{summary.total} file(s)")
        return accounts.mark_last_used(prefs, identity.id), summary
