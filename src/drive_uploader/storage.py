"""Durable key-value persistence for preferences and OAuth credentials."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from drive_uploader.models import DefaultFolder, Identity, Preferences, TokenSet

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "google-drive-accounts"
DEFAULT_FOLDER_KEY = "default-folder"
LAST_USED_ACCOUNT_KEY = "last-used-account-id"
TOKEN_KEY_PREFIX = "oauth-tokens:"


class PreferenceStore:
    """JSON file backed key-value store.

    Values are JSON-serializable records. When no path is given the store
    lives in memory only, which is what the tests use.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else None
        self._data: dict[str, Any] = {}
        self._loaded = False

    @property
    def path(self) -> Path | None:
        return self._path

    def _load(self) -> None:
        """Load the store from disk."""
        if self._loaded:
            return
        self._loaded = True
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
            if isinstance(data, dict):
                self._data = data
        except Exception as e:
            logger.warning(f"Failed to load preferences from {self._path}: {e}")

    def _save(self) -> None:
        """Save the store to disk."""
        if not self._path:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._data, indent=2))
        except OSError as e:
            logger.warning(f"Failed to save preferences to {self._path}: {e}")

    def get(self, key: str) -> Any:
        self._load()
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._load()
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        self._load()
        if key in self._data:
            del self._data[key]
            self._save()

    def keys(self) -> list[str]:
        self._load()
        return list(self._data)


class TokenStore:
    """OAuth credentials keyed by session-provider key."""

    def __init__(self, store: PreferenceStore) -> None:
        self._store = store

    def get(self, provider_id: str) -> TokenSet | None:
        data = self._store.get(TOKEN_KEY_PREFIX + provider_id)
        if not isinstance(data, dict):
            return None
        try:
            return TokenSet.from_dict(data)
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed credentials for {provider_id}: {e}")
            return None

    def set(self, provider_id: str, tokens: TokenSet) -> None:
        payload = tokens.to_dict()
        payload["updated_at"] = datetime.now(timezone.utc).isoformat()
        self._store.set(TOKEN_KEY_PREFIX + provider_id, payload)

    def remove(self, provider_id: str) -> None:
        self._store.delete(TOKEN_KEY_PREFIX + provider_id)


def load_preferences(store: PreferenceStore) -> Preferences:
    """Read the preference record from the store."""
    accounts = store.get(ACCOUNTS_KEY) or {}
    identities: list[Identity] = []
    for item in accounts.get("accounts", []):
        try:
            identities.append(Identity.from_dict(item))
        except (KeyError, TypeError) as e:
            logger.warning(f"Skipping malformed stored account: {e}")

    default_folder = None
    folder_data = store.get(DEFAULT_FOLDER_KEY)
    if isinstance(folder_data, dict):
        try:
            default_folder = DefaultFolder.from_dict(folder_data)
        except KeyError as e:
            logger.warning(f"Ignoring malformed default folder: {e}")

    return Preferences(
        identities=tuple(identities),
        default_identity_id=accounts.get("defaultAccountId"),
        default_folder=default_folder,
        last_used_identity_id=store.get(LAST_USED_ACCOUNT_KEY),
    )


def save_preferences(store: PreferenceStore, prefs: Preferences) -> None:
    """Write the preference record back to the store."""
    accounts: dict[str, Any] = {"accounts": [identity.to_dict() for identity in prefs.identities]}
    if prefs.default_identity_id:
        accounts["defaultAccountId"] = prefs.default_identity_id
    store.set(ACCOUNTS_KEY, accounts)

    if prefs.default_folder:
        store.set(DEFAULT_FOLDER_KEY, prefs.default_folder.to_dict())
    else:
        store.delete(DEFAULT_FOLDER_KEY)

    if prefs.last_used_identity_id:
        store.set(LAST_USED_ACCOUNT_KEY, prefs.last_used_identity_id)
    else:
        store.delete(LAST_USED_ACCOUNT_KEY)
