"""Identity bookkeeping on the Preferences record.

Every function here is pure: it takes a Preferences value and returns a new
one, leaving persistence to the caller.
"""

from __future__ import annotations

from dataclasses import replace

from drive_uploader.exceptions import SessionError
from drive_uploader.models import DefaultFolder, Identity, Preferences


def get_identity(prefs: Preferences, identity_id: str) -> Identity:
    for identity in prefs.identities:
        if identity.id == identity_id:
            return identity
    raise SessionError(f"Unknown account: {identity_id}")


def add_identity(prefs: Preferences, identity: Identity) -> Preferences:
    """Add an identity, replacing any stored one with the same id.

    The first identity ever added becomes the default.
    """
    identities = list(prefs.identities)
    for index, existing in enumerate(identities):
        if existing.id == identity.id:
            identities[index] = identity
            break
    else:
        identities.append(identity)

    default_id = prefs.default_identity_id
    if len(identities) == 1 and not default_id:
        default_id = identity.id

    return replace(prefs, identities=tuple(identities), default_identity_id=default_id)


def remove_identity(prefs: Preferences, identity_id: str) -> Preferences:
    """Remove an identity and repair the references to it.

    Removing the default promotes the first remaining identity, or clears the
    default when none is left. A default folder or last-used marker owned by
    the removed identity is dropped as well.
    """
    identities = tuple(i for i in prefs.identities if i.id != identity_id)

    default_id = prefs.default_identity_id
    if default_id == identity_id:
        default_id = identities[0].id if identities else None

    default_folder = prefs.default_folder
    if default_folder and default_folder.account_id == identity_id:
        default_folder = None

    last_used = prefs.last_used_identity_id
    if last_used == identity_id:
        last_used = None

    return replace(
        prefs,
        identities=identities,
        default_identity_id=default_id,
        default_folder=default_folder,
        last_used_identity_id=last_used,
    )


def set_default_identity(prefs: Preferences, identity_id: str) -> Preferences:
    get_identity(prefs, identity_id)
    return replace(prefs, default_identity_id=identity_id)


def get_default_identity(prefs: Preferences) -> Identity | None:
    """Return the default identity, or the first one when no default is set."""
    if not prefs.default_identity_id:
        return prefs.identities[0] if prefs.identities else None
    for identity in prefs.identities:
        if identity.id == prefs.default_identity_id:
            return identity
    return None


def resolve_identity(prefs: Preferences) -> Identity | None:
    """Pick the identity to act as: last used, then default, then first."""
    for candidate in (prefs.last_used_identity_id, prefs.default_identity_id):
        if not candidate:
            continue
        for identity in prefs.identities:
            if identity.id == candidate:
                return identity
    return prefs.identities[0] if prefs.identities else None


def mark_last_used(prefs: Preferences, identity_id: str) -> Preferences:
    return replace(prefs, last_used_identity_id=identity_id)


def get_default_folder(prefs: Preferences, identity_id: str | None = None) -> DefaultFolder | None:
    """Return the default folder, ignoring it when another identity owns it."""
    folder = prefs.default_folder
    if folder is None:
        return None
    if identity_id and folder.account_id != identity_id:
        return None
    return folder


def set_default_folder(prefs: Preferences, folder_id: str, name: str, identity_id: str) -> Preferences:
    get_identity(prefs, identity_id)
    return replace(prefs, default_folder=DefaultFolder(id=folder_id, name=name, account_id=identity_id))


def clear_default_folder(prefs: Preferences) -> Preferences:
    return replace(prefs, default_folder=None)
