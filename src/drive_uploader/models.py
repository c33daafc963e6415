"""Data models for the drive_uploader library."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

# Seconds before expiry at which a token is already treated as expired
EXPIRY_MARGIN = timedelta(seconds=10)

ROOT_FOLDER_ID = "root"
ROOT_FOLDER_NAME = "My Drive"


@dataclass(frozen=True)
class Identity:
    """One connected remote account."""

    id: str
    email: str
    name: str | None
    access_token: str
    provider_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "accessToken": self.access_token,
            "providerId": self.provider_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        return cls(
            id=str(data["id"]),
            email=str(data.get("email", "")),
            name=data.get("name"),
            access_token=str(data.get("accessToken", "")),
            provider_id=str(data["providerId"]),
        )


@dataclass(frozen=True)
class TokenSet:
    """OAuth credentials held for one session-provider key."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token is expired (or about to be)."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - EXPIRY_MARGIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "scope": self.scope,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenSet:
        expires_at = data.get("expires_at")
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            scope=data.get("scope"),
        )


@dataclass(frozen=True)
class UserProfile:
    """Profile of the account behind an access token."""

    subject_id: str | None
    email: str
    name: str | None = None

    @property
    def account_id(self) -> str:
        """Account-stable identity key, falling back to the email."""
        return self.subject_id or self.email


@dataclass(frozen=True)
class TransferUnit:
    """A local file queued for upload."""

    path: str
    name: str
    size: int
    mime_type: str
    is_directory: bool = False
    relative_path: str | None = None

    @property
    def relative_dir(self) -> str | None:
        """Directory component of the relative path ("." for none)."""
        if not self.relative_path:
            return None
        return posixpath.dirname(self.relative_path) or "."


@dataclass(frozen=True)
class RemoteFolder:
    """A folder in the remote store."""

    id: str
    name: str
    parents: tuple[str, ...] = ()
    web_view_link: str | None = None

    @property
    def parent_id(self) -> str | None:
        return self.parents[0] if self.parents else None


@dataclass(frozen=True)
class RemoteFile:
    """A file in the remote store."""

    id: str
    name: str
    mime_type: str | None = None
    web_view_link: str | None = None
    web_content_link: str | None = None
    parents: tuple[str, ...] = ()
    size: int | None = None
    created_time: datetime | None = None
    modified_time: datetime | None = None


@dataclass(frozen=True)
class FolderListing:
    """A remote folder prepared for display in a picker."""

    id: str
    name: str
    display_path: str


@dataclass(frozen=True)
class UploadOutcome:
    """Result of uploading one transfer unit."""

    success: bool
    local_path: str
    file: RemoteFile | None = None
    error: str | None = None
    auth_expired: bool = False

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.local_path)


@dataclass(frozen=True)
class BatchSummary:
    """Aggregated result of one upload batch."""

    success_count: int
    failure_count: int
    chosen_link: str | None = None
    outcomes: tuple[UploadOutcome, ...] = ()
    auth_expired: bool = False
    nothing_to_upload: bool = False

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def failures(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @classmethod
    def empty(cls) -> BatchSummary:
        """Summary for a selection that produced no files."""
        return cls(success_count=0, failure_count=0, nothing_to_upload=True)


@dataclass(frozen=True)
class DefaultFolder:
    """Preferred destination folder, scoped to one identity."""

    id: str
    name: str
    account_id: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "accountId": self.account_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DefaultFolder:
        return cls(id=str(data["id"]), name=str(data.get("name", "")), account_id=str(data["accountId"]))


@dataclass(frozen=True)
class Preferences:
    """Persisted configuration record passed into and out of the engine."""

    identities: tuple[Identity, ...] = ()
    default_identity_id: str | None = None
    default_folder: DefaultFolder | None = None
    last_used_identity_id: str | None = None
