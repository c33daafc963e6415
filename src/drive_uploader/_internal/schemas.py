"""Wire schemas for Google Drive and OAuth responses.

Responses are validated here right after each call and converted to the
frozen dataclasses in drive_uploader.models; nothing past this module sees raw
JSON.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from drive_uploader.models import RemoteFile, RemoteFolder, TokenSet, UserProfile


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DriveFilePayload(_Payload):
    id: str
    name: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    web_view_link: str | None = Field(default=None, alias="webViewLink")
    web_content_link: str | None = Field(default=None, alias="webContentLink")
    parents: list[str] = Field(default_factory=list)
    size: int | None = None
    created_time: datetime | None = Field(default=None, alias="createdTime")
    modified_time: datetime | None = Field(default=None, alias="modifiedTime")

    def to_model(self) -> RemoteFile:
        return RemoteFile(
            id=self.id,
            name=self.name,
            mime_type=self.mime_type,
            web_view_link=self.web_view_link or None,
            web_content_link=self.web_content_link or None,
            parents=tuple(self.parents),
            size=self.size,
            created_time=self.created_time,
            modified_time=self.modified_time,
        )


class DriveFolderPayload(_Payload):
    id: str
    name: str
    parents: list[str] = Field(default_factory=list)
    web_view_link: str | None = Field(default=None, alias="webViewLink")

    def to_model(self) -> RemoteFolder:
        return RemoteFolder(
            id=self.id,
            name=self.name,
            parents=tuple(self.parents),
            web_view_link=self.web_view_link or None,
        )


class FolderListPayload(_Payload):
    files: list[DriveFolderPayload] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class UserInfoPayload(_Payload):
    # The v2 userinfo endpoint calls it "id", OpenID Connect calls it "sub"
    subject_id: str | None = Field(default=None, validation_alias=AliasChoices("sub", "id"))
    email: str
    name: str | None = None

    def to_model(self) -> UserProfile:
        return UserProfile(subject_id=self.subject_id or None, email=self.email, name=self.name)


class TokenResponsePayload(_Payload):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None
    token_type: str | None = None

    def to_model(self, now: datetime, fallback_refresh_token: str | None = None) -> TokenSet:
        expires_at = now + timedelta(seconds=self.expires_in) if self.expires_in else None
        return TokenSet(
            access_token=self.access_token,
            refresh_token=self.refresh_token or fallback_refresh_token,
            expires_at=expires_at,
            scope=self.scope,
        )


class TokenErrorPayload(_Payload):
    error: str
    error_description: str | None = None
