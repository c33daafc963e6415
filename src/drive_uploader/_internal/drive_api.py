"""Async Google Drive v3 client with error classification for the upload engine."""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from drive_uploader._internal.schemas import (
    DriveFilePayload,
    DriveFolderPayload,
    FolderListPayload,
    UserInfoPayload,
)
from drive_uploader.config import Settings
from drive_uploader.exceptions import (
    AuthExpiredError,
    LocalIOError,
    MalformedResponseError,
    NotFoundError,
    RemoteStoreError,
    TransientNetworkError,
    ValidationError,
)
from drive_uploader.models import ROOT_FOLDER_ID, RemoteFile, RemoteFolder, UserProfile

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_FIELDS = "id,name,mimeType,webViewLink,webContentLink,parents,size,createdTime,modifiedTime"
FOLDER_FIELDS = "id,name,webViewLink,parents"

TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}
RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside a quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_details(response: httpx.Response) -> tuple[str, set[str]]:
    """Pull the human-readable message and reason codes out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200], set()
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        reasons = {
            str(item.get("reason"))
            for item in error.get("errors", [])
            if isinstance(item, dict) and item.get("reason")
        }
        return str(error.get("message") or response.reason_phrase), reasons
    if isinstance(error, str):
        return error, set()
    return response.text[:200], set()


def raise_for_status(response: httpx.Response, action: str) -> None:
    """Translate an HTTP error response into the library's exception taxonomy."""
    if response.is_success:
        return

    status = response.status_code
    if status == 401:
        raise AuthExpiredError()

    message, reasons = _error_details(response)
    text = f"{action}: {status} {message}"
    if status in TRANSIENT_STATUSES or (status == 403 and reasons & RATE_LIMIT_REASONS):
        raise TransientNetworkError(text, status)
    if status == 404:
        raise NotFoundError(text, status)
    if status in (400, 422):
        raise ValidationError(text, status)
    raise RemoteStoreError(text, status)


class DriveAPI:
    """Bearer-token authenticated client for the Drive endpoints the engine needs.

    Example:
        async with DriveAPI(token) as api:
            folder = await api.create_folder("photos")
    """

    def __init__(
        self,
        access_token: str,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token
        self._settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._settings.timeout)

    async def __aenter__(self) -> DriveAPI:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, url: str, *, action: str, **kwargs: Any) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._access_token}"
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise TransientNetworkError(f"{action}: {e}") from e
        raise_for_status(response, action)
        return response

    @staticmethod
    def _parse(model: type[PayloadT], response: httpx.Response, action: str) -> PayloadT:
        try:
            return model.model_validate(response.json())
        except (SchemaError, ValueError) as e:
            raise MalformedResponseError(f"{action}: unexpected response ({e})", response.status_code) from e

    async def get_profile(self) -> UserProfile:
        """Fetch the email and name of the account behind the token."""
        action = "Failed to get user information"
        response = await self._request("GET", self._settings.userinfo_endpoint, action=action)
        return self._parse(UserInfoPayload, response, action).to_model()

    async def create_file(
        self,
        path: str,
        name: str,
        mime_type: str,
        parent_id: str | None = None,
    ) -> RemoteFile:
        """Upload a local file with a single multipart request."""
        metadata: dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]

        try:
            handle = open(path, "rb")
        except OSError as e:
            raise LocalIOError(f"Cannot read {path}: {e}") from e

        action = "Failed to upload file"
        with handle:
            response = await self._request(
                "POST",
                f"{self._settings.upload_base}/files",
                action=action,
                params={"uploadType": "multipart", "fields": FILE_FIELDS},
                files={
                    "metadata": (None, json.dumps(metadata), "application/json"),
                    "file": (name, handle, mime_type),
                },
            )
        return self._parse(DriveFilePayload, response, action).to_model()

    async def create_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder:
        metadata: dict[str, Any] = {"name": name, "mimeType": FOLDER_MIME_TYPE}
        if parent_id:
            metadata["parents"] = [parent_id]

        action = "Failed to create folder"
        response = await self._request(
            "POST",
            f"{self._settings.api_base}/files",
            action=action,
            params={"fields": FOLDER_FIELDS},
            json=metadata,
        )
        folder = self._parse(DriveFolderPayload, response, action).to_model()
        logger.info(f"Created folder: {name} ({folder.id})")
        return folder

    async def find_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder | None:
        """Find a non-trashed folder with exactly this name under this parent."""
        parent = parent_id or ROOT_FOLDER_ID
        query = (
            f"name='{escape_query_value(name)}' and mimeType='{FOLDER_MIME_TYPE}' "
            f"and trashed=false and '{escape_query_value(parent)}' in parents"
        )
        action = "Failed to search folders"
        response = await self._request(
            "GET",
            f"{self._settings.api_base}/files",
            action=action,
            params={"q": query, "fields": f"files({FOLDER_FIELDS})"},
        )
        payload = self._parse(FolderListPayload, response, action)
        return payload.files[0].to_model() if payload.files else None

    async def list_folders(self, page_size: int = 1000) -> list[RemoteFolder]:
        """List every non-trashed folder, following pagination."""
        folders: list[RemoteFolder] = []
        page_token: str | None = None
        action = "Failed to list folders"

        while True:
            params: dict[str, Any] = {
                "q": f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false",
                "pageSize": page_size,
                "fields": f"files({FOLDER_FIELDS}),nextPageToken",
                "orderBy": "name",
            }
            if page_token:
                params["pageToken"] = page_token

            response = await self._request("GET", f"{self._settings.api_base}/files", action=action, params=params)
            payload = self._parse(FolderListPayload, response, action)
            folders.extend(item.to_model() for item in payload.files)

            page_token = payload.next_page_token
            if not page_token:
                break

        logger.debug(f"Listed {len(folders)} folders")
        return folders

    async def get_root_folder_id(self) -> str:
        """Resolve the real id behind the "root" alias."""
        action = "Failed to resolve root folder"
        response = await self._request(
            "GET",
            f"{self._settings.api_base}/files/{ROOT_FOLDER_ID}",
            action=action,
            params={"fields": "id,name"},
        )
        return self._parse(DriveFolderPayload, response, action).id

    async def set_permission(self, file_id: str, role: str = "reader", type_: str = "anyone") -> None:
        """Grant a permission on a file; by default, read access for anyone with the link."""
        await self._request(
            "POST",
            f"{self._settings.api_base}/files/{file_id}/permissions",
            action="Failed to make file public",
            json={"role": role, "type": type_},
        )
