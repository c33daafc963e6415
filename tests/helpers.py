"""Shared test helpers for drive_uploader tests."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from drive_uploader.models import Identity, RemoteFile, RemoteFolder, TransferUnit


class FakeDriveAPI:
    """In-memory stand-in for DriveAPI.

    upload_errors maps a local path to the errors raised by successive upload
    attempts of that path; once the list is used up, uploads succeed.
    """

    def __init__(
        self,
        upload_errors: dict[str, list[Exception]] | None = None,
        permission_error: Exception | None = None,
        root_id: str = "root-id",
    ) -> None:
        self.folders: dict[str, RemoteFolder] = {}
        self.created_folders: list[tuple[str, str | None]] = []
        self.files: list[RemoteFile] = []
        self.upload_attempts: dict[str, int] = defaultdict(int)
        self.upload_errors = {path: list(errors) for path, errors in (upload_errors or {}).items()}
        self.permission_error = permission_error
        self.permission_calls: list[tuple[str, str, str]] = []
        self.root_id = root_id
        self.closed = False
        self._next_id = 0

    async def __aenter__(self) -> FakeDriveAPI:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.closed = True

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    def add_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder:
        """Seed a folder that already exists remotely."""
        folder = RemoteFolder(id=self._new_id("folder"), name=name, parents=(parent_id or "root",))
        self.folders[folder.id] = folder
        return folder

    async def find_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder | None:
        parent = parent_id or "root"
        for folder in self.folders.values():
            if folder.name == name and folder.parent_id == parent:
                return folder
        return None

    async def create_folder(self, name: str, parent_id: str | None = None) -> RemoteFolder:
        self.created_folders.append((name, parent_id))
        return self.add_folder(name, parent_id)

    async def list_folders(self) -> list[RemoteFolder]:
        return list(self.folders.values())

    async def get_root_folder_id(self) -> str:
        return self.root_id

    async def create_file(
        self, path: str, name: str, mime_type: str, parent_id: str | None = None
    ) -> RemoteFile:
        self.upload_attempts[path] += 1
        errors = self.upload_errors.get(path)
        if errors:
            raise errors.pop(0)
        file_id = self._new_id("file")
        remote = RemoteFile(
            id=file_id,
            name=name,
            mime_type=mime_type,
            web_view_link=f"https://drive.google.com/file/d/{file_id}/view",
            parents=(parent_id,) if parent_id else (),
        )
        self.files.append(remote)
        return remote

    async def set_permission(self, file_id: str, role: str = "reader", type_: str = "anyone") -> None:
        self.permission_calls.append((file_id, role, type_))
        if self.permission_error is not None:
            raise self.permission_error

    def parent_of(self, name: str) -> str | None:
        """Parent folder id of the uploaded file called name."""
        for remote in self.files:
            if remote.name == name:
                return remote.parents[0] if remote.parents else None
        raise AssertionError(f"{name} was not uploaded")


class SleepRecorder:
    """Async sleep replacement that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_identity(
    identity_id: str = "acct-a",
    email: str = "a@example.com",
    provider_id: str | None = None,
    name: str | None = None,
) -> Identity:
    return Identity(
        id=identity_id,
        email=email,
        name=name,
        access_token=f"token-{identity_id}",
        provider_id=provider_id or f"google-drive-{identity_id}",
    )


def make_unit(path: str, relative_path: str | None = None, size: int = 10) -> TransferUnit:
    return TransferUnit(
        path=path,
        name=path.rsplit("/", 1)[-1],
        size=size,
        mime_type="application/octet-stream",
        relative_path=relative_path,
    )
