"""Pytest fixtures for drive_uploader tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import FakeDriveAPI, SleepRecorder

from drive_uploader.config import Settings
from drive_uploader.storage import PreferenceStore, TokenStore


@pytest.fixture
def selection_tree(tmp_path: Path) -> Path:
    """Create a selection with a loose file and a nested folder.

    Layout:
        doc.pdf
        photos/x.jpg
        photos/sub/y.png
        photos/.DS_Store         (hidden)
        photos/.cache/z.txt      (hidden folder)
    """
    (tmp_path / "doc.pdf").write_bytes(b"%PDF-1.4 test content")
    photos = tmp_path / "photos"
    (photos / "sub").mkdir(parents=True)
    (photos / "x.jpg").write_bytes(b"\xff\xd8 jpeg")
    (photos / "sub" / "y.png").write_bytes(b"\x89PNG png")
    (photos / ".DS_Store").write_bytes(b"junk")
    (photos / ".cache").mkdir()
    (photos / ".cache" / "z.txt").write_text("hidden")
    return tmp_path


@pytest.fixture
def fake_api() -> FakeDriveAPI:
    """Create an empty in-memory remote store."""
    return FakeDriveAPI()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Create a sleep replacement that records backoff delays."""
    return SleepRecorder()


@pytest.fixture
def store() -> PreferenceStore:
    """Create an in-memory preference store."""
    return PreferenceStore()


@pytest.fixture
def token_store(store: PreferenceStore) -> TokenStore:
    """Create a token store on top of the in-memory preference store."""
    return TokenStore(store)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create settings rooted in a temporary home directory."""
    return Settings(home=tmp_path / "home")
