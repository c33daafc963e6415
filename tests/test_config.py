"""Tests for settings loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from drive_uploader.config import DEFAULT_OAUTH_CLIENT_ID, Settings, get_settings

ENV_VARS = (
    "DRIVE_UPLOADER_CLIENT_ID",
    "DRIVE_UPLOADER_HOME",
    "DRIVE_UPLOADER_MAX_ATTEMPTS",
    "DRIVE_UPLOADER_BACKOFF_BASE",
    "DRIVE_UPLOADER_TIMEOUT",
    "DRIVE_UPLOADER_AUTH_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run each test without uploader variables and away from any .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestGetSettings:
    """Tests for get_settings()."""

    def test_defaults(self) -> None:
        """Test the defaults without any environment."""
        settings = get_settings()

        assert settings.client_id == DEFAULT_OAUTH_CLIENT_ID
        assert settings.max_attempts == 3
        assert settings.backoff_base == 1.0

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Test that variables override the defaults."""
        monkeypatch.setenv("DRIVE_UPLOADER_CLIENT_ID", "my-client.apps.googleusercontent.com")
        monkeypatch.setenv("DRIVE_UPLOADER_HOME", str(tmp_path / "home"))
        monkeypatch.setenv("DRIVE_UPLOADER_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("DRIVE_UPLOADER_BACKOFF_BASE", "0.5")

        settings = get_settings()

        assert settings.client_id == "my-client.apps.googleusercontent.com"
        assert settings.preferences_path == tmp_path / "home" / "preferences.json"
        assert settings.max_attempts == 5
        assert settings.backoff_base == 0.5

    def test_invalid_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unparsable number names the variable."""
        monkeypatch.setenv("DRIVE_UPLOADER_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="DRIVE_UPLOADER_TIMEOUT"):
            get_settings()

    def test_max_attempts_at_least_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that zero attempts is rejected."""
        monkeypatch.setenv("DRIVE_UPLOADER_MAX_ATTEMPTS", "0")

        with pytest.raises(ValueError, match="at least 1"):
            get_settings()

    def test_dotenv_file(self, tmp_path: Path) -> None:
        """Test that a .env file in the working directory is read."""
        (tmp_path / ".env").write_text("DRIVE_UPLOADER_MAX_ATTEMPTS=4\n")

        try:
            assert get_settings().max_attempts == 4
        finally:
            # load_dotenv writes to os.environ directly
            os.environ.pop("DRIVE_UPLOADER_MAX_ATTEMPTS", None)


class TestSettings:
    """Tests for Settings helpers."""

    def test_folder_url(self) -> None:
        """Test the folder link format."""
        assert Settings().folder_url("F") == "https://drive.google.com/drive/folders/F"
