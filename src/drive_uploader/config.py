"""
Configuration for drive_uploader.
Loads environment variables (and a .env file, if present) into Settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

# Public client id of the desktop PKCE app; no client secret is involved
DEFAULT_OAUTH_CLIENT_ID = "389780480859-1in9j915akqi6sbk2ad8nnd9apj9spf1.apps.googleusercontent.com"

DEFAULT_SCOPES = (
    "openid",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.metadata.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)

DEFAULT_HOME = Path.home() / ".drive_uploader"


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the authenticator, API client and engine."""

    client_id: str = DEFAULT_OAUTH_CLIENT_ID
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    authorization_endpoint: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint: str = "https://oauth2.googleapis.com/token"
    userinfo_endpoint: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    api_base: str = "https://www.googleapis.com/drive/v3"
    upload_base: str = "https://www.googleapis.com/upload/drive/v3"
    folder_url_template: str = "https://drive.google.com/drive/folders/{id}"
    home: Path = DEFAULT_HOME
    max_attempts: int = 3
    backoff_base: float = 1.0
    timeout: float = 60.0
    auth_timeout: float = 300.0

    @property
    def preferences_path(self) -> Path:
        return self.home / "preferences.json"

    def folder_url(self, folder_id: str) -> str:
        return self.folder_url_template.format(id=folder_id)


def _env_number(name: str, default: float, cast: type = float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


def get_settings() -> Settings:
    """
    Load settings from environment variables.
    Raises ValueError if a numeric variable cannot be parsed.
    """
    load_dotenv(find_dotenv(usecwd=True))

    home = os.getenv("DRIVE_UPLOADER_HOME")
    max_attempts = int(_env_number("DRIVE_UPLOADER_MAX_ATTEMPTS", 3, int))
    if max_attempts < 1:
        raise ValueError("DRIVE_UPLOADER_MAX_ATTEMPTS must be at least 1")

    return Settings(
        client_id=(os.getenv("DRIVE_UPLOADER_CLIENT_ID") or "").strip() or DEFAULT_OAUTH_CLIENT_ID,
        home=Path(home).expanduser() if home else DEFAULT_HOME,
        max_attempts=max_attempts,
        backoff_base=_env_number("DRIVE_UPLOADER_BACKOFF_BASE", 1.0),
        timeout=_env_number("DRIVE_UPLOADER_TIMEOUT", 60.0),
        auth_timeout=_env_number("DRIVE_UPLOADER_AUTH_TIMEOUT", 300.0),
    )
