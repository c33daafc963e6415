"""Drive Uploader - A Python library for uploading files and folders to Google Drive.

Example usage:
    import asyncio
    from drive_uploader import DriveUploader

    uploader = DriveUploader()
    prefs = uploader.load_preferences()

    # Connect an account (opens the browser) if none is stored yet
    identity = uploader.resolve_identity(prefs)
    if identity is None:
        prefs, identity = asyncio.run(uploader.add_identity(prefs))

    prefs, summary = asyncio.run(uploader.run_upload(prefs, ["report.pdf", "photos/"], identity))
    uploader.save_preferences(prefs)
    print(f"{summary.success_count}/{summary.total} uploaded, link: {summary.chosen_link}")
"""

from drive_uploader.client import DriveUploader
from drive_uploader.exceptions import (
    AuthenticationError,
    AuthExpiredError,
    DriveUploaderError,
    LocalIOError,
    MalformedResponseError,
    NotFoundError,
    OAuthError,
    RemoteStoreError,
    SessionError,
    TransientNetworkError,
    ValidationError,
)
from drive_uploader.models import (
    BatchSummary,
    DefaultFolder,
    FolderListing,
    Identity,
    Preferences,
    RemoteFile,
    RemoteFolder,
    TokenSet,
    TransferUnit,
    UploadOutcome,
)

__version__ = "0.1.0"

__all__ = [
    # Main client
    "DriveUploader",
    # Models
    "BatchSummary",
    "DefaultFolder",
    "FolderListing",
    "Identity",
    "Preferences",
    "RemoteFile",
    "RemoteFolder",
    "TokenSet",
    "TransferUnit",
    "UploadOutcome",
    # Exceptions
    "DriveUploaderError",
    "AuthenticationError",
    "AuthExpiredError",
    "OAuthError",
    "RemoteStoreError",
    "TransientNetworkError",
    "NotFoundError",
    "ValidationError",
    "MalformedResponseError",
    "LocalIOError",
    "SessionError",
]
