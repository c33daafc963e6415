"""Exception hierarchy for the drive_uploader library."""

from __future__ import annotations


class DriveUploaderError(Exception):
    """Base exception for all drive_uploader errors."""

    pass


class AuthenticationError(DriveUploaderError):
    """Raised when authentication fails."""

    pass


class AuthExpiredError(AuthenticationError):
    """Raised when the stored credential can no longer be used or refreshed.

    The only way forward is the interactive authorization flow; callers should
    not retry the operation that raised it.
    """

    def __init__(self, message: str = "Authentication expired. Please re-authenticate your account.") -> None:
        super().__init__(message)


class OAuthError(AuthenticationError):
    """Raised when the interactive OAuth flow fails or is cancelled."""

    pass


class RemoteStoreError(DriveUploaderError):
    """Raised when the remote store rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientNetworkError(RemoteStoreError):
    """Raised for failures that may succeed when retried (timeouts, 5xx, 429)."""

    pass


class NotFoundError(RemoteStoreError):
    """Raised when the remote store reports a missing file or folder."""

    pass


class ValidationError(RemoteStoreError):
    """Raised when the remote store rejects the request as malformed."""

    pass


class MalformedResponseError(ValidationError):
    """Raised when a response body does not have the expected shape.

    The request itself may have succeeded (e.g. the file was created), so it
    must not be sent again.
    """

    pass


class LocalIOError(DriveUploaderError):
    """Raised when a selected local file cannot be read."""

    pass


class SessionError(DriveUploaderError):
    """Raised when there's an issue with the session state."""

    pass
