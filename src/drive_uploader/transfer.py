"""Upload transfer units with bounded retry and exponential backoff.

Each unit moves through a small state machine:

    PENDING -> ATTEMPTING(n) -> SUCCEEDED
                             -> RETRY_SCHEDULED(delay) -> ATTEMPTING(n + 1)
                             -> FAILED_FINAL

The transition out of ATTEMPTING is decided by next_state(), a pure function
of the attempt number and the error raised (if any).
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from drive_uploader.exceptions import (
    AuthExpiredError,
    DriveUploaderError,
    LocalIOError,
    MalformedResponseError,
    NotFoundError,
    ValidationError,
)
from drive_uploader.hierarchy import SELECTION_ROOT, FolderPathIndex
from drive_uploader.models import ROOT_FOLDER_ID, RemoteFile, TransferUnit, UploadOutcome

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_BASE = 1.0

# Errors that will not go away by trying again
FINAL_ERRORS: tuple[type[DriveUploaderError], ...] = (
    AuthExpiredError,
    NotFoundError,
    ValidationError,
    MalformedResponseError,
    LocalIOError,
)

Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[int, int, TransferUnit], None]


class FileAPI(Protocol):
    async def create_file(
        self, path: str, name: str, mime_type: str, parent_id: str | None = None
    ) -> RemoteFile: ...

    async def set_permission(self, file_id: str, role: str = "reader", type_: str = "anyone") -> None: ...


class AttemptStatus(enum.Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED_FINAL = "failed_final"


@dataclass(frozen=True)
class AttemptState:
    status: AttemptStatus
    attempt: int = 0
    delay: float | None = None
    error: BaseException | None = None


def backoff_delay(attempt: int, base: float = BACKOFF_BASE) -> float:
    """Delay after the given failed attempt: base, 2*base, 4*base, ..."""
    return base * (2 ** (attempt - 1))


def next_state(
    attempt: int,
    error: BaseException | None,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_base: float = BACKOFF_BASE,
) -> AttemptState:
    """Decide what follows attempt number `attempt` (1-based)."""
    if error is None:
        return AttemptState(AttemptStatus.SUCCEEDED, attempt)
    if isinstance(error, FINAL_ERRORS) or attempt >= max_attempts:
        return AttemptState(AttemptStatus.FAILED_FINAL, attempt, error=error)
    return AttemptState(
        AttemptStatus.RETRY_SCHEDULED,
        attempt,
        delay=backoff_delay(attempt, backoff_base),
        error=error,
    )


def resolve_parent(unit: TransferUnit, destination_id: str | None, index: FolderPathIndex) -> str | None:
    """Remote parent for a unit: its recreated folder, else the destination.

    None stands for the root of the store.
    """
    directory = unit.relative_dir
    if directory and directory != SELECTION_ROOT and directory in index:
        return index[directory]
    if not destination_id or destination_id == ROOT_FOLDER_ID:
        return None
    return destination_id


async def share_with_link(api: FileAPI, remote: RemoteFile) -> None:
    """Make the file readable by anyone with the link; failures are only logged."""
    try:
        await api.set_permission(remote.id, role="reader", type_="anyone")
    except DriveUploaderError as e:
        logger.warning(f"Could not share {remote.name}: {e}")


async def upload_with_retry(
    api: FileAPI,
    unit: TransferUnit,
    parent_id: str | None,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_base: float = BACKOFF_BASE,
    sleep: Sleep = asyncio.sleep,
) -> RemoteFile:
    """Upload one unit, retrying transient failures.

    Returns:
        The created remote file

    Raises:
        The last error once the state machine reaches FAILED_FINAL
    """
    state = AttemptState(AttemptStatus.PENDING)

    while True:
        state = AttemptState(AttemptStatus.ATTEMPTING, state.attempt + 1)
        try:
            remote = await api.create_file(unit.path, unit.name, unit.mime_type, parent_id)
        except DriveUploaderError as e:
            state = next_state(state.attempt, e, max_attempts=max_attempts, backoff_base=backoff_base)
            if state.status is AttemptStatus.FAILED_FINAL:
                raise

            logger.warning(
                f"Upload of {unit.name} failed (attempt {state.attempt}/{max_attempts}): "
                f"{e}; retrying in {state.delay:g}s"
            )
            await sleep(state.delay or 0)
            continue

        state = next_state(state.attempt, None, max_attempts=max_attempts, backoff_base=backoff_base)
        logger.info(f"Uploaded {unit.name} (attempt {state.attempt})")
        await share_with_link(api, remote)
        return remote


async def upload_all(
    api: FileAPI,
    units: Sequence[TransferUnit],
    destination_id: str | None,
    folder_index: FolderPathIndex | None = None,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff_base: float = BACKOFF_BASE,
    sleep: Sleep = asyncio.sleep,
    on_progress: ProgressCallback | None = None,
) -> list[UploadOutcome]:
    """Upload every unit in order, one outcome per unit.

    A unit that exhausts its retries does not stop the batch. An expired
    session does: that unit and every unit after it are reported as failed
    with auth_expired set, since no further call can succeed.
    """
    index = folder_index or {}
    outcomes: list[UploadOutcome] = []
    auth_error: AuthExpiredError | None = None

    for position, unit in enumerate(units, start=1):
        if auth_error is not None:
            outcomes.append(
                UploadOutcome(success=False, local_path=unit.path, error=f"Skipped: {auth_error}", auth_expired=True)
            )
            continue

        if on_progress is not None:
            on_progress(position, len(units), unit)

        parent_id = resolve_parent(unit, destination_id, index)
        try:
            remote = await upload_with_retry(
                api,
                unit,
                parent_id,
                max_attempts=max_attempts,
                backoff_base=backoff_base,
                sleep=sleep,
            )
        except AuthExpiredError as e:
            logger.error(f"Session expired while uploading {unit.name}")
            auth_error = e
            outcomes.append(UploadOutcome(success=False, local_path=unit.path, error=str(e), auth_expired=True))
        except DriveUploaderError as e:
            logger.error(f"Upload failed for {unit.name}: {e}")
            outcomes.append(UploadOutcome(success=False, local_path=unit.path, error=str(e)))
        else:
            outcomes.append(UploadOutcome(success=True, local_path=unit.path, file=remote))

    return outcomes
