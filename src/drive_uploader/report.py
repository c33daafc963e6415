"""Batch summary of per-unit upload outcomes."""

from __future__ import annotations

from collections.abc import Sequence

from drive_uploader.config import Settings
from drive_uploader.models import ROOT_FOLDER_ID, BatchSummary, UploadOutcome


def choose_link(
    outcomes: Sequence[UploadOutcome],
    destination_id: str | None,
    settings: Settings | None = None,
) -> str | None:
    """Pick the one link worth handing to the user.

    A single successful file links to itself; otherwise a batch uploaded into
    a real folder links to that folder. Uploads to the root have no link.
    """
    if len(outcomes) == 1 and outcomes[0].success and outcomes[0].file is not None:
        link = (outcomes[0].file.web_view_link or "").strip()
        if link:
            return link
    if destination_id and destination_id != ROOT_FOLDER_ID:
        return (settings or Settings()).folder_url(destination_id)
    return None


def summarize(
    outcomes: Sequence[UploadOutcome],
    destination_id: str | None = None,
    settings: Settings | None = None,
) -> BatchSummary:
    succeeded = sum(1 for outcome in outcomes if outcome.success)
    return BatchSummary(
        success_count=succeeded,
        failure_count=len(outcomes) - succeeded,
        chosen_link=choose_link(outcomes, destination_id, settings),
        outcomes=tuple(outcomes),
        auth_expired=any(outcome.auth_expired for outcome in outcomes),
    )
