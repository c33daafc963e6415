"""Command-line interface for drive_uploader."""

from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser
from pathlib import Path

import click

from drive_uploader import (
    AuthExpiredError,
    AuthenticationError,
    DriveUploader,
    Identity,
    Preferences,
    SessionError,
)
from drive_uploader._internal.oauth import OAuthClient
from drive_uploader.auth import SessionAuthenticator
from drive_uploader.config import get_settings
from drive_uploader.flatten import format_size
from drive_uploader.folders import folder_choices
from drive_uploader.models import ROOT_FOLDER_ID, TransferUnit
from drive_uploader.selection import FinderSelection, StaticSelection
from drive_uploader.storage import PreferenceStore, TokenStore

preferences_option = click.option(
    "--preferences",
    type=click.Path(path_type=Path),
    default=None,
    help="Preferences file path (default: ~/.drive_uploader/preferences.json)",
)
account_option = click.option("--account", "-a", default=None, help="Account id or email to use")


def _open_browser(url: str) -> None:
    click.echo("Opening your browser to sign in to Google. If nothing happens, visit:")
    click.echo(url)
    webbrowser.open(url)


def get_uploader(preferences_path: Path | None = None) -> DriveUploader:
    """Create a DriveUploader that asks for consent in the user's browser."""
    settings = get_settings()
    store = PreferenceStore(preferences_path or settings.preferences_path)
    authenticator = SessionAuthenticator(
        OAuthClient(settings),
        TokenStore(store),
        open_browser=_open_browser,
    )
    return DriveUploader(settings, store=store, authenticator=authenticator)


def _find_identity(prefs: Preferences, key: str) -> Identity:
    for identity in prefs.identities:
        if key in (identity.id, identity.email):
            return identity
    raise SessionError(f"Unknown account: {key}")


def _label(identity: Identity) -> str:
    return f"{identity.name} <{identity.email}>" if identity.name else identity.email


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


def _auth_expired_hint(identity: Identity | None) -> str:
    target = identity.id if identity else "ACCOUNT_ID"
    return f"Authentication expired. Run 'drive-upload accounts reauth {target}' and try again."


@click.group()
@click.version_option(package_name="drive-uploader")
@click.option("--verbose", "-v", is_flag=True, help="Log progress details")
def main(verbose: bool) -> None:
    """Google Drive uploader - Upload files and folders to your Drive."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@main.group("accounts")
def accounts_group() -> None:
    """Manage connected Google accounts."""
    pass


@accounts_group.command("list")
@preferences_option
def list_accounts(preferences: Path | None) -> None:
    """List connected accounts; the default is marked with *."""
    uploader = get_uploader(preferences)
    prefs = uploader.load_preferences()
    identities = uploader.list_identities(prefs)
    if not identities:
        click.echo("No accounts connected. Run 'drive-upload accounts add'.")
        return
    for identity in identities:
        marker = "*" if identity.id == prefs.default_identity_id else " "
        click.echo(f"{marker} {identity.id}  {_label(identity)}")


@accounts_group.command("add")
@preferences_option
def add_account(preferences: Path | None) -> None:
    """Connect a new Google account."""
    uploader = get_uploader(preferences)
    try:
        prefs, identity = asyncio.run(uploader.add_identity(uploader.load_preferences()))
        uploader.save_preferences(prefs)
        click.echo(click.style(f"Account added: {identity.email}", fg="green"))
    except AuthenticationError as e:
        _fail(f"Failed to add account: {e}")
    except Exception as e:
        _fail(f"Error: {e}")


@accounts_group.command("remove")
@click.argument("account")
@preferences_option
def remove_account(account: str, preferences: Path | None) -> None:
    """Disconnect an account."""
    uploader = get_uploader(preferences)
    try:
        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account)
        prefs = uploader.remove_identity(prefs, identity.id)
        uploader.save_preferences(prefs)
        click.echo(click.style(f"Removed account: {identity.email}", fg="green"))
    except SessionError as e:
        _fail(f"Error: {e}")


@accounts_group.command("default")
@click.argument("account")
@preferences_option
def default_account(account: str, preferences: Path | None) -> None:
    """Make an account the default."""
    uploader = get_uploader(preferences)
    try:
        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account)
        uploader.save_preferences(uploader.set_default_identity(prefs, identity.id))
        click.echo(click.style(f"Default account: {identity.email}", fg="green"))
    except SessionError as e:
        _fail(f"Error: {e}")


@accounts_group.command("reauth")
@click.argument("account")
@preferences_option
def reauth_account(account: str, preferences: Path | None) -> None:
    """Sign an account in again after its session expired."""
    uploader = get_uploader(preferences)
    try:
        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account)
        prefs, identity = asyncio.run(uploader.reauthenticate(prefs, identity.id))
        uploader.save_preferences(prefs)
        click.echo(click.style(f"Re-authenticated: {identity.email}", fg="green"))
    except AuthenticationError as e:
        _fail(f"Re-authentication failed: {e}")
    except Exception as e:
        _fail(f"Error: {e}")


@main.command("folders")
@account_option
@preferences_option
def list_folders(account: str | None, preferences: Path | None) -> None:
    """List destination folders of an account."""
    uploader = get_uploader(preferences)
    identity = None
    try:
        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account) if account else uploader.resolve_identity(prefs)
        if identity is None:
            _fail("No accounts connected. Run 'drive-upload accounts add'.")
            return

        listings = asyncio.run(uploader.list_remote_folders(identity))
        default = uploader.get_default_folder(prefs, identity)
        for listing in folder_choices(listings, default, identity.id):
            marker = "*" if default and listing.id == default.id else " "
            where = f"  ({listing.display_path})" if listing.display_path else ""
            click.echo(f"{marker} {listing.id}  " + click.style(listing.name, fg="blue") + where)
    except AuthExpiredError:
        _fail(_auth_expired_hint(identity))
    except Exception as e:
        _fail(f"Error: {e}")


@main.command("default-folder")
@click.argument("folder_id", required=False)
@click.option("--name", default=None, help="Display name of the folder")
@click.option("--clear", is_flag=True, help="Forget the default folder")
@account_option
@preferences_option
def default_folder(
    folder_id: str | None,
    name: str | None,
    clear: bool,
    account: str | None,
    preferences: Path | None,
) -> None:
    """Show or set the default destination folder of an account."""
    uploader = get_uploader(preferences)
    try:
        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account) if account else uploader.resolve_identity(prefs)
        if identity is None:
            _fail("No accounts connected. Run 'drive-upload accounts add'.")
            return

        if clear:
            if uploader.get_default_folder(prefs, identity) is not None:
                uploader.save_preferences(uploader.clear_default_folder(prefs))
            click.echo("Default folder cleared.")
            return

        if folder_id is None:
            current = uploader.get_default_folder(prefs, identity)
            click.echo(f"{current.name} ({current.id})" if current else "No default folder (uploads go to My Drive).")
            return

        prefs = uploader.set_default_folder(prefs, folder_id, name or folder_id, identity)
        uploader.save_preferences(prefs)
        click.echo(click.style(f"Default folder set: {name or folder_id}", fg="green"))
    except SessionError as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, path_type=Path))
@click.option("--folder", "-f", default=None, help="Destination folder id (default: the account's default folder)")
@click.option("--finder", is_flag=True, help="Also upload the items selected in Finder (macOS)")
@account_option
@preferences_option
def upload(
    paths: tuple[Path, ...],
    folder: str | None,
    finder: bool,
    account: str | None,
    preferences: Path | None,
) -> None:
    """Upload files and folders to Google Drive.

    PATHS: Files or folders to upload. Folders are recreated remotely.

    Examples:

        drive-upload upload report.pdf

        drive-upload upload photos/ notes.txt --folder 1AbCdEf

        drive-upload upload --finder
    """
    uploader = get_uploader(preferences)
    identity = None
    try:
        selected = StaticSelection(paths).get_selected_paths()
        if finder:
            selected.extend(FinderSelection().get_selected_paths())
        if not selected:
            click.echo("No files selected. Pass paths or use --finder.")
            return

        prefs = uploader.load_preferences()
        identity = _find_identity(prefs, account) if account else uploader.resolve_identity(prefs)
        if identity is None:
            click.echo("No account connected yet.")
            prefs, identity = asyncio.run(uploader.add_identity(prefs))
            uploader.save_preferences(prefs)

        destination = folder
        if destination is None:
            default = uploader.get_default_folder(prefs, identity)
            destination = default.id if default else ROOT_FOLDER_ID

        def progress(position: int, total: int, unit: TransferUnit) -> None:
            click.echo(f"Uploading {position}/{total}: {unit.name} ({format_size(unit.size)})")

        prefs, summary = asyncio.run(
            uploader.run_upload(prefs, selected, identity, destination, on_progress=progress)
        )
        uploader.save_preferences(prefs)

        if summary.nothing_to_upload:
            click.echo("Nothing to upload.")
            return

        for outcome in summary.outcomes:
            if outcome.success:
                click.echo(click.style("✓ ", fg="green") + outcome.file_name)
            else:
                click.echo(click.style("✗ ", fg="red") + f"{outcome.file_name}: {outcome.error}", err=True)

        if summary.failure_count == 0:
            click.echo(click.style(f"\nAll {summary.total} file(s) uploaded successfully!", fg="green"))
        else:
            click.echo(f"\n{summary.success_count}/{summary.total} file(s) uploaded.", err=True)
        if summary.chosen_link:
            click.echo(f"Link: {summary.chosen_link}")
        if summary.auth_expired:
            _fail(_auth_expired_hint(identity))
        if summary.failure_count:
            sys.exit(1)

    except AuthExpiredError:
        _fail(_auth_expired_hint(identity))
    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except Exception as e:
        _fail(f"Error: {e}")


if __name__ == "__main__":
    main()
