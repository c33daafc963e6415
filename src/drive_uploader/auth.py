"""Session management: valid access tokens per identity and interactive sign-in."""

from __future__ import annotations

import logging
import webbrowser
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from drive_uploader._internal.drive_api import DriveAPI
from drive_uploader._internal.oauth import OAuthClient
from drive_uploader.accounts import add_identity
from drive_uploader.exceptions import AuthExpiredError
from drive_uploader.models import Identity, Preferences, TokenSet, UserProfile
from drive_uploader.storage import TokenStore

logger = logging.getLogger(__name__)

ProfileFetcher = Callable[[str], Awaitable[UserProfile]]


class SessionAuthenticator:
    """Hands out valid access tokens and runs the OAuth flow when needed.

    Credentials live in the TokenStore under each identity's session-provider
    key; the identity list itself lives in the Preferences record, which is
    passed in and returned rather than kept here.
    """

    def __init__(
        self,
        oauth: OAuthClient,
        token_store: TokenStore,
        *,
        profile_fetcher: ProfileFetcher | None = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._oauth = oauth
        self._token_store = token_store
        self._profile_fetcher = profile_fetcher or self._fetch_profile
        self._open_browser = open_browser
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _fetch_profile(self, access_token: str) -> UserProfile:
        async with DriveAPI(access_token, self._oauth.settings) as api:
            return await api.get_profile()

    def new_provider_id(self) -> str:
        return f"google-drive-{int(self._clock().timestamp() * 1000)}"

    async def obtain_valid_token(self, identity: Identity) -> str:
        """Return a usable access token for the identity.

        Raises:
            AuthExpiredError: No stored credentials, or the refresh token was rejected
            TransientNetworkError: The refresh failed for any other reason
        """
        tokens = self._token_store.get(identity.provider_id)
        if tokens is None or not tokens.access_token:
            raise AuthExpiredError()

        if not tokens.is_expired(self._clock()):
            return tokens.access_token

        if not tokens.refresh_token:
            logger.info(f"Access token for {identity.email} expired and cannot be refreshed")
            raise AuthExpiredError()

        logger.info(f"Refreshing access token for {identity.email}")
        refreshed = await self._oauth.refresh(tokens.refresh_token)
        self._token_store.set(identity.provider_id, refreshed)
        return refreshed.access_token

    async def _authorize(self) -> tuple[str, TokenSet, UserProfile]:
        provider_id = self.new_provider_id()
        tokens = await self._oauth.authorize_interactively(open_browser=self._open_browser)
        # Tokens are stored only once the profile is known
        profile = await self._profile_fetcher(tokens.access_token)
        self._token_store.set(provider_id, tokens)
        return provider_id, tokens, profile

    def _drop_previous_credentials(self, previous: Identity | None, provider_id: str) -> None:
        if previous and previous.provider_id != provider_id:
            self._token_store.remove(previous.provider_id)

    async def perform_interactive_authorization(self, prefs: Preferences) -> tuple[Preferences, Identity]:
        """Sign in an account in the browser and add it to the preferences.

        Signing in an account that is already stored replaces it, and the
        credentials of its previous session are dropped.
        """
        provider_id, tokens, profile = await self._authorize()
        previous = next((i for i in prefs.identities if i.id == profile.account_id), None)
        self._drop_previous_credentials(previous, provider_id)
        identity = Identity(
            id=profile.account_id,
            email=profile.email,
            name=profile.name,
            access_token=tokens.access_token,
            provider_id=provider_id,
        )
        logger.info(f"Connected account {identity.email}")
        return add_identity(prefs, identity), identity

    async def reauthenticate(self, prefs: Preferences, identity_id: str) -> tuple[Preferences, Identity]:
        """Sign an existing account in again, keeping its id.

        The session-provider key is rotated and the old credentials dropped.
        An id that isn't stored is added as a new identity.
        """
        previous = next((i for i in prefs.identities if i.id == identity_id), None)
        provider_id, tokens, profile = await self._authorize()

        identity = Identity(
            id=identity_id if previous else profile.account_id,
            email=profile.email,
            name=profile.name,
            access_token=tokens.access_token,
            provider_id=provider_id,
        )
        self._drop_previous_credentials(previous, provider_id)

        logger.info(f"Re-authenticated account {identity.email}")
        return add_identity(prefs, identity), identity

    def forget(self, identity: Identity) -> None:
        """Drop the stored credentials of an identity."""
        self._token_store.remove(identity.provider_id)
