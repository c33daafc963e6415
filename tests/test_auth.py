"""Tests for session management."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import make_identity

from drive_uploader.auth import SessionAuthenticator
from drive_uploader.exceptions import AuthExpiredError, OAuthError, TransientNetworkError
from drive_uploader.models import Preferences, TokenSet, UserProfile
from drive_uploader.storage import PreferenceStore, TokenStore

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def oauth() -> MagicMock:
    """Create a mock OAuthClient."""
    client = MagicMock()
    client.refresh = AsyncMock()
    client.authorize_interactively = AsyncMock(
        return_value=TokenSet("fresh-at", "fresh-rt", NOW + timedelta(hours=1))
    )
    return client


@pytest.fixture
def profile_fetcher() -> AsyncMock:
    """Create a profile fetcher returning a fixed profile."""
    return AsyncMock(return_value=UserProfile(subject_id="sub-1", email="a@example.com", name="Ann"))


@pytest.fixture
def authenticator(oauth: MagicMock, token_store: TokenStore, profile_fetcher: AsyncMock) -> SessionAuthenticator:
    """Create an authenticator with a fixed clock."""
    return SessionAuthenticator(
        oauth,
        token_store,
        profile_fetcher=profile_fetcher,
        open_browser=MagicMock(),
        clock=lambda: NOW,
    )


class TestObtainValidToken:
    """Tests for obtain_valid_token()."""

    def test_valid_token_returned(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, oauth: MagicMock
    ) -> None:
        """Test that an unexpired token is returned without refreshing."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("at", "rt", NOW + timedelta(minutes=5)))

        assert asyncio.run(authenticator.obtain_valid_token(identity)) == "at"
        oauth.refresh.assert_not_called()

    def test_expired_token_refreshed(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, oauth: MagicMock
    ) -> None:
        """Test that an expired token is refreshed and stored."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("old-at", "rt", NOW - timedelta(minutes=1)))
        oauth.refresh.return_value = TokenSet("new-at", "rt", NOW + timedelta(hours=1))

        assert asyncio.run(authenticator.obtain_valid_token(identity)) == "new-at"
        oauth.refresh.assert_called_once_with("rt")
        stored = token_store.get(identity.provider_id)
        assert stored is not None
        assert stored.access_token == "new-at"

    def test_token_inside_margin_is_refreshed(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, oauth: MagicMock
    ) -> None:
        """Test that a token about to expire counts as expired."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("old-at", "rt", NOW + timedelta(seconds=5)))
        oauth.refresh.return_value = TokenSet("new-at", "rt", NOW + timedelta(hours=1))

        assert asyncio.run(authenticator.obtain_valid_token(identity)) == "new-at"

    def test_no_credentials(self, authenticator: SessionAuthenticator) -> None:
        """Test that an identity without stored tokens must re-authenticate."""
        with pytest.raises(AuthExpiredError):
            asyncio.run(authenticator.obtain_valid_token(make_identity()))

    def test_expired_without_refresh_token(
        self, authenticator: SessionAuthenticator, token_store: TokenStore
    ) -> None:
        """Test that an expired token with no refresh token must re-authenticate."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("old-at", None, NOW - timedelta(minutes=1)))

        with pytest.raises(AuthExpiredError):
            asyncio.run(authenticator.obtain_valid_token(identity))

    def test_rejected_refresh_propagates(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, oauth: MagicMock
    ) -> None:
        """Test that a revoked refresh token surfaces as AuthExpiredError."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("old-at", "rt", NOW - timedelta(minutes=1)))
        oauth.refresh.side_effect = AuthExpiredError()

        with pytest.raises(AuthExpiredError):
            asyncio.run(authenticator.obtain_valid_token(identity))

    def test_transient_refresh_failure_is_not_auth_expired(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, oauth: MagicMock
    ) -> None:
        """Test that a network failure while refreshing stays transient."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("old-at", "rt", NOW - timedelta(minutes=1)))
        oauth.refresh.side_effect = TransientNetworkError("503")

        with pytest.raises(TransientNetworkError):
            asyncio.run(authenticator.obtain_valid_token(identity))


class TestInteractiveAuthorization:
    """Tests for connecting and re-connecting accounts."""

    def test_adds_identity(self, authenticator: SessionAuthenticator, token_store: TokenStore) -> None:
        """Test that a new account is stored with its tokens."""
        prefs, identity = asyncio.run(authenticator.perform_interactive_authorization(Preferences()))

        assert identity.id == "sub-1"
        assert identity.email == "a@example.com"
        assert identity.provider_id == f"google-drive-{int(NOW.timestamp() * 1000)}"
        assert prefs.identities == (identity,)
        assert prefs.default_identity_id == "sub-1"
        stored = token_store.get(identity.provider_id)
        assert stored is not None
        assert stored.refresh_token == "fresh-rt"

    def test_email_used_without_subject(
        self, authenticator: SessionAuthenticator, profile_fetcher: AsyncMock
    ) -> None:
        """Test the identity id when the profile has no subject."""
        profile_fetcher.return_value = UserProfile(subject_id=None, email="a@example.com")

        _, identity = asyncio.run(authenticator.perform_interactive_authorization(Preferences()))

        assert identity.id == "a@example.com"

    def test_cancelled_flow_propagates(self, authenticator: SessionAuthenticator, oauth: MagicMock) -> None:
        """Test that a cancelled sign-in adds nothing."""
        oauth.authorize_interactively.side_effect = OAuthError("Authentication was cancelled by user.")

        with pytest.raises(OAuthError):
            asyncio.run(authenticator.perform_interactive_authorization(Preferences()))

    def test_adding_stored_account_drops_old_credentials(
        self, authenticator: SessionAuthenticator, token_store: TokenStore, store: PreferenceStore
    ) -> None:
        """Test that signing in a stored account again keeps one set of credentials."""
        old = make_identity("sub-1", "a@example.com", provider_id="google-drive-1")
        token_store.set(old.provider_id, TokenSet("old-at", "old-rt"))
        prefs = Preferences(identities=(old,), default_identity_id="sub-1")

        prefs, identity = asyncio.run(authenticator.perform_interactive_authorization(prefs))

        assert [i.provider_id for i in prefs.identities] == [identity.provider_id]
        assert token_store.get("google-drive-1") is None
        assert store.keys() == [f"oauth-tokens:{identity.provider_id}"]

    def test_failed_profile_fetch_stores_nothing(
        self, authenticator: SessionAuthenticator, profile_fetcher: AsyncMock, store: PreferenceStore
    ) -> None:
        """Test that a sign-in whose profile lookup fails leaves no credentials."""
        profile_fetcher.side_effect = TransientNetworkError("503")

        with pytest.raises(TransientNetworkError):
            asyncio.run(authenticator.perform_interactive_authorization(Preferences()))

        assert store.keys() == []

    def test_reauthenticate_rotates_provider_key(
        self, authenticator: SessionAuthenticator, token_store: TokenStore
    ) -> None:
        """Test that re-authentication keeps the id and drops old credentials."""
        old = make_identity("sub-1", "a@example.com", provider_id="google-drive-1")
        token_store.set(old.provider_id, TokenSet("old-at", None))
        prefs = Preferences(identities=(old,), default_identity_id="sub-1")

        prefs, identity = asyncio.run(authenticator.reauthenticate(prefs, "sub-1"))

        assert identity.id == "sub-1"
        assert identity.provider_id != "google-drive-1"
        assert len(prefs.identities) == 1
        assert token_store.get("google-drive-1") is None
        assert token_store.get(identity.provider_id) is not None

    def test_forget(self, authenticator: SessionAuthenticator, token_store: TokenStore) -> None:
        """Test dropping an identity's credentials."""
        identity = make_identity()
        token_store.set(identity.provider_id, TokenSet("at"))

        authenticator.forget(identity)

        assert token_store.get(identity.provider_id) is None
