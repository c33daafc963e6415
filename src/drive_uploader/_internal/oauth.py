"""PKCE OAuth client and loopback redirect receiver for Google sign-in."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import http.server
import logging
import secrets
import string
import urllib.parse
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx
from pydantic import ValidationError as SchemaError

from drive_uploader._internal.schemas import TokenErrorPayload, TokenResponsePayload
from drive_uploader.config import Settings
from drive_uploader.exceptions import AuthExpiredError, OAuthError, TransientNetworkError
from drive_uploader.models import TokenSet

logger = logging.getLogger(__name__)

VERIFIER_CHARS = string.ascii_letters + string.digits + "-._~"
EXPIRED_GRANT_ERRORS = {"invalid_grant", "invalid_token"}
CALLBACK_PATH = "/callback"

_SUCCESS_PAGE = (
    b"<html><head><title>Authentication Successful</title></head>"
    b'<body style="font-family: sans-serif; text-align: center; padding: 50px;">'
    b"<h1>Authentication Successful!</h1><p>You can close this window.</p></body></html>"
)
_FAILURE_PAGE = (
    b"<html><head><title>Authentication Failed</title></head>"
    b'<body style="font-family: sans-serif; text-align: center; padding: 50px;">'
    b"<h1>Authentication Failed</h1><p>You can close this window and try again.</p></body></html>"
)


def generate_code_verifier(length: int = 64) -> str:
    """Random PKCE code verifier (RFC 7636 allows 43 to 128 characters)."""
    if not 43 <= length <= 128:
        raise ValueError("PKCE code verifier length must be between 43 and 128")
    return "".join(secrets.choice(VERIFIER_CHARS) for _ in range(length))


def code_challenge(verifier: str) -> str:
    """S256 challenge for a code verifier."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class AuthorizationRequest:
    """One pending authorization: the verifier must be presented at exchange time."""

    code_verifier: str
    code_challenge: str
    state: str
    redirect_uri: str

    @classmethod
    def create(cls, redirect_uri: str) -> AuthorizationRequest:
        verifier = generate_code_verifier()
        return cls(
            code_verifier=verifier,
            code_challenge=code_challenge(verifier),
            state=secrets.token_urlsafe(16),
            redirect_uri=redirect_uri,
        )


class LoopbackRedirectReceiver:
    """Local HTTP server that captures the authorization redirect.

    The blocking accept loop runs in a worker thread so the event loop stays
    free while the user is in the browser.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0) -> None:
        self._result: dict[str, str] = {}
        receiver = self

        class CallbackHandler(http.server.BaseHTTPRequestHandler):
            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("redirect receiver: " + format, *args)

            def do_GET(self) -> None:
                parsed = urllib.parse.urlparse(self.path)
                if parsed.path != CALLBACK_PATH:
                    self.send_response(404)
                    self.end_headers()
                    return

                params = urllib.parse.parse_qs(parsed.query)
                receiver._result = {key: values[0] for key, values in params.items() if values}
                ok = "code" in receiver._result and "error" not in receiver._result
                self.send_response(200)
                self.send_header("Content-Type", "text/html")
                self.end_headers()
                self.wfile.write(_SUCCESS_PAGE if ok else _FAILURE_PAGE)

        self._server = http.server.HTTPServer((host, port), CallbackHandler)
        self._server.timeout = 0.5

    @property
    def redirect_uri(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}{CALLBACK_PATH}"

    async def wait_for_code(self, state: str, timeout: float = 300.0) -> str:
        """Wait for the redirect and return the authorization code.

        Raises:
            OAuthError: On timeout, user cancellation, or a state mismatch
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while not self._result:
            if loop.time() >= deadline:
                raise OAuthError("Authentication timeout. Please try again.")
            await asyncio.to_thread(self._server.handle_request)

        result = self._result
        if "error" in result:
            if result["error"] == "access_denied":
                raise OAuthError("Authentication was cancelled by user.")
            raise OAuthError(f"OAuth error: {result['error']}. {result.get('error_description', '')}".strip())
        if result.get("state") != state:
            raise OAuthError("OAuth state mismatch; ignoring the redirect.")
        if not result.get("code"):
            raise OAuthError("No authorization code in the redirect.")
        return result["code"]

    def close(self) -> None:
        self._server.server_close()


class OAuthClient:
    """Authorization-code + PKCE client (no client secret)."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def authorization_url(self, request: AuthorizationRequest) -> str:
        params = {
            "client_id": self.settings.client_id,
            "redirect_uri": request.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.settings.scopes),
            "state": request.state,
            "code_challenge": request.code_challenge,
            "code_challenge_method": "S256",
            "access_type": "offline",  # Required to get a refresh token
            "prompt": "consent",
        }
        return f"{self.settings.authorization_endpoint}?{urllib.parse.urlencode(params)}"

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.post(self.settings.token_endpoint, data=data)
            async with httpx.AsyncClient(timeout=self.settings.timeout) as client:
                return await client.post(self.settings.token_endpoint, data=data)
        except httpx.RequestError as e:
            raise TransientNetworkError(f"Token request failed: {e}") from e

    def _parse_tokens(self, response: httpx.Response, fallback_refresh_token: str | None = None) -> TokenSet:
        try:
            payload = TokenResponsePayload.model_validate(response.json())
        except (SchemaError, ValueError) as e:
            raise OAuthError(f"Unexpected token response: {e}") from e
        return payload.to_model(self._clock(), fallback_refresh_token)

    async def exchange_code(self, request: AuthorizationRequest, code: str) -> TokenSet:
        """Exchange an authorization code for tokens."""
        response = await self._post_token(
            {
                "client_id": self.settings.client_id,
                "code": code,
                "code_verifier": request.code_verifier,
                "grant_type": "authorization_code",
                "redirect_uri": request.redirect_uri,
            }
        )
        if not response.is_success:
            logger.error(f"Token exchange failed: {response.status_code} {response.text[:200]}")
            raise OAuthError("Failed to authenticate with Google. Please try again.")
        return self._parse_tokens(response)

    async def refresh(self, refresh_token: str) -> TokenSet:
        """Exchange a refresh token for a new access token.

        Raises:
            AuthExpiredError: The provider rejected the refresh token itself
            TransientNetworkError: Any other failure
        """
        response = await self._post_token(
            {
                "client_id": self.settings.client_id,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        if response.is_success:
            return self._parse_tokens(response, fallback_refresh_token=refresh_token)

        error_code = None
        try:
            error_code = TokenErrorPayload.model_validate(response.json()).error
        except (SchemaError, ValueError):
            pass  # Unparsable body; classified as transient below

        logger.warning(f"Token refresh failed: {response.status_code} {error_code or ''}".rstrip())
        if error_code in EXPIRED_GRANT_ERRORS:
            raise AuthExpiredError()
        raise TransientNetworkError(
            f"Failed to refresh access token: {response.status_code} {error_code or response.text[:200]}",
            response.status_code,
        )

    async def authorize_interactively(
        self,
        *,
        open_browser: Callable[[str], Any] = webbrowser.open,
        receiver: LoopbackRedirectReceiver | None = None,
    ) -> TokenSet:
        """Run the full browser-based authorization and return the new tokens."""
        receiver = receiver or LoopbackRedirectReceiver()
        try:
            request = AuthorizationRequest.create(receiver.redirect_uri)
            url = self.authorization_url(request)
            logger.info("Opening browser for Google authorization")
            open_browser(url)
            code = await receiver.wait_for_code(request.state, timeout=self.settings.auth_timeout)
            return await self.exchange_code(request, code)
        finally:
            receiver.close()
