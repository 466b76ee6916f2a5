"""Spotify OAuth authorization-code flow with persisted, refreshable tokens.

Handles:
- Serving a stored token while it is fresh
- Silent refresh of expired tokens
- Interactive consent with anti-forgery state checking
- Single-flight: concurrent callers share one refresh or consent session
"""

import asyncio
import secrets
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from ..errors import AuthenticationFailedError, NetworkError, TokenRefreshFailedError
from ..logging import get_logger
from ..models import OAuthCredential, utcnow
from .consent import ConsentHandler
from .credentials import CredentialStore

logger = get_logger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_USER_CONSENT = "awaiting_user_consent"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    DENIED = "denied"


class SpotifyAuth:
    """Obtains valid Spotify access tokens for one user."""

    AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
    TOKEN_URL = "https://accounts.spotify.com/api/token"
    SCOPE = "playlist-modify-public playlist-modify-private"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        store: CredentialStore,
        consent: ConsentHandler,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the flow.

        Args:
            client_id: Spotify application client ID
            client_secret: Spotify application client secret
            redirect_uri: OAuth redirect URI registered with the application
            store: Where the credential is persisted
            consent: Presents the authorization URL to the user
            timeout: Token endpoint timeout in seconds
            transport: Optional transport override for testing
            clock: Source of the current time
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.store = store
        self.consent = consent
        self.clock = clock
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._inflight: asyncio.Task[str] | None = None
        self.state = AuthState.AUTHENTICATED if store.load() else AuthState.UNAUTHENTICATED

    def authorize_url(self, state: str) -> str:
        """Build the user-facing consent URL."""
        query = urlencode(
            {
                "client_id": self.client_id,
                "response_type": "code",
                "redirect_uri": self.redirect_uri,
                "scope": self.SCOPE,
                "state": state,
            }
        )
        return f"{self.AUTHORIZE_URL}?{query}"

    async def get_valid_access_token(self) -> str:
        """Return an access token that is not about to expire.

        A fresh stored token is returned without any network call. Otherwise
        one refresh or consent session runs, shared by all concurrent callers.

        Raises:
            AuthenticationFailedError: consent was denied, cancelled or forged
            NetworkError: the token endpoint was unreachable
        """
        credential = self.store.load()
        if credential is not None and not credential.is_expired(self.clock()):
            return credential.access_token

        if self._inflight is None:
            self._inflight = asyncio.create_task(self._acquire())
            self._inflight.add_done_callback(self._release)
        else:
            logger.debug("joining_inflight_authentication")

        return await asyncio.shield(self._inflight)

    def _release(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        # Mark the outcome retrieved even if every waiter was cancelled
        if not task.cancelled():
            task.exception()

    async def _acquire(self) -> str:
        credential = self.store.load()
        if credential is not None:
            if not credential.is_expired(self.clock()):
                return credential.access_token
            try:
                credential = await self.refresh(credential)
            except TokenRefreshFailedError as e:
                logger.warning("token_refresh_failed", error=str(e))
                self.store.clear()
            else:
                return credential.access_token

        return await self.authorize()

    async def refresh(self, credential: OAuthCredential) -> OAuthCredential:
        """Exchange the refresh token for a new access token and persist it.

        Raises:
            TokenRefreshFailedError: the token endpoint rejected the refresh
            NetworkError: the token endpoint was unreachable
        """
        self.state = AuthState.REFRESHING
        logger.info("refreshing_spotify_token")

        try:
            response = await self._post_token(
                {"grant_type": "refresh_token", "refresh_token": credential.refresh_token}
            )
        except NetworkError:
            self.state = AuthState.UNAUTHENTICATED
            raise

        if response.status_code != 200:
            self.state = AuthState.UNAUTHENTICATED
            raise TokenRefreshFailedError(f"Token refresh rejected (status {response.status_code})")

        try:
            refreshed = self._parse_token_response(response, credential.refresh_token)
        except ValueError as e:
            self.state = AuthState.UNAUTHENTICATED
            raise TokenRefreshFailedError("Token refresh returned an invalid response") from e

        self.store.save(refreshed)
        self.state = AuthState.AUTHENTICATED
        logger.info("spotify_token_refreshed", expires_at=refreshed.expires_at.isoformat())
        return refreshed

    async def authorize(self) -> str:
        """Run the interactive consent flow and persist the resulting credential.

        Raises:
            AuthenticationFailedError: consent was denied, cancelled, or the
                callback state did not match
            NetworkError: the token endpoint was unreachable
        """
        state = secrets.token_urlsafe(16)
        self.state = AuthState.AWAITING_USER_CONSENT
        logger.info("spotify_authorization_started")

        try:
            callback_url = await self.consent(self.authorize_url(state))
        except OSError as e:
            raise self._deny(f"Could not present Spotify consent: {e}") from e

        if callback_url is None:
            raise self._deny("Spotify authorization was cancelled")

        params = parse_qs(urlparse(callback_url).query)

        def first(name: str) -> str | None:
            values = params.get(name)
            return values[0] if values else None

        error = first("error")
        if error:
            raise self._deny(f"Spotify authorization denied: {error}")

        returned_state = first("state")
        if returned_state is None or not secrets.compare_digest(returned_state, state):
            raise self._deny("Authorization callback state does not match the request")

        code = first("code")
        if not code:
            raise self._deny("Authorization callback carried no code")

        credential = await self._exchange_code(code)
        self.store.save(credential)
        self.state = AuthState.AUTHENTICATED
        logger.info("spotify_authorization_complete", expires_at=credential.expires_at.isoformat())
        return credential.access_token

    async def _exchange_code(self, code: str) -> OAuthCredential:
        try:
            response = await self._post_token(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                }
            )
        except NetworkError:
            self.state = AuthState.UNAUTHENTICATED
            raise

        if response.status_code != 200:
            raise self._deny(f"Token exchange failed (status {response.status_code})")

        try:
            return self._parse_token_response(response)
        except ValueError as e:
            raise self._deny("Token exchange returned an invalid response") from e

    async def _post_token(self, data: dict[str, str]) -> httpx.Response:
        """POST a form to the token endpoint with HTTP Basic client auth."""
        try:
            return await self._client.post(
                self.TOKEN_URL,
                data=data,
                auth=(self.client_id, self.client_secret),
            )
        except httpx.HTTPError as e:
            logger.error("token_endpoint_unreachable", error=str(e))
            raise NetworkError(e) from e

    def _parse_token_response(
        self, response: httpx.Response, previous_refresh_token: str | None = None
    ) -> OAuthCredential:
        payload: Any = response.json()
        if not isinstance(payload, dict):
            raise ValueError("token response is not an object")
        try:
            return OAuthCredential.from_token_response(payload, previous_refresh_token, now=self.clock())
        except (KeyError, TypeError) as e:
            raise ValueError(f"token response missing or malformed: {e}") from e

    def _deny(self, reason: str) -> AuthenticationFailedError:
        self.state = AuthState.DENIED
        logger.warning("spotify_authorization_failed", reason=reason)
        return AuthenticationFailedError(reason)

    async def aclose(self) -> None:
        inflight = self._inflight
        if inflight is not None:
            inflight.cancel()
            # Let the cancelled flow unwind before its client goes away
            await asyncio.gather(inflight, return_exceptions=True)
        await self._client.aclose()
