"""Authentication and token management for the Spotify Web API.

Supports three ways to obtain a bearer token:

- Authorization code with PKCE (user-scoped access)
- Client credentials (public catalog data only)
- Refresh token (automatic, from ``get_access_token``)
"""

import hashlib
import logging
import secrets
import time
from base64 import urlsafe_b64encode
from typing import Optional
from urllib.parse import urlencode

import requests

from .config import Settings
from .errors import ErrorCode, SpotifyError
from .token_store import TokenStorage

logger = logging.getLogger(__name__)

# Refresh when fewer than this many seconds remain
REFRESH_BUFFER_SECONDS = 5 * 60


def generate_pkce() -> tuple[str, str]:
    """Generate a PKCE code_verifier and its S256 code_challenge.

    Returns:
        Tuple of (code_verifier, code_challenge). The verifier is 43
        base64url characters (32 random bytes).
    """
    code_verifier = secrets.token_urlsafe(32)
    return code_verifier, code_challenge_for(code_verifier)


def code_challenge_for(code_verifier: str) -> str:
    """SHA-256 digest of the verifier, base64url without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class TokenManager:
    """Owns the in-memory session and decides when a token is usable.

    One instance is shared by everything in the process. Concurrent callers
    that both see a near-expiry token may each trigger a refresh; the last
    response written wins.
    """

    def __init__(self, settings: Settings, storage: TokenStorage):
        self.settings = settings
        self.storage = storage
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._token_expiry: Optional[float] = None  # epoch seconds
        self._load_stored_tokens()

    def _load_stored_tokens(self) -> None:
        stored = self.storage.load_tokens()
        if stored:
            self._access_token = stored["accessToken"]
            self._refresh_token = stored.get("refreshToken")
            self._token_expiry = stored["expiresAt"] / 1000
            logger.info("Loaded stored Spotify credentials")

    def _set_tokens(self, token_data: dict) -> None:
        access_token = token_data.get("access_token")
        if not access_token:
            raise SpotifyError(
                ErrorCode.AUTHENTICATION_ERROR,
                "Token response did not include an access token",
            )

        self._access_token = access_token
        self._refresh_token = token_data.get("refresh_token") or self._refresh_token
        self._token_expiry = time.time() + int(token_data.get("expires_in", 0))

        self.storage.save_tokens({**token_data, "refresh_token": self._refresh_token})

    def _reset(self) -> None:
        self._access_token = None
        self._refresh_token = None
        self._token_expiry = None

    def _post_token(self, body: dict, action: str) -> dict:
        """POST a form to the token endpoint and return the parsed response.

        Raises:
            SpotifyError: AUTHENTICATION_ERROR on a non-2xx response,
                NETWORK_ERROR when the endpoint can't be reached.
        """
        try:
            response = requests.post(
                self.settings.token_url,
                data=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.settings.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SpotifyError(
                ErrorCode.NETWORK_ERROR, f"Failed to {action}: {e}"
            ) from e

        if not 200 <= response.status_code < 300:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            detail = (
                error_data.get("error_description")
                or error_data.get("error")
                or f"HTTP {response.status_code}"
            )
            raise SpotifyError(
                ErrorCode.AUTHENTICATION_ERROR,
                f"{action.capitalize()} failed: {detail}",
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SpotifyError(
                ErrorCode.NETWORK_ERROR, f"Failed to {action}: invalid token response"
            ) from e

    def generate_auth_url(self, state: Optional[str] = None) -> tuple[str, str]:
        """Build the authorization URL for the user to visit.

        The verifier is not kept; the caller must pass it back to
        ``exchange_code_for_token``.

        Returns:
            Tuple of (url, code_verifier).
        """
        code_verifier, code_challenge = generate_pkce()
        params = {
            "client_id": self.settings.client_id,
            "response_type": "code",
            "redirect_uri": self.settings.redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": code_challenge,
            "scope": " ".join(self.settings.scopes),
        }
        if state:
            params["state"] = state
        return f"{self.settings.authorize_url}?{urlencode(params)}", code_verifier

    def exchange_code_for_token(self, code: str, code_verifier: str) -> None:
        """Exchange an authorization code for access and refresh tokens."""
        token_data = self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
                "client_id": self.settings.client_id,
                "code_verifier": code_verifier,
            },
            "exchange code for token",
        )
        self._set_tokens(token_data)
        logger.info("Authenticated with authorization code")

    def authenticate_client_credentials(self) -> None:
        """Authenticate as the application itself. No user data is accessible."""
        token_data = self._post_token(
            {
                "grant_type": "client_credentials",
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
            },
            "authenticate with client credentials",
        )
        self._set_tokens(token_data)
        logger.info("Authenticated with client credentials")

    def refresh_access_token(self) -> None:
        """Trade the refresh token for a new access token.

        On rejection (or when there is no refresh token) the session is
        dropped and the caller must authenticate again. Network failures leave
        the session as it was.
        """
        if not self._refresh_token:
            self._reset()
            raise SpotifyError(
                ErrorCode.AUTHENTICATION_ERROR,
                "No refresh token available. Please re-authenticate.",
            )

        try:
            token_data = self._post_token(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": self._refresh_token,
                    "client_id": self.settings.client_id,
                },
                "refresh token",
            )
        except SpotifyError as e:
            if e.code is not ErrorCode.AUTHENTICATION_ERROR:
                raise
            logger.warning("Token refresh rejected: %s", e.message)
            self._reset()
            raise SpotifyError(
                ErrorCode.AUTHENTICATION_ERROR,
                f"{e.message}. Please re-authenticate.",
                e.status_code,
            ) from e

        self._set_tokens(token_data)
        logger.info("Refreshed access token")

    def get_access_token(self) -> str:
        """Return a usable access token, refreshing first if it is about to expire.

        This may make a network call and rewrite the stored credentials.

        Raises:
            SpotifyError: AUTHENTICATION_ERROR if there is no token or the
                refresh is rejected; NETWORK_ERROR if the refresh can't be sent.
        """
        if not self._access_token:
            raise SpotifyError(
                ErrorCode.AUTHENTICATION_ERROR,
                "No access token available. Please authenticate first.",
            )

        if (
            self._token_expiry is not None
            and self._token_expiry - time.time() < REFRESH_BUFFER_SECONDS
        ):
            self.refresh_access_token()

        return self._access_token

    def is_authenticated(self) -> bool:
        """True if a token is held and not yet expired.

        Unlike ``get_access_token`` this ignores the 5 minute refresh buffer.
        """
        return bool(self._access_token) and (
            self._token_expiry is None or self._token_expiry > time.time()
        )

    def clear_auth(self) -> None:
        """Forget the session, in memory and on disk."""
        self._reset()
        self.storage.clear_tokens()
        logger.info("Cleared Spotify credentials")
