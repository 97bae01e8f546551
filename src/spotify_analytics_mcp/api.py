"""Authenticated access to the Spotify Web API.

``SpotifyClient.request`` is the one place outbound API calls are made. It
attaches the bearer token and turns every failure into a ``SpotifyError``.
The remaining methods are thin endpoint wrappers that return the API JSON
unchanged.
"""

import logging
from typing import Optional

import requests

from .auth import TokenManager
from .errors import ErrorCode, SpotifyError, error_for_status

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_MS = 1000
MAX_TRACKS_PER_REQUEST = 50


def _retry_after_ms(value: Optional[str]) -> int:
    """Convert a Retry-After header (seconds) to milliseconds."""
    if not value:
        return DEFAULT_RETRY_AFTER_MS
    try:
        return int(value.strip()) * 1000
    except ValueError:
        return DEFAULT_RETRY_AFTER_MS


def _error_message(response: requests.Response) -> str:
    """Pull ``error.message`` out of an error body, else use the status line."""
    message = f"HTTP {response.status_code}: {response.reason}"
    try:
        data = response.json()
    except ValueError:
        return message
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str) and error:
            return data.get("error_description") or error
    return message


class SpotifyClient:
    """Spotify Web API client bound to a shared ``TokenManager``."""

    def __init__(self, auth: TokenManager, base_url: str, timeout: int = 30):
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        json: Optional[dict] = None,
    ):
        """Call ``endpoint`` (relative to the API base URL) and return parsed JSON.

        Getting the token may refresh it first, which is a network call of
        its own.

        Raises:
            SpotifyError: classified by status (429 carries ``retry_after_ms``),
                or NETWORK_ERROR when no response was received.
        """
        access_token = self.auth.get_access_token()
        url = f"{self.base_url}{endpoint}"

        request_headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        logger.debug("%s %s", method, endpoint)
        try:
            response = requests.request(
                method,
                url,
                headers=request_headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SpotifyError(ErrorCode.NETWORK_ERROR, f"API request failed: {e}") from e

        if response.status_code == 429:
            wait_ms = _retry_after_ms(response.headers.get("Retry-After"))
            raise SpotifyError(
                ErrorCode.RATE_LIMIT_ERROR,
                f"Rate limited. Retry after {wait_ms}ms",
                response.status_code,
                retry_after_ms=wait_ms,
            )

        if not 200 <= response.status_code < 300:
            raise error_for_status(response.status_code, _error_message(response))

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise SpotifyError(
                ErrorCode.NETWORK_ERROR, f"API request failed: invalid JSON from {endpoint}"
            ) from e

    # ============ USER ============

    def get_current_user(self) -> dict:
        return self.request("/me")

    def test_connection(self) -> dict:
        """Check API connectivity with the current token."""
        try:
            return {"success": True, "user": self.get_current_user()}
        except SpotifyError as e:
            return {"success": False, "error": e.message}

    # ============ TRACKS ============

    def get_track(self, track_id: str) -> dict:
        return self.request(f"/tracks/{track_id}")

    def get_tracks(self, track_ids: list[str]) -> list[dict]:
        """Fetch up to 50 tracks in one call. Unknown IDs are dropped."""
        if len(track_ids) > MAX_TRACKS_PER_REQUEST:
            raise SpotifyError(
                ErrorCode.BAD_REQUEST_ERROR,
                f"Cannot fetch more than {MAX_TRACKS_PER_REQUEST} tracks at once",
            )
        if not track_ids:
            return []
        data = self.request("/tracks", params={"ids": ",".join(track_ids)})
        return [t for t in (data or {}).get("tracks", []) if t]

    def get_track_popularity(self, track_id: str) -> dict:
        track = self.get_track(track_id)
        return {
            "trackId": track.get("id"),
            "name": track.get("name"),
            "artists": [a.get("name") for a in track.get("artists", [])],
            "popularity": track.get("popularity"),
            "releaseDate": (track.get("album") or {}).get("release_date"),
        }

    # ============ SEARCH ============

    def search(self, query: str, search_type: str, limit: int = 20, offset: int = 0) -> dict:
        params = {"q": query, "type": search_type, "limit": limit}
        if offset:
            params["offset"] = offset
        return self.request("/search", params=params) or {}

    def search_artists(self, query: str, limit: int = 20) -> list[dict]:
        return self.search(query, "artist", limit).get("artists", {}).get("items", [])

    def search_playlists_by_track(self, track_name: str, artist_name: str, limit: int = 20) -> list[dict]:
        results = self.search(f'"{track_name}" {artist_name}', "playlist", limit)
        return (results.get("playlists") or {}).get("items") or []

    # ============ ARTISTS ============

    def get_artist(self, artist_id: str) -> dict:
        return self.request(f"/artists/{artist_id}")

    def get_related_artists(self, artist_id: str) -> list[dict]:
        return (self.request(f"/artists/{artist_id}/related-artists") or {}).get("artists", [])

    def get_artist_top_tracks(self, artist_id: str, market: str = "US") -> list[dict]:
        data = self.request(f"/artists/{artist_id}/top-tracks", params={"market": market})
        return (data or {}).get("tracks", [])

    def get_artist_albums(
        self,
        artist_id: str,
        include_groups: str = "album,single",
        market: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict]:
        params = {"include_groups": include_groups, "limit": limit}
        if market:
            params["market"] = market
        data = self.request(f"/artists/{artist_id}/albums", params=params)
        return (data or {}).get("items", [])

    # ============ ALBUMS ============

    def get_album(self, album_id: str) -> dict:
        return self.request(f"/albums/{album_id}")

    def get_album_tracks(self, album_id: str, limit: Optional[int] = None) -> list[dict]:
        params = {"limit": limit} if limit else None
        data = self.request(f"/albums/{album_id}/tracks", params=params)
        return (data or {}).get("items", [])
