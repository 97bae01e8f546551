"""Tests for api module."""

import json

import pytest
import requests
import responses

from spotify_analytics_mcp.api import SpotifyClient
from spotify_analytics_mcp.errors import ErrorCode, SpotifyError

API_URL = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"


@pytest.fixture
def client(authed_ctx):
    return authed_ctx.client


class TestRequest:
    """Tests for SpotifyClient.request."""

    @responses.activate
    def test_returns_body_unchanged_with_bearer_header(self, client):
        body = {"id": "me", "display_name": "Test User", "nested": {"a": [1, 2]}}
        responses.add(responses.GET, f"{API_URL}/me", json=body, status=200)
        responses.add(responses.GET, f"{API_URL}/me", json=body, status=200)

        first = client.request("/me")
        second = client.request("/me")

        assert first == body
        assert second == body
        headers = [call.request.headers for call in responses.calls]
        assert headers[0]["Authorization"] == "Bearer test-access-token"
        assert headers[1]["Authorization"] == headers[0]["Authorization"]
        assert headers[0]["Content-Type"] == "application/json"

    @responses.activate
    def test_client_credentials_then_request(self, ctx):
        responses.add(responses.POST, TOKEN_URL, json={"access_token": "cc-token", "expires_in": 3600})
        responses.add(responses.GET, f"{API_URL}/tracks/t1", json={"id": "t1", "popularity": 85})
        responses.add(responses.GET, f"{API_URL}/tracks/t1", json={"id": "t1", "popularity": 85})
        ctx.auth.authenticate_client_credentials()

        first = ctx.client.request("/tracks/t1")
        second = ctx.client.request("/tracks/t1")

        assert first == {"id": "t1", "popularity": 85}
        assert second == first
        assert len(responses.calls) == 3
        auth_headers = [c.request.headers["Authorization"] for c in responses.calls[1:]]
        assert auth_headers == ["Bearer cc-token", "Bearer cc-token"]

    @responses.activate
    def test_caller_headers_override_defaults(self, client):
        responses.add(responses.GET, f"{API_URL}/me", json={})

        client.request("/me", headers={"Content-Type": "text/plain", "X-Extra": "1"})

        sent = responses.calls[0].request.headers
        assert sent["Content-Type"] == "text/plain"
        assert sent["X-Extra"] == "1"
        assert sent["Authorization"] == "Bearer test-access-token"

    @responses.activate
    def test_sends_method_params_and_body(self, client):
        responses.add(responses.PUT, f"{API_URL}/me/tracks", json={"ok": True})

        client.request("/me/tracks", method="PUT", params={"market": "US"}, json={"ids": ["t1"]})

        call = responses.calls[0]
        assert call.request.method == "PUT"
        assert "market=US" in call.request.url
        assert json.loads(call.request.body) == {"ids": ["t1"]}

    @responses.activate
    def test_empty_body_returns_none(self, client):
        responses.add(responses.PUT, f"{API_URL}/me/following", body="", status=204)

        assert client.request("/me/following", method="PUT") is None

    @responses.activate
    def test_invalid_json_is_network_error(self, client):
        responses.add(responses.GET, f"{API_URL}/me", body="<html>", status=200)

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        assert exc_info.value.code is ErrorCode.NETWORK_ERROR

    @responses.activate
    def test_rate_limit_uses_retry_after(self, client):
        responses.add(
            responses.GET, f"{API_URL}/me",
            json={"error": {"status": 429, "message": "API rate limit exceeded"}},
            status=429,
            headers={"Retry-After": "2"},
        )

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        error = exc_info.value
        assert error.code is ErrorCode.RATE_LIMIT_ERROR
        assert error.status_code == 429
        assert error.retry_after_ms == 2000
        assert "2000" in error.message

    @pytest.mark.parametrize("header", [None, "soon"])
    @responses.activate
    def test_rate_limit_defaults_to_one_second(self, client, header):
        responses.add(
            responses.GET, f"{API_URL}/me", status=429,
            headers={"Retry-After": header} if header else {},
        )

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        assert exc_info.value.retry_after_ms == 1000

    @pytest.mark.parametrize("status,code", [
        (400, ErrorCode.BAD_REQUEST_ERROR),
        (401, ErrorCode.AUTHENTICATION_ERROR),
        (403, ErrorCode.AUTHENTICATION_ERROR),
        (404, ErrorCode.NOT_FOUND_ERROR),
        (502, ErrorCode.INTERNAL_ERROR),
        (300, ErrorCode.INTERNAL_ERROR),
        (304, ErrorCode.INTERNAL_ERROR),
    ])
    @responses.activate
    def test_classifies_error_statuses(self, client, status, code):
        responses.add(
            responses.GET, f"{API_URL}/tracks/x",
            json={"error": {"status": status, "message": "upstream says no"}},
            status=status,
        )

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/tracks/x")

        assert exc_info.value.code is code
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "upstream says no"
        assert exc_info.value.retry_after_ms is None

    @responses.activate
    def test_malformed_error_body_uses_status_line(self, client):
        responses.add(responses.GET, f"{API_URL}/me", body="Internal oops", status=500)

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        assert exc_info.value.code is ErrorCode.INTERNAL_ERROR
        assert exc_info.value.message.startswith("HTTP 500")

    @pytest.mark.parametrize("status", [300, 304])
    @responses.activate
    def test_redirect_status_with_empty_body_is_not_success(self, client, status):
        responses.add(responses.GET, f"{API_URL}/me", body="", status=status)

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        assert exc_info.value.code is ErrorCode.INTERNAL_ERROR
        assert exc_info.value.message.startswith(f"HTTP {status}")

    @responses.activate
    def test_transport_failure_is_network_error(self, client):
        responses.add(
            responses.GET, f"{API_URL}/me",
            body=requests.exceptions.ConnectionError("DNS failure"),
        )

        with pytest.raises(SpotifyError) as exc_info:
            client.request("/me")

        assert exc_info.value.code is ErrorCode.NETWORK_ERROR
        assert exc_info.value.status_code is None

    @responses.activate
    def test_unauthenticated_makes_no_call(self, ctx):
        with pytest.raises(SpotifyError) as exc_info:
            ctx.client.request("/me")

        assert exc_info.value.code is ErrorCode.AUTHENTICATION_ERROR
        assert len(responses.calls) == 0

    @responses.activate
    def test_refreshes_near_expiry_token_before_call(self, ctx):
        responses.add(
            responses.POST, TOKEN_URL,
            json={"access_token": "short", "refresh_token": "r1", "expires_in": 200},
        )
        responses.add(
            responses.POST, TOKEN_URL,
            json={"access_token": "fresh", "expires_in": 3600},
        )
        responses.add(responses.GET, f"{API_URL}/me", json={"id": "me"})
        ctx.auth.exchange_code_for_token("code", "verifier")

        result = ctx.client.request("/me")

        assert result == {"id": "me"}
        token_calls = [c for c in responses.calls if c.request.url == TOKEN_URL]
        assert len(token_calls) == 2
        assert responses.calls[-1].request.headers["Authorization"] == "Bearer fresh"

    def test_base_url_trailing_slash_is_stripped(self, auth):
        client = SpotifyClient(auth, "https://example.test/v1/")
        assert client.base_url == "https://example.test/v1"


class TestEndpoints:
    """Tests for the endpoint helpers."""

    @responses.activate
    def test_get_tracks_drops_unknown_ids(self, client):
        responses.add(
            responses.GET, f"{API_URL}/tracks",
            json={"tracks": [{"id": "t1"}, None, {"id": "t3"}]},
        )

        tracks = client.get_tracks(["t1", "missing", "t3"])

        assert [t["id"] for t in tracks] == ["t1", "t3"]
        assert "ids=t1%2Cmissing%2Ct3" in responses.calls[0].request.url

    @responses.activate
    def test_get_tracks_rejects_more_than_fifty(self, client):
        with pytest.raises(SpotifyError) as exc_info:
            client.get_tracks([f"t{i}" for i in range(51)])

        assert exc_info.value.code is ErrorCode.BAD_REQUEST_ERROR
        assert len(responses.calls) == 0

    def test_get_tracks_empty_list(self, client):
        assert client.get_tracks([]) == []

    @responses.activate
    def test_get_track_popularity(self, client):
        responses.add(
            responses.GET, f"{API_URL}/tracks/t1",
            json={
                "id": "t1",
                "name": "Song",
                "popularity": 64,
                "artists": [{"name": "A"}, {"name": "B"}],
                "album": {"release_date": "2023-04-01"},
            },
        )

        result = client.get_track_popularity("t1")

        assert result == {
            "trackId": "t1",
            "name": "Song",
            "artists": ["A", "B"],
            "popularity": 64,
            "releaseDate": "2023-04-01",
        }

    @responses.activate
    def test_search_returns_full_result(self, client):
        body = {"tracks": {"items": [{"id": "t1"}], "total": 1}}
        responses.add(responses.GET, f"{API_URL}/search", json=body)

        result = client.search("hello", "track", limit=5, offset=10)

        assert result == body
        params = responses.calls[0].request.params
        assert params["type"] == "track"
        assert params["limit"] == "5"
        assert params["offset"] == "10"

    @responses.activate
    def test_search_playlists_by_track_query(self, client):
        responses.add(
            responses.GET, f"{API_URL}/search",
            json={"playlists": {"items": [{"id": "p1"}, None]}},
        )

        items = client.search_playlists_by_track("Song", "Artist", limit=10)

        assert items == [{"id": "p1"}, None]
        request = responses.calls[0].request
        assert "type=playlist" in request.url
        assert request.params["q"] == '"Song" Artist'

    @responses.activate
    def test_get_artist_top_tracks_defaults_to_us(self, client):
        responses.add(
            responses.GET, f"{API_URL}/artists/a1/top-tracks",
            json={"tracks": [{"id": "t1"}]},
        )

        assert client.get_artist_top_tracks("a1") == [{"id": "t1"}]
        assert "market=US" in responses.calls[0].request.url

    @responses.activate
    def test_get_artist_albums_params(self, client):
        responses.add(
            responses.GET, f"{API_URL}/artists/a1/albums",
            json={"items": [{"id": "al1"}]},
        )

        albums = client.get_artist_albums("a1", include_groups="single", market="GB", limit=5)

        assert albums == [{"id": "al1"}]
        params = responses.calls[0].request.params
        assert params["include_groups"] == "single"
        assert params["market"] == "GB"
        assert params["limit"] == "5"

    @responses.activate
    def test_get_related_artists(self, client, related_artists):
        responses.add(
            responses.GET, f"{API_URL}/artists/a1/related-artists",
            json={"artists": related_artists},
        )

        assert client.get_related_artists("a1") == related_artists

    @responses.activate
    def test_test_connection_reports_failure(self, client):
        responses.add(
            responses.GET, f"{API_URL}/me",
            json={"error": {"status": 401, "message": "The access token expired"}},
            status=401,
        )

        result = client.test_connection()

        assert result == {"success": False, "error": "The access token expired"}
