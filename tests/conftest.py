"""Shared test fixtures."""

import json
import time

import pytest

from spotify_analytics_mcp.auth import TokenManager
from spotify_analytics_mcp.config import Settings
from spotify_analytics_mcp.context import build_context
from spotify_analytics_mcp.token_store import TokenStorage

TOKEN_URL = "https://accounts.spotify.com/api/token"
API_URL = "https://api.spotify.com/v1"


@pytest.fixture
def mock_config_dir(tmp_path, monkeypatch):
    """Patch the default config directory to a temp path (not created)."""
    from spotify_analytics_mcp import config
    config_dir = tmp_path / ".config" / "spotify-analytics-mcp"
    monkeypatch.setattr(config, "DEFAULT_CONFIG_DIR", config_dir)
    return config_dir


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """No Spotify variables in the environment and no .env in the working directory."""
    for name in (
        "SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URI",
        "SPOTIFY_API_BASE_URL", "SPOTIFY_ACCOUNTS_URL", "SPOTIFY_SCOPES",
        "SPOTIFY_TOKEN_FILE", "MCP_LOG_LEVEL",
    ):
        # setenv first so values loaded from .env are removed on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def token_file(tmp_path):
    """Path for the credential record (not created)."""
    return tmp_path / "tokens.json"


@pytest.fixture
def settings(token_file):
    """Settings with test credentials and a temporary token file."""
    return Settings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://127.0.0.1:8888/callback",
        token_file=token_file,
    )


@pytest.fixture
def storage(token_file):
    return TokenStorage(token_file)


@pytest.fixture
def auth(settings, storage):
    """A token manager with no stored credentials."""
    return TokenManager(settings, storage)


def _write_tokens(path, access_token="stored-access-token", expires_in=3600, refresh_token=None):
    """Write a credential record that expires ``expires_in`` seconds from now."""
    data = {
        "accessToken": access_token,
        "expiresAt": int((time.time() + expires_in) * 1000),
        "scope": "",
    }
    if refresh_token:
        data["refreshToken"] = refresh_token
    with open(path, "w") as f:
        json.dump(data, f)
    return data


@pytest.fixture
def write_tokens():
    """Factory that writes a credential record to a path."""
    return _write_tokens


@pytest.fixture
def ctx(settings):
    """Service context with no credentials."""
    return build_context(settings)


@pytest.fixture
def authed_ctx(settings, token_file):
    """Service context that starts with a fresh stored access token."""
    _write_tokens(token_file, access_token="test-access-token")
    return build_context(settings)


@pytest.fixture
def sample_artist():
    return {
        "id": "artist1",
        "name": "Test Artist",
        "popularity": 72,
        "followers": {"total": 1_500_000},
        "genres": ["indie pop", "dream pop"],
        "images": [],
        "external_urls": {"spotify": "https://open.spotify.com/artist/artist1"},
    }


@pytest.fixture
def related_artists():
    return [
        {"id": "r1", "name": "Related One", "popularity": 60,
         "followers": {"total": 200_000}, "genres": ["indie pop", "bedroom pop"]},
        {"id": "r2", "name": "Related Two", "popularity": 80,
         "followers": {"total": 3_000_000}, "genres": ["indie pop"]},
        {"id": "r3", "name": "Related Three", "popularity": 40,
         "followers": {"total": 50_000}, "genres": ["shoegaze"]},
    ]
