"""Tests for token_store module."""

import json
import logging
import time

import pytest

from spotify_analytics_mcp.token_store import TokenStorage


class TestSaveTokens:
    """Tests for TokenStorage.save_tokens."""

    def test_writes_record_with_absolute_expiry(self, storage, token_file):
        """Should store expiresAt as epoch milliseconds."""
        before = int(time.time() * 1000)
        storage.save_tokens({
            "access_token": "abc",
            "refresh_token": "refresh",
            "expires_in": 3600,
            "scope": "user-read-private",
        })
        after = int(time.time() * 1000)

        with open(token_file) as f:
            data = json.load(f)

        assert data["accessToken"] == "abc"
        assert data["refreshToken"] == "refresh"
        assert data["scope"] == "user-read-private"
        assert before + 3_600_000 <= data["expiresAt"] <= after + 3_600_000

    def test_omits_missing_refresh_token(self, storage, token_file):
        """Client-credentials responses have no refresh token."""
        storage.save_tokens({"access_token": "abc", "expires_in": 3600})

        with open(token_file) as f:
            data = json.load(f)

        assert "refreshToken" not in data
        assert data["scope"] == ""

    def test_write_failure_is_logged_not_raised(self, tmp_path, caplog):
        """A disk error must not fail the caller."""
        storage = TokenStorage(tmp_path / "missing-dir" / "tokens.json")

        with caplog.at_level(logging.WARNING):
            storage.save_tokens({"access_token": "abc", "expires_in": 3600})

        assert "Failed to save tokens" in caplog.text


class TestLoadTokens:
    """Tests for TokenStorage.load_tokens."""

    def test_returns_fresh_record(self, storage):
        """A record saved with a long lifetime should load back."""
        storage.save_tokens({"access_token": "abc", "expires_in": 3600})

        result = storage.load_tokens()

        assert result is not None
        assert result["accessToken"] == "abc"

    @pytest.mark.parametrize("expires_in", [0, 200, 299])
    def test_rejects_records_inside_buffer(self, storage, expires_in):
        """Records expiring within 5 minutes are treated as absent."""
        storage.save_tokens({"access_token": "abc", "expires_in": expires_in})

        assert storage.load_tokens() is None

    def test_accepts_record_just_outside_buffer(self, storage):
        storage.save_tokens({"access_token": "abc", "expires_in": 310})

        assert storage.load_tokens() is not None

    def test_returns_none_when_missing(self, storage):
        assert storage.load_tokens() is None

    def test_returns_none_on_invalid_json(self, storage, token_file):
        """Corrupt files count as no record."""
        token_file.write_text("not valid json {{{")

        assert storage.load_tokens() is None

    def test_returns_none_for_cleared_record(self, storage, token_file):
        token_file.write_text("{}")

        assert storage.load_tokens() is None

    def test_returns_none_without_expiry(self, storage, token_file):
        token_file.write_text(json.dumps({"accessToken": "abc"}))

        assert storage.load_tokens() is None

    def test_has_valid_tokens(self, storage, token_file, write_tokens):
        assert storage.has_valid_tokens() is False

        write_tokens(token_file, expires_in=3600)

        assert storage.has_valid_tokens() is True


class TestClearTokens:
    """Tests for TokenStorage.clear_tokens."""

    def test_resets_file_to_empty_object(self, storage, token_file, write_tokens):
        write_tokens(token_file)

        storage.clear_tokens()

        assert json.loads(token_file.read_text()) == {}
        assert storage.load_tokens() is None

    def test_does_not_create_missing_file(self, storage, token_file):
        storage.clear_tokens()

        assert not token_file.exists()
