"""Persisted credential record for the Spotify session.

The record is a single JSON file::

    {"accessToken": "...", "refreshToken": "...", "expiresAt": <epoch ms>, "scope": "..."}

``refreshToken`` is omitted for client-credentials tokens. A missing, empty or
unreadable file means "no credentials"; read and write errors are logged and
never raised, so a disk problem cannot fail an otherwise good login.
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Records this close to expiry are treated as absent
EXPIRY_BUFFER_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class TokenStorage:
    """Reads and writes the credential record at ``token_file``."""

    def __init__(self, token_file: Path):
        self.token_file = Path(token_file)

    def save_tokens(self, token_data: dict) -> None:
        """Persist a token endpoint response.

        Args:
            token_data: Token response with ``access_token``, ``expires_in``
                (seconds) and optionally ``refresh_token`` and ``scope``.
        """
        stored = {
            "accessToken": token_data["access_token"],
            "expiresAt": now_ms() + int(token_data.get("expires_in", 0)) * 1000,
            "scope": token_data.get("scope", ""),
        }
        if token_data.get("refresh_token"):
            stored["refreshToken"] = token_data["refresh_token"]

        try:
            with open(self.token_file, "w", encoding="utf-8") as f:
                json.dump(stored, f, indent=2)
        except OSError as e:
            logger.warning("Failed to save tokens to %s: %s", self.token_file, e)

    def load_tokens(self) -> Optional[dict]:
        """Load the stored record if it is still usable.

        Returns:
            The record dict, or None when the file is missing, unreadable,
            incomplete, or within 5 minutes of expiry.
        """
        if not self.token_file.exists():
            return None

        try:
            with open(self.token_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load tokens from %s: %s", self.token_file, e)
            return None

        if not isinstance(data, dict) or not data.get("accessToken"):
            return None

        try:
            expires_at = int(data["expiresAt"])
        except (KeyError, TypeError, ValueError):
            return None

        if expires_at - now_ms() < EXPIRY_BUFFER_MS:
            return None

        return data

    def clear_tokens(self) -> None:
        """Reset the stored record to empty."""
        if not self.token_file.exists():
            return
        try:
            with open(self.token_file, "w", encoding="utf-8") as f:
                f.write("{}")
        except OSError as e:
            logger.warning("Failed to clear tokens in %s: %s", self.token_file, e)

    def has_valid_tokens(self) -> bool:
        return self.load_tokens() is not None
