"""Configuration for the Spotify analytics MCP server.

Settings come from environment variables, optionally seeded from a ``.env``
file in the working directory.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "spotify-analytics-mcp"
DEFAULT_API_BASE_URL = "https://api.spotify.com/v1"
DEFAULT_ACCOUNTS_URL = "https://accounts.spotify.com"
DEFAULT_REDIRECT_URI = "https://httpbin.org/anything"
DEFAULT_SCOPES = (
    "user-read-private",
    "user-read-email",
    "playlist-read-private",
    "playlist-read-collaborative",
    "user-library-read",
    "user-top-read",
)
REQUEST_TIMEOUT = 30  # seconds


def get_config_dir() -> Path:
    """Directory holding the credential record, created on first use."""
    DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    return DEFAULT_CONFIG_DIR


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    api_base_url: str = DEFAULT_API_BASE_URL
    accounts_url: str = DEFAULT_ACCOUNTS_URL
    scopes: tuple = DEFAULT_SCOPES
    token_file: Optional[Path] = None
    log_level: str = "INFO"
    request_timeout: int = REQUEST_TIMEOUT

    @property
    def authorize_url(self) -> str:
        return f"{self.accounts_url}/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.accounts_url}/api/token"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build settings from the environment.

    Args:
        env_file: Optional path to a .env file. Defaults to ``.env`` in the
            current directory when present. Existing environment variables
            always win over values in the file.

    Raises:
        ValueError: If the client id or client secret is missing.
    """
    load_dotenv(env_file or ".env")

    missing = [
        name for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET")
        if not os.getenv(name)
    ]
    if missing:
        raise ValueError(
            f"Missing required configuration: {', '.join(missing)}\n"
            "Set them in the environment or in a .env file."
        )

    scopes_env = os.getenv("SPOTIFY_SCOPES", "")
    scopes = tuple(scopes_env.split()) if scopes_env.strip() else DEFAULT_SCOPES

    token_file_env = os.getenv("SPOTIFY_TOKEN_FILE")
    token_file = Path(token_file_env).expanduser() if token_file_env else None

    log_level = os.getenv("MCP_LOG_LEVEL", "INFO").upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    return Settings(
        client_id=os.environ["SPOTIFY_CLIENT_ID"],
        client_secret=os.environ["SPOTIFY_CLIENT_SECRET"],
        redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI", DEFAULT_REDIRECT_URI),
        api_base_url=os.getenv("SPOTIFY_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        accounts_url=os.getenv("SPOTIFY_ACCOUNTS_URL", DEFAULT_ACCOUNTS_URL).rstrip("/"),
        scopes=scopes,
        token_file=token_file,
        log_level=log_level,
    )


def resolve_token_file(settings: Settings) -> Path:
    """Where the credential record lives on disk."""
    if settings.token_file is not None:
        settings.token_file.parent.mkdir(parents=True, exist_ok=True)
        return settings.token_file
    return get_config_dir() / "tokens.json"
