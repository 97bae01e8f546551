"""The per-process service objects shared by every tool."""

from dataclasses import dataclass

from .api import SpotifyClient
from .auth import TokenManager
from .config import Settings, resolve_token_file
from .token_store import TokenStorage


@dataclass
class ServiceContext:
    settings: Settings
    auth: TokenManager
    client: SpotifyClient


def build_context(settings: Settings) -> ServiceContext:
    """Wire up storage, token manager and API client. Loads any stored tokens."""
    storage = TokenStorage(resolve_token_file(settings))
    auth = TokenManager(settings, storage)
    client = SpotifyClient(auth, settings.api_base_url, timeout=settings.request_timeout)
    return ServiceContext(settings=settings, auth=auth, client=client)
