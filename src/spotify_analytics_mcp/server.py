"""MCP server for Spotify track, album and artist analytics.

Tools are registered under their MCP names with camelCase arguments, which is
the wire contract clients (including the bundled CLI) rely on.
"""

import logging
import sys
from typing import Literal, Optional

from mcp.server.fastmcp import FastMCP

from . import tools
from .config import load_settings
from .context import ServiceContext, build_context

logger = logging.getLogger(__name__)

SERVER_NAME = "spotify-analytics"


def create_server(ctx: ServiceContext) -> FastMCP:
    """Build a FastMCP server whose tools all share ``ctx``."""
    mcp = FastMCP(SERVER_NAME)

    # ============ AUTHENTICATION ============

    @mcp.tool(name="getAuthStatus")
    def auth_status() -> str:
        """Check whether the server currently holds an unexpired access token."""
        return tools.get_auth_status(ctx)

    @mcp.tool(name="generateAuthUrl")
    def generate_auth_url(state: Optional[str] = None) -> str:
        """
        Generate a Spotify authorization URL (PKCE) for user login.

        Args:
            state: Optional state parameter echoed back for CSRF protection

        Returns: authUrl and the codeVerifier to pass to authenticate
        """
        return tools.generate_auth_url(ctx, state)

    @mcp.tool(name="authenticate")
    def authenticate(code: str, codeVerifier: str) -> str:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the Spotify redirect
            codeVerifier: Code verifier returned by generateAuthUrl
        """
        return tools.authenticate(ctx, code, codeVerifier)

    @mcp.tool(name="authenticateSimple")
    def authenticate_simple() -> str:
        """Authenticate with client credentials. Public catalog data only, no user endpoints."""
        return tools.authenticate_simple(ctx)

    @mcp.tool(name="logout")
    def logout() -> str:
        """Forget the current session and clear stored credentials."""
        return tools.logout(ctx)

    # ============ POPULARITY ============

    @mcp.tool(name="getTrackPopularity")
    def track_popularity(trackId: str) -> str:
        """
        Get the popularity score (0-100) for a track.

        Args:
            trackId: Spotify track ID (e.g., '4iV5W9uYEdYUVa79Axb7Rh')
        """
        return tools.get_track_popularity(ctx, trackId)

    @mcp.tool(name="getAlbumPopularity")
    def album_popularity(albumId: str) -> str:
        """
        Get popularity, label and release details for an album.

        Args:
            albumId: Spotify album ID
        """
        return tools.get_album_popularity(ctx, albumId)

    @mcp.tool(name="getArtistPopularity")
    def artist_popularity(artistId: str) -> str:
        """
        Get popularity, followers and genres for an artist.

        Args:
            artistId: Spotify artist ID
        """
        return tools.get_artist_popularity(ctx, artistId)

    @mcp.tool(name="getCurrentUserProfile")
    def current_user_profile() -> str:
        """Get the logged-in user's profile. Requires authorization code login."""
        return tools.get_current_user_profile(ctx)

    # ============ SEARCH ============

    @mcp.tool(name="searchTracks")
    def search_tracks(query: str, limit: int = 20) -> str:
        """
        Search the Spotify catalog for tracks.

        Args:
            query: Search query (e.g., 'track:"song name" artist:"artist name"')
            limit: Number of tracks to return (default 20)
        """
        return tools.search_tracks(ctx, query, limit)

    @mcp.tool(name="searchArtistAlbums")
    def search_artist_albums(artistName: str, limit: int = 10) -> str:
        """
        Find an artist by name and list their albums and singles.

        Args:
            artistName: Artist name to search for
            limit: Number of albums to return (default 10)
        """
        return tools.search_artist_albums(ctx, artistName, limit)

    @mcp.tool(name="searchPlaylistsByTrack")
    def search_playlists_by_track(trackName: str, artistName: str, limit: int = 20) -> str:
        """
        Find public playlists matching a track and artist.

        Args:
            trackName: Name of the track
            artistName: Name of the artist
            limit: Number of playlists to return (default 20)
        """
        return tools.search_playlists_by_track(ctx, trackName, artistName, limit)

    # ============ ALBUMS AND TRACKS ============

    @mcp.tool(name="getAlbumTracks")
    def album_tracks(albumId: str, limit: int = 50) -> str:
        """
        Get an album and its tracks with per-track popularity.

        Args:
            albumId: Spotify album ID
            limit: Number of tracks to return (default 50)
        """
        return tools.get_album_tracks(ctx, albumId, limit)

    @mcp.tool(name="analyzeSingle")
    def analyze_single(trackId: str, includeAlbumTracks: bool = False) -> str:
        """
        Compare a track's popularity with its album.

        Args:
            trackId: Spotify track ID
            includeAlbumTracks: Also rank the track among the album's tracks (default False)
        """
        return tools.analyze_single(ctx, trackId, includeAlbumTracks)

    # ============ ARTIST ANALYTICS ============

    @mcp.tool(name="analyzeArtistTrends")
    def analyze_artist_trends(artistId: str) -> str:
        """
        Compare an artist's genres, popularity and followers with related artists.

        Args:
            artistId: Spotify artist ID
        """
        return tools.analyze_artist_trends(ctx, artistId)

    @mcp.tool(name="analyzeGenre")
    def analyze_genre(
        artistId: str,
        includePlaylistAnalysis: bool = True,
        includeRelatedArtists: bool = True,
    ) -> str:
        """
        Infer an artist's genres from tags, related artists and playlist presence.

        Args:
            artistId: Spotify artist ID
            includePlaylistAnalysis: Search playlists for the top tracks (default True)
            includeRelatedArtists: Use related artists' genres (default True)
        """
        return tools.analyze_genre(ctx, artistId, includePlaylistAnalysis, includeRelatedArtists)

    @mcp.tool(name="exploreArtistMetrics")
    def explore_artist_metrics(
        artistId: str,
        countries: Optional[list[str]] = None,
        includeRelated: bool = True,
    ) -> str:
        """
        Compare an artist's top tracks across markets.

        Args:
            artistId: Spotify artist ID
            countries: Market codes (e.g., ['US', 'GB', 'DE']); defaults to 8 major markets
            includeRelated: Include related artists analysis (default True)
        """
        return tools.explore_artist_metrics(ctx, artistId, countries, includeRelated)

    @mcp.tool(name="simulateMarketTrends")
    def simulate_market_trends(
        artistId: str,
        timeframe: Literal["recent", "career"] = "recent",
    ) -> str:
        """
        Estimate momentum and market position from releases and popularity.

        Args:
            artistId: Spotify artist ID
            timeframe: "recent" (last 12 months, default) or "career"
        """
        return tools.simulate_market_trends(ctx, artistId, timeframe)

    return mcp


def main():
    """Run the MCP server on stdio."""
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # stdout carries JSON-RPC, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    ctx = build_context(settings)
    mcp = create_server(ctx)
    logger.info("Spotify MCP Server running on stdio")
    mcp.run()


if __name__ == "__main__":
    main()
