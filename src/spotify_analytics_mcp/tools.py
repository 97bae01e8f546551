"""Tool handlers for the Spotify analytics MCP server.

Each handler takes the shared ``ServiceContext`` plus the tool arguments and
returns the JSON text of a response envelope. Envelopes always carry
``success``. Handlers are the recovery boundary: no exception escapes them,
failures become ``{"success": false, "error": ..., "code": ..., "statusCode": ...}``.
"""

import functools
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from . import analytics
from .api import MAX_TRACKS_PER_REQUEST
from .context import ServiceContext
from .errors import ErrorCode, SpotifyError

logger = logging.getLogger(__name__)

DEFAULT_MARKETS = ["US", "GB", "DE", "FR", "ES", "IT", "CA", "AU"]
PLAYLIST_SAMPLE_TRACKS = 3
TIMEFRAMES = ("recent", "career")


def error_response(error: Exception) -> dict:
    """Convert any exception into a failure envelope."""
    if not isinstance(error, SpotifyError):
        return {"success": False, "error": str(error) or type(error).__name__}

    payload = {"success": False, "error": error.message, "code": error.code.value}
    if error.status_code is not None:
        payload["statusCode"] = error.status_code
    if error.code is ErrorCode.RATE_LIMIT_ERROR:
        payload["retryAfterMs"] = error.retry_after_ms
    return payload


def tool_handler(func):
    """Serialize a handler's dict result, turning any exception into an error envelope."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> str:
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.info("%s failed: %s", func.__name__, e)
            result = error_response(e)
        return json.dumps(result, indent=2)

    return wrapper


def _names(items: Optional[list]) -> list[str]:
    return [item.get("name") for item in items or []]


def _spotify_url(item: dict) -> Optional[str]:
    return (item.get("external_urls") or {}).get("spotify")


def _artist_summary(artist: dict) -> dict:
    return {
        "id": artist.get("id"),
        "name": artist.get("name"),
        "popularity": artist.get("popularity"),
        "followers": (artist.get("followers") or {}).get("total") or 0,
        "genres": artist.get("genres") or [],
    }


def _album_summary(album: dict) -> dict:
    return {
        "id": album.get("id"),
        "name": album.get("name"),
        "artists": _names(album.get("artists")),
        "popularity": album.get("popularity"),
        "releaseDate": album.get("release_date"),
        "totalTracks": album.get("total_tracks"),
        "albumType": album.get("album_type"),
        "genres": album.get("genres") or [],
        "label": album.get("label"),
        "spotifyUrl": _spotify_url(album),
        "images": album.get("images") or [],
    }


def _related_artists_summary(related: list[dict]) -> dict:
    return {
        "count": len(related),
        "suggestedGenres": analytics.extract_common_genres(related),
        "artists": [
            {"name": a.get("name"), "popularity": a.get("popularity"), "genres": a.get("genres")}
            for a in related[:10]
        ],
    }


def _detailed_tracks(ctx: ServiceContext, track_ids: list[str]) -> list[dict]:
    """Full track objects (with popularity) for ``track_ids``, batched per request."""
    tracks = []
    for start in range(0, len(track_ids), MAX_TRACKS_PER_REQUEST):
        tracks.extend(ctx.client.get_tracks(track_ids[start:start + MAX_TRACKS_PER_REQUEST]))
    return tracks


# ============ AUTHENTICATION ============


@tool_handler
def get_auth_status(ctx: ServiceContext) -> dict:
    return {
        "success": True,
        "isAuthenticated": ctx.auth.is_authenticated(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@tool_handler
def generate_auth_url(ctx: ServiceContext, state: Optional[str] = None) -> dict:
    url, code_verifier = ctx.auth.generate_auth_url(state)
    return {
        "success": True,
        "authUrl": url,
        "codeVerifier": code_verifier,
        "instructions": [
            "1. Visit the authUrl in your browser",
            "2. Log in to Spotify and authorize the application",
            "3. Copy the 'code' parameter from the redirect URL",
            "4. Use the 'authenticate' tool with the code and codeVerifier",
        ],
    }


@tool_handler
def authenticate(ctx: ServiceContext, code: str, code_verifier: str) -> dict:
    ctx.auth.exchange_code_for_token(code, code_verifier)
    return {
        "success": True,
        "message": "Successfully authenticated with Spotify!",
        "isAuthenticated": ctx.auth.is_authenticated(),
    }


@tool_handler
def authenticate_simple(ctx: ServiceContext) -> dict:
    ctx.auth.authenticate_client_credentials()
    return {
        "success": True,
        "message": "Successfully authenticated using client credentials!",
        "isAuthenticated": ctx.auth.is_authenticated(),
        "note": "This method works for public data access (tracks, albums, playlists)",
    }


@tool_handler
def logout(ctx: ServiceContext) -> dict:
    ctx.auth.clear_auth()
    return {
        "success": True,
        "message": "Stored Spotify credentials cleared",
        "isAuthenticated": ctx.auth.is_authenticated(),
    }


# ============ POPULARITY ============


@tool_handler
def get_track_popularity(ctx: ServiceContext, track_id: str) -> dict:
    return {"success": True, "data": ctx.client.get_track_popularity(track_id)}


@tool_handler
def get_album_popularity(ctx: ServiceContext, album_id: str) -> dict:
    album = ctx.client.get_album(album_id)
    return {
        "success": True,
        "data": {
            "albumId": album.get("id"),
            "name": album.get("name"),
            "artists": _names(album.get("artists")),
            "popularity": album.get("popularity") or 0,
            "releaseDate": album.get("release_date"),
            "totalTracks": album.get("total_tracks"),
            "albumType": album.get("album_type"),
            "genres": album.get("genres") or [],
            "label": album.get("label"),
            "spotifyUrl": _spotify_url(album),
        },
    }


@tool_handler
def get_artist_popularity(ctx: ServiceContext, artist_id: str) -> dict:
    artist = ctx.client.get_artist(artist_id)
    return {
        "success": True,
        "data": {
            "artistId": artist.get("id"),
            "name": artist.get("name"),
            "popularity": artist.get("popularity") or 0,
            "followers": (artist.get("followers") or {}).get("total") or 0,
            "genres": artist.get("genres") or [],
            "spotifyUrl": _spotify_url(artist),
            "images": artist.get("images") or [],
        },
    }


@tool_handler
def get_current_user_profile(ctx: ServiceContext) -> dict:
    user = ctx.client.get_current_user()
    return {
        "success": True,
        "user": {
            "id": user.get("id"),
            "displayName": user.get("display_name"),
            "email": user.get("email"),
            "country": user.get("country"),
            "followers": (user.get("followers") or {}).get("total") or 0,
            "product": user.get("product"),
            "profileUrl": _spotify_url(user),
        },
    }


# ============ SEARCH ============


@tool_handler
def search_tracks(ctx: ServiceContext, query: str, limit: int = 20) -> dict:
    results = ctx.client.search(query, "track", limit)
    tracks = results.get("tracks") or {}
    return {
        "success": True,
        "query": query,
        "totalFound": tracks.get("total") or 0,
        "limit": limit,
        "tracks": [
            {
                "id": t.get("id"),
                "name": t.get("name"),
                "artists": _names(t.get("artists")),
                "album": (t.get("album") or {}).get("name"),
                "releaseDate": (t.get("album") or {}).get("release_date"),
                "popularity": t.get("popularity"),
                "durationMs": t.get("duration_ms"),
                "previewUrl": t.get("preview_url"),
                "spotifyUrl": _spotify_url(t),
            }
            for t in tracks.get("items") or []
            if t
        ],
    }


@tool_handler
def search_artist_albums(ctx: ServiceContext, artist_name: str, limit: int = 10) -> dict:
    artists = ctx.client.search_artists(f'artist:"{artist_name}"', limit=1)
    if not artists:
        return {"success": False, "error": f'Artist "{artist_name}" not found'}

    artist = artists[0]
    albums = ctx.client.get_artist_albums(artist["id"], "album,single", market="US", limit=limit)
    return {
        "success": True,
        "artist": _artist_summary(artist),
        "albums": [
            {
                "id": a.get("id"),
                "name": a.get("name"),
                "releaseDate": a.get("release_date"),
                "totalTracks": a.get("total_tracks"),
                "albumType": a.get("album_type"),
                "spotifyUrl": _spotify_url(a),
                "images": a.get("images") or [],
            }
            for a in albums
        ],
        "totalAlbums": len(albums),
    }


@tool_handler
def search_playlists_by_track(
    ctx: ServiceContext, track_name: str, artist_name: str, limit: int = 20
) -> dict:
    playlists = ctx.client.search_playlists_by_track(track_name, artist_name, limit)
    return {
        "success": True,
        "query": {"trackName": track_name, "artistName": artist_name},
        "foundPlaylists": len(playlists),
        "data": [
            {
                "id": p["id"],
                "name": p.get("name"),
                "description": p.get("description"),
                "owner": (p.get("owner") or {}).get("display_name") or (p.get("owner") or {}).get("id"),
                "isPublic": p.get("public"),
                "collaborative": p.get("collaborative"),
                "totalTracks": (p.get("tracks") or {}).get("total") or 0,
                "spotifyUrl": _spotify_url(p),
                "images": p.get("images") or [],
            }
            for p in playlists
            if p and p.get("id")
        ],
    }


# ============ ALBUMS AND TRACKS ============


@tool_handler
def get_album_tracks(ctx: ServiceContext, album_id: str, limit: int = 50) -> dict:
    album = ctx.client.get_album(album_id)
    items = ctx.client.get_album_tracks(album_id, limit=limit)
    detailed = _detailed_tracks(ctx, [t["id"] for t in items if t and t.get("id")])

    tracks = [
        {
            "id": t.get("id"),
            "name": t.get("name"),
            "trackNumber": t.get("track_number"),
            "discNumber": t.get("disc_number"),
            "durationMs": t.get("duration_ms"),
            "explicit": t.get("explicit"),
            "popularity": t.get("popularity"),
            "previewUrl": t.get("preview_url"),
            "spotifyUrl": _spotify_url(t),
        }
        for t in detailed
    ]
    return {
        "success": True,
        "album": _album_summary(album),
        "tracks": tracks,
        "totalTracks": len(tracks),
    }


@tool_handler
def analyze_single(ctx: ServiceContext, track_id: str, include_album_tracks: bool = False) -> dict:
    track = ctx.client.get_track(track_id)
    album_id = (track.get("album") or {}).get("id")
    if not album_id:
        raise SpotifyError(
            ErrorCode.NOT_FOUND_ERROR,
            f"Track {track_id} has no album to compare against",
        )
    album = ctx.client.get_album(album_id)

    track_popularity = track.get("popularity") or 0
    album_popularity = album.get("popularity") or 0

    analysis = {
        "track": {
            "id": track.get("id"),
            "name": track.get("name"),
            "artists": _names(track.get("artists")),
            "popularity": track.get("popularity"),
            "durationMs": track.get("duration_ms"),
            "explicit": track.get("explicit"),
            "releaseDate": (track.get("album") or {}).get("release_date"),
            "spotifyUrl": _spotify_url(track),
        },
        "album": _album_summary(album),
        "analysis": {
            "trackVsAlbumPopularity": {
                "trackPopularity": track.get("popularity"),
                "albumPopularity": album.get("popularity"),
                "difference": track_popularity - album_popularity,
                "trackIsMorePopular": track_popularity > album_popularity,
            },
            "releaseContext": {
                "releaseDate": (track.get("album") or {}).get("release_date"),
                "albumType": album.get("album_type"),
                "isPartOfLargerWork": (album.get("total_tracks") or 0) > 1,
            },
        },
    }

    if include_album_tracks and (album.get("total_tracks") or 0) > 1:
        items = ctx.client.get_album_tracks(album_id)
        detailed = _detailed_tracks(ctx, [t["id"] for t in items if t and t.get("id")])
        tracks = [
            {
                "id": t.get("id"),
                "name": t.get("name"),
                "trackNumber": t.get("track_number"),
                "popularity": t.get("popularity"),
                "durationMs": t.get("duration_ms"),
                "isCurrentTrack": t.get("id") == track_id,
            }
            for t in detailed
        ]
        tracks.sort(key=lambda t: t.get("popularity") or 0, reverse=True)
        analysis["albumTracksAnalysis"] = {
            "tracks": tracks,
            "statistics": analytics.album_track_statistics(tracks, track_id),
        }

    return {"success": True, "data": analysis}


# ============ ARTIST ANALYTICS ============


@tool_handler
def analyze_artist_trends(ctx: ServiceContext, artist_id: str) -> dict:
    try:
        artist = ctx.client.get_artist(artist_id)
        related = ctx.client.get_related_artists(artist_id)
    except SpotifyError as e:
        payload = error_response(e)
        payload["note"] = "Related artists endpoint may not be available for all artists"
        return payload

    return {
        "success": True,
        "artist": {
            "id": artist.get("id"),
            "name": artist.get("name"),
            "popularity": artist.get("popularity"),
            "followers": (artist.get("followers") or {}).get("total") or 0,
            "genres": artist.get("genres") or [],
            "images": artist.get("images") or [],
        },
        "relatedArtists": [
            {
                "id": ra.get("id"),
                "name": ra.get("name"),
                "popularity": ra.get("popularity"),
                "followers": (ra.get("followers") or {}).get("total") or 0,
                "genres": ra.get("genres") or [],
            }
            for ra in related
        ],
        "analysis": {
            "genreTrends": analytics.analyze_genre_trends(artist.get("genres") or [], related),
            "popularityContext": analytics.analyze_popularity_context(artist, related),
            "followerContext": analytics.analyze_follower_context(artist, related),
        },
    }


def _playlist_analysis(ctx: ServiceContext, artist: dict, top_tracks: list[dict]) -> dict:
    results = []
    for track in top_tracks[:PLAYLIST_SAMPLE_TRACKS]:
        try:
            playlists = [
                p for p in ctx.client.search_playlists_by_track(track["name"], artist.get("name", ""))
                if p
            ]
        except SpotifyError as e:
            logger.warning("Playlist search failed for %s: %s", track.get("name"), e.message)
            results.append({
                "trackName": track.get("name"),
                "error": "Could not analyze playlists for this track",
            })
            continue

        if playlists:
            results.append({
                "trackName": track.get("name"),
                "playlistsFound": len(playlists),
                "samplePlaylists": [
                    {
                        "name": p.get("name"),
                        "owner": (p.get("owner") or {}).get("display_name") or (p.get("owner") or {}).get("id"),
                        "totalTracks": (p.get("tracks") or {}).get("total"),
                    }
                    for p in playlists[:5]
                ],
            })

    total = sum(r.get("playlistsFound", 0) for r in results)
    analysis = {
        "tracksAnalyzed": min(PLAYLIST_SAMPLE_TRACKS, len(top_tracks)),
        "results": results,
        "summary": {
            "totalPlaylistsFound": total,
            "averagePlaylistsPerTrack": total / len(results) if results else 0,
        },
    }
    if total == 0:
        analysis["note"] = (
            "No playlists found containing this artist's tracks. "
            "This may indicate limited playlist presence or a newer artist."
        )
    return analysis


@tool_handler
def analyze_genre(
    ctx: ServiceContext,
    artist_id: str,
    include_playlist_analysis: bool = True,
    include_related_artists: bool = True,
) -> dict:
    artist = ctx.client.get_artist(artist_id)
    top_tracks = ctx.client.get_artist_top_tracks(artist_id, "US")

    genres = artist.get("genres") or []
    genre_analysis = {"artistGenres": genres, "directGenreCount": len(genres)}

    if include_related_artists:
        try:
            related = ctx.client.get_related_artists(artist_id)
        except SpotifyError as e:
            genre_analysis["relatedArtists"] = {
                "error": "Related artists data unavailable",
                "note": "API endpoint may not be accessible for this artist",
                "statusCode": e.status_code if e.status_code is not None else "unknown",
            }
        else:
            if related:
                genre_analysis["relatedArtists"] = _related_artists_summary(related)
            else:
                genre_analysis["relatedArtists"] = {
                    "error": "No related artists found",
                    "note": "This may indicate a newer or less established artist",
                }

    if include_playlist_analysis and top_tracks:
        genre_analysis["playlistAnalysis"] = _playlist_analysis(ctx, artist, top_tracks)

    return {
        "success": True,
        "artist": _artist_summary(artist),
        "analysis": genre_analysis,
        "metadata": {
            "analysisDate": datetime.now(timezone.utc).isoformat(),
            "includedAnalyses": {
                "relatedArtists": include_related_artists,
                "playlistAnalysis": include_playlist_analysis,
            },
        },
    }


@tool_handler
def explore_artist_metrics(
    ctx: ServiceContext,
    artist_id: str,
    countries: Optional[list[str]] = None,
    include_related: bool = True,
) -> dict:
    countries = countries or DEFAULT_MARKETS
    artist = ctx.client.get_artist(artist_id)

    by_country = {}
    for country in countries:
        try:
            top_tracks = ctx.client.get_artist_top_tracks(artist_id, country)
        except SpotifyError as e:
            logger.warning("Top tracks for %s in %s failed: %s", artist_id, country, e.message)
            by_country[country] = {"error": f"Could not fetch data for {country}", "tracks": []}
            continue

        by_country[country] = {
            "tracks": [
                {
                    "id": t.get("id"),
                    "name": t.get("name"),
                    "popularity": t.get("popularity"),
                    "album": (t.get("album") or {}).get("name"),
                }
                for t in top_tracks[:5]
            ],
            "topTrack": (
                {"name": top_tracks[0].get("name"), "popularity": top_tracks[0].get("popularity")}
                if top_tracks else None
            ),
        }

    related_analysis = None
    if include_related:
        try:
            related_analysis = _related_artists_summary(ctx.client.get_related_artists(artist_id))
        except SpotifyError:
            related_analysis = {
                "error": "Could not fetch related artists data",
                "note": "This endpoint may not be available for all artists",
            }

    return {
        "success": True,
        "data": {
            "artist": _artist_summary(artist),
            "countryAnalysis": {
                "countries": countries,
                "topTracksByCountry": by_country,
                "crossCountryPatterns": analytics.analyze_cross_country_patterns(by_country),
            },
            "relatedArtistsAnalysis": related_analysis,
            "limitations": {
                "note": "Spotify API does not provide historical streaming data or detailed country-specific metrics",
                "availableData": "Top tracks by market, popularity scores, and related artists only",
                "recommendation": "For detailed streaming analytics, consider Spotify for Artists or other analytics platforms",
            },
        },
    }


@tool_handler
def simulate_market_trends(ctx: ServiceContext, artist_id: str, timeframe: str = "recent") -> dict:
    if timeframe not in TIMEFRAMES:
        raise SpotifyError(
            ErrorCode.BAD_REQUEST_ERROR,
            f"Invalid timeframe '{timeframe}'. Use 'recent' or 'career'.",
        )

    artist = ctx.client.get_artist(artist_id)
    albums = ctx.client.get_artist_albums(artist_id, "album,single", limit=50)
    top_tracks = ctx.client.get_artist_top_tracks(artist_id, "US")

    releases = analytics.sort_releases([
        {
            "id": a.get("id"),
            "name": a.get("name"),
            "release_date": a.get("release_date"),
            "type": a.get("album_type"),
            "total_tracks": a.get("total_tracks"),
        }
        for a in albums
    ])

    return {
        "success": True,
        "artist": _artist_summary(artist),
        "releaseAnalysis": {
            "totalReleases": len(releases),
            "recentReleases": releases[:10],
            "patterns": analytics.analyze_release_patterns(releases, timeframe),
        },
        "simulatedTrends": analytics.simulate_trends(artist, releases, top_tracks),
        "limitations": {
            "note": "This is a simulation based on available public data",
            "dataLimitations": [
                "No access to real streaming numbers",
                "No historical trend data available via API",
                "Popularity scores are current, not historical",
                "Market data is limited to top tracks per country",
            ],
            "recommendation": "For accurate market trends, use Spotify for Artists analytics or third-party music analytics platforms",
        },
    }
