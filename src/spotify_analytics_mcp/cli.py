"""One-shot command-line client for the Spotify analytics MCP server.

Each invocation starts the server over stdio, sends a single JSON-RPC request
and prints the response, e.g.::

    spotify-analytics-cli login
    spotify-analytics-cli popularity 4iV5W9uYEdYUVa79Axb7Rh
    spotify-analytics-cli playlists "Song Name" "Artist Name"
"""

import argparse
import json
import os
import subprocess
import sys
from typing import Callable, NamedTuple, Optional

from mcp.types import LATEST_PROTOCOL_VERSION

from . import __version__

REQUEST_ID = 1


class Command(NamedTuple):
    tool: Optional[str]  # None means tools/list
    required: int
    usage: str
    arguments: Callable[[Optional[str], Optional[str]], dict]


def _none(arg1, arg2) -> dict:
    return {}


def _split(value: Optional[str]) -> list[str]:
    return [s.strip() for s in (value or "").split(",") if s.strip()]


def _explore_arguments(arg1, arg2) -> dict:
    arguments = {"artistId": arg1, "includeRelated": True}
    if arg2:
        arguments["countries"] = _split(arg2)
    return arguments


def _genre_arguments(arg1, arg2) -> dict:
    options = _split(arg2) if arg2 else ["playlists", "related"]
    return {
        "artistId": arg1,
        "includePlaylistAnalysis": "playlists" in options,
        "includeRelatedArtists": "related" in options,
    }


COMMANDS = {
    "status": Command("getAuthStatus", 0, "status", _none),
    "generate": Command(
        "generateAuthUrl", 0, "generate [STATE]",
        lambda a, b: {"state": a or "simple-test"},
    ),
    "auth": Command(
        "authenticate", 2, 'auth "CODE" "CODE_VERIFIER"',
        lambda a, b: {"code": a, "codeVerifier": b},
    ),
    "login": Command("authenticateSimple", 0, "login", _none),
    "logout": Command("logout", 0, "logout", _none),
    "profile": Command("getCurrentUserProfile", 0, "profile", _none),
    "tools": Command(None, 0, "tools", _none),
    "popularity": Command(
        "getTrackPopularity", 1, 'popularity "TRACK_ID"',
        lambda a, b: {"trackId": a},
    ),
    "album-popularity": Command(
        "getAlbumPopularity", 1, 'album-popularity "ALBUM_ID"',
        lambda a, b: {"albumId": a},
    ),
    "artist-popularity": Command(
        "getArtistPopularity", 1, 'artist-popularity "ARTIST_ID"',
        lambda a, b: {"artistId": a},
    ),
    "playlists": Command(
        "searchPlaylistsByTrack", 2, 'playlists "TRACK_NAME" "ARTIST_NAME"',
        lambda a, b: {"trackName": a, "artistName": b, "limit": 10},
    ),
    "trends": Command(
        "analyzeArtistTrends", 1, 'trends "ARTIST_ID"',
        lambda a, b: {"artistId": a},
    ),
    "search": Command(
        "searchTracks", 2, 'search "TRACK_NAME" "ARTIST_NAME"',
        lambda a, b: {"query": f'track:"{a}" artist:"{b}"', "limit": 5},
    ),
    "albums": Command(
        "searchArtistAlbums", 1, 'albums "ARTIST_NAME"',
        lambda a, b: {"artistName": a, "limit": 10},
    ),
    "album-tracks": Command(
        "getAlbumTracks", 1, 'album-tracks "ALBUM_ID"',
        lambda a, b: {"albumId": a, "limit": 50},
    ),
    "analyze-single": Command(
        "analyzeSingle", 1, 'analyze-single "TRACK_ID" [true]',
        lambda a, b: {"trackId": a, "includeAlbumTracks": b in ("true", "1")},
    ),
    "analyze-genre": Command(
        "analyzeGenre", 1, 'analyze-genre "ARTIST_ID" ["playlists,related"]',
        _genre_arguments,
    ),
    "explore-metrics": Command(
        "exploreArtistMetrics", 1, 'explore-metrics "ARTIST_ID" ["US,GB,DE"]',
        _explore_arguments,
    ),
    "simulate-trends": Command(
        "simulateMarketTrends", 1, 'simulate-trends "ARTIST_ID" [recent|career]',
        lambda a, b: {"artistId": a, "timeframe": b or "recent"},
    ),
}


def build_request(command: str, arg1: Optional[str] = None, arg2: Optional[str] = None) -> dict:
    """Translate a CLI command into a JSON-RPC 2.0 request.

    Raises:
        ValueError: Unknown command, or a required argument is missing.
    """
    spec = COMMANDS.get(command)
    if spec is None:
        raise ValueError(f"Unknown command: {command}")

    if (spec.required >= 1 and not arg1) or (spec.required >= 2 and not arg2):
        raise ValueError(f"Missing arguments for {command}\nUsage: spotify-analytics-cli {spec.usage}")

    if spec.tool is None:
        return {"jsonrpc": "2.0", "id": REQUEST_ID, "method": "tools/list"}

    return {
        "jsonrpc": "2.0",
        "id": REQUEST_ID,
        "method": "tools/call",
        "params": {"name": spec.tool, "arguments": spec.arguments(arg1, arg2)},
    }


def _write(proc: subprocess.Popen, message: dict) -> None:
    proc.stdin.write(json.dumps(message) + "\n")
    proc.stdin.flush()


def _read_response(proc: subprocess.Popen, request_id: int) -> dict:
    """Read stdout lines until the response to ``request_id`` arrives."""
    while True:
        line = proc.stdout.readline()
        if not line:
            raise RuntimeError("Server exited before responding")
        try:
            message = json.loads(line)
        except ValueError:
            continue
        if isinstance(message, dict) and message.get("id") == request_id:
            return message


def send_request(request: dict, server_command: Optional[list[str]] = None) -> dict:
    """Start the server, do the MCP handshake, send ``request``, return its response."""
    command = server_command or [sys.executable, "-m", "spotify_analytics_mcp"]
    env = {**os.environ, "MCP_LOG_LEVEL": os.environ.get("MCP_LOG_LEVEL", "WARNING")}

    proc = subprocess.Popen(
        command,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        text=True,
        env=env,
    )
    try:
        _write(proc, {
            "jsonrpc": "2.0",
            "id": 0,
            "method": "initialize",
            "params": {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "spotify-analytics-cli", "version": __version__},
            },
        })
        _read_response(proc, 0)
        _write(proc, {"jsonrpc": "2.0", "method": "notifications/initialized"})

        _write(proc, request)
        return _read_response(proc, request["id"])
    finally:
        proc.terminate()
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()


def format_response(response: dict) -> str:
    """Pretty-print a JSON-RPC response for the terminal."""
    result = response.get("result") or {}
    content = result.get("content") or []
    if content and content[0].get("text") is not None:
        text = content[0]["text"]
        try:
            return json.dumps(json.loads(text), indent=2)
        except ValueError:
            return text

    if "tools" in result:
        lines = ["Available Tools:"]
        lines += [f"{i}. {tool['name']}" for i, tool in enumerate(result["tools"], 1)]
        return "\n".join(lines)

    return json.dumps(response, indent=2)


def _usage_epilog() -> str:
    lines = ["commands:"]
    lines += [f"  {spec.usage}" for spec in COMMANDS.values()]
    return "\n".join(lines)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="spotify-analytics-cli",
        description="Call a Spotify analytics MCP tool from the command line.",
        epilog=_usage_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("command", nargs="?", choices=list(COMMANDS), metavar="command")
    parser.add_argument("arg1", nargs="?")
    parser.add_argument("arg2", nargs="?")
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        request = build_request(args.command, args.arg1, args.arg2)
    except ValueError as e:
        parser.error(str(e))

    try:
        response = send_request(request)
    except (OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_response(response))
    return 1 if "error" in response else 0


if __name__ == "__main__":
    sys.exit(main())
