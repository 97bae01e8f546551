"""Derived analytics computed from Spotify API responses.

Everything here is a pure function of API JSON: no network, no state. The
trend "simulation" is a heuristic score over current popularity and release
activity; the API exposes no historical streaming data.
"""

import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Optional

CAREER_START = date(2000, 1, 1)
GLOBAL_HIT_SHARE = 0.6
COMMON_GENRE_SHARE = 0.3


def _round(value: float) -> int:
    """Round half up, e.g. 2.5 -> 3."""
    return math.floor(value + 0.5)


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0


def parse_release_date(value: Optional[str]) -> Optional[date]:
    """Parse a Spotify release date with day, month or year precision.

    "2021" and "2021-06" become the first day of that year or month.
    Returns None for anything unparseable.
    """
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m", "%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _today(today: Optional[date]) -> date:
    return today or date.today()


# ============ NETWORK CONTEXT ============


def calculate_percentile(value: float, values: list) -> int:
    """Percentage of ``values`` that are <= ``value``. 0 for an empty list."""
    if not values:
        return 0
    rank = sum(1 for v in values if v <= value)
    return _round(rank / len(values) * 100)


def analyze_genre_trends(artist_genres: list[str], related_artists: list[dict]) -> dict:
    """Genre frequency across related artists, and overlap with the artist's own."""
    counts = Counter()
    for artist in related_artists:
        counts.update(artist.get("genres") or [])

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return {
        "artistGenres": artist_genres,
        "commonGenresInNetwork": [
            {"genre": genre, "count": count, "percentage": count / len(related_artists) * 100}
            for genre, count in ranked[:10]
        ],
        "genreOverlap": [g for g in artist_genres if g in counts],
    }


def analyze_popularity_context(artist: dict, related_artists: list[dict]) -> dict:
    popularities = [ra["popularity"] for ra in related_artists if ra.get("popularity") is not None]
    average = _mean(popularities)
    popularity = artist.get("popularity") or 0
    return {
        "artistPopularity": artist.get("popularity"),
        "networkAveragePopularity": _round(average),
        "percentileInNetwork": calculate_percentile(popularity, popularities),
        "isAboveNetworkAverage": popularity > average,
    }


def analyze_follower_context(artist: dict, related_artists: list[dict]) -> dict:
    counts = [
        ra["followers"]["total"]
        for ra in related_artists
        if (ra.get("followers") or {}).get("total") is not None
    ]
    average = _mean(counts)
    followers = (artist.get("followers") or {}).get("total") or 0
    return {
        "artistFollowers": followers,
        "networkAverageFollowers": _round(average),
        "percentileInNetwork": calculate_percentile(followers, counts),
        "isAboveNetworkAverage": followers > average,
    }


def extract_common_genres(artists: list[dict]) -> list[str]:
    """Genres shared by at least 30% of ``artists``, most frequent first."""
    counts = Counter()
    for artist in artists:
        counts.update(artist.get("genres") or [])

    threshold = max(1, math.ceil(len(artists) * COMMON_GENRE_SHARE))
    return [
        genre
        for genre, count in sorted(counts.items(), key=lambda item: item[1], reverse=True)
        if count >= threshold
    ]


# ============ MARKETS ============


def analyze_cross_country_patterns(by_country: dict) -> dict:
    """Classify top tracks as global, regional or local hits.

    Args:
        by_country: Market code -> {"tracks": [{"name", "popularity"}, ...]}.
            Markets that failed to load should carry an empty track list.

    A track counts as a global hit when it charts in at least 60% of the
    markets, regional when it charts in more than one market but fewer, and
    local when it charts in exactly one.
    """
    countries = list(by_country)
    seen: dict[str, dict] = {}
    for country in countries:
        for track in by_country[country].get("tracks") or []:
            entry = seen.setdefault(track["name"], {"countries": [], "total": 0})
            entry["countries"].append(country)
            entry["total"] += track.get("popularity") or 0

    tracks = sorted(
        (
            {
                "name": name,
                "countriesCount": len(entry["countries"]),
                "avgPopularity": entry["total"] / len(entry["countries"]),
                "countries": entry["countries"],
            }
            for name, entry in seen.items()
        ),
        key=lambda t: (t["countriesCount"], t["avgPopularity"]),
        reverse=True,
    )

    global_threshold = math.ceil(len(countries) * GLOBAL_HIT_SHARE)
    return {
        "globalHits": [t for t in tracks if t["countriesCount"] >= global_threshold],
        "regionalHits": [t for t in tracks if 1 < t["countriesCount"] < global_threshold],
        "localHits": [t for t in tracks if t["countriesCount"] == 1],
        "mostPopularGlobally": tracks[0] if tracks else None,
    }


# ============ RELEASES AND TRENDS ============


def sort_releases(releases: list[dict]) -> list[dict]:
    """Newest first. Releases with unparseable dates go last."""
    return sorted(
        releases,
        key=lambda r: parse_release_date(r.get("release_date")) or date.min,
        reverse=True,
    )


def _released_since(releases: list[dict], cutoff: date) -> list[dict]:
    result = []
    for release in releases:
        released = parse_release_date(release.get("release_date"))
        if released is not None and released >= cutoff:
            result.append(release)
    return result


def analyze_release_patterns(
    releases: list[dict], timeframe: str = "recent", today: Optional[date] = None
) -> dict:
    """Release frequency by year and type.

    Args:
        releases: Release dicts with ``release_date`` and ``type``, newest first.
        timeframe: "recent" for the last 365 days, "career" for everything
            since 2000.
    """
    today = _today(today)
    last_year = today - timedelta(days=365)
    cutoff = last_year if timeframe == "recent" else CAREER_START

    relevant = _released_since(releases, cutoff)
    by_year = Counter()
    by_type = Counter()
    for release in relevant:
        by_year[str(parse_release_date(release["release_date"]).year)] += 1
        by_type[release.get("type")] += 1

    return {
        "releaseFrequency": {
            "byYear": dict(by_year),
            "byType": dict(by_type),
            "averagePerYear": len(relevant) / len(by_year) if by_year else 0,
        },
        "recentActivity": {
            "lastRelease": relevant[0] if relevant else None,
            "releasesLast12Months": len(_released_since(relevant, last_year)),
        },
    }


def calculate_momentum(artist: dict, recent_releases: list[dict], top_tracks: list[dict]) -> dict:
    popularity = artist.get("popularity") or 0
    avg_track_popularity = _mean([t.get("popularity") or 0 for t in top_tracks])

    score = popularity * 0.4
    score += min(len(recent_releases) * 10, 30)
    score += avg_track_popularity * 0.3

    if score > 70:
        level = "high"
    elif score > 40:
        level = "medium"
    else:
        level = "low"

    return {
        "score": min(score, 100),
        "level": level,
        "factors": {
            "artistPopularity": artist.get("popularity"),
            "recentActivity": len(recent_releases),
            "avgTrackPopularity": _round(avg_track_popularity),
        },
    }


def predict_growth(momentum: dict) -> dict:
    score = momentum["score"]
    if score > 50:
        direction = "positive"
    elif score > 30:
        direction = "stable"
    else:
        direction = "declining"

    return {
        "direction": direction,
        # No historical data, so never more than a guess
        "confidence": "low",
        "factors": [
            "Based on current popularity and recent activity",
            "Real predictions require historical streaming data",
            "Consider external factors like touring, collaborations, etc.",
        ],
    }


def assess_market_position(artist: dict) -> dict:
    followers = (artist.get("followers") or {}).get("total") or 0
    popularity = artist.get("popularity") or 0

    if followers > 1_000_000 and popularity > 70:
        tier = "mainstream"
    elif followers > 100_000 and popularity > 50:
        tier = "established"
    elif followers > 10_000 and popularity > 30:
        tier = "developing"
    else:
        tier = "emerging"

    return {
        "tier": tier,
        "followers": followers,
        "popularity": popularity,
        "genres": artist.get("genres") or [],
    }


def generate_recommendations(artist: dict, recent_releases: list[dict], momentum: dict) -> list[str]:
    recommendations = []

    if momentum["score"] < 40:
        recommendations.append("Consider increasing release frequency")
        recommendations.append("Focus on playlist placement and promotion")

    if not recent_releases:
        recommendations.append("Release new content to maintain audience engagement")

    if (artist.get("popularity") or 0) < 30:
        recommendations.append("Build fanbase through social media and live performances")
        recommendations.append("Consider collaborations with more established artists")

    return recommendations or ["Continue current strategy - metrics look positive"]


def simulate_trends(
    artist: dict, releases: list[dict], top_tracks: list[dict], today: Optional[date] = None
) -> dict:
    """Momentum, growth direction, market tier and suggestions for an artist."""
    today = _today(today)
    recent = _released_since(releases, today - timedelta(days=180))
    momentum = calculate_momentum(artist, recent, top_tracks)
    return {
        "momentum": momentum,
        "predictedGrowth": predict_growth(momentum),
        "marketPosition": assess_market_position(artist),
        "recommendations": generate_recommendations(artist, recent, momentum),
    }


# ============ ALBUMS ============


def album_track_statistics(tracks: list[dict], track_id: str) -> dict:
    """Where ``track_id`` ranks by popularity among its album's tracks."""
    popularities = [t["popularity"] for t in tracks if t.get("popularity") is not None]
    ranked = sorted(tracks, key=lambda t: t.get("popularity") or 0, reverse=True)
    rank = next((i + 1 for i, t in enumerate(ranked) if t.get("id") == track_id), 0)
    return {
        "totalTracks": len(tracks),
        "averagePopularity": _round(_mean(popularities)),
        "currentTrackRank": rank,
        "currentTrackIsTopTrack": rank == 1,
    }
