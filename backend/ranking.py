"""Scoring, deduplication and ranking of merged venue lists.

Ranking uses a Bayesian average so a handful of perfect reviews cannot
outrank a venue with a long track record:

    score = (v * R + m * C) / (v + m)

R = rating, v = review count, m = reviews needed for full confidence,
C = neutral prior. With v = 0 the score is exactly C.
"""

import re

import config
from grid import grid_cell
from models import VenueRecord

_MARKER_RE = re.compile(r"^\[(google|osm)\]\s*")


def weighted_score(
    rating: float,
    review_count: int,
    m: float = config.BAYES_MIN_REVIEWS,
    prior: float = config.BAYES_PRIOR,
) -> float:
    v = float(max(review_count, 0))
    return (v * rating + m * prior) / (v + m)


def provider_marker(source: str) -> str:
    return f"[{source.upper()}]"


def strip_provider_marker(name: str) -> str:
    """Normalize a display name for matching: lowercase, trimmed, provider tag removed."""
    normalized = " ".join(name.lower().split())
    return _MARKER_RE.sub("", normalized, count=1)


def dedup_key(venue: VenueRecord) -> tuple[str, int, int]:
    cell_lat, cell_lon = grid_cell(venue.lat, venue.lon)
    return strip_provider_marker(venue.name), cell_lat, cell_lon


def deduplicate(venues: list[VenueRecord]) -> list[VenueRecord]:
    """Drop later venues sharing a normalized name and ~50 m grid cell. First one wins."""
    seen: set[tuple[str, int, int]] = set()
    unique = []
    for v in venues:
        key = dedup_key(v)
        if key in seen:
            continue
        seen.add(key)
        unique.append(v)
    return unique


def rank_venues(venues: list[VenueRecord]) -> list[VenueRecord]:
    """Weighted score descending, then distance ascending."""
    return sorted(venues, key=lambda v: (-weighted_score(v.rating, v.review_count), v.distance_km))


def format_type_string(value: str) -> str:
    """'fast_food' -> 'Fast Food'."""
    return " ".join(part.capitalize() for part in value.replace("_", " ").split())
