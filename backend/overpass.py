"""OpenStreetMap venues via a single Overpass API query."""

import asyncio
import logging
import math
import re

import httpx
from pydantic import ValidationError

import config
from errors import ProviderError
from grid import distance_km
from models import SearchQuery, SearchStats, VenueRecord
from ranking import format_type_string

logger = logging.getLogger(__name__)

_UNSAFE_KEYWORD_RE = re.compile(r"[^a-z0-9 \-]")


def amenities_for(categories: list[str]) -> list[str]:
    """Union of OSM amenity tags for the categories, in first-seen order. Empty means all."""
    if not categories:
        return list(config.CATEGORY_TO_OSM_AMENITIES["all"])
    amenities: list[str] = []
    for cat in categories:
        for amenity in config.CATEGORY_TO_OSM_AMENITIES.get(cat, []):
            if amenity not in amenities:
                amenities.append(amenity)
    return amenities


def _clean_keyword(keyword: str) -> str:
    return _UNSAFE_KEYWORD_RE.sub("", keyword.lower()).strip()


def build_query(
    lat: float,
    lon: float,
    categories: list[str],
    keyword: str = "",
    radius_m: int = config.SEARCH_RADIUS_M,
    query_timeout: int = config.OVERPASS_QUERY_TIMEOUT_S,
) -> str:
    """Overpass QL union of node/way clauses for every amenity, plus cuisine/diet clauses for a keyword."""
    around = f"(around:{radius_m},{lat:.6f},{lon:.6f})"
    filters = [f'["amenity"="{a}"]' for a in amenities_for(categories)]

    kw = _clean_keyword(keyword)
    if kw:
        filters.append(f'["cuisine"~"{kw}",i]')
        if kw in config.DIET_KEYWORDS:
            filters.append(f'["diet:{kw}"="yes"]')

    clauses = []
    for f in filters:
        clauses.append(f"node{f}{around};")
        clauses.append(f"way{f}{around};")
    body = "\n  ".join(clauses)
    return f"[out:json][timeout:{query_timeout}];\n(\n  {body}\n);\nout center meta;"


def _matches_keyword(tags: dict, keyword: str) -> bool:
    return (
        keyword in tags.get("name", "").lower()
        or keyword in tags.get("cuisine", "").lower()
        or tags.get(f"diet:{keyword}") == "yes"
    )


def _parse_rating(raw: str | None) -> float:
    if not raw:
        return 0.0
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 5.0)


def _parse_element(elem: dict, origin_lat: float, origin_lon: float) -> VenueRecord | None:
    tags = elem.get("tags") or {}
    if elem.get("type") == "node":
        lat, lon = elem.get("lat"), elem.get("lon")
    else:
        center = elem.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None

    amenity = tags.get("amenity", "")
    cuisine = tags.get("cuisine", "")
    address = " ".join(p for p in (tags.get("addr:street", ""), tags.get("addr:housenumber", "")) if p)
    osm_id = elem.get("id")

    return VenueRecord(
        name=tags.get("name") or amenity,
        rating=_parse_rating(tags.get("rating")),
        category=format_type_string(cuisine or amenity),
        lat=float(lat),
        lon=float(lon),
        address=address,
        distance_km=distance_km(origin_lat, origin_lon, float(lat), float(lon)),
        external_id=f"{elem.get('type')}/{osm_id}" if osm_id is not None else "",
    )


class OverpassAdapter:
    """Community provider. One call, no pagination."""

    source = "osm"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str = config.OVERPASS_URL,
        radius_m: int = config.SEARCH_RADIUS_M,
        timeout: float = config.OVERPASS_TIMEOUT_S,
    ):
        self.client = client
        self.url = url
        self.radius_m = radius_m
        self.timeout = timeout

    async def search(
        self, query: SearchQuery, deadline: float | None = None
    ) -> tuple[list[VenueRecord], SearchStats]:
        timeout = self.timeout
        if deadline is not None:
            timeout = min(timeout, deadline - asyncio.get_running_loop().time())
            if timeout <= 0:
                raise ProviderError(self.source, "search deadline exceeded")

        ql = build_query(query.lat, query.lon, query.categories, query.keyword, self.radius_m)
        logger.info("Overpass search at %.6f,%.6f categories=%s keyword=%r",
                    query.lat, query.lon, query.categories or ["all"], query.keyword)
        try:
            resp = await self.client.post(self.url, data={"data": ql}, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ProviderError(self.source, "overpass request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.source, f"overpass request failed: {e}") from e
        if resp.status_code != 200:
            raise ProviderError(self.source, f"overpass returned HTTP {resp.status_code}")
        try:
            elements = resp.json().get("elements", [])
        except ValueError as e:
            raise ProviderError(self.source, "malformed overpass response") from e

        stats = SearchStats(osm_results_total=len(elements))
        keyword = _clean_keyword(query.keyword)
        venues = []
        for elem in elements:
            tags = elem.get("tags") or {}
            if keyword and not _matches_keyword(tags, keyword):
                continue
            try:
                venue = _parse_element(elem, query.lat, query.lon)
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning("Skipping malformed OSM element %s/%s: %s", elem.get("type"), elem.get("id"), e)
                continue
            if venue is not None:
                venues.append(venue)

        logger.info("Overpass: %d elements, %d venues", len(elements), len(venues))
        return venues, stats
