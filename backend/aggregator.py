"""Run the configured providers concurrently and merge their venues.

Modes:
- "google": commercial fan-out only
- "osm": Overpass only
- "both": both concurrently; names get a provenance tag such as "[OSM] "
  before merging. A provider failure is tolerated as long as one survives.

Merged venues are deduplicated on normalized name + ~50 m grid cell and
ranked by weighted score, then distance.
"""

import asyncio
import logging
from typing import Protocol

import config
from collector import gather_calls
from errors import AggregationError
from models import SearchQuery, SearchResult, SearchStats, VenueRecord
from ranking import deduplicate, provider_marker, rank_venues

logger = logging.getLogger(__name__)


class VenueProvider(Protocol):
    """Common contract for the commercial and community providers."""

    source: str

    async def search(
        self, query: SearchQuery, deadline: float | None = None
    ) -> tuple[list[VenueRecord], SearchStats]:
        ...


class Aggregator:
    def __init__(
        self,
        mode: str,
        google: VenueProvider | None = None,
        osm: VenueProvider | None = None,
        deadline_s: float = config.SEARCH_DEADLINE_S,
    ):
        if mode not in config.PROVIDER_MODES:
            raise ValueError(f"unknown provider mode: {mode}")
        if mode == "google":
            providers = [google]
        elif mode == "osm":
            providers = [osm]
        else:
            providers = [google, osm]
        self.providers: list[VenueProvider] = [p for p in providers if p is not None]
        if not self.providers:
            raise ValueError(f"no provider configured for mode {mode!r}")
        if mode == "both" and len(self.providers) == 1:
            logger.warning("Mode 'both' requested but only %s is available", self.providers[0].source)
        self.mode = mode
        self.deadline_s = deadline_s

    async def search(self, lat: float, lon: float, categories: list[str] | None = None, keyword: str = "") -> SearchResult:
        return await self.aggregate(SearchQuery(lat=lat, lon=lon, categories=categories or [], keyword=keyword))

    async def aggregate(self, query: SearchQuery) -> SearchResult:
        deadline = asyncio.get_running_loop().time() + self.deadline_s
        tag_names = self.mode == "both"

        # Providers enforce the deadline themselves, so this join has none
        results = await gather_calls({p.source: p.search(query, deadline) for p in self.providers})

        merged: list[VenueRecord] = []
        stats = SearchStats()
        failures: list[tuple[str, BaseException]] = []
        for provider in self.providers:
            outcome = results[provider.source]
            if isinstance(outcome, BaseException):
                logger.error("Provider %s failed: %s", provider.source, outcome)
                failures.append((provider.source, outcome))
                continue
            venues, provider_stats = outcome
            stats.add(provider_stats)
            if tag_names:
                marker = provider_marker(provider.source)
                venues = [v.model_copy(update={"name": f"{marker} {v.name}"}) for v in venues]
            merged.extend(venues)

        if len(failures) == len(self.providers):
            if len(failures) == 1 and isinstance(failures[0][1], AggregationError):
                raise failures[0][1]
            raise AggregationError("all providers", failures)

        stats.total_before_dedup = len(merged)
        unique = deduplicate(merged)
        stats.total_after_dedup = len(unique)
        logger.info(
            "Aggregated %d venues (%d before dedup) at %.6f,%.6f",
            len(unique), len(merged), query.lat, query.lon,
        )
        return SearchResult(restaurants=rank_venues(unique), stats=stats)
