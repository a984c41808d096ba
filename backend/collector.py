"""Concurrent fan-out of Google searches.

Google has no single "all food" query, so one logical search becomes many
calls run concurrently:
- one Nearby Search per requested category (primary calls),
- when restaurants are requested without a keyword, one type=restaurant
  search per cuisine keyword plus Text Search for "restaurant" and "food",
- when restaurants are requested with a keyword, Text Search for
  "<keyword> restaurant" and "<keyword> food".
Cuisine and text calls are supplementary: their failures only cost recall.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine

import config
from errors import AggregationError
from google_places import GooglePlacesAdapter
from models import SearchQuery, SearchStats, VenueRecord

logger = logging.getLogger(__name__)


@dataclass
class PlannedCall:
    source: str
    place_type: str = ""
    keyword: str = ""
    text_query: str = ""
    supplementary: bool = False


def resolve_keyword(keyword: str) -> str:
    """Map a user keyword to the Google keyword; unknown keywords pass through."""
    keyword = keyword.strip()
    return config.CUISINE_KEYWORDS.get(keyword.lower(), keyword)


def plan_google_calls(categories: list[str], keyword: str = "") -> list[PlannedCall]:
    cats = categories or config.ALL_FOOD_CATEGORIES
    kw = resolve_keyword(keyword)

    # One category, no keyword: a single paginated call is enough
    if len(cats) == 1 and not kw:
        return [PlannedCall(source=cats[0], place_type=config.CATEGORY_TO_GOOGLE_TYPE[cats[0]])]

    calls = [
        PlannedCall(source=c, place_type=config.CATEGORY_TO_GOOGLE_TYPE[c], keyword=kw)
        for c in cats
    ]
    if "restaurant" in cats:
        if kw:
            text_queries = [f"{kw} restaurant", f"{kw} food"]
        else:
            calls += [
                PlannedCall(source=f"cuisine:{c}", place_type="restaurant", keyword=c, supplementary=True)
                for c in config.CUISINE_SEARCH_KEYWORDS
            ]
            text_queries = ["restaurant", "food"]
        calls += [
            PlannedCall(source=f"text:{q}", text_query=q, supplementary=True)
            for q in text_queries
        ]
    return calls


async def gather_calls(coros: dict[str, Coroutine], deadline: float | None = None) -> dict[str, Any]:
    """Run every coroutine concurrently and wait for all of them.

    deadline is an absolute event-loop time; calls still running when it
    passes are cancelled and reported as TimeoutError. Values in the result
    are either the call's return value or the exception it raised.
    """
    if not coros:
        return {}
    tasks = {source: asyncio.create_task(coro) for source, coro in coros.items()}
    timeout = None
    if deadline is not None:
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())

    try:
        _, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    finally:
        unfinished = [t for t in tasks.values() if not t.done()]
        for t in unfinished:
            t.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

    outcomes: dict[str, Any] = {}
    for source, task in tasks.items():
        if task in pending or task.cancelled():
            outcomes[source] = TimeoutError("search deadline exceeded")
        elif task.exception() is not None:
            outcomes[source] = task.exception()
        else:
            outcomes[source] = task.result()
    return outcomes


class GoogleFanOut:
    """Commercial provider: plans, runs and merges the Google calls for one query."""

    source = "google"

    def __init__(self, places: GooglePlacesAdapter):
        self.places = places

    async def search(
        self, query: SearchQuery, deadline: float | None = None
    ) -> tuple[list[VenueRecord], SearchStats]:
        calls = plan_google_calls(query.categories, query.keyword)
        logger.info("Google fan-out: %d calls at %.6f,%.6f", len(calls), query.lat, query.lon)
        results = await gather_calls({c.source: self._run(c, query) for c in calls}, deadline)

        venues: list[VenueRecord] = []
        stats = SearchStats()
        failures: list[tuple[str, BaseException]] = []
        primary_failed = 0
        for call in calls:
            outcome = results[call.source]
            if isinstance(outcome, BaseException):
                failures.append((call.source, outcome))
                if call.supplementary:
                    logger.warning("Supplementary search %s failed: %s", call.source, outcome)
                else:
                    primary_failed += 1
                    logger.error("Category search %s failed: %s", call.source, outcome)
                continue
            call_venues, call_stats = outcome
            logger.debug("Got %d venues from %s", len(call_venues), call.source)
            stats.add(call_stats)
            venues.extend(call_venues)

        stats.google_search_queries = len(calls)
        primary_total = sum(1 for c in calls if not c.supplementary)
        if not venues and primary_failed and primary_failed == primary_total:
            raise AggregationError("all category searches", failures)
        return venues, stats

    async def _run(self, call: PlannedCall, query: SearchQuery) -> tuple[list[VenueRecord], SearchStats]:
        if call.text_query:
            return await self.places.text_search(query.lat, query.lon, call.text_query, source=call.source)
        return await self.places.nearby_search(
            query.lat, query.lon, call.place_type, call.keyword, source=call.source
        )
