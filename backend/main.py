"""FastAPI application serving aggregated nearby food venues."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

import config
import db
from aggregator import Aggregator
from cache import ProximityCache
from collector import GoogleFanOut
from errors import AggregationError
from google_places import GooglePlacesAdapter
from models import PaginatedSearchResult, SearchQuery, SearchRequest, SearchStats, VenueRecord, paginate
from overpass import OverpassAdapter

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def build_aggregator(client: httpx.AsyncClient, mode: str) -> Aggregator:
    google = None
    if mode in ("google", "both"):
        if config.GOOGLE_MAPS_API_KEY:
            google = GoogleFanOut(GooglePlacesAdapter(client, config.GOOGLE_MAPS_API_KEY))
        else:
            logger.warning("GOOGLE_MAPS_API_KEY not set, Google Places disabled")
    osm = OverpassAdapter(client) if mode in ("osm", "both") else None
    return Aggregator(mode, google=google, osm=osm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        db.init_db()
        logger.info("Database initialized")
    except Exception:
        logger.exception("Database unavailable, search history disabled")

    client = httpx.AsyncClient(headers={"User-Agent": "nearby-eats/1.0"})
    cache = ProximityCache()
    app.state.http_client = client
    app.state.cache = cache
    try:
        app.state.aggregator = build_aggregator(client, config.API_PROVIDER)
        logger.info("Using API provider: %s", config.API_PROVIDER)
    except ValueError as e:
        logger.error("Search disabled: %s", e)
        app.state.aggregator = None
    try:
        yield
    finally:
        cache.close()
        await client.aclose()


app = FastAPI(title="Nearby Eats", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ---------- Search ----------

def _build_query(lat: float, lon: float, categories: list[str], keyword: str) -> SearchQuery:
    try:
        return SearchQuery(lat=lat, lon=lon, categories=categories, keyword=keyword)
    except ValidationError as e:
        raise HTTPException(400, "; ".join(err["msg"] for err in e.errors()))


async def _search(request: Request, query: SearchQuery) -> tuple[list[VenueRecord], SearchStats]:
    """Cache first for unfiltered queries, then the aggregator."""
    cache: ProximityCache = request.app.state.cache
    use_cache = query.is_unfiltered

    if use_cache:
        hit = cache.get(query.lat, query.lon)
        if hit is not None:
            logger.info("Cache hit for %.6f,%.6f", query.lat, query.lon)
            return hit

    aggregator: Aggregator | None = request.app.state.aggregator
    if aggregator is None:
        raise HTTPException(503, "No search provider configured")
    try:
        result = await aggregator.aggregate(query)
    except AggregationError as e:
        logger.error("Error finding restaurants: %s", e)
        raise HTTPException(502, f"Error finding restaurants: {e}")

    if use_cache:
        try:
            cache.set(query.lat, query.lon, result.restaurants, result.stats)
        except Exception:
            logger.exception("Failed to cache results for %.6f,%.6f", query.lat, query.lon)
    return result.restaurants, result.stats


def _record_search(query: SearchQuery, results_count: int, stats: SearchStats) -> None:
    try:
        db.record_search(
            query.lat, query.lon, query.categories, query.keyword,
            results_count, config.API_PROVIDER, stats.cached_result,
        )
        db.record_event("search", {"results": results_count, "cached": stats.cached_result})
    except Exception:
        logger.exception("Failed to record search history")


async def _respond(request: Request, query: SearchQuery, page: int, limit: int) -> PaginatedSearchResult:
    venues, stats = await _search(request, query)
    _record_search(query, len(venues), stats)
    page_items, pagination = paginate(venues, page, limit)
    return PaginatedSearchResult(restaurants=page_items, stats=stats, pagination=pagination)


def _split_categories(raw: str) -> list[str]:
    if not raw or raw == "all":
        return []
    return [c.strip() for c in raw.split(",") if c.strip()]


@app.get("/api/restaurants", response_model=PaginatedSearchResult)
async def search_restaurants(
    request: Request,
    lat: float = Query(..., description="Latitude"),
    lon: float = Query(..., description="Longitude"),
    categories: str = Query("", description="Comma separated, e.g. restaurant,cafe"),
    category: str = Query("", description="Legacy single category"),
    keyword: str = Query("", description="Cuisine or diet filter"),
    page: int = Query(1),
    limit: int = Query(config.DEFAULT_PAGE_LIMIT),
):
    query = _build_query(lat, lon, _split_categories(categories or category), keyword)
    return await _respond(request, query, page, limit)


@app.post("/api/restaurants", response_model=PaginatedSearchResult)
async def search_restaurants_post(request: Request, body: SearchRequest):
    cats = body.categories
    if not cats and body.category and body.category != "all":
        cats = [body.category]
    query = _build_query(body.lat, body.lon, cats, body.keyword)
    return await _respond(request, query, body.page, body.limit)


# ---------- Health / config / stats ----------

@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/config")
async def get_config():
    return {
        "api_provider": config.API_PROVIDER,
        "search_radius_m": config.SEARCH_RADIUS_M,
        "cache_ttl_hours": config.CACHE_TTL_HOURS,
        "cache_radius_m": config.CACHE_RADIUS_M,
        "categories": config.FOOD_CATEGORIES,
        "keywords": sorted(config.CUISINE_KEYWORDS),
    }


@app.get("/api/stats")
async def get_stats():
    try:
        total = db.get_total_searches()
        events = db.get_event_counts(datetime.now(timezone.utc) - timedelta(hours=24))
    except Exception:
        logger.exception("Failed to read analytics")
        raise HTTPException(503, "Analytics unavailable")
    return {"total_searches": total, "events_last_24h": events}
