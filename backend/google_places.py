"""Google Places (legacy Nearby Search / Text Search) adapter.

Each call walks up to 3 pages of 20 results. The next_page_token needs a
moment before Google accepts it, so every follow-up page waits
PAGE_TOKEN_DELAY_S first; an INVALID_REQUEST on a follow-up page means the
token is not active yet and that page is retried once after the same delay.

Failures on the first page raise ProviderError. Failures on later pages
stop pagination and keep whatever was already gathered.
"""

import asyncio
import logging
import math

import httpx
from pydantic import ValidationError

import config
from errors import PageTokenNotReadyError, ProviderError
from grid import distance_km
from models import SearchStats, VenueRecord
from ranking import format_type_string

logger = logging.getLogger(__name__)

NEARBY_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"


def is_food_related(types: list[str]) -> bool:
    """Whitelist or substring match on place types. Untyped places pass."""
    if not types:
        return True
    for t in types:
        if t in config.VALID_FOOD_TYPES:
            return True
        lowered = t.lower()
        if any(fragment in lowered for fragment in config.FOOD_TYPE_FRAGMENTS):
            return True
    return False


def should_use_generic_photo(photo_ref: str, rating: float, review_count: int) -> bool:
    """True when a paid photo fetch is not worth it for this place."""
    if not photo_ref or photo_ref == config.GENERIC_PHOTO_REFERENCE:
        return True
    if 0 < rating < config.MIN_RATING_FOR_PHOTO:
        return True
    return review_count < config.MIN_REVIEWS_FOR_PHOTO


def _parse_place(result: dict, origin_lat: float, origin_lon: float, address_key: str) -> VenueRecord:
    location = result.get("geometry", {}).get("location", {})
    lat = float(location.get("lat", 0.0))
    lon = float(location.get("lng", 0.0))
    types = result.get("types") or []
    rating = float(result.get("rating") or 0.0)
    if not math.isfinite(rating):
        rating = 0.0
    review_count = int(result.get("user_ratings_total") or 0)

    photos = result.get("photos") or []
    photo_ref = photos[0].get("photo_reference", "") if photos else ""
    if should_use_generic_photo(photo_ref, rating, review_count):
        logger.debug(
            "Generic photo for %r (rating=%.1f, reviews=%d)",
            result.get("name", ""), rating, review_count,
        )
        photo_ref = config.GENERIC_PHOTO_REFERENCE

    return VenueRecord(
        name=result.get("name", ""),
        rating=rating,
        review_count=review_count,
        price_level=result.get("price_level"),
        category=format_type_string(types[0]) if types else "",
        lat=lat,
        lon=lon,
        address=result.get(address_key) or "",
        distance_km=distance_km(origin_lat, origin_lon, lat, lon),
        photo_reference=photo_ref,
        external_id=result.get("place_id", ""),
    )


class GooglePlacesAdapter:
    """Paginated Google Places calls normalized into VenueRecords."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        *,
        radius_m: int = config.SEARCH_RADIUS_M,
        language: str = config.SEARCH_LANGUAGE,
        max_pages: int = config.MAX_PAGES,
        page_delay: float = config.PAGE_TOKEN_DELAY_S,
        timeout: float = config.PAGINATED_TIMEOUT_S,
    ):
        self.client = client
        self.api_key = api_key
        self.radius_m = radius_m
        self.language = language
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.timeout = timeout

    async def nearby_search(
        self,
        lat: float,
        lon: float,
        place_type: str,
        keyword: str = "",
        source: str | None = None,
    ) -> tuple[list[VenueRecord], SearchStats]:
        params = self._base_params(lat, lon)
        if place_type:
            params["type"] = place_type
        if keyword:
            params["keyword"] = keyword
        source = source or place_type or "nearby"
        logger.info("Nearby search type=%r keyword=%r at %.6f,%.6f", place_type, keyword, lat, lon)
        return await self._paginate(NEARBY_SEARCH_URL, params, lat, lon, source, "vicinity")

    async def text_search(
        self,
        lat: float,
        lon: float,
        query: str,
        source: str | None = None,
    ) -> tuple[list[VenueRecord], SearchStats]:
        params = self._base_params(lat, lon)
        params["query"] = query
        source = source or f"text:{query}"
        logger.info("Text search query=%r at %.6f,%.6f", query, lat, lon)
        return await self._paginate(TEXT_SEARCH_URL, params, lat, lon, source, "formatted_address")

    def _base_params(self, lat: float, lon: float) -> dict:
        return {
            "key": self.api_key,
            "location": f"{lat},{lon}",
            "radius": self.radius_m,
            "language": self.language,
        }

    async def _paginate(
        self,
        url: str,
        params: dict,
        lat: float,
        lon: float,
        source: str,
        address_key: str,
    ) -> tuple[list[VenueRecord], SearchStats]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        venues: list[VenueRecord] = []
        stats = SearchStats()

        page = 0
        retried = False
        next_token = ""
        while page < self.max_pages:
            page_params = params
            if page > 0:
                page_params = {**params, "pagetoken": next_token}
                await asyncio.sleep(self.page_delay)
            try:
                payload = await self._fetch_page(url, page_params, deadline, source, page)
            except PageTokenNotReadyError:
                if retried:
                    logger.warning("%s: page %d token still not ready, stopping", source, page)
                    break
                retried = True
                logger.info("%s: page %d token not ready, retrying", source, page)
                continue
            except ProviderError as e:
                if page == 0:
                    raise
                logger.warning("%s: page %d failed, keeping %d results: %s", source, page, len(venues), e)
                break

            results = payload.get("results", [])
            stats.google_pages_searched += 1
            stats.google_results_raw += len(results)
            logger.debug("%s: page %d returned %d results", source, page, len(results))

            for place in results:
                if not is_food_related(place.get("types") or []):
                    logger.debug("Filtered out non-food place %r (types=%s)", place.get("name"), place.get("types"))
                    continue
                try:
                    venues.append(_parse_place(place, lat, lon, address_key))
                except (TypeError, ValueError, ValidationError) as e:
                    logger.warning("%s: skipping malformed place %r: %s", source, place.get("name"), e)

            next_token = payload.get("next_page_token", "")
            if not next_token:
                break
            page += 1
            retried = False

        stats.google_results_filtered = len(venues)
        logger.info("%s: %d venues from %d pages", source, len(venues), stats.google_pages_searched)
        return venues, stats

    async def _fetch_page(self, url: str, params: dict, deadline: float, source: str, page: int) -> dict:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise ProviderError(source, f"timed out after {self.timeout:.0f}s")
        try:
            resp = await self.client.get(url, params=params, timeout=remaining)
        except httpx.TimeoutException as e:
            raise ProviderError(source, "request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(source, f"request failed: {e}") from e

        if resp.status_code != 200:
            raise ProviderError(source, f"HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(source, "malformed JSON response") from e

        status = data.get("status", "")
        if status in ("OK", "ZERO_RESULTS"):
            return data
        if status == "INVALID_REQUEST" and page > 0:
            raise PageTokenNotReadyError(source, "next_page_token not ready")
        message = data.get("error_message", "")
        logger.error("%s: API status=%s %s", source, status, message)
        raise ProviderError(source, f"status={status} {message}".strip())
