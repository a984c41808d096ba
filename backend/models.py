"""Pydantic models for venues, search statistics and API payloads."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

import config


class VenueRecord(BaseModel):
    """One venue, normalized across providers.

    Serialized with the PascalCase keys the web client reads.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    rating: float = Field(0.0, ge=0.0, le=5.0, alias="Rating")
    review_count: int = Field(0, ge=0, alias="ReviewCount")
    price_level: int | None = Field(None, alias="PriceLevel")
    category: str = Field("", alias="Type")
    lat: float = Field(ge=-90.0, le=90.0, alias="Latitude")
    lon: float = Field(ge=-180.0, le=180.0, alias="Longitude")
    address: str = Field("", alias="Address")
    distance_km: float = Field(0.0, ge=0.0, alias="Distance")
    photo_reference: str = Field("", alias="PhotoReference")
    external_id: str = Field("", alias="PlaceID")


class SearchStats(BaseModel):
    """How a result set was produced. Observational only."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    google_pages_searched: int = 0
    google_search_queries: int = 0
    google_results_raw: int = 0
    google_results_filtered: int = 0
    osm_results_total: int = 0
    total_before_dedup: int = 0
    total_after_dedup: int = 0
    cached_result: bool = False

    def add(self, other: "SearchStats") -> None:
        """Accumulate the per-call counters of another result."""
        self.google_pages_searched += other.google_pages_searched
        self.google_search_queries += other.google_search_queries
        self.google_results_raw += other.google_results_raw
        self.google_results_filtered += other.google_results_filtered
        self.osm_results_total += other.osm_results_total


class SearchQuery(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    categories: list[str] = Field(default_factory=list)
    keyword: str = ""

    @field_validator("categories")
    @classmethod
    def _known_categories(cls, value: list[str]) -> list[str]:
        cleaned = []
        for c in value:
            c = c.strip().lower()
            if not c:
                continue
            if c == "all":
                # "all" anywhere means every category
                return []
            if c not in config.FOOD_CATEGORIES:
                raise ValueError(f"unknown category: {c}")
            if c not in cleaned:
                cleaned.append(c)
        return cleaned

    @field_validator("keyword")
    @classmethod
    def _strip_keyword(cls, value: str) -> str:
        return value.strip()

    @property
    def is_unfiltered(self) -> bool:
        return not self.categories and not self.keyword


class SearchResult(BaseModel):
    restaurants: list[VenueRecord]
    stats: SearchStats


# ---------- HTTP payloads ----------

class SearchRequest(BaseModel):
    lat: float
    lon: float
    categories: list[str] = Field(default_factory=list)
    category: str = ""  # legacy single category
    keyword: str = ""
    page: int = 1
    limit: int = config.DEFAULT_PAGE_LIMIT


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    page: int
    limit: int
    total_items: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedSearchResult(BaseModel):
    restaurants: list[VenueRecord]
    stats: SearchStats
    pagination: Pagination


def paginate(items: list, page: int, limit: int) -> tuple[list, Pagination]:
    """Slice items for one page; page is clamped into range, bad limits fall back to the default."""
    if limit < 1 or limit > config.MAX_PAGE_LIMIT:
        limit = config.DEFAULT_PAGE_LIMIT
    total = len(items)
    total_pages = max(1, (total + limit - 1) // limit)
    page = min(max(page, 1), total_pages)
    start = (page - 1) * limit
    return items[start:start + limit], Pagination(
        page=page,
        limit=limit,
        total_items=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
