import logging
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")

# --- Provider selection: "google", "osm" or "both" ---
PROVIDER_MODES = ("google", "osm", "both")
API_PROVIDER = os.getenv("API_PROVIDER", "google").strip().lower() or "google"
if API_PROVIDER not in PROVIDER_MODES:
    logger.warning("Unknown API_PROVIDER=%r, falling back to google", API_PROVIDER)
    API_PROVIDER = "google"

# --- Database (search history / analytics) ---
DB_PATH = os.getenv("NEARBY_EATS_DB", "nearby_eats.db")
TURSO_DATABASE_URL = os.getenv("TURSO_DATABASE_URL", "")
TURSO_AUTH_TOKEN = os.getenv("TURSO_AUTH_TOKEN", "")

# --- HTTP ---
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

# --- Search ---
SEARCH_RADIUS_M = 2000
SEARCH_LANGUAGE = "en"
MAX_PAGES = 3                  # Google returns at most 3 pages of 20
PAGE_TOKEN_DELAY_S = 2.0       # next_page_token is not valid immediately
PAGINATED_TIMEOUT_S = 30.0
OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OVERPASS_TIMEOUT_S = 10.0          # client side, single call
OVERPASS_QUERY_TIMEOUT_S = 15      # server side [timeout:N]
SEARCH_DEADLINE_S = float(os.getenv("SEARCH_DEADLINE_S", "60"))

# --- Cache ---
CACHE_TTL_HOURS = float(os.getenv("CACHE_TTL_HOURS", "48"))
CACHE_TTL_S = CACHE_TTL_HOURS * 3600.0
CACHE_RADIUS_M = 20.0
CACHE_SWEEP_INTERVAL_S = 600.0

# --- Ranking / dedup ---
DEDUP_GRID_DEG = 0.0005        # ~50 m
BAYES_MIN_REVIEWS = 15.0
BAYES_PRIOR = 3.5

# --- Photos ---
GENERIC_PHOTO_REFERENCE = "GENERIC"
MIN_RATING_FOR_PHOTO = 4.0
MIN_REVIEWS_FOR_PHOTO = 5

# --- Categories ---
FOOD_CATEGORIES = [
    "restaurant",
    "cafe",
    "bar",
    "takeaway",
    "bakery",
    "delivery",
    "nightclub",
]

# Searched when the caller asks for "all"
ALL_FOOD_CATEGORIES = [
    "restaurant",
    "cafe",
    "bar",
    "takeaway",
    "bakery",
    "delivery",
]

CATEGORY_TO_GOOGLE_TYPE: dict[str, str] = {
    "restaurant": "restaurant",
    "cafe":       "cafe",
    "bar":        "bar",
    "takeaway":   "meal_takeaway",
    "bakery":     "bakery",
    "delivery":   "meal_delivery",
    "nightclub":  "night_club",
}

CATEGORY_TO_OSM_AMENITIES: dict[str, list[str]] = {
    "all":        ["restaurant", "fast_food", "cafe", "bar", "pub", "biergarten", "food_court", "ice_cream", "bakery"],
    "restaurant": ["restaurant"],
    "cafe":       ["cafe"],
    "bar":        ["bar", "pub", "biergarten"],
    "takeaway":   ["fast_food"],
    "bakery":     ["bakery"],
    "delivery":   ["restaurant", "fast_food"],  # OSM has no delivery amenity
    "nightclub":  ["nightclub"],
}

# Searched with type=restaurant + keyword=<cuisine>. Google ignores
# cuisine-specific types as filters, so keywords are the only way in.
CUISINE_SEARCH_KEYWORDS = [
    "indian",
    "chinese",
    "thai",
    "japanese",
    "korean",
    "vietnamese",
    "italian",
    "mexican",
    "french",
    "greek",
    "mediterranean",
    "american",
    "seafood",
    "steak",
    "barbecue",
    "pizza",
    "burger",
    "sushi",
    "ramen",
    "vegetarian",
    "vegan",
    "breakfast",
    "brunch",
]

# User keyword -> Google keyword
CUISINE_KEYWORDS: dict[str, str] = {
    "healthy": "healthy food",
    "vegan": "vegan",
    "vegetarian": "vegetarian",
    "organic": "organic food",
    "gluten-free": "gluten free",
    "halal": "halal",
    "kosher": "kosher",
    "italian": "italian",
    "chinese": "chinese",
    "japanese": "japanese",
    "sushi": "sushi",
    "mexican": "mexican",
    "indian": "indian",
    "thai": "thai",
    "vietnamese": "vietnamese",
    "korean": "korean",
    "french": "french",
    "greek": "greek",
    "mediterranean": "mediterranean",
    "american": "american",
    "bbq": "bbq barbecue",
    "seafood": "seafood",
    "steakhouse": "steakhouse steak",
    "burger": "burger",
    "pizza": "pizza",
    "ramen": "ramen",
    "tacos": "tacos",
    "breakfast": "breakfast brunch",
    "dessert": "dessert ice cream",
}

# Keywords that also map to an OSM diet:<keyword>=yes tag
DIET_KEYWORDS = {"vegan", "vegetarian", "halal", "kosher"}

# Last-resort food filter for Google results
VALID_FOOD_TYPES = {
    "restaurant", "cafe", "bar", "bakery", "meal_delivery", "meal_takeaway",
    "night_club", "food", "fast_food", "pub", "biergarten", "food_court", "ice_cream",
    # cuisine-specific place types
    "indian_restaurant", "chinese_restaurant", "thai_restaurant", "japanese_restaurant",
    "korean_restaurant", "vietnamese_restaurant", "italian_restaurant", "mexican_restaurant",
    "french_restaurant", "greek_restaurant", "mediterranean_restaurant", "american_restaurant",
    "brazilian_restaurant", "spanish_restaurant", "middle_eastern_restaurant",
    "turkish_restaurant", "lebanese_restaurant", "indonesian_restaurant", "asian_restaurant",
    "african_restaurant", "seafood_restaurant", "steak_house", "barbecue_restaurant",
    "pizza_restaurant", "hamburger_restaurant", "sandwich_shop", "ramen_restaurant",
    "sushi_restaurant", "vegetarian_restaurant", "vegan_restaurant", "brunch_restaurant",
    "breakfast_restaurant", "buffet_restaurant", "fine_dining_restaurant",
    "fast_food_restaurant", "coffee_shop", "tea_house", "juice_shop", "ice_cream_shop",
    "dessert_shop", "donut_shop", "candy_store", "wine_bar", "cocktail_bar", "sports_bar",
    "beer_hall", "beer_garden",
}

# Catches place types newer than the whitelist
FOOD_TYPE_FRAGMENTS = ("restaurant", "food", "cafe", "bar", "bakery", "dining", "eatery")
