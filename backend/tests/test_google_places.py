"""Tests for the Google Places adapter: pagination, filtering, photo policy."""

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from errors import ProviderError
from google_places import GooglePlacesAdapter, is_food_related, should_use_generic_photo


def place(name, types=("restaurant",), rating=4.5, reviews=100, lat=40.7130, lon=-74.0055, photo="photo-ref"):
    result = {
        "name": name,
        "place_id": f"pid-{name}",
        "types": list(types),
        "rating": rating,
        "user_ratings_total": reviews,
        "price_level": 2,
        "vicinity": f"{name} street",
        "formatted_address": f"{name} street, New York",
        "geometry": {"location": {"lat": lat, "lng": lon}},
    }
    if photo:
        result["photos"] = [{"photo_reference": photo}]
    return result


def run_adapter(handler, method, *args, **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            adapter = GooglePlacesAdapter(client, "test-key", page_delay=0)
            return await getattr(adapter, method)(*args, **kwargs)
    return asyncio.run(go())


# ---------- pure helpers ----------

def test_food_filter_whitelist():
    assert is_food_related(["restaurant", "point_of_interest"])
    assert is_food_related(["sushi_restaurant"])


def test_food_filter_substring_match():
    assert is_food_related(["some_new_eatery_type"])
    assert is_food_related(["Dining_Hall"])


def test_food_filter_rejects_non_food():
    assert not is_food_related(["lodging", "point_of_interest"])


def test_food_filter_fails_open_without_types():
    assert is_food_related([])


def test_generic_photo_policy():
    assert should_use_generic_photo("", 4.8, 500)
    assert should_use_generic_photo(config.GENERIC_PHOTO_REFERENCE, 4.8, 500)
    assert should_use_generic_photo("ref", 3.9, 500)
    assert should_use_generic_photo("ref", 4.8, 4)
    assert not should_use_generic_photo("ref", 4.0, 5)
    # unknown rating does not count against the photo
    assert not should_use_generic_photo("ref", 0.0, 50)


# ---------- nearby search ----------

def test_nearby_filters_non_food_results():
    results = [place(f"Venue {i}", lat=40.7130 + i * 0.001) for i in range(10)]
    results += [place("Hotel", types=["lodging"]), place("Gas", types=["gas_station"])]
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"status": "OK", "results": results})

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert len(venues) == 10
    assert stats.google_results_raw == 12
    assert stats.google_results_filtered == 10
    assert stats.google_pages_searched == 1

    params = calls[0].url.params
    assert "nearbysearch" in str(calls[0].url)
    assert params["type"] == "restaurant"
    assert params["radius"] == "2000"
    assert params["language"] == "en"
    assert "keyword" not in params


def test_nearby_normalizes_fields():
    def handler(request):
        return httpx.Response(200, json={"status": "OK", "results": [
            place("Good", types=["fast_food_restaurant", "food"], rating=4.6, reviews=250),
            place("Meh", rating=3.2, reviews=250),
        ]})

    venues, _ = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant", "pizza")
    good, meh = venues
    assert good.name == "Good"
    assert good.category == "Fast Food Restaurant"
    assert good.address == "Good street"
    assert good.external_id == "pid-Good"
    assert good.price_level == 2
    assert good.photo_reference == "photo-ref"
    assert good.distance_km > 0
    assert meh.photo_reference == config.GENERIC_PHOTO_REFERENCE


def test_zero_results_is_empty_not_error():
    def handler(request):
        return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "cafe")
    assert venues == []
    assert stats.google_pages_searched == 1


def test_pagination_follows_tokens():
    pages = {
        None: {"status": "OK", "results": [place("A")], "next_page_token": "t1"},
        "t1": {"status": "OK", "results": [place("B", lat=40.72)], "next_page_token": "t2"},
        "t2": {"status": "OK", "results": [place("C", lat=40.73)], "next_page_token": "t3"},
    }
    seen_tokens = []

    def handler(request):
        token = request.url.params.get("pagetoken")
        seen_tokens.append(token)
        return httpx.Response(200, json=pages[token])

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    # capped at 3 pages even though t3 was offered
    assert seen_tokens == [None, "t1", "t2"]
    assert [v.name for v in venues] == ["A", "B", "C"]
    assert stats.google_pages_searched == 3


def test_token_not_ready_retries_same_page_once():
    attempts = {"t1": 0}

    def handler(request):
        token = request.url.params.get("pagetoken")
        if token is None:
            return httpx.Response(200, json={"status": "OK", "results": [place("A")], "next_page_token": "t1"})
        attempts["t1"] += 1
        if attempts["t1"] == 1:
            return httpx.Response(200, json={"status": "INVALID_REQUEST"})
        return httpx.Response(200, json={"status": "OK", "results": [place("B", lat=40.72)]})

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert attempts["t1"] == 2
    assert [v.name for v in venues] == ["A", "B"]
    assert stats.google_pages_searched == 2


def test_token_never_ready_keeps_first_page():
    attempts = {"t1": 0}

    def handler(request):
        if request.url.params.get("pagetoken") is None:
            return httpx.Response(200, json={"status": "OK", "results": [place("A")], "next_page_token": "t1"})
        attempts["t1"] += 1
        return httpx.Response(200, json={"status": "INVALID_REQUEST"})

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert attempts["t1"] == 2
    assert [v.name for v in venues] == ["A"]
    assert stats.google_pages_searched == 1


def test_later_page_failure_returns_gathered_results():
    def handler(request):
        if request.url.params.get("pagetoken") is None:
            return httpx.Response(200, json={"status": "OK", "results": [place("A")], "next_page_token": "t1"})
        return httpx.Response(500)

    venues, _ = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert [v.name for v in venues] == ["A"]


def test_first_page_error_status_raises():
    def handler(request):
        return httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "bad key"})

    with pytest.raises(ProviderError) as exc:
        run_adapter(handler, "nearby_search", 40.7128, -74.0060, "bar", source="bar")
    assert exc.value.source == "bar"
    assert "REQUEST_DENIED" in str(exc.value)


def test_first_page_invalid_request_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"status": "INVALID_REQUEST"})

    with pytest.raises(ProviderError):
        run_adapter(handler, "nearby_search", 40.7128, -74.0060, "bar")
    assert len(calls) == 1


def test_first_page_timeout_raises():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderError) as exc:
        run_adapter(handler, "nearby_search", 40.7128, -74.0060, "cafe", source="cafe")
    assert "timed out" in str(exc.value)


def test_malformed_json_raises():
    def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    with pytest.raises(ProviderError):
        run_adapter(handler, "nearby_search", 40.7128, -74.0060, "cafe")


# ---------- text search ----------

def test_text_search_uses_query_and_formatted_address():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"status": "OK", "results": [place("Thai Place")]})

    venues, stats = run_adapter(handler, "text_search", 40.7128, -74.0060, "thai restaurant")
    assert "textsearch" in str(calls[0].url)
    assert calls[0].url.params["query"] == "thai restaurant"
    assert "type" not in calls[0].url.params
    assert venues[0].address == "Thai Place street, New York"
    assert stats.google_results_filtered == 1


def test_non_finite_rating_becomes_zero():
    body = (
        b'{"status": "OK", "results": [{"name": "Odd", "types": ["restaurant"], "rating": NaN,'
        b' "user_ratings_total": 40, "geometry": {"location": {"lat": 40.713, "lng": -74.0055}}}]}'
    )

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": "application/json"})

    venues, _ = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert venues[0].rating == 0.0


def test_malformed_place_is_skipped():
    def handler(request):
        return httpx.Response(200, json={"status": "OK", "results": [
            place("Off The Map", lat=123.0),
            place("Fine"),
        ]})

    venues, stats = run_adapter(handler, "nearby_search", 40.7128, -74.0060, "restaurant")
    assert [v.name for v in venues] == ["Fine"]
    assert stats.google_results_raw == 2
    assert stats.google_results_filtered == 1
