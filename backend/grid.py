"""Geo helpers: great-circle distance, distance labels, dedup grid snapping."""

import math

import config

R_KM = 6371.0  # mean Earth radius


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in kilometres between two lat/lon points (haversine formula)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return 2 * R_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return distance_km(lat1, lon1, lat2, lon2) * 1000.0


def format_distance(km: float) -> str:
    """Whole meters below 1 km, kilometres with two decimals otherwise."""
    if km < 1.0:
        return f"{km * 1000:.0f} m"
    return f"{km:.2f} km"


def grid_cell(lat: float, lon: float, step: float = config.DEDUP_GRID_DEG) -> tuple[int, int]:
    """Snap lat/lon to the nearest multiple of step and return the cell index."""
    return round(lat / step), round(lon / step)
