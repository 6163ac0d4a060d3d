"""Great-circle distance and travel-time estimation."""

from __future__ import annotations

import math


EARTH_RADIUS_KM = 6371.0
DEFAULT_TRAVEL_SPEED_KMH = 40.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimate_travel_minutes(
    distance_km: float,
    speed_kmh: float = DEFAULT_TRAVEL_SPEED_KMH,
) -> float:
    """Fixed-speed linear model: distance / speed, in minutes."""
    return distance_km / speed_kmh * 60.0
