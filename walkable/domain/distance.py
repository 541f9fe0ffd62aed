"""
Distance calculation using the Haversine formula.

Assumption
----------
Tours are walked, so the distances involved are a few metres up to tens of
kilometres.  Great-circle distance on a spherical Earth is accurate enough
at that scale; no ellipsoid or routing correction is applied.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_M = 6_371_000.0


def distance_meters(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """Return the great-circle distance in **metres** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    a = min(a, 1.0)  # rounding near antipodes
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_km(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    return distance_meters(lat1, lon1, lat2, lon2) / 1000.0


def format_distance(meters: float) -> str:
    """Render a distance the way the walking view shows it: ``"420m"`` / ``"1.3km"``."""
    if meters < 1000:
        return f"{math.floor(meters + 0.5)}m"
    return f"{meters / 1000:.1f}km"
