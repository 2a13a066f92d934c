"""
Geometry - Great-circle distance and coordinate helpers.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from numbers import Real
from typing import Any

__all__ = [
    "EARTH_RADIUS_METERS",
    "haversine_distance_meters",
    "is_valid_coordinate",
    "extract_coordinates",
    "proximity_score",
]

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance_meters(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in meters on a sphere of mean Earth radius
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a marginally above 1 for antipodal points
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_METERS * c


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """True iff both are finite numbers within latitude/longitude bounds."""
    if not (_is_finite_number(lat) and _is_finite_number(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def _pair_from_geojson(coordinates: Any) -> tuple[Any, Any] | None:
    """GeoJSON order is [longitude, latitude]."""
    if isinstance(coordinates, (list, tuple)) and len(coordinates) >= 2:
        return coordinates[1], coordinates[0]
    return None


def extract_coordinates(document: dict[str, Any]) -> Iterator[tuple[float, float]]:
    """
    Yield every valid (latitude, longitude) pair attached to a document.

    Reads ``geolocations[*].coordinates`` and the single
    ``location.coordinates.coordinates`` GeoJSON point. Invalid pairs are
    skipped silently.
    """
    for geo in document.get("geolocations") or []:
        if not isinstance(geo, dict):
            continue
        pair = _pair_from_geojson(geo.get("coordinates"))
        if pair and is_valid_coordinate(*pair):
            yield float(pair[0]), float(pair[1])

    location = document.get("location")
    if isinstance(location, dict):
        point = location.get("coordinates")
        if isinstance(point, dict):
            pair = _pair_from_geojson(point.get("coordinates"))
            if pair and is_valid_coordinate(*pair):
                yield float(pair[0]), float(pair[1])


def proximity_score(distance_meters: float, max_distance_meters: float) -> float:
    """1 at distance 0, falling linearly to 0 at or beyond max distance."""
    if max_distance_meters <= 0:
        raise ValueError("max_distance_meters must be positive")
    return max(0.0, 1.0 - distance_meters / max_distance_meters)
