"""
Geofence calculator: great-circle distance on a spherical Earth.
Pure function. No I/O.
"""
from __future__ import annotations

import math

from rollcall.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """
    Haversine distance in metres between two coordinates.

    Symmetric, non-negative, and exactly 0.0 for identical points.
    """
    if a == b:
        return 0.0

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_radius(anchor: Coordinate, point: Coordinate, radius_m: float) -> bool:
    return distance_m(anchor, point) <= radius_m
