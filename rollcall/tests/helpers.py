"""Coordinates and settings shared by the test modules."""
from rollcall.config import Settings

# Anchor used throughout: a point on the equator keeps offsets easy to reason about.
ORIGIN = {"lat": 0.0, "lng": 0.0}
# One degree of latitude on a 6,371 km sphere is ~111,195 m.
METRES_PER_DEGREE = 111_194.93


def north_of_origin(metres: float) -> dict:
    return {"lat": metres / METRES_PER_DEGREE, "lng": 0.0}


def make_settings(**overrides) -> Settings:
    base = {
        "device_marker_secret": "test-secret",
        "geofence_radius_m": 100.0,
        "public_base_url": "https://rollcall.test",
    }
    base.update(overrides)
    return Settings(**base)
