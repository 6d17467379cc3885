"""Haversine distance properties and reference distances."""
from __future__ import annotations

import pytest

from rollcall.checkin.geofence import EARTH_RADIUS_M, distance_m, within_radius
from rollcall.models import Coordinate

POINTS = [
    Coordinate(lat=0.0, lng=0.0),
    Coordinate(lat=-23.5505, lng=-46.6333),   # São Paulo
    Coordinate(lat=51.5074, lng=-0.1278),     # London
    Coordinate(lat=89.9, lng=179.9),
    Coordinate(lat=-89.9, lng=-179.9),
]


def test_earth_radius_constant() -> None:
    assert EARTH_RADIUS_M == 6_371_000.0


@pytest.mark.parametrize("a", POINTS)
@pytest.mark.parametrize("b", POINTS)
def test_distance_is_symmetric_and_non_negative(a: Coordinate, b: Coordinate) -> None:
    assert distance_m(a, b) == distance_m(b, a)
    assert distance_m(a, b) >= 0.0


@pytest.mark.parametrize("point", POINTS)
def test_distance_to_self_is_zero(point: Coordinate) -> None:
    assert distance_m(point, point) == 0.0


def test_one_degree_of_latitude() -> None:
    d = distance_m(Coordinate(lat=0.0, lng=0.0), Coordinate(lat=1.0, lng=0.0))
    assert d == pytest.approx(111_194.93, abs=0.5)


def test_antipodal_points_are_half_circumference() -> None:
    d = distance_m(Coordinate(lat=0.0, lng=0.0), Coordinate(lat=0.0, lng=180.0))
    assert d == pytest.approx(3.141592653589793 * EARTH_RADIUS_M, rel=1e-9)


def test_within_radius_boundary_is_inclusive() -> None:
    anchor = Coordinate(lat=0.0, lng=0.0)
    point = Coordinate(lat=0.0005, lng=0.0)
    d = distance_m(anchor, point)
    assert within_radius(anchor, point, d)
    assert not within_radius(anchor, point, d - 0.01)
