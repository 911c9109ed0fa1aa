"""
Geodesic helpers for walk routes.
"""

import math
from typing import Iterable, Sequence, Tuple

EARTH_RADIUS_METERS = 6371e3

Coordinate = Tuple[float, float]  # (lat, lon)


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two (lat, lon) points, in meters."""
    phi1 = math.radians(a[0])
    phi2 = math.radians(b[0])
    d_phi = math.radians(b[0] - a[0])
    d_lambda = math.radians(b[1] - a[1])

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def total_route_distance(route: Sequence[Coordinate]) -> int:
    """Sum of leg distances along a route, rounded to whole meters."""
    if len(route) < 2:
        return 0
    total = sum(haversine_distance(route[i], route[i + 1]) for i in range(len(route) - 1))
    return int(round(total))


def validate_location(
    current: Coordinate,
    expected: Coordinate,
    max_distance_meters: float = 5000.0
) -> bool:
    """True when current lies within max_distance_meters of expected."""
    return haversine_distance(current, expected) <= max_distance_meters


def bounding_box(points: Iterable[Coordinate]):
    """
    ((south, west), (north, east)) of the given points, or None when empty.
    """
    points = list(points)
    if not points:
        return None
    lats = [p[0] for p in points]
    lons = [p[1] for p in points]
    return (min(lats), min(lons)), (max(lats), max(lons))
