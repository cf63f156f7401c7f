"""Pure geometry shared by every provider.

Stateless functions only: haversine distance, WGS84 geodetic <-> ECEF, and
the clamped point-to-segment projection used by ``distance_to_line``.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import TypeVar

import numpy as np

EARTH_RADIUS_METERS = 6371000.0

# WGS84 ellipsoid
WGS84_A = 6378137.0
WGS84_F = 1.0 / 298.257223563
WGS84_B = WGS84_A * (1.0 - WGS84_F)
WGS84_E2 = WGS84_F * (2.0 - WGS84_F)

P = TypeVar("P")


def haversine_distance(
    a: Sequence[float],
    b: Sequence[float],
    radius: float = EARTH_RADIUS_METERS,
) -> float:
    """Great-circle distance in meters between two (lng, lat, ...) points."""
    lng1, lat1 = a[0], a[1]
    lng2, lat2 = b[0], b[1]
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push h a hair past 1 for antipodal points.
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return radius * c


def geodetic_to_ecef(lng: float, lat: float, height: float = 0.0) -> tuple[float, float, float]:
    """WGS84 geodetic degrees/meters to Earth-centered Cartesian meters."""
    lam = math.radians(lng)
    phi = math.radians(lat)
    sin_phi = math.sin(phi)
    n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * sin_phi * sin_phi)
    x = (n + height) * math.cos(phi) * math.cos(lam)
    y = (n + height) * math.cos(phi) * math.sin(lam)
    z = (n * (1.0 - WGS84_E2) + height) * sin_phi
    return (x, y, z)


def ecef_to_geodetic(x: float, y: float, z: float) -> tuple[float, float, float]:
    """Earth-centered Cartesian meters to WGS84 (lng, lat, height).

    Bowring's method with two refinement passes, sub-millimeter for
    terrestrial heights.
    """
    lng = math.degrees(math.atan2(y, x))
    p = math.hypot(x, y)
    if p < 1e-9:
        # On the polar axis.
        lat = 90.0 if z >= 0 else -90.0
        return (lng, lat, abs(z) - WGS84_B)

    ep2 = (WGS84_A ** 2 - WGS84_B ** 2) / WGS84_B ** 2
    theta = math.atan2(z * WGS84_A, p * WGS84_B)
    phi = math.atan2(
        z + ep2 * WGS84_B * math.sin(theta) ** 3,
        p - WGS84_E2 * WGS84_A * math.cos(theta) ** 3,
    )
    for _ in range(2):
        n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * math.sin(phi) ** 2)
        h = p / math.cos(phi) - n
        phi = math.atan2(z, p * (1.0 - WGS84_E2 * n / (n + h)))

    n = WGS84_A / math.sqrt(1.0 - WGS84_E2 * math.sin(phi) ** 2)
    height = p / math.cos(phi) - n
    return (lng, math.degrees(phi), height)


def clamped_projection(
    point: Sequence[float],
    start: Sequence[float],
    end: Sequence[float],
) -> tuple[float, ...]:
    """Closest point to ``point`` on the finite segment ``start``-``end``.

    Works in any number of dimensions.  The scalar projection ``t`` is
    clamped to [0, 1], so the result never lies past either endpoint.
    A zero-length segment returns ``start``.
    """
    p = np.asarray(point, dtype=float)
    a = np.asarray(start, dtype=float)
    b = np.asarray(end, dtype=float)
    ab = b - a
    denom = float(np.dot(ab, ab))
    if denom == 0.0:
        return tuple(a.tolist())
    t = float(np.dot(p - a, ab)) / denom
    t = max(0.0, min(1.0, t))
    return tuple((a + t * ab).tolist())


def distance_to_segment(
    point: P,
    start: P,
    end: P,
    distance: Callable[[P, P], float],
    to_working: Callable[[P], Sequence[float]],
    from_working: Callable[[Sequence[float]], P],
) -> float:
    """Shortest distance from ``point`` to the segment ``start``-``end``.

    The projection is computed in a working space chosen by the caller
    (planar lng/lat, ECEF, ...) and mapped back before measuring with
    ``distance``, so every backend shares this one algorithm.
    """
    if distance(start, end) == 0.0:
        return distance(point, start)
    projected = clamped_projection(to_working(point), to_working(start), to_working(end))
    return distance(point, from_working(projected))
