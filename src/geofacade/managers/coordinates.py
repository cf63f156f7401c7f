"""CoordinateHelper - conversions between geodetic, projected and screen space.

Screen conversions use whatever the active backend exposes.  Distances use
the backend's geodesic routine when it has one, otherwise haversine.  The
point-to-segment distance is the same clamped projection for every
backend; only the working space it projects in differs (planar degrees for
the 2D engines, Earth-centered meters for the globe).
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from geofacade import geometry
from geofacade.managers.projection import EARTH_RADIUS, ProjectionManager
from geofacade.types import (
    ORIGIN_GEODETIC,
    ORIGIN_SCREEN,
    GeodeticPoint,
    ProjectedPoint,
    ScreenPoint,
)

if TYPE_CHECKING:
    from geofacade.backends.base import MapBackend

# Web Mercator tiles are 256 px wide at zoom 0.
TILE_SIZE = 256


class CoordinateHelper:
    """Round-trip conversions and distance queries against one backend."""

    def __init__(self, backend: MapBackend | None,
                 projection: ProjectionManager | None = None) -> None:
        self._backend = backend
        self._projection = projection or ProjectionManager(backend)
        self._destroyed = False

    @property
    def ready(self) -> bool:
        return self._backend is not None and self._backend.engine is not None

    # ------------------------------------------------------------------
    # Screen <-> geodetic
    # ------------------------------------------------------------------

    def lng_lat_to_screen(self, lng_lat: Sequence[float]) -> ScreenPoint:
        """Viewport pixels for ``lng_lat``; (0, 0) when not renderable."""
        if not self.ready:
            return ORIGIN_SCREEN
        pixel = self._backend.project(GeodeticPoint.parse(lng_lat))
        return pixel if pixel is not None else ORIGIN_SCREEN

    def screen_to_lng_lat(self, pixel: Sequence[float]) -> GeodeticPoint:
        """Geodetic point under ``pixel``; (0, 0) when off the map."""
        if not self.ready:
            return ORIGIN_GEODETIC
        point = self._backend.unproject(ScreenPoint(float(pixel[0]), float(pixel[1])))
        return point if point is not None else ORIGIN_GEODETIC

    # ------------------------------------------------------------------
    # Projected <-> geodetic
    # ------------------------------------------------------------------

    def lng_lat_to_map(self, lng_lat: Sequence[float], target: str = "EPSG:3857") -> ProjectedPoint:
        if target == "EPSG:3857":
            return self._projection.lng_lat_to_web_mercator(lng_lat)
        x, y = self._projection.transform(lng_lat[:2], "EPSG:4326", target)[:2]
        return ProjectedPoint(x, y)

    def map_to_lng_lat(self, coord: Sequence[float], source: str = "EPSG:3857") -> GeodeticPoint:
        if source == "EPSG:3857":
            return self._projection.web_mercator_to_lng_lat(coord)
        lng, lat = self._projection.transform(coord[:2], source, "EPSG:4326")[:2]
        return GeodeticPoint(lng, lat)

    def map_to_screen(self, coord: Sequence[float], source: str = "EPSG:3857") -> ScreenPoint:
        if not self.ready:
            return ORIGIN_SCREEN
        return self.lng_lat_to_screen(self.map_to_lng_lat(coord, source))

    def screen_to_map(self, pixel: Sequence[float], target: str = "EPSG:3857") -> ProjectedPoint:
        """Projected coordinate under ``pixel``; (0, 0) when off the map."""
        if not self.ready:
            return ProjectedPoint(0.0, 0.0)
        point = self._backend.unproject(ScreenPoint(float(pixel[0]), float(pixel[1])))
        if point is None:
            return ProjectedPoint(0.0, 0.0)
        return self.lng_lat_to_map(point, target)

    # ------------------------------------------------------------------
    # Earth-centered Cartesian <-> screen
    # ------------------------------------------------------------------

    def cartesian_to_screen(self, cartesian: Sequence[float]) -> ScreenPoint | None:
        """Viewport pixels for an ECEF position; None when not renderable."""
        if not self.ready:
            return None
        return self._backend.project(self._projection.cartesian_to_lng_lat(cartesian))

    def screen_to_cartesian(self, pixel: Sequence[float]) -> tuple[float, float, float] | None:
        """ECEF position under ``pixel``; None when the pixel misses the map."""
        if not self.ready:
            return None
        point = self._backend.unproject(ScreenPoint(float(pixel[0]), float(pixel[1])))
        if point is None:
            return None
        return self._projection.lng_lat_to_cartesian(point)

    def get_resolution(self, lng_lat: Sequence[float], zoom: float) -> float:
        """Ground meters per pixel at ``lng_lat`` and ``zoom``; 0 when not ready."""
        if not self.ready:
            return 0.0
        lat = math.radians(lng_lat[1])
        return 2 * math.pi * EARTH_RADIUS * math.cos(lat) / (TILE_SIZE * 2 ** zoom)

    # ------------------------------------------------------------------
    # Distances
    # ------------------------------------------------------------------

    def calculate_distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        """Meters between two geodetic points.

        Backend geodesic when available, else haversine on a 6371 km sphere.
        Works without a backend (pure math) but returns 0 after destroy.
        """
        pa = GeodeticPoint.parse(a)
        pb = GeodeticPoint.parse(b)
        if self._backend is not None and "geodesic" in self._backend.capabilities:
            d = self._backend.geodesic_distance(pa, pb)
            if d is not None:
                return d
        if self._destroyed:
            return 0.0
        return geometry.haversine_distance(pa, pb)

    def distance_to_line(self, point: Sequence[float], line: Sequence[Sequence[float]]) -> float:
        """Shortest meters from ``point`` to the finite segment ``line[0]``-``line[1]``.

        The projection parameter is clamped to the segment, so points beyond
        an end measure to that endpoint.  Fewer than two vertices gives 0.
        """
        if len(line) < 2 or self._destroyed:
            return 0.0
        p = GeodeticPoint.parse(point)
        p1 = GeodeticPoint.parse(line[0])
        p2 = GeodeticPoint.parse(line[1])
        to_working, from_working = self._working_space()
        return geometry.distance_to_segment(
            p, p1, p2,
            distance=self.calculate_distance,
            to_working=to_working,
            from_working=from_working,
        )

    def _working_space(self):
        space = self._backend.working_space if self._backend is not None else "planar"
        if space == "ecef":
            return (
                lambda g: geometry.geodetic_to_ecef(g.lng, g.lat, g.height),
                lambda c: GeodeticPoint(*geometry.ecef_to_geodetic(*c)),
            )
        return (
            lambda g: (g.lng, g.lat),
            lambda c: GeodeticPoint(c[0], c[1]),
        )

    # ------------------------------------------------------------------
    # Datum conversion (commercial engine only)
    # ------------------------------------------------------------------

    async def wgs84_to_gcj02(self, lng_lat: Sequence[float]) -> GeodeticPoint:
        """WGS84 to the engine's GCJ02 via its conversion service."""
        return await self._projection.convert(lng_lat, target_system="gcj02", source_system="gps")

    # ------------------------------------------------------------------

    def destroy(self) -> None:
        if not self._destroyed:
            logger.debug("CoordinateHelper destroyed")
        self._backend = None
        self._destroyed = True
