"""ProjectionManager - stateless coordinate reference system conversions.

Web Mercator math is closed-form and needs no live map.  Arbitrary
EPSG-to-EPSG transforms go through pyproj.  The only backend-dependent
operation is ``convert``, which exists for engines whose native datum is
not WGS84 and must defer to that engine's conversion service.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError, ProjError

from geofacade import geometry
from geofacade.types import GeodeticPoint, ProjectedPoint

if TYPE_CHECKING:
    from geofacade.backends.base import MapBackend

EARTH_RADIUS = 6378137.0
# Latitude where the square Web Mercator world ends.
MAX_MERCATOR_LAT = 85.0511287798066


class ProjectionManager:
    """EPSG:4326 <-> EPSG:3857 and friends."""

    EARTH_RADIUS = EARTH_RADIUS

    def __init__(self, backend: MapBackend | None = None) -> None:
        self._backend = backend
        self._transformers: dict[tuple[str, str], Transformer] = {}

    # ------------------------------------------------------------------
    # Web Mercator
    # ------------------------------------------------------------------

    def lng_lat_to_web_mercator(self, lng_lat: Sequence[float]) -> ProjectedPoint:
        lng, lat = lng_lat[0], lng_lat[1]
        x = math.radians(lng) * self.EARTH_RADIUS
        if abs(lat) >= 90:
            # Poles sit at infinity; the inverse maps them back to +-90.
            return ProjectedPoint(x, math.copysign(math.inf, lat))
        y = self.EARTH_RADIUS * math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))
        return ProjectedPoint(x, y)

    def web_mercator_to_lng_lat(self, mercator: Sequence[float]) -> GeodeticPoint:
        x, y = mercator[0], mercator[1]
        lng = math.degrees(x / self.EARTH_RADIUS)
        lat = math.degrees(2 * math.atan(math.exp(y / self.EARTH_RADIUS)) - math.pi / 2)
        return GeodeticPoint(lng, lat)

    def lng_lat_to_mercator(self, lng_lat: Sequence[float]) -> ProjectedPoint:
        return self.lng_lat_to_web_mercator(lng_lat)

    def mercator_to_lng_lat(self, mercator: Sequence[float]) -> GeodeticPoint:
        return self.web_mercator_to_lng_lat(mercator)

    # ------------------------------------------------------------------
    # Angles
    # ------------------------------------------------------------------

    @staticmethod
    def to_radians(degrees: float) -> float:
        return degrees * math.pi / 180

    @staticmethod
    def to_degrees(radians: float) -> float:
        return radians * 180 / math.pi

    # ------------------------------------------------------------------
    # Earth-centered Cartesian
    # ------------------------------------------------------------------

    def lng_lat_to_cartesian(self, lng_lat: Sequence[float]) -> tuple[float, float, float]:
        p = GeodeticPoint.parse(lng_lat)
        return geometry.geodetic_to_ecef(p.lng, p.lat, p.height)

    def cartesian_to_lng_lat(self, cartesian: Sequence[float]) -> GeodeticPoint:
        return GeodeticPoint(*geometry.ecef_to_geodetic(*cartesian))

    def cartesian_to_mercator(self, cartesian: Sequence[float]) -> ProjectedPoint:
        return self.lng_lat_to_mercator(self.cartesian_to_lng_lat(cartesian))

    def mercator_to_cartesian(self, mercator: Sequence[float],
                              height: float = 0.0) -> tuple[float, float, float]:
        lng, lat, _ = self.mercator_to_lng_lat(mercator)
        return geometry.geodetic_to_ecef(lng, lat, height)

    # ------------------------------------------------------------------
    # Arbitrary CRS (pyproj)
    # ------------------------------------------------------------------

    def is_valid_projection(self, code: str) -> bool:
        """True if pyproj recognizes ``code`` (e.g. 'EPSG:3857')."""
        try:
            CRS.from_user_input(code)
            return True
        except CRSError:
            return False

    def transform(self, coord: Sequence[float], source: str, target: str) -> tuple[float, ...]:
        """Transform ``coord`` between two CRS codes, x/y (lng/lat) order.

        Raises:
            ValueError: If either code is unknown to pyproj or the
                coordinate cannot be transformed.
        """
        if source == target:
            return tuple(float(c) for c in coord)
        transformer = self._transformer(source, target)
        try:
            return tuple(float(c) for c in transformer.transform(*coord))
        except ProjError as e:
            raise ValueError(f"Cannot transform {coord!r} from {source} to {target}: {e}") from e

    def _transformer(self, source: str, target: str) -> Transformer:
        key = (source, target)
        cached = self._transformers.get(key)
        if cached is not None:
            return cached
        try:
            transformer = Transformer.from_crs(source, target, always_xy=True)
        except CRSError as e:
            raise ValueError(f"Unknown projection in {source} -> {target}: {e}") from e
        self._transformers[key] = transformer
        logger.debug(f"Created transformer {source} -> {target}")
        return transformer

    # ------------------------------------------------------------------
    # Backend-authoritative datum conversion
    # ------------------------------------------------------------------

    @property
    def supports_convert(self) -> bool:
        return self._backend is not None and "crs_convert" in self._backend.capabilities

    async def convert(self, point: Sequence[float], target_system: str = "gcj02",
                      source_system: str = "gps") -> GeodeticPoint:
        """Convert ``point`` via the backend's conversion service.

        Offsetted datums such as GCJ02 are non-analytic, so there is no
        local fallback.  Without a converting backend (or after destroy)
        the input point is returned unchanged.
        """
        p = GeodeticPoint.parse(point)
        if not self.supports_convert:
            return p
        return await self._backend.convert(p, source_system, target_system)

    def destroy(self) -> None:
        self._backend = None
        self._transformers.clear()
