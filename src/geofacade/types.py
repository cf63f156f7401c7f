"""Coordinate tuples, layer and control registry entries.

All geodetic coordinates follow the GeoJSON convention: (lng, lat) or
(lng, lat, height), degrees and meters.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from geofacade.styles import LayerStyle


class GeodeticPoint(NamedTuple):
    """Longitude/latitude/height.  Height defaults to 0 when absent."""

    lng: float
    lat: float
    height: float = 0.0

    @classmethod
    def parse(cls, value: Sequence[float]) -> GeodeticPoint:
        """Build from ``[lng, lat]`` or ``[lng, lat, height]``.

        Raises:
            ValueError: If the sequence is not 2 or 3 numbers long.
        """
        if isinstance(value, GeodeticPoint):
            return value
        if len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        if len(value) == 3:
            return cls(float(value[0]), float(value[1]), float(value[2]))
        raise ValueError(f"Expected [lng, lat] or [lng, lat, height], got {value!r}")

    def as_2d(self) -> tuple[float, float]:
        return (self.lng, self.lat)


class ProjectedPoint(NamedTuple):
    """Planar (x, y) in a map projection, Web Mercator unless stated."""

    x: float
    y: float


class ScreenPoint(NamedTuple):
    """Pixel (x, y) relative to the viewport.  Valid for one camera state."""

    x: float
    y: float


ORIGIN_SCREEN = ScreenPoint(0.0, 0.0)
ORIGIN_GEODETIC = GeodeticPoint(0.0, 0.0, 0.0)


class GeometryKind(str, enum.Enum):
    POINT = "point"
    POINT_GROUP = "point-group"
    LINE = "line"
    POLYGON = "polygon"


CONTROL_POSITIONS = ("top-left", "top-right", "bottom-left", "bottom-right")
DEFAULT_CONTROL_POSITION = "top-right"
DEFAULT_CONTROL_NAME = "default"


def _is_point_like(value: Any) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, str)
        and 2 <= len(value) <= 3
        and all(isinstance(v, (int, float)) for v in value)
    )


def normalize_geometry(kind: GeometryKind, geometry: Any) -> list:
    """Coerce caller geometry into the stored shape for ``kind``.

    point:        [lng, lat(, h)]            -> [GeodeticPoint]
    point-group:  [[lng, lat], ...]          -> [GeodeticPoint, ...]
    line:         [[lng, lat], ...]          -> [GeodeticPoint, ...]
    polygon:      ring or list of rings      -> [[GeodeticPoint, ...], ...]

    Raises:
        ValueError: On malformed coordinates.
    """
    if kind is GeometryKind.POINT:
        return [GeodeticPoint.parse(geometry)]
    if kind in (GeometryKind.POINT_GROUP, GeometryKind.LINE):
        return [GeodeticPoint.parse(p) for p in geometry]
    if kind is GeometryKind.POLYGON:
        if geometry and _is_point_like(geometry[0]):
            rings = [geometry]
        else:
            rings = list(geometry)
        return [[GeodeticPoint.parse(p) for p in ring] for ring in rings]
    raise ValueError(f"Unknown geometry kind: {kind}")


@dataclass
class LayerEntry:
    """One registered vector feature (or feature group) and its backend handle(s).

    Attributes:
        layer_id: Caller-supplied unique key.
        kind: Geometry kind.
        positions: Normalized geometry (see ``normalize_geometry``).
        style: Effective style (kind defaults merged with caller fields).
        visible: Whether the feature is currently shown.
        handle: Backend-native object, or a list aligned 1:1 with
            ``positions`` for point groups.
        released: Set once the backend resources have been freed.
    """

    layer_id: str
    kind: GeometryKind
    positions: list
    style: LayerStyle
    visible: bool = True
    handle: Any = None
    released: bool = False
    properties: dict = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ControlEntry:
    """A named UI control and the backend-native object realizing it."""

    name: str
    kind: str
    handle: Any
    position: str = DEFAULT_CONTROL_POSITION
    options: dict = field(default_factory=dict)


@dataclass
class NativeControl:
    """A built-in engine control, instantiated by the engine from its type name."""

    control_type: str
    options: dict = field(default_factory=dict)
