"""Globe backend - 3D engine whose primitives are entities in ECEF space.

The injected ``viewer_factory(container, **options)`` must return a viewer
exposing:

- ``entities.add(entity)`` / ``entities.remove(entity)``
- ``camera.set_view(destination, orientation)`` and
  ``camera.fly_to(destination, duration)``, destinations in ECEF meters
- ``scene.cartesian_to_window(xyz)`` -> (x, y) or None
- ``scene.pick_ellipsoid((x, y))`` -> xyz or None
- ``screen_space_camera_controller`` (``enable_zoom``),
  ``navigation_control`` (``enabled``), ``bottom_container``
  (``display``), ``fullscreen_button`` (``visible``)
- ``control_container(position)`` with ``append_child`` / ``remove_child``
- ``destroy()``

Entities are GlobeEntity records owned by this module; the engine renders
whatever it finds on them and the backend mutates them in place.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from loguru import logger

from geofacade.backends.base import MapBackend, maybe_await
from geofacade.config import settings
from geofacade.geometry import ecef_to_geodetic, geodetic_to_ecef
from geofacade.styles import LayerStyle
from geofacade.types import GeodeticPoint, GeometryKind, ScreenPoint

# Camera height (m) treated as zoom level 0; each level halves it.
_ZOOM0_HEIGHT = 40_075_016.686

_VIEWER_DEFAULTS = {
    "animation": False,
    "base_layer_picker": True,
    "fullscreen_button": True,
    "geocoder": False,
    "home_button": True,
    "info_box": True,
    "scene_mode_picker": True,
    "selection_indicator": True,
    "timeline": False,
    "navigation_help_button": False,
}

# Top-down camera.
_ORIENTATION = {"heading": 0.0, "pitch": math.radians(-90), "roll": 0.0}


@dataclass
class GlobeEntity:
    """One renderable entity.  Exactly one of point/polyline/polygon is set."""

    entity_id: str
    position: Optional[tuple[float, float, float]] = None
    point: Optional[dict] = None
    label: Optional[dict] = None
    polyline: Optional[dict] = None
    polygon: Optional[dict] = None
    show: bool = True
    native: dict = field(default_factory=dict)


def _cartesian(p: GeodeticPoint) -> tuple[float, float, float]:
    return geodetic_to_ecef(p.lng, p.lat, p.height)


def _point_graphics(style: LayerStyle) -> dict:
    return {
        "pixel_size": style.size,
        "color": style.color,
        "opacity": style.opacity,
        "outline": style.outline,
        "outline_color": style.outline_color,
        "outline_width": style.outline_width,
    }


def _polyline_graphics(style: LayerStyle) -> dict:
    return {
        "width": style.width,
        "color": style.color,
        "opacity": style.opacity,
        "dash_pattern": list(style.dasharray or []),
    }


def _polygon_graphics(style: LayerStyle) -> dict:
    return {
        "color": style.color,
        "opacity": style.opacity,
        "outline": style.outline,
        "outline_color": style.outline_color,
        "outline_width": style.outline_width,
    }


def _hierarchy(rings: list) -> dict:
    outer, *holes = rings
    return {
        "positions": [_cartesian(p) for p in outer],
        "holes": [[_cartesian(p) for p in ring] for ring in holes],
    }


class GlobeBackend(MapBackend):
    """Binding for a 3D globe viewer."""

    working_space = "ecef"

    def __init__(self, viewer_factory: Callable[..., Any]) -> None:
        super().__init__()
        self._viewer_factory = viewer_factory
        self._center: GeodeticPoint | None = None
        self._entity_seq = 0

    @property
    def backend_id(self) -> str:
        return "globe"

    @property
    def name(self) -> str:
        return "Globe"

    @property
    def capabilities(self) -> set[str]:
        return {"animated_view"}

    def default_options(self) -> dict[str, Any]:
        return {
            **_VIEWER_DEFAULTS,
            "center": (settings.default_center_lng, settings.default_center_lat,
                       settings.default_height),
            "zoom": settings.default_zoom,
        }

    # -- lifecycle ---------------------------------------------------------

    async def load(self, container: Any, options: dict[str, Any]) -> Any:
        options = dict(options)
        raw_center = options.pop("center")
        # Zoom has no meaning for a free camera; height comes from center.
        options.pop("zoom", None)
        center = GeodeticPoint.parse(raw_center)
        if center.height == 0:
            center = center._replace(height=settings.default_height)
        viewer = await maybe_await(self._viewer_factory(container, **options))
        self._engine = viewer
        viewer.camera.set_view(destination=_cartesian(center), orientation=dict(_ORIENTATION))
        self._center = center
        logger.debug(f"Globe viewer created, camera at {center}")
        return viewer

    def destroy(self) -> None:
        viewer, self._engine = self._engine, None
        if viewer is not None:
            viewer.destroy()

    # -- view --------------------------------------------------------------

    def set_view(self, center: GeodeticPoint, zoom: float | None = None,
                 duration: float | None = None) -> None:
        if center.height == 0:
            center = center._replace(height=settings.default_height)
        if zoom is not None:
            center = center._replace(height=_ZOOM0_HEIGHT / 2 ** zoom)
        destination = _cartesian(center)
        if duration is None:
            self._engine.camera.set_view(destination=destination, orientation=dict(_ORIENTATION))
        else:
            self._engine.camera.fly_to(destination=destination, duration=duration)
        self._center = center

    def set_zoom(self, zoom: float) -> None:
        center = self._center or GeodeticPoint(settings.default_center_lng,
                                               settings.default_center_lat)
        self.set_view(center, zoom=zoom)

    def project(self, point: GeodeticPoint) -> ScreenPoint | None:
        pixel = self._engine.scene.cartesian_to_window(_cartesian(point))
        return None if pixel is None else ScreenPoint(float(pixel[0]), float(pixel[1]))

    def unproject(self, pixel: ScreenPoint) -> GeodeticPoint | None:
        cartesian = self._engine.scene.pick_ellipsoid((pixel.x, pixel.y))
        if cartesian is None:
            return None
        lng, lat, height = ecef_to_geodetic(*cartesian)
        return GeodeticPoint(lng, lat, height)

    # -- primitives --------------------------------------------------------

    def add_primitive(self, layer_id: str, kind: GeometryKind, geometry: Any,
                      style: LayerStyle) -> GlobeEntity:
        self._entity_seq += 1
        entity = GlobeEntity(entity_id=f"{layer_id}#{self._entity_seq}")
        self._write_geometry(entity, kind, geometry)
        self._write_style(entity, kind, style)
        self._engine.entities.add(entity)
        return entity

    def update_primitive(self, handle: GlobeEntity, kind: GeometryKind, geometry: Any) -> None:
        self._write_geometry(handle, kind, geometry)

    def set_style(self, handle: GlobeEntity, kind: GeometryKind, style: LayerStyle) -> None:
        self._write_style(handle, kind, style)

    def set_visible(self, handle: GlobeEntity, visible: bool) -> None:
        handle.show = visible

    def remove_primitive(self, handle: GlobeEntity) -> None:
        if self._engine is not None:
            self._engine.entities.remove(handle)

    def _write_geometry(self, entity: GlobeEntity, kind: GeometryKind, geometry: Any) -> None:
        if kind is GeometryKind.POINT:
            entity.position = _cartesian(geometry)
        elif kind is GeometryKind.LINE:
            entity.polyline = {**(entity.polyline or {}),
                               "positions": [_cartesian(p) for p in geometry]}
        elif kind is GeometryKind.POLYGON:
            entity.polygon = {**(entity.polygon or {}), "hierarchy": _hierarchy(geometry)}

    def _write_style(self, entity: GlobeEntity, kind: GeometryKind, style: LayerStyle) -> None:
        if kind is GeometryKind.POINT:
            entity.point = _point_graphics(style)
            entity.label = {"text": style.title} if style.title else None
        elif kind is GeometryKind.LINE:
            entity.polyline = {**(entity.polyline or {}), **_polyline_graphics(style)}
        elif kind is GeometryKind.POLYGON:
            entity.polygon = {**(entity.polygon or {}), **_polygon_graphics(style)}
        entity.native = dict(style.native)

    # -- controls ----------------------------------------------------------

    def _widgets(self) -> dict[str, Any]:
        viewer = self._engine
        return {
            "zoom": viewer.screen_space_camera_controller,
            "compass": viewer.navigation_control,
            "scale": viewer.bottom_container,
            "fullscreen": viewer.fullscreen_button,
        }

    def create_control(self, kind: str, options: dict[str, Any]) -> Any:
        return self._widgets()[kind]

    def add_control(self, control: Any, position: str) -> None:
        viewer = self._engine
        if control is viewer.screen_space_camera_controller:
            control.enable_zoom = True
        elif control is viewer.navigation_control:
            control.enabled = True
        elif control is viewer.bottom_container:
            control.display = "block"
        elif control is viewer.fullscreen_button:
            control.visible = True
        else:
            viewer.control_container(position).append_child(control)

    def remove_control(self, control: Any) -> None:
        viewer = self._engine
        if viewer is None:
            return
        if control is viewer.screen_space_camera_controller:
            control.enable_zoom = False
        elif control is viewer.navigation_control:
            control.enabled = False
        elif control is viewer.bottom_container:
            control.display = "none"
        elif control is viewer.fullscreen_button:
            control.visible = False
        else:
            parent = getattr(control, "parent_node", None)
            if parent is not None:
                parent.remove_child(control)

    def default_controls(self) -> Any:
        # Camera input handling is the globe's built-in baseline.
        return self._engine.screen_space_camera_controller
