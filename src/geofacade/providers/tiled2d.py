"""Tiled 2D backend - raster-tiled map with vector layers in projected space.

The engine works in its view projection (EPSG:3857 unless configured), so
every coordinate is projected on the way in and unprojected on the way out.

The injected ``map_factory(target=..., view={...}, **options)`` must
return a map exposing ``get_view()`` (with ``set_center``/``set_zoom``),
``add_vector_layer(features=..., style=..., opacity=..., **extra)``
returning a layer with ``set_features``/``set_style``/``set_opacity``/
``set_visible``, ``remove_layer``, ``get_pixel_from_coordinate``,
``get_coordinate_from_pixel``, ``add_control``, ``remove_control`` and
``set_target``.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from loguru import logger

from geofacade.backends.base import MapBackend, maybe_await
from geofacade.config import settings
from geofacade.managers.projection import MAX_MERCATOR_LAT, ProjectionManager
from geofacade.styles import LayerStyle
from geofacade.types import GeodeticPoint, GeometryKind, NativeControl, ScreenPoint

_CONTROL_TYPES = {
    "zoom": ("Zoom", {}),
    "scale": ("ScaleLine", {"units": "metric"}),
    "fullscreen": ("FullScreen", {}),
    "compass": ("Rotate", {"autoHide": False}),
}

_GEOMETRY_TYPES = {
    GeometryKind.POINT: "Point",
    GeometryKind.LINE: "LineString",
    GeometryKind.POLYGON: "Polygon",
}


def _stroke(style: LayerStyle, color: Optional[str], width: Optional[float]) -> dict:
    stroke = {"color": color, "width": width}
    if style.dasharray:
        stroke["line_dash"] = list(style.dasharray)
    return stroke


def vector_style(kind: GeometryKind, style: LayerStyle) -> dict[str, Any]:
    """Engine style record for one primitive.  Opacity is set on the layer."""
    if kind is GeometryKind.POINT:
        image: dict[str, Any] = {"radius": (style.size or 0) / 2, "fill": {"color": style.color}}
        if style.outline:
            image["stroke"] = {"color": style.outline_color, "width": style.outline_width}
        record: dict[str, Any] = {"image": image}
        if style.title:
            record["text"] = {"text": style.title}
        return record
    if kind is GeometryKind.LINE:
        return {"stroke": _stroke(style, style.color, style.width)}
    record = {"fill": {"color": style.color}}
    if style.outline:
        record["stroke"] = {"color": style.outline_color, "width": style.outline_width}
    return record


class Tiled2DBackend(MapBackend):
    """Binding for a 2D tiled map engine."""

    def __init__(self, map_factory: Callable[..., Any],
                 control_factory: Optional[Callable[[str, dict], Any]] = None) -> None:
        super().__init__()
        self._map_factory = map_factory
        self._control_factory = control_factory
        self._projection = ProjectionManager()
        self._view_projection = settings.tiled2d_projection

    @property
    def backend_id(self) -> str:
        return "tiled2d"

    @property
    def name(self) -> str:
        return "Tiled 2D"

    def default_options(self) -> dict[str, Any]:
        return {
            "center": (settings.default_center_lng, settings.default_center_lat),
            "zoom": settings.default_zoom,
            "projection": settings.tiled2d_projection,
        }

    # -- coordinates -------------------------------------------------------

    def to_view(self, p: GeodeticPoint) -> list[float]:
        if self._view_projection == "EPSG:3857":
            # The square world ends short of the poles.
            lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, p.lat))
            return list(self._projection.lng_lat_to_web_mercator((p.lng, lat)))
        return list(self._projection.transform((p.lng, p.lat), "EPSG:4326", self._view_projection))

    def from_view(self, coord: Any) -> GeodeticPoint:
        if self._view_projection == "EPSG:3857":
            return self._projection.web_mercator_to_lng_lat(coord)
        lng, lat = self._projection.transform(coord[:2], self._view_projection, "EPSG:4326")[:2]
        return GeodeticPoint(lng, lat)

    def _feature(self, kind: GeometryKind, geometry: Any) -> dict:
        if kind is GeometryKind.POINT:
            coordinates: Any = self.to_view(geometry)
        elif kind is GeometryKind.LINE:
            coordinates = [self.to_view(p) for p in geometry]
        else:
            coordinates = [[self.to_view(p) for p in ring] for ring in geometry]
        return {"type": _GEOMETRY_TYPES[kind], "coordinates": coordinates}

    # -- lifecycle ---------------------------------------------------------

    async def load(self, container: Any, options: dict[str, Any]) -> Any:
        options = dict(options)
        self._view_projection = options.pop("projection", settings.tiled2d_projection)
        center = GeodeticPoint.parse(options.pop("center"))
        view = {
            "center": self.to_view(center),
            "zoom": options.pop("zoom"),
            "projection": self._view_projection,
        }
        engine = await maybe_await(self._map_factory(target=container, view=view, **options))
        self._engine = engine
        logger.debug(f"Tiled 2D map created in {self._view_projection}")
        return engine

    def destroy(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.set_target(None)

    # -- view --------------------------------------------------------------

    def set_view(self, center: GeodeticPoint, zoom: float | None = None,
                 duration: float | None = None) -> None:
        view = self._engine.get_view()
        view.set_center(self.to_view(center))
        if zoom is not None:
            view.set_zoom(zoom)

    def set_zoom(self, zoom: float) -> None:
        self._engine.get_view().set_zoom(zoom)

    def project(self, point: GeodeticPoint) -> ScreenPoint | None:
        pixel = self._engine.get_pixel_from_coordinate(self.to_view(point))
        return None if pixel is None else ScreenPoint(float(pixel[0]), float(pixel[1]))

    def unproject(self, pixel: ScreenPoint) -> GeodeticPoint | None:
        coord = self._engine.get_coordinate_from_pixel([pixel.x, pixel.y])
        return None if coord is None else self.from_view(coord)

    # -- primitives --------------------------------------------------------

    def add_primitive(self, layer_id: str, kind: GeometryKind, geometry: Any,
                      style: LayerStyle) -> Any:
        return self._engine.add_vector_layer(
            features=[self._feature(kind, geometry)],
            style=vector_style(kind, style),
            opacity=style.opacity,
            **style.native,
        )

    def update_primitive(self, handle: Any, kind: GeometryKind, geometry: Any) -> None:
        handle.set_features([self._feature(kind, geometry)])

    def set_style(self, handle: Any, kind: GeometryKind, style: LayerStyle) -> None:
        handle.set_style(vector_style(kind, style))
        if style.opacity is not None:
            handle.set_opacity(style.opacity)

    def set_visible(self, handle: Any, visible: bool) -> None:
        handle.set_visible(visible)

    def remove_primitive(self, handle: Any) -> None:
        if self._engine is not None:
            self._engine.remove_layer(handle)

    # -- controls ----------------------------------------------------------

    def create_control(self, kind: str, options: dict[str, Any]) -> Any:
        control_type, defaults = _CONTROL_TYPES[kind]
        merged = {**defaults, **options}
        if self._control_factory is not None:
            return self._control_factory(control_type, merged)
        return NativeControl(control_type, merged)

    def add_control(self, control: Any, position: str) -> None:
        # Controls place themselves through CSS; position is advisory here.
        self._engine.add_control(control)

    def remove_control(self, control: Any) -> None:
        if self._engine is not None:
            self._engine.remove_control(control)

    def default_controls(self) -> Any:
        control = (self._control_factory("defaults", {}) if self._control_factory is not None
                   else NativeControl("defaults"))
        self._engine.add_control(control)
        return control
