"""Vector-tile backend - WebGL style engine driven by GeoJSON sources.

Each primitive is one GeoJSON source plus one style layer referencing it.
The injected ``map_factory(container=..., **options)`` must return a map
exposing ``on``, ``add_source``/``get_source``/``remove_source`` (sources
have ``set_data``), ``add_layer``/``get_layer``/``remove_layer``,
``set_paint_property``, ``set_layout_property``, ``set_center``,
``set_zoom``, ``project``, ``unproject``, ``add_control``,
``remove_control`` and ``remove``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger

from geofacade.backends.base import MapBackend, maybe_await, wait_for_engine_event
from geofacade.config import settings
from geofacade.geometry import haversine_distance
from geofacade.styles import LayerStyle
from geofacade.types import GeodeticPoint, GeometryKind, NativeControl, ScreenPoint

# Mean Earth radius the engine's LngLat.distanceTo uses.
ENGINE_EARTH_RADIUS = 6371008.8

_LAYER_TYPES = {
    GeometryKind.POINT: "circle",
    GeometryKind.LINE: "line",
    GeometryKind.POLYGON: "fill",
}

_CONTROL_TYPES = {
    "zoom": ("NavigationControl", {"showCompass": False}),
    "compass": ("NavigationControl", {"showZoom": False}),
    "fullscreen": ("FullscreenControl", {}),
    "scale": ("ScaleControl", {"maxWidth": 100, "unit": "metric"}),
}


@dataclass
class StyleLayerHandle:
    layer_id: str
    source_id: str
    kind: GeometryKind


def _lng_lat(p: GeodeticPoint) -> list[float]:
    return [p.lng, p.lat]


def feature_collection(kind: GeometryKind, geometry: Any) -> dict:
    """Wrap one primitive's geometry as a single-feature collection."""
    if kind is GeometryKind.POINT:
        geom = {"type": "Point", "coordinates": _lng_lat(geometry)}
    elif kind is GeometryKind.LINE:
        geom = {"type": "LineString", "coordinates": [_lng_lat(p) for p in geometry]}
    else:
        geom = {"type": "Polygon",
                "coordinates": [[_lng_lat(p) for p in ring] for ring in geometry]}
    return {
        "type": "FeatureCollection",
        "features": [{"type": "Feature", "properties": {}, "geometry": geom}],
    }


def paint_for(kind: GeometryKind, style: LayerStyle) -> dict[str, Any]:
    if kind is GeometryKind.POINT:
        return {
            "circle-radius": (style.size or 0) / 2,
            "circle-color": style.color,
            "circle-opacity": style.opacity,
            "circle-stroke-width": style.outline_width if style.outline else 0,
            "circle-stroke-color": style.outline_color,
        }
    if kind is GeometryKind.LINE:
        paint = {
            "line-width": style.width,
            "line-color": style.color,
            "line-opacity": style.opacity,
        }
        if style.dasharray:
            paint["line-dasharray"] = list(style.dasharray)
        return paint
    paint = {
        "fill-color": style.color,
        "fill-opacity": style.opacity,
    }
    if style.outline:
        paint["fill-outline-color"] = style.outline_color
    return paint


class VectorTileBackend(MapBackend):
    """Binding for a vector-tile style engine."""

    def __init__(self, map_factory: Callable[..., Any],
                 control_factory: Optional[Callable[[str, dict], Any]] = None) -> None:
        super().__init__()
        self._map_factory = map_factory
        self._control_factory = control_factory
        self._style_layers: set[str] = set()
        self._seq = 0

    @property
    def backend_id(self) -> str:
        return "vector_tile"

    @property
    def name(self) -> str:
        return "Vector tile"

    @property
    def capabilities(self) -> set[str]:
        return {"geodesic"}

    def default_options(self) -> dict[str, Any]:
        return {
            "access_token": settings.vector_tile_token,
            "style": settings.vector_tile_style,
            "center": (settings.default_center_lng, settings.default_center_lat),
            "zoom": settings.default_zoom,
        }

    async def load(self, container: Any, options: dict[str, Any]) -> Any:
        options = dict(options)
        if options.get("key"):
            options["access_token"] = options.pop("key")
        options["center"] = list(options["center"][:2])
        engine = await maybe_await(self._map_factory(container=container, **options))
        self._engine = engine
        await wait_for_engine_event(engine, "load", "error")
        logger.debug("Vector tile map loaded")
        return engine

    def destroy(self) -> None:
        engine, self._engine = self._engine, None
        self._style_layers.clear()
        if engine is not None:
            engine.remove()

    def set_view(self, center: GeodeticPoint, zoom: float | None = None,
                 duration: float | None = None) -> None:
        self._engine.set_center(_lng_lat(center))
        if zoom is not None:
            self._engine.set_zoom(zoom)

    def set_zoom(self, zoom: float) -> None:
        self._engine.set_zoom(zoom)

    def project(self, point: GeodeticPoint) -> ScreenPoint | None:
        x, y = self._engine.project(_lng_lat(point))
        return ScreenPoint(float(x), float(y))

    def unproject(self, pixel: ScreenPoint) -> GeodeticPoint | None:
        lng, lat = self._engine.unproject([pixel.x, pixel.y])
        return GeodeticPoint(float(lng), float(lat))

    # -- primitives --------------------------------------------------------

    def _style_layer_id(self, layer_id: str) -> str:
        if layer_id not in self._style_layers and self._engine.get_layer(layer_id) is None:
            return layer_id
        self._seq += 1
        return f"{layer_id}-{self._seq}"

    def add_primitive(self, layer_id: str, kind: GeometryKind, geometry: Any,
                      style: LayerStyle) -> StyleLayerHandle:
        style_id = self._style_layer_id(layer_id)
        handle = StyleLayerHandle(layer_id=style_id, source_id=f"{style_id}-source", kind=kind)
        self._engine.add_source(handle.source_id, {
            "type": "geojson",
            "data": feature_collection(kind, geometry),
        })
        self._engine.add_layer({
            "id": style_id,
            "type": _LAYER_TYPES[kind],
            "source": handle.source_id,
            "paint": paint_for(kind, style),
            "layout": {"visibility": "visible"},
            **style.native,
        })
        self._style_layers.add(style_id)
        return handle

    def update_primitive(self, handle: StyleLayerHandle, kind: GeometryKind, geometry: Any) -> None:
        source = self._engine.get_source(handle.source_id)
        if source is not None:
            source.set_data(feature_collection(kind, geometry))

    def set_style(self, handle: StyleLayerHandle, kind: GeometryKind, style: LayerStyle) -> None:
        if self._engine.get_layer(handle.layer_id) is None:
            return
        for key, value in paint_for(kind, style).items():
            self._engine.set_paint_property(handle.layer_id, key, value)

    def set_visible(self, handle: StyleLayerHandle, visible: bool) -> None:
        if self._engine.get_layer(handle.layer_id) is not None:
            self._engine.set_layout_property(
                handle.layer_id, "visibility", "visible" if visible else "none"
            )

    def remove_primitive(self, handle: StyleLayerHandle) -> None:
        self._style_layers.discard(handle.layer_id)
        engine = self._engine
        if engine is None:
            return
        # Style layer first: a source cannot be removed while referenced.
        if engine.get_layer(handle.layer_id) is not None:
            engine.remove_layer(handle.layer_id)
        if engine.get_source(handle.source_id) is not None:
            engine.remove_source(handle.source_id)

    # -- controls ----------------------------------------------------------

    def create_control(self, kind: str, options: dict[str, Any]) -> Any:
        control_type, defaults = _CONTROL_TYPES[kind]
        merged = {**defaults, **options}
        if self._control_factory is not None:
            return self._control_factory(control_type, merged)
        return NativeControl(control_type, merged)

    def add_control(self, control: Any, position: str) -> None:
        self._engine.add_control(control, position)

    def remove_control(self, control: Any) -> None:
        if self._engine is not None:
            self._engine.remove_control(control)

    # -- geodesy -----------------------------------------------------------

    def geodesic_distance(self, a: GeodeticPoint, b: GeodeticPoint) -> float | None:
        return haversine_distance(a, b, radius=ENGINE_EARTH_RADIUS)
