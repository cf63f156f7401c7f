"""Commercial 2D backend - keyed web map in the GCJ02 datum.

Loading is two-step: an async script ``loader(key=, version=, plugins=)``
fetches the SDK, then ``map_factory(container, **options)`` builds the map.
Primitives are overlays made by ``overlay_factory(overlay_type, options)``;
each overlay exposes ``set_map``, ``set_position`` / ``set_path`` and
``set_options``.

GCJ02 is an obfuscated datum with no published closed form.  Conversion
from WGS84 and other systems goes through the vendor's REST service; on
any failure the input point comes back unchanged.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
from loguru import logger

from geofacade.backends.base import MapBackend, maybe_await, wait_for_engine_event
from geofacade.config import settings
from geofacade.styles import LayerStyle
from geofacade.types import GeodeticPoint, GeometryKind, NativeControl, ScreenPoint

DEFAULT_MARKER_OFFSET = (-10, -30)

_CONTROL_TYPES = {
    "zoom": "ToolBar",
    "scale": "Scale",
    "compass": "ControlBar",
    "fullscreen": "Fullscreen",
}

_POSITION_CODES = {
    "top-left": "LT",
    "top-right": "RT",
    "bottom-left": "LB",
    "bottom-right": "RB",
}

# Source systems the conversion service accepts.
_COORDSYS_ALIASES = {
    "gps": "gps",
    "wgs84": "gps",
    "mapbar": "mapbar",
    "baidu": "baidu",
    "bd09": "baidu",
}
_NATIVE_SYSTEMS = {"gcj02", "autonavi"}


def _lng_lat(p: GeodeticPoint) -> list[float]:
    return [p.lng, p.lat]


def overlay_options(kind: GeometryKind, style: LayerStyle) -> tuple[str, dict[str, Any]]:
    """Overlay type and its style options, without geometry."""
    if kind is GeometryKind.POINT:
        if style.icon or style.title:
            return "Marker", {
                "title": style.title,
                "icon": style.icon,
                "offset": list(style.offset or DEFAULT_MARKER_OFFSET),
                **style.native,
            }
        return "CircleMarker", {
            "radius": (style.size or 0) / 2,
            "fillColor": style.color,
            "fillOpacity": style.opacity,
            "strokeColor": style.outline_color,
            "strokeWeight": style.outline_width if style.outline else 0,
            **style.native,
        }
    if kind is GeometryKind.LINE:
        return "Polyline", {
            "strokeColor": style.color,
            "strokeWeight": style.width,
            "strokeOpacity": style.opacity,
            "strokeStyle": "dashed" if style.dasharray else "solid",
            "strokeDasharray": list(style.dasharray) if style.dasharray else [1, 0],
            **style.native,
        }
    return "Polygon", {
        "fillColor": style.color,
        "fillOpacity": style.opacity,
        "strokeColor": style.outline_color,
        "strokeWeight": style.outline_width if style.outline else 0,
        **style.native,
    }


class Commercial2DBackend(MapBackend):
    """Binding for the keyed commercial web map."""

    native_crs = "GCJ02"

    def __init__(self, loader: Callable[..., Any], map_factory: Callable[..., Any],
                 overlay_factory: Callable[[str, dict], Any],
                 control_factory: Optional[Callable[[str, dict], Any]] = None) -> None:
        super().__init__()
        self._loader = loader
        self._map_factory = map_factory
        self._overlay_factory = overlay_factory
        self._control_factory = control_factory
        self._key = ""

    @property
    def backend_id(self) -> str:
        return "commercial2d"

    @property
    def name(self) -> str:
        return "Commercial 2D"

    @property
    def capabilities(self) -> set[str]:
        return {"geodesic", "crs_convert", "requires_key"}

    def default_options(self) -> dict[str, Any]:
        return {
            "key": settings.commercial_key,
            "version": settings.commercial_version,
            "plugins": list(settings.commercial_plugins),
            "center": (settings.default_center_lng, settings.default_center_lat),
            "zoom": settings.default_zoom,
        }

    # -- lifecycle ---------------------------------------------------------

    async def load(self, container: Any, options: dict[str, Any]) -> Any:
        options = dict(options)
        key = options.pop("key", "") or ""
        if not key:
            raise ValueError("Commercial map requires an API key (GEOFACADE_COMMERCIAL_KEY)")
        version = options.pop("version")
        plugins = options.pop("plugins")
        await maybe_await(self._loader(key=key, version=version, plugins=plugins))
        self._key = key

        options["center"] = list(options["center"][:2])
        engine = await maybe_await(self._map_factory(container, **options))
        self._engine = engine
        await wait_for_engine_event(engine, "complete", "error")
        logger.debug(f"Commercial map loaded (SDK {version})")
        return engine

    def destroy(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.destroy()

    # -- view --------------------------------------------------------------

    def set_view(self, center: GeodeticPoint, zoom: float | None = None,
                 duration: float | None = None) -> None:
        self._engine.set_center(_lng_lat(center))
        if zoom is not None:
            self._engine.set_zoom(zoom)

    def set_zoom(self, zoom: float) -> None:
        self._engine.set_zoom(zoom)

    def project(self, point: GeodeticPoint) -> ScreenPoint | None:
        pixel = self._engine.lnglat_to_pixel(_lng_lat(point))
        return None if pixel is None else ScreenPoint(float(pixel[0]), float(pixel[1]))

    def unproject(self, pixel: ScreenPoint) -> GeodeticPoint | None:
        lng_lat = self._engine.pixel_to_lnglat([pixel.x, pixel.y])
        return None if lng_lat is None else GeodeticPoint(float(lng_lat[0]), float(lng_lat[1]))

    # -- primitives --------------------------------------------------------

    def add_primitive(self, layer_id: str, kind: GeometryKind, geometry: Any,
                      style: LayerStyle) -> Any:
        overlay_type, options = overlay_options(kind, style)
        if kind is GeometryKind.POINT:
            options["position"] = _lng_lat(geometry)
        elif kind is GeometryKind.LINE:
            options["path"] = [_lng_lat(p) for p in geometry]
        else:
            options["path"] = [[_lng_lat(p) for p in ring] for ring in geometry]
        overlay = self._overlay_factory(overlay_type, options)
        overlay.set_map(self._engine)
        return overlay

    def update_primitive(self, handle: Any, kind: GeometryKind, geometry: Any) -> None:
        if kind is GeometryKind.POINT:
            handle.set_position(_lng_lat(geometry))
        elif kind is GeometryKind.LINE:
            handle.set_path([_lng_lat(p) for p in geometry])
        else:
            handle.set_path([[_lng_lat(p) for p in ring] for ring in geometry])

    def set_style(self, handle: Any, kind: GeometryKind, style: LayerStyle) -> None:
        _, options = overlay_options(kind, style)
        handle.set_options(options)

    def set_visible(self, handle: Any, visible: bool) -> None:
        handle.set_map(self._engine if visible else None)

    def remove_primitive(self, handle: Any) -> None:
        handle.set_map(None)

    # -- controls ----------------------------------------------------------

    def create_control(self, kind: str, options: dict[str, Any]) -> Any:
        control_type = _CONTROL_TYPES[kind]
        if self._control_factory is not None:
            return self._control_factory(control_type, dict(options))
        return NativeControl(control_type, dict(options))

    def add_control(self, control: Any, position: str) -> None:
        self._engine.add_control(control, _POSITION_CODES[position])

    def remove_control(self, control: Any) -> None:
        if self._engine is not None:
            self._engine.remove_control(control)

    # -- geodesy -----------------------------------------------------------

    def geodesic_distance(self, a: GeodeticPoint, b: GeodeticPoint) -> float | None:
        if self._engine is None:
            return None
        return float(self._engine.get_distance(_lng_lat(a), _lng_lat(b)))

    async def convert(self, point: GeodeticPoint, source: str, target: str) -> GeodeticPoint:
        """Convert ``point`` from ``source`` into GCJ02 via the REST service.

        Only GCJ02 targets are supported; anything else, an unknown source
        system, or a failed request returns ``point`` unchanged.
        """
        if target.lower() not in _NATIVE_SYSTEMS:
            logger.warning(f"Conversion to '{target}' not supported, returning input")
            return point
        source_key = source.lower()
        if source_key in _NATIVE_SYSTEMS:
            return point
        coordsys = _COORDSYS_ALIASES.get(source_key)
        if coordsys is None:
            logger.warning(f"Unknown source coordinate system '{source}', returning input")
            return point

        params = {
            "locations": f"{point.lng:.6f},{point.lat:.6f}",
            "coordsys": coordsys,
            "key": self._key or settings.commercial_key,
            "output": "json",
        }
        async with httpx.AsyncClient() as client:
            try:
                resp = await client.get(
                    settings.convert_service_url,
                    params=params,
                    timeout=settings.convert_timeout,
                )
                resp.raise_for_status()
            except httpx.HTTPError as e:
                logger.warning(f"Coordinate conversion request failed: {e}")
                return point

        try:
            data = resp.json()
        except ValueError as e:
            logger.warning(f"Coordinate conversion returned a non-JSON body: {e}")
            return point
        if not isinstance(data, dict):
            logger.warning(f"Unexpected conversion payload: {data!r}")
            return point
        if str(data.get("status")) != "1" or not data.get("locations"):
            logger.warning(f"Coordinate conversion rejected: {data.get('info', 'unknown error')}")
            return point
        try:
            first = str(data["locations"]).split(";")[0]
            lng, lat = (float(v) for v in first.split(","))
        except ValueError:
            logger.warning(f"Unparseable conversion result: {data['locations']!r}")
            return point
        return GeodeticPoint(lng, lat, point.height)
