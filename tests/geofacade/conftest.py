"""Shared fixtures for geofacade tests.

FakeBackend is an in-memory MapBackend that records every call, used to
exercise the generic facade and managers.  The Fake*Map classes stand in
for the four native engines so the provider bindings can be driven
without a browser.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from types import SimpleNamespace
from typing import Any

import pytest

from geofacade.backends.base import MapBackend
from geofacade.geometry import geodetic_to_ecef, haversine_distance
from geofacade.types import GeodeticPoint, ScreenPoint


# ---------------------------------------------------------------------------
# Generic backend
# ---------------------------------------------------------------------------

class FakePrimitive:
    _ids = itertools.count(1)

    def __init__(self, layer_id, kind, geometry, style):
        self.pid = next(self._ids)
        self.layer_id = layer_id
        self.kind = kind
        self.geometry = geometry
        self.style = style
        self.visible = True
        self.updates = 0
        self.removed = 0


class FakeControl:
    def __init__(self, kind, options=None):
        self.kind = kind
        self.options = options or {}
        self.position = None


class FakeBackend(MapBackend):
    """In-memory backend with controllable load behavior."""

    def __init__(self, capabilities=(), working_space="planar", fail_with=None,
                 hang=False, default_control=False, geodesic_value=None):
        super().__init__()
        self._caps = set(capabilities)
        self.working_space = working_space
        self.fail_with = fail_with
        self.hang = hang
        self.default_control = default_control
        self.geodesic_value = geodesic_value
        self.primitives: dict[int, FakePrimitive] = {}
        self.controls: list[Any] = []
        self.views: list[tuple] = []
        self.zooms: list[float] = []
        self.load_options: dict | None = None
        self.destroy_count = 0
        self.converted: list[tuple] = []

    @property
    def backend_id(self) -> str:
        return "fake"

    @property
    def name(self) -> str:
        return "Fake"

    @property
    def capabilities(self) -> set[str]:
        return self._caps

    def default_options(self) -> dict[str, Any]:
        return {"center": (116.397428, 39.90923), "zoom": 12, "style": "default-style"}

    async def load(self, container, options):
        self.load_options = options
        if self.hang:
            await asyncio.Event().wait()
        if self.fail_with is not None:
            raise self.fail_with
        self._engine = SimpleNamespace(container=container)
        return self._engine

    def destroy(self):
        self.destroy_count += 1
        self._engine = None

    def set_view(self, center, zoom=None, duration=None):
        self.views.append((center, zoom, duration))

    def set_zoom(self, zoom):
        self.zooms.append(zoom)

    def project(self, point):
        if point.lng > 180:
            return None
        return ScreenPoint(point.lng * 10, point.lat * 10)

    def unproject(self, pixel):
        if pixel.x < 0:
            return None
        return GeodeticPoint(pixel.x / 10, pixel.y / 10)

    def add_primitive(self, layer_id, kind, geometry, style):
        p = FakePrimitive(layer_id, kind, geometry, style)
        self.primitives[p.pid] = p
        return p

    def update_primitive(self, handle, kind, geometry):
        handle.geometry = geometry
        handle.updates += 1

    def set_style(self, handle, kind, style):
        handle.style = style

    def set_visible(self, handle, visible):
        handle.visible = visible

    def remove_primitive(self, handle):
        handle.removed += 1
        self.primitives.pop(handle.pid, None)

    def create_control(self, kind, options):
        return FakeControl(kind, options)

    def add_control(self, control, position):
        control.position = position
        self.controls.append(control)

    def remove_control(self, control):
        if control in self.controls:
            self.controls.remove(control)

    def default_controls(self):
        if not self.default_control:
            return None
        control = FakeControl("default")
        self.controls.append(control)
        return control

    def geodesic_distance(self, a, b):
        return self.geodesic_value

    async def convert(self, point, source, target):
        self.converted.append((point, source, target))
        return GeodeticPoint(point.lng + 0.006, point.lat + 0.001, point.height)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def loaded_backend():
    """FakeBackend with a live engine, as managers see it after init."""
    b = FakeBackend()
    asyncio.run(b.load("container", {}))
    return b


# ---------------------------------------------------------------------------
# Globe engine
# ---------------------------------------------------------------------------

class FakeEntityCollection:
    def __init__(self):
        self.values: list = []

    def add(self, entity):
        self.values.append(entity)
        return entity

    def remove(self, entity):
        if entity in self.values:
            self.values.remove(entity)
            return True
        return False


class FakeCamera:
    def __init__(self):
        self.views: list[dict] = []
        self.flights: list[dict] = []

    def set_view(self, destination, orientation):
        self.views.append({"destination": destination, "orientation": orientation})

    def fly_to(self, destination, duration):
        self.flights.append({"destination": destination, "duration": duration})


class FakeScene:
    def cartesian_to_window(self, xyz):
        return (400.0, 300.0)

    def pick_ellipsoid(self, pixel):
        if pixel[0] < 0:
            return None
        return geodetic_to_ecef(10.0, 20.0, 0.0)


class FakeDomContainer:
    def __init__(self):
        self.children: list = []

    def append_child(self, child):
        self.children.append(child)
        child.parent_node = self

    def remove_child(self, child):
        self.children.remove(child)
        child.parent_node = None


class FakeViewer:
    def __init__(self, container, options):
        self.container = container
        self.options = options
        self.entities = FakeEntityCollection()
        self.camera = FakeCamera()
        self.scene = FakeScene()
        self.screen_space_camera_controller = SimpleNamespace(enable_zoom=False)
        self.navigation_control = SimpleNamespace(enabled=False)
        self.bottom_container = SimpleNamespace(display="none")
        self.fullscreen_button = SimpleNamespace(visible=False)
        self.containers = defaultdict(FakeDomContainer)
        self.destroyed = 0

    def control_container(self, position):
        return self.containers[position]

    def destroy(self):
        self.destroyed += 1


def make_viewer_factory():
    created: list[FakeViewer] = []

    def factory(container, **options):
        viewer = FakeViewer(container, options)
        created.append(viewer)
        return viewer

    factory.created = created
    return factory


# ---------------------------------------------------------------------------
# Vector-tile engine
# ---------------------------------------------------------------------------

class FakeSource:
    def __init__(self, data):
        self.data = data

    def set_data(self, data):
        self.data = data


class FakeVectorMap:
    def __init__(self, container, options, emit):
        self.container = container
        self.options = options
        self._emit = emit
        self.handlers = defaultdict(list)
        self.sources: dict[str, FakeSource] = {}
        self.layers: dict[str, dict] = {}
        self.paint = defaultdict(dict)
        self.layout = defaultdict(dict)
        self.controls: list[tuple] = []
        self.center = None
        self.zoom = None
        self.removed = 0

    def on(self, event, callback):
        self.handlers[event].append(callback)
        if self._emit is not None and event == self._emit[0]:
            asyncio.get_running_loop().call_soon(callback, self._emit[1])

    def add_source(self, source_id, source):
        self.sources[source_id] = FakeSource(source["data"])

    def get_source(self, source_id):
        return self.sources.get(source_id)

    def remove_source(self, source_id):
        del self.sources[source_id]

    def add_layer(self, layer):
        self.layers[layer["id"]] = layer
        self.paint[layer["id"]] = dict(layer.get("paint", {}))
        self.layout[layer["id"]] = dict(layer.get("layout", {}))

    def get_layer(self, layer_id):
        return self.layers.get(layer_id)

    def remove_layer(self, layer_id):
        del self.layers[layer_id]

    def set_paint_property(self, layer_id, key, value):
        self.paint[layer_id][key] = value

    def set_layout_property(self, layer_id, key, value):
        self.layout[layer_id][key] = value

    def set_center(self, center):
        self.center = center

    def set_zoom(self, zoom):
        self.zoom = zoom

    def project(self, lng_lat):
        return (lng_lat[0] * 10, lng_lat[1] * 10)

    def unproject(self, pixel):
        return (pixel[0] / 10, pixel[1] / 10)

    def add_control(self, control, position):
        self.controls.append((control, position))

    def remove_control(self, control):
        self.controls = [(c, p) for c, p in self.controls if c is not control]

    def remove(self):
        self.removed += 1


def make_vector_factory(emit=("load", None)):
    created: list[FakeVectorMap] = []

    def factory(container, **options):
        m = FakeVectorMap(container, options, emit)
        created.append(m)
        return m

    factory.created = created
    return factory


# ---------------------------------------------------------------------------
# Tiled 2D engine
# ---------------------------------------------------------------------------

class FakeVectorLayer:
    def __init__(self, features, style, opacity, extra):
        self.features = features
        self.style = style
        self.opacity = opacity
        self.extra = extra
        self.visible = True

    def set_features(self, features):
        self.features = features

    def set_style(self, style):
        self.style = style

    def set_opacity(self, opacity):
        self.opacity = opacity

    def set_visible(self, visible):
        self.visible = visible


class FakeView:
    def __init__(self, center, zoom, projection):
        self.center = center
        self.zoom = zoom
        self.projection = projection

    def set_center(self, center):
        self.center = center

    def set_zoom(self, zoom):
        self.zoom = zoom


class FakeTiledMap:
    def __init__(self, target, view, options):
        self.target = target
        self.view = FakeView(**view)
        self.options = options
        self.layers: list[FakeVectorLayer] = []
        self.controls: list = []

    def get_view(self):
        return self.view

    def add_vector_layer(self, features, style, opacity, **extra):
        layer = FakeVectorLayer(features, style, opacity, extra)
        self.layers.append(layer)
        return layer

    def remove_layer(self, layer):
        self.layers.remove(layer)

    def get_pixel_from_coordinate(self, coord):
        return [coord[0] / 1000, coord[1] / 1000]

    def get_coordinate_from_pixel(self, pixel):
        return [pixel[0] * 1000, pixel[1] * 1000]

    def add_control(self, control):
        self.controls.append(control)

    def remove_control(self, control):
        self.controls.remove(control)

    def set_target(self, target):
        self.target = target


def make_tiled_factory():
    created: list[FakeTiledMap] = []

    def factory(target, view, **options):
        m = FakeTiledMap(target, view, options)
        created.append(m)
        return m

    factory.created = created
    return factory


# ---------------------------------------------------------------------------
# Commercial 2D engine
# ---------------------------------------------------------------------------

class FakeOverlay:
    def __init__(self, overlay_type, options):
        self.overlay_type = overlay_type
        self.options = dict(options)
        self.map = None
        self.set_map_calls = 0

    def set_map(self, m):
        self.map = m
        self.set_map_calls += 1

    def set_position(self, position):
        self.options["position"] = position

    def set_path(self, path):
        self.options["path"] = path

    def set_options(self, options):
        self.options.update(options)


class FakeCommercialMap(FakeVectorMap):
    def __init__(self, container, options, emit):
        super().__init__(container, options, emit)
        self.destroyed = 0

    def lnglat_to_pixel(self, lng_lat):
        return (lng_lat[0] * 10, lng_lat[1] * 10)

    def pixel_to_lnglat(self, pixel):
        return (pixel[0] / 10, pixel[1] / 10)

    def get_distance(self, a, b):
        return round(haversine_distance(a, b, radius=6378137.0), 2)

    def destroy(self):
        self.destroyed += 1


class CommercialEngine:
    """Loader, map factory and overlay factory sharing one call log."""

    def __init__(self, emit=("complete", None), loader_error=None):
        self.emit = emit
        self.loader_error = loader_error
        self.loads: list[dict] = []
        self.maps: list[FakeCommercialMap] = []
        self.overlays: list[FakeOverlay] = []

    async def loader(self, key, version, plugins):
        self.loads.append({"key": key, "version": version, "plugins": plugins})
        if self.loader_error is not None:
            raise self.loader_error

    def map_factory(self, container, **options):
        m = FakeCommercialMap(container, options, self.emit)
        self.maps.append(m)
        return m

    def overlay_factory(self, overlay_type, options):
        overlay = FakeOverlay(overlay_type, options)
        self.overlays.append(overlay)
        return overlay


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def make_backend():
    """Factory for FakeBackend with custom load behavior."""
    return FakeBackend


@pytest.fixture
def viewer_factory():
    return make_viewer_factory()


@pytest.fixture
def vector_factory():
    return make_vector_factory()


@pytest.fixture
def make_vector_map_factory():
    return make_vector_factory


@pytest.fixture
def tiled_factory():
    return make_tiled_factory()


@pytest.fixture
def commercial_engine():
    return CommercialEngine()


@pytest.fixture
def make_commercial_engine():
    return CommercialEngine


@pytest.fixture
def custom_control():
    """A caller-built DOM-ish control."""
    return SimpleNamespace(parent_node=None)
