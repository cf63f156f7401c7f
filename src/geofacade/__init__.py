"""Uniform map facade over globe, vector-tile, tiled 2D and commercial 2D engines.

One generic core (MapFacade plus four managers) drives any engine through
the MapBackend capability interface.  Built-in backends live in
``geofacade.providers``; third-party ones register through the
``geofacade_backends`` entry point group.
"""

from geofacade.backends import BackendRegistry, MapBackend, registry
from geofacade.errors import BackendRegistrationError, GeoFacadeError, InitializationError
from geofacade.events import EventBus
from geofacade.facade import MapFacade, MapState
from geofacade.managers import ControlManager, CoordinateHelper, LayerManager, ProjectionManager
from geofacade.styles import LayerStyle, MapOptions
from geofacade.types import (
    ControlEntry,
    GeodeticPoint,
    GeometryKind,
    LayerEntry,
    ProjectedPoint,
    ScreenPoint,
)

__all__ = [
    "BackendRegistrationError",
    "BackendRegistry",
    "ControlEntry",
    "ControlManager",
    "CoordinateHelper",
    "EventBus",
    "GeoFacadeError",
    "GeodeticPoint",
    "GeometryKind",
    "InitializationError",
    "LayerEntry",
    "LayerManager",
    "LayerStyle",
    "MapBackend",
    "MapFacade",
    "MapOptions",
    "MapState",
    "ProjectedPoint",
    "ProjectionManager",
    "ScreenPoint",
    "registry",
]
