"""Capability managers handed out by a ready MapFacade."""

from geofacade.managers.controls import ControlManager
from geofacade.managers.coordinates import CoordinateHelper
from geofacade.managers.layers import LayerManager
from geofacade.managers.projection import ProjectionManager

__all__ = ["ControlManager", "CoordinateHelper", "LayerManager", "ProjectionManager"]
