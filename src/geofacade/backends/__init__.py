"""Backend capability interface and registry."""

from geofacade.backends.base import MapBackend, maybe_await, wait_for_engine_event
from geofacade.backends.registry import BackendRegistry, registry

__all__ = [
    "BackendRegistry",
    "MapBackend",
    "maybe_await",
    "registry",
    "wait_for_engine_event",
]
