"""Built-in engine bindings."""

from geofacade.providers.commercial2d import Commercial2DBackend
from geofacade.providers.globe import GlobeBackend
from geofacade.providers.tiled2d import Tiled2DBackend
from geofacade.providers.vector_tile import VectorTileBackend

BUILTIN_BACKENDS = {
    "globe": GlobeBackend,
    "vector_tile": VectorTileBackend,
    "tiled2d": Tiled2DBackend,
    "commercial2d": Commercial2DBackend,
}

__all__ = [
    "BUILTIN_BACKENDS",
    "Commercial2DBackend",
    "GlobeBackend",
    "Tiled2DBackend",
    "VectorTileBackend",
]
