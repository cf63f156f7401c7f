"""Backend capability interface every map engine binding must implement.

The generic facade and managers never touch an engine directly.  They call
the handful of operations below, and each provider module translates them
into its engine's native constructs (entities, style layers, vector layers,
overlays).

Every backend receives its engine factory explicitly at construction; there
is no lookup of ambient SDK globals.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any

from geofacade.styles import LayerStyle
from geofacade.types import GeodeticPoint, GeometryKind, ScreenPoint


class MapBackend(ABC):
    """Base class all engine bindings extend.

    Subclasses must define:
    - backend_id: str  - registry key ('globe', 'vector_tile', ...)
    - name: str        - human-readable engine name

    And implement load/destroy, view, screen projection, primitive and
    control operations.
    """

    # Native geodetic reference system of the engine.
    native_crs: str = "EPSG:4326"
    # Space in which distance_to_line projects onto a segment:
    # "planar" (lng/lat degrees) or "ecef" (Earth-centered meters).
    working_space: str = "planar"

    def __init__(self) -> None:
        self._engine: Any = None

    @property
    @abstractmethod
    def backend_id(self) -> str:
        """Registry key."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable engine name."""

    @property
    def capabilities(self) -> set[str]:
        """Optional capabilities this backend provides.

        Standard capabilities:
        - 'animated_view' - set_view honours a duration
        - 'geodesic'      - geodesic_distance returns engine-native values
        - 'crs_convert'   - convert() defers to an authoritative service
        - 'requires_key'  - load fails without a credential
        """
        return set()

    @property
    def engine(self) -> Any:
        """The native engine instance, or None before load / after destroy."""
        return self._engine

    def default_options(self) -> dict[str, Any]:
        """Provider defaults that MapOptions are merged over."""
        return {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def load(self, container: Any, options: dict[str, Any]) -> Any:
        """Construct the engine against ``container`` and wait until ready.

        Returns the native engine.  Raises whatever the engine reported on
        load failure; the facade wraps it in InitializationError.
        """

    @abstractmethod
    def destroy(self) -> None:
        """Release the engine.  Must tolerate being called twice."""

    # ------------------------------------------------------------------
    # View and screen projection
    # ------------------------------------------------------------------

    @abstractmethod
    def set_view(self, center: GeodeticPoint, zoom: float | None = None,
                 duration: float | None = None) -> None:
        """Move the camera.  ``duration`` is ignored unless 'animated_view'."""

    @abstractmethod
    def set_zoom(self, zoom: float) -> None:
        """Change zoom level (or camera height for globe engines)."""

    @abstractmethod
    def project(self, point: GeodeticPoint) -> ScreenPoint | None:
        """Geodetic to viewport pixels; None when not renderable."""

    @abstractmethod
    def unproject(self, pixel: ScreenPoint) -> GeodeticPoint | None:
        """Viewport pixels to geodetic; None when off the map/globe."""

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def add_primitive(self, layer_id: str, kind: GeometryKind, geometry: Any,
                      style: LayerStyle) -> Any:
        """Create one native primitive and return its handle.

        ``kind`` is POINT, LINE or POLYGON; point groups are realized by the
        layer manager as one POINT primitive per position.  ``geometry`` is a
        GeodeticPoint, a list of them, or a list of rings respectively.
        """

    @abstractmethod
    def update_primitive(self, handle: Any, kind: GeometryKind, geometry: Any) -> None:
        """Replace a primitive's geometry in place."""

    @abstractmethod
    def set_style(self, handle: Any, kind: GeometryKind, style: LayerStyle) -> None:
        """Apply a fully resolved style to a primitive."""

    @abstractmethod
    def set_visible(self, handle: Any, visible: bool) -> None:
        """Show or hide a primitive without releasing it."""

    @abstractmethod
    def remove_primitive(self, handle: Any) -> None:
        """Release a primitive's engine resources."""

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    @abstractmethod
    def create_control(self, kind: str, options: dict[str, Any]) -> Any:
        """Build a native control for ``kind`` (zoom, scale, fullscreen, compass)."""

    @abstractmethod
    def add_control(self, control: Any, position: str) -> None:
        """Attach a native control at a logical position."""

    @abstractmethod
    def remove_control(self, control: Any) -> None:
        """Detach a native control."""

    def default_controls(self) -> Any:
        """Attach the provider baseline controls and return their handle.

        The control manager registers the result under 'default'.  None
        means the engine has no baseline set.
        """
        return None

    # ------------------------------------------------------------------
    # Optional geodesy
    # ------------------------------------------------------------------

    def geodesic_distance(self, a: GeodeticPoint, b: GeodeticPoint) -> float | None:
        """Engine-native geodesic distance in meters, or None if unavailable."""
        return None

    async def convert(self, point: GeodeticPoint, source: str, target: str) -> GeodeticPoint:
        """Authoritative datum conversion.  Only 'crs_convert' backends override."""
        raise NotImplementedError(f"{self.name} has no coordinate conversion service")


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if the engine factory handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


async def wait_for_engine_event(engine: Any, ready_event: str, error_event: str = "error") -> None:
    """Suspend until the engine emits ``ready_event``; raise on ``error_event``.

    The engine must expose ``on(event_name, callback)``.  No timeout is
    applied here; the facade decides whether to bound the wait.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _ready(*_args: Any) -> None:
        if not future.done():
            future.set_result(None)

    def _error(err: Any = None, *_args: Any) -> None:
        if not future.done():
            if isinstance(err, BaseException):
                future.set_exception(err)
            else:
                future.set_exception(RuntimeError(f"engine reported {error_event}: {err!r}"))

    engine.on(ready_event, _ready)
    engine.on(error_event, _error)
    await future
