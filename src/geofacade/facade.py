"""MapFacade - engine-neutral map lifecycle and manager access.

One facade owns one backend.  ``init`` loads the engine and builds the
four managers; ``destroy`` tears everything down in reverse dependency
order.  Managers are only handed out while the facade is READY.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Sequence
from typing import Any, Callable

from loguru import logger

from geofacade.backends.base import MapBackend
from geofacade.backends.registry import registry
from geofacade.config import settings
from geofacade.errors import InitializationError
from geofacade.events import EventBus
from geofacade.managers import ControlManager, CoordinateHelper, LayerManager, ProjectionManager
from geofacade.styles import MapOptions
from geofacade.types import GeodeticPoint


class MapState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DESTROYED = "destroyed"
    FAILED = "failed"


class MapFacade:
    """Uniform entry point over one map engine backend.

    Args:
        backend: A MapBackend instance, or a registered backend name
            ('globe', 'vector_tile', 'tiled2d', 'commercial2d').
        event_bus: Shared bus for lifecycle and registry events.  A private
            bus is created when omitted.
        **backend_kwargs: Constructor arguments when ``backend`` is a name
            (engine factory, loader, overlay factory, ...).
    """

    def __init__(self, backend: MapBackend | str, event_bus: EventBus | None = None,
                 **backend_kwargs: Any) -> None:
        if isinstance(backend, str):
            backend = registry.create(backend, **backend_kwargs)
        self._backend: MapBackend | None = backend
        self.events = event_bus or EventBus()
        self._state = MapState.UNINITIALIZED
        self._map: Any = None
        self._load_task: asyncio.Task | None = None

        self._projection: ProjectionManager | None = None
        self._coordinates: CoordinateHelper | None = None
        self._layers: LayerManager | None = None
        self._controls: ControlManager | None = None

    @property
    def state(self) -> MapState:
        return self._state

    @property
    def backend(self) -> MapBackend | None:
        return self._backend

    @property
    def is_ready(self) -> bool:
        return self._state is MapState.READY

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, container: Any, options: MapOptions | dict | None = None,
                   timeout: float | None = None) -> Any:
        """Load the engine into ``container`` and build the managers.

        Args:
            container: Rendering target handed to the engine factory.
            options: MapOptions (or a dict of them).  Unrecognized keys are
                passed through to the engine and win over everything else.
            timeout: Seconds to wait for the engine to become ready.
                Defaults to ``settings.init_timeout`` (None waits forever).

        Returns:
            The native engine.

        Raises:
            InitializationError: If the engine fails to load, times out, the
                facade is destroyed mid-load, or init was already attempted.
            pydantic.ValidationError: If ``options`` is malformed.
        """
        if self._state is not MapState.UNINITIALIZED:
            raise InitializationError(f"Cannot init a facade in state '{self._state.value}'")

        if not isinstance(options, MapOptions):
            options = MapOptions.model_validate(options or {})
        backend = self._backend
        merged = options.merged_over(backend.default_options())
        if timeout is None:
            timeout = settings.init_timeout

        self._state = MapState.INITIALIZING
        logger.info(f"Initializing {backend.name} map")
        self._load_task = asyncio.ensure_future(backend.load(container, merged))
        try:
            if timeout is None:
                engine = await self._load_task
            else:
                engine = await asyncio.wait_for(self._load_task, timeout)
        except asyncio.CancelledError:
            if self._state is MapState.DESTROYED:
                raise InitializationError(f"{backend.name} map destroyed during initialization")
            self._abort(None)
            raise
        except asyncio.TimeoutError as e:
            self._abort(e)
            raise InitializationError(f"{backend.name} map not ready after {timeout}s", e) from e
        except Exception as e:
            self._abort(e)
            raise InitializationError(f"{backend.name} map failed to load: {e}", e) from e
        finally:
            self._load_task = None

        if self._state is MapState.DESTROYED:
            # Load finished after destroy() but before this coroutine resumed.
            backend.destroy()
            raise InitializationError(f"{backend.name} map destroyed during initialization")

        try:
            self._map = engine
            self._projection = ProjectionManager(backend)
            self._coordinates = CoordinateHelper(backend, self._projection)
            self._layers = LayerManager(backend, self.events)
            self._controls = ControlManager(backend, self.events)
            self._controls.add_default_controls()
        except Exception as e:
            self._abort(e)
            raise InitializationError(f"{backend.name} managers failed to build: {e}", e) from e

        self._state = MapState.READY
        logger.info(f"{backend.name} map ready")
        self.events.publish("ready", {"backend": backend.backend_id})
        return engine

    def _abort(self, cause: BaseException | None) -> None:
        """Tear down a failed init so no partial engine state survives."""
        self._state = MapState.FAILED
        self._release_managers()
        self._map = None
        if self._backend is not None:
            try:
                self._backend.destroy()
            except Exception as e:
                logger.warning(f"Backend teardown after failed init raised: {e}")
        if cause is not None:
            logger.error(f"Map initialization failed: {cause}")
        self.events.publish("error", {"error": repr(cause)})

    def destroy(self) -> None:
        """Release managers and the engine.  Safe to call more than once.

        Destroying while ``init`` is pending cancels the load; ``init``
        then raises InitializationError.
        """
        if self._state is MapState.DESTROYED:
            return
        was_loading = self._state is MapState.INITIALIZING
        self._state = MapState.DESTROYED

        if was_loading and self._load_task is not None:
            self._load_task.cancel()

        self._release_managers()
        self._map = None
        if self._backend is not None:
            self._backend.destroy()
        logger.info("Map destroyed")
        self.events.publish("destroyed", {})

    def _release_managers(self) -> None:
        if self._controls is not None:
            self._controls.destroy()
            self._controls = None
        if self._coordinates is not None:
            self._coordinates.destroy()
            self._coordinates = None
        if self._layers is not None:
            self._layers.remove_all_layers()
            self._layers.destroy()
            self._layers = None
        if self._projection is not None:
            self._projection.destroy()
            self._projection = None

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def on_ready(self, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self.events.on("ready", handler)

    def on_error(self, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self.events.on("error", handler)

    def on_destroyed(self, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self.events.on("destroyed", handler)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_center(self, center: Sequence[float], zoom_or_duration: float | None = None) -> MapFacade:
        """Recenter the view.

        For backends with animated transitions (the globe) the second
        argument is a flight duration in seconds, default 1.  Elsewhere it
        is an optional zoom level applied after the snap.
        """
        if not self.is_ready:
            return self
        point = GeodeticPoint.parse(center)
        if "animated_view" in self._backend.capabilities:
            duration = 1.0 if zoom_or_duration is None else zoom_or_duration
            self._backend.set_view(point, duration=duration)
        else:
            self._backend.set_view(point, zoom=zoom_or_duration)
        return self

    def set_zoom(self, zoom: float) -> MapFacade:
        if self.is_ready:
            self._backend.set_zoom(zoom)
        return self

    # ------------------------------------------------------------------
    # Accessors (None unless READY)
    # ------------------------------------------------------------------

    def get_map(self) -> Any:
        return self._map if self.is_ready else None

    def get_control_manager(self) -> ControlManager | None:
        return self._controls if self.is_ready else None

    def get_coordinate_helper(self) -> CoordinateHelper | None:
        return self._coordinates if self.is_ready else None

    def get_layer_manager(self) -> LayerManager | None:
        return self._layers if self.is_ready else None

    def get_projection_manager(self) -> ProjectionManager | None:
        return self._projection if self.is_ready else None
