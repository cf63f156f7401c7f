"""ControlManager - named UI controls attached to a map."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

from loguru import logger

from geofacade.types import (
    CONTROL_POSITIONS,
    DEFAULT_CONTROL_NAME,
    DEFAULT_CONTROL_POSITION,
    ControlEntry,
)

if TYPE_CHECKING:
    from geofacade.backends.base import MapBackend
    from geofacade.events import EventBus


def _check_position(position: str | None) -> str:
    if position is None:
        return DEFAULT_CONTROL_POSITION
    if position not in CONTROL_POSITIONS:
        logger.warning(f"Unknown control position '{position}', using {DEFAULT_CONTROL_POSITION}")
        return DEFAULT_CONTROL_POSITION
    return position


class ControlManager:
    """Registry of controls keyed by name.

    Built-in controls are registered under their kind ('zoom', 'scale',
    'fullscreen', 'compass').  Adding one again replaces the registry entry
    but leaves the earlier native control attached.  The 'default' entry
    holds the provider baseline and survives ``remove_all_controls``.
    """

    def __init__(self, backend: MapBackend | None, event_bus: EventBus | None = None) -> None:
        self._backend = backend
        self._events = event_bus
        self._controls: dict[str, ControlEntry] = {}
        self._custom_ids = itertools.count(1)

    def add_default_controls(self) -> ControlEntry | None:
        if self._backend is None:
            return None
        handle = self._backend.default_controls()
        if handle is None:
            return None
        entry = ControlEntry(name=DEFAULT_CONTROL_NAME, kind=DEFAULT_CONTROL_NAME, handle=handle)
        self._controls[DEFAULT_CONTROL_NAME] = entry
        return entry

    def add_zoom_control(self, options: dict | None = None) -> ControlEntry | None:
        return self._add_builtin("zoom", options)

    def add_scale_control(self, options: dict | None = None) -> ControlEntry | None:
        return self._add_builtin("scale", options)

    def add_fullscreen_control(self, options: dict | None = None) -> ControlEntry | None:
        return self._add_builtin("fullscreen", options)

    def add_compass_control(self, options: dict | None = None) -> ControlEntry | None:
        """Compass / navigation control.  ``options['position']`` picks the corner."""
        return self._add_builtin("compass", options)

    def _add_builtin(self, kind: str, options: dict | None) -> ControlEntry | None:
        backend = self._backend
        if backend is None:
            return None
        opts = dict(options or {})
        position = _check_position(opts.pop("position", None))
        control = backend.create_control(kind, opts)
        backend.add_control(control, position)
        if kind in self._controls:
            logger.debug(f"Control '{kind}' re-added, replacing registry entry")
        entry = ControlEntry(name=kind, kind=kind, handle=control, position=position, options=opts)
        self._controls[kind] = entry
        self._publish("control_added", {"name": kind})
        return entry

    def add_custom_control(self, control: Any, position: str = DEFAULT_CONTROL_POSITION,
                           name: str | None = None) -> ControlEntry | None:
        """Attach a caller-built native control.

        Args:
            control: Engine-native control object.
            position: One of top-left, top-right, bottom-left, bottom-right.
            name: Registry key; generated when omitted.
        """
        backend = self._backend
        if backend is None:
            return None
        position = _check_position(position)
        name = name or f"custom_{next(self._custom_ids)}"
        backend.add_control(control, position)
        entry = ControlEntry(name=name, kind="custom", handle=control, position=position)
        self._controls[name] = entry
        self._publish("control_added", {"name": name})
        return entry

    def remove_control(self, name: str) -> bool:
        entry = self._controls.pop(name, None)
        if entry is None:
            return False
        if self._backend is not None:
            self._backend.remove_control(entry.handle)
        self._publish("control_removed", {"name": name})
        return True

    def remove_all_controls(self) -> None:
        for name in [n for n in self._controls if n != DEFAULT_CONTROL_NAME]:
            self.remove_control(name)

    def get_control(self, name: str) -> Any:
        entry = self._controls.get(name)
        return entry.handle if entry is not None else None

    def control_names(self) -> list[str]:
        return list(self._controls)

    def destroy(self) -> None:
        self.remove_all_controls()
        # Baseline controls go away with the engine itself.
        self._controls.clear()
        self._backend = None
        self._events = None

    def _publish(self, event_type: str, data: dict) -> None:
        if self._events is not None:
            self._events.publish(event_type, data)
