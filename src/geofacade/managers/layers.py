"""LayerManager - registry of vector layer entries realized on one backend.

Manages the lifecycle of LayerEntry objects: add, update geometry, restyle,
show/hide, remove, and GeoJSON import/export.

Every operation addressing an unknown id is a silent no-op.  Re-adding an
existing id releases the old backend resources first, then registers the
new entry.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from loguru import logger

from geofacade.styles import LayerStyle, resolve_style
from geofacade.types import GeodeticPoint, GeometryKind, LayerEntry, normalize_geometry

if TYPE_CHECKING:
    from geofacade.backends.base import MapBackend
    from geofacade.events import EventBus


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _primitive_kind(kind: GeometryKind) -> GeometryKind:
    return GeometryKind.POINT if kind is GeometryKind.POINT_GROUP else kind


def _handles(entry: LayerEntry) -> list:
    if entry.kind is GeometryKind.POINT_GROUP:
        return list(entry.handle or [])
    return [] if entry.handle is None else [entry.handle]


class LayerManager:
    """Registry of active layer entries for one map facade."""

    def __init__(self, backend: MapBackend | None, event_bus: EventBus | None = None) -> None:
        self._backend = backend
        self._events = event_bus
        self._layers: dict[str, LayerEntry] = {}

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def add_point(self, layer_id: str, position: Sequence[float],
                  style: LayerStyle | dict | None = None,
                  properties: dict | None = None) -> LayerEntry | None:
        """Add a single point.  Returns the entry, or None if not ready."""
        return self._add(layer_id, GeometryKind.POINT, position, style, properties)

    def add_points(self, layer_id: str, positions: Sequence[Sequence[float]],
                   style: LayerStyle | dict | None = None,
                   properties: dict | None = None) -> LayerEntry | None:
        """Add a point group: one backend primitive per position, in order."""
        return self._add(layer_id, GeometryKind.POINT_GROUP, positions, style, properties)

    def add_line(self, layer_id: str, positions: Sequence[Sequence[float]],
                 style: LayerStyle | dict | None = None,
                 properties: dict | None = None) -> LayerEntry | None:
        return self._add(layer_id, GeometryKind.LINE, positions, style, properties)

    def add_polygon(self, layer_id: str, rings: Sequence[Any],
                    style: LayerStyle | dict | None = None,
                    properties: dict | None = None) -> LayerEntry | None:
        """Add a polygon from one ring or a list of rings (exterior first)."""
        return self._add(layer_id, GeometryKind.POLYGON, rings, style, properties)

    def add_marker(self, layer_id: str, position: Sequence[float],
                   options: LayerStyle | dict | None = None) -> LayerEntry | None:
        """Point with marker options (title, icon, offset)."""
        return self.add_point(layer_id, position, options)

    def add_markers(self, layer_id: str, positions: Sequence[Sequence[float]],
                    options: LayerStyle | dict | None = None) -> LayerEntry | None:
        return self.add_points(layer_id, positions, options)

    def _add(self, layer_id: str, kind: GeometryKind, geometry: Any,
             style: LayerStyle | dict | None, properties: dict | None) -> LayerEntry | None:
        backend = self._backend
        if backend is None:
            logger.debug(f"Layer manager not ready, ignoring add of '{layer_id}'")
            return None

        positions = normalize_geometry(kind, geometry)
        resolved = resolve_style(kind, style)

        if layer_id in self._layers:
            logger.debug(f"Layer '{layer_id}' exists, releasing before replace")
            self.remove_layer(layer_id)

        if kind is GeometryKind.POINT_GROUP:
            handle: Any = []
            try:
                for p in positions:
                    handle.append(backend.add_primitive(layer_id, GeometryKind.POINT, p, resolved))
            except Exception:
                for h in handle:
                    backend.remove_primitive(h)
                raise
        elif kind is GeometryKind.POINT:
            handle = backend.add_primitive(layer_id, kind, positions[0], resolved)
        else:
            handle = backend.add_primitive(layer_id, kind, positions, resolved)

        now = _now()
        entry = LayerEntry(
            layer_id=layer_id,
            kind=kind,
            positions=positions,
            style=resolved,
            handle=handle,
            properties=dict(properties or {}),
            created_at=now,
            updated_at=now,
        )
        self._layers[layer_id] = entry
        self._publish("layer_added", {"layer_id": layer_id, "kind": kind.value})
        return entry

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_layer_data(self, layer_id: str, geometry: Any) -> None:
        """Replace an entry's geometry in place, keeping style and visibility.

        Point groups update by index.  A shorter input leaves the trailing
        points where they were; positions beyond the group size are ignored
        because the group's backend handles are fixed at creation.
        """
        entry = self._layers.get(layer_id)
        backend = self._backend
        if entry is None or backend is None:
            return

        if entry.kind is GeometryKind.POINT_GROUP:
            new_positions = [GeodeticPoint.parse(p) for p in geometry]
            handles = entry.handle
            if len(new_positions) > len(handles):
                logger.warning(
                    f"Layer '{layer_id}': {len(new_positions)} positions for a group of "
                    f"{len(handles)}, ignoring {len(new_positions) - len(handles)} extra"
                )
            for i, p in enumerate(new_positions[:len(handles)]):
                backend.update_primitive(handles[i], GeometryKind.POINT, p)
                entry.positions[i] = p
        else:
            positions = normalize_geometry(entry.kind, geometry)
            payload = positions[0] if entry.kind is GeometryKind.POINT else positions
            backend.update_primitive(entry.handle, entry.kind, payload)
            entry.positions = positions

        entry.updated_at = _now()

    def update_layer_style(self, layer_id: str, style_delta: LayerStyle | dict) -> None:
        """Merge ``style_delta`` onto the entry's style; absent fields are kept."""
        entry = self._layers.get(layer_id)
        backend = self._backend
        if entry is None or backend is None:
            return
        entry.style = entry.style.merged(style_delta)
        prim = _primitive_kind(entry.kind)
        for h in _handles(entry):
            backend.set_style(h, prim, entry.style)
        entry.updated_at = _now()

    def show_layer(self, layer_id: str) -> None:
        self._set_visible(layer_id, True)

    def hide_layer(self, layer_id: str) -> None:
        self._set_visible(layer_id, False)

    def _set_visible(self, layer_id: str, visible: bool) -> None:
        entry = self._layers.get(layer_id)
        backend = self._backend
        if entry is None or backend is None:
            return
        for h in _handles(entry):
            backend.set_visible(h, visible)
        entry.visible = visible

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_layer(self, layer_id: str) -> bool:
        """Release an entry's backend resources and drop it.

        Returns:
            True if the entry existed, False otherwise (no error either way).
        """
        entry = self._layers.pop(layer_id, None)
        if entry is None:
            return False
        self._release(entry)
        self._publish("layer_removed", {"layer_id": layer_id})
        return True

    def remove_all_layers(self) -> None:
        for layer_id in list(self._layers):
            self.remove_layer(layer_id)

    def _release(self, entry: LayerEntry) -> None:
        if entry.released:
            return
        backend = self._backend
        if backend is not None:
            for h in _handles(entry):
                backend.remove_primitive(h)
        entry.released = True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_layer(self, layer_id: str) -> LayerEntry | None:
        return self._layers.get(layer_id)

    def list_layers(self) -> list[LayerEntry]:
        return list(self._layers.values())

    def layer_ids(self) -> list[str]:
        return list(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __contains__(self, layer_id: object) -> bool:
        return layer_id in self._layers

    # ------------------------------------------------------------------
    # GeoJSON
    # ------------------------------------------------------------------

    def to_geojson(self, include_hidden: bool = True) -> dict:
        """Export the registry as a GeoJSON FeatureCollection dict."""
        from geofacade.geojson import export_geojson

        entries = [e for e in self._layers.values() if include_hidden or e.visible]
        return export_geojson(entries)

    def add_geojson(self, data: dict | str, id_prefix: str = "",
                    style: LayerStyle | dict | None = None) -> list[str]:
        """Add every feature of a GeoJSON document as its own entry.

        Features with malformed coordinates are skipped with a warning.
        Returns the ids of the entries created.
        """
        from geofacade.geojson import parse_geojson

        added: list[str] = []
        for feature in parse_geojson(data):
            layer_id = f"{id_prefix}{feature.feature_id}"
            try:
                entry = self._add(layer_id, feature.kind, feature.coordinates, style, feature.properties)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping GeoJSON feature '{feature.feature_id}': {e}")
                continue
            if entry is not None:
                added.append(layer_id)
        return added

    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Clear every entry, then detach from the backend."""
        self.remove_all_layers()
        self._backend = None
        self._events = None

    def _publish(self, event_type: str, data: dict) -> None:
        if self._events is not None:
            self._events.publish(event_type, data)
