"""GeoJSON (RFC 7946) import and export for layer entries.

Coordinates are [lng, lat] or [lng, lat, height], the same convention the
layer registry stores, so no reordering happens in either direction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from geofacade.types import GeodeticPoint, GeometryKind, LayerEntry

_GEOMETRY_KINDS = {
    "Point": GeometryKind.POINT,
    "MultiPoint": GeometryKind.POINT_GROUP,
    "LineString": GeometryKind.LINE,
    "Polygon": GeometryKind.POLYGON,
}
_GEOMETRY_TYPES = {kind: name for name, kind in _GEOMETRY_KINDS.items()}


@dataclass
class GeoJSONFeature:
    """One importable feature.

    Attributes:
        feature_id: Feature "id", or ``geojson-<index>`` when absent.
        kind: Geometry kind the feature maps to.
        coordinates: Raw GeoJSON coordinate arrays.
        properties: Feature properties, passed through.
    """

    feature_id: str
    kind: GeometryKind
    coordinates: list
    properties: dict = field(default_factory=dict)


def parse_geojson(data: dict | str) -> list[GeoJSONFeature]:
    """Parse a FeatureCollection or single Feature.

    Unsupported geometry types (MultiLineString, GeometryCollection, ...)
    are skipped.  Returns an empty list on malformed JSON.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid GeoJSON: {e}")
            return []
    if not isinstance(data, dict):
        return []

    if data.get("type") == "FeatureCollection":
        raw_features = data.get("features", [])
    elif data.get("type") == "Feature":
        raw_features = [data]
    else:
        return []

    features: list[GeoJSONFeature] = []
    for idx, raw in enumerate(raw_features):
        feature = _parse_feature(raw, idx)
        if feature is not None:
            features.append(feature)
    return features


def _parse_feature(raw: dict, idx: int) -> GeoJSONFeature | None:
    if not isinstance(raw, dict):
        return None

    geometry = raw.get("geometry")
    if not isinstance(geometry, dict):
        return None

    kind = _GEOMETRY_KINDS.get(geometry.get("type", ""))
    coordinates = geometry.get("coordinates")
    if kind is None or coordinates is None:
        logger.debug(f"Skipping feature {idx}: unsupported geometry {geometry.get('type')!r}")
        return None

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    feature_id = raw.get("id", f"geojson-{idx}")
    return GeoJSONFeature(
        feature_id=str(feature_id),
        kind=kind,
        coordinates=coordinates,
        properties=properties,
    )


def _coords(p: GeodeticPoint) -> list[float]:
    return [p.lng, p.lat, p.height] if p.height else [p.lng, p.lat]


def entry_to_feature(entry: LayerEntry) -> dict:
    """Convert a LayerEntry to a GeoJSON Feature dict."""
    if entry.kind is GeometryKind.POINT:
        coordinates: list = _coords(entry.positions[0])
    elif entry.kind is GeometryKind.POLYGON:
        coordinates = [[_coords(p) for p in ring] for ring in entry.positions]
    else:
        coordinates = [_coords(p) for p in entry.positions]

    properties = dict(entry.properties)
    properties["style"] = entry.style.model_dump(exclude_none=True, exclude={"native"})
    properties["visible"] = entry.visible
    return {
        "type": "Feature",
        "id": entry.layer_id,
        "geometry": {
            "type": _GEOMETRY_TYPES[entry.kind],
            "coordinates": coordinates,
        },
        "properties": properties,
    }


def export_geojson(entries: Iterable[LayerEntry]) -> dict:
    """Export layer entries as a GeoJSON FeatureCollection dict."""
    return {
        "type": "FeatureCollection",
        "features": [entry_to_feature(e) for e in entries],
    }
