"""Unit tests for GeoJSON import/export of layer entries."""

from __future__ import annotations

import json

import pytest

from geofacade.geojson import entry_to_feature, export_geojson, parse_geojson
from geofacade.styles import resolve_style
from geofacade.types import GeodeticPoint, GeometryKind, LayerEntry


def _entry(layer_id, kind, positions, **kwargs):
    return LayerEntry(layer_id=layer_id, kind=kind, positions=positions,
                      style=resolve_style(kind, kwargs.pop("style", None)), **kwargs)


@pytest.mark.unit
class TestParse:
    def test_feature_collection(self):
        data = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "id": 7,
                 "geometry": {"type": "Point", "coordinates": [1, 2]},
                 "properties": {"name": "a"}},
                {"type": "Feature",
                 "geometry": {"type": "MultiPoint", "coordinates": [[1, 2], [3, 4]]}},
                {"type": "Feature",
                 "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]}},
            ],
        }
        features = parse_geojson(data)
        assert [f.feature_id for f in features] == ["7", "geojson-1", "geojson-2"]
        assert [f.kind for f in features] == [
            GeometryKind.POINT, GeometryKind.POINT_GROUP, GeometryKind.POLYGON
        ]
        assert features[0].properties == {"name": "a"}
        assert features[1].properties == {}

    def test_single_feature_from_string(self):
        text = json.dumps({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]},
            "properties": None,
        })
        (feature,) = parse_geojson(text)
        assert feature.kind is GeometryKind.LINE
        assert feature.properties == {}

    def test_malformed_json(self):
        assert parse_geojson("{not json") == []

    def test_unknown_top_level_type(self):
        assert parse_geojson({"type": "Point", "coordinates": [0, 0]}) == []
        assert parse_geojson("[1, 2]") == []

    def test_skips_unusable_features(self):
        data = {
            "type": "FeatureCollection",
            "features": [
                "garbage",
                {"type": "Feature", "geometry": None},
                {"type": "Feature", "geometry": {"type": "GeometryCollection", "geometries": []}},
                {"type": "Feature", "geometry": {"type": "Point"}},
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [5, 6]}},
            ],
        }
        features = parse_geojson(data)
        assert [f.feature_id for f in features] == ["geojson-4"]


@pytest.mark.unit
class TestExport:
    def test_point_with_height(self):
        feature = entry_to_feature(_entry("p", GeometryKind.POINT, [GeodeticPoint(1, 2, 30)]))
        assert feature["geometry"] == {"type": "Point", "coordinates": [1, 2, 30]}

    def test_point_group_as_multipoint(self):
        entry = _entry("g", GeometryKind.POINT_GROUP, [GeodeticPoint(1, 2), GeodeticPoint(3, 4)])
        assert entry_to_feature(entry)["geometry"] == {
            "type": "MultiPoint", "coordinates": [[1, 2], [3, 4]]
        }

    def test_polygon_rings(self):
        ring = [GeodeticPoint(0, 0), GeodeticPoint(1, 0), GeodeticPoint(1, 1), GeodeticPoint(0, 0)]
        entry = _entry("poly", GeometryKind.POLYGON, [ring])
        geometry = entry_to_feature(entry)["geometry"]
        assert geometry["type"] == "Polygon"
        assert geometry["coordinates"] == [[[0, 0], [1, 0], [1, 1], [0, 0]]]

    def test_properties_carry_style_and_visibility(self):
        entry = _entry("l", GeometryKind.LINE, [GeodeticPoint(0, 0), GeodeticPoint(1, 1)],
                       style={"color": "#f00", "native": {"engine": "only"}},
                       properties={"road": "A1"}, visible=False)
        props = entry_to_feature(entry)["properties"]
        assert props["road"] == "A1"
        assert props["visible"] is False
        assert props["style"]["color"] == "#f00"
        assert "native" not in props["style"]
        assert entry.properties == {"road": "A1"}

    def test_export_collection(self):
        entries = [
            _entry("a", GeometryKind.POINT, [GeodeticPoint(1, 2)]),
            _entry("b", GeometryKind.POINT, [GeodeticPoint(3, 4)]),
        ]
        fc = export_geojson(entries)
        assert fc["type"] == "FeatureCollection"
        assert [f["id"] for f in fc["features"]] == ["a", "b"]

    def test_export_then_parse_keeps_kinds(self):
        entries = [
            _entry("a", GeometryKind.LINE, [GeodeticPoint(0, 0), GeodeticPoint(1, 1)]),
        ]
        (feature,) = parse_geojson(export_geojson(entries))
        assert feature.feature_id == "a"
        assert feature.kind is GeometryKind.LINE
        assert feature.coordinates == [[0, 0], [1, 1]]
