"""Unit tests for ProjectionManager."""

from __future__ import annotations

import asyncio
import math

import pytest

from geofacade.managers.projection import EARTH_RADIUS, MAX_MERCATOR_LAT, ProjectionManager
from geofacade.types import GeodeticPoint, ProjectedPoint


@pytest.fixture
def pm():
    return ProjectionManager()


@pytest.mark.unit
class TestWebMercator:
    def test_origin(self, pm):
        assert pm.lng_lat_to_web_mercator([0, 0]) == pytest.approx((0.0, 0.0), abs=1e-9)

    def test_antimeridian_x(self, pm):
        x, _ = pm.lng_lat_to_web_mercator([180, 0])
        assert x == pytest.approx(math.pi * EARTH_RADIUS)
        assert x == pytest.approx(20037508.342789244)

    def test_max_latitude_is_square(self, pm):
        _, y = pm.lng_lat_to_web_mercator([0, MAX_MERCATOR_LAT])
        assert y == pytest.approx(20037508.342789244, rel=1e-9)

    def test_poles_map_to_infinity(self, pm):
        x, y = pm.lng_lat_to_web_mercator([10, -90])
        assert x == pytest.approx(math.radians(10) * EARTH_RADIUS)
        assert y == -math.inf
        assert pm.lng_lat_to_web_mercator([10, 90]).y == math.inf

    def test_returns_named_tuples(self, pm):
        assert isinstance(pm.lng_lat_to_web_mercator([1, 2]), ProjectedPoint)
        assert isinstance(pm.web_mercator_to_lng_lat([1, 2]), GeodeticPoint)

    @pytest.mark.parametrize("lng", [-179.5, -90.0, 0.0, 45.25, 116.397428, 179.9])
    @pytest.mark.parametrize("lat", [-90.0, -85.0, -45.0, 0.0, 39.90923, 85.0, 90.0])
    def test_round_trip_within_tolerance(self, pm, lng, lat):
        back = pm.web_mercator_to_lng_lat(pm.lng_lat_to_web_mercator([lng, lat]))
        assert abs(back.lng - lng) < 1e-6
        assert abs(back.lat - lat) < 1e-6

    def test_mercator_aliases(self, pm):
        p = [116.397428, 39.90923]
        assert pm.lng_lat_to_mercator(p) == pm.lng_lat_to_web_mercator(p)
        m = pm.lng_lat_to_mercator(p)
        assert pm.mercator_to_lng_lat(m) == pm.web_mercator_to_lng_lat(m)


@pytest.mark.unit
class TestAngles:
    def test_to_radians(self):
        assert ProjectionManager.to_radians(180) == pytest.approx(math.pi)

    def test_to_degrees(self):
        assert ProjectionManager.to_degrees(math.pi / 2) == pytest.approx(90)


@pytest.mark.unit
class TestCartesian:
    def test_round_trip(self, pm):
        xyz = pm.lng_lat_to_cartesian([116.397428, 39.90923, 1000])
        back = pm.cartesian_to_lng_lat(xyz)
        assert back.lng == pytest.approx(116.397428, abs=1e-9)
        assert back.lat == pytest.approx(39.90923, abs=1e-9)
        assert back.height == pytest.approx(1000, abs=1e-3)

    def test_cartesian_mercator_round_trip(self, pm):
        m = pm.lng_lat_to_mercator([10, 20])
        xyz = pm.mercator_to_cartesian(m)
        back = pm.cartesian_to_mercator(xyz)
        assert back.x == pytest.approx(m.x, abs=1e-3)
        assert back.y == pytest.approx(m.y, abs=1e-3)


@pytest.mark.unit
class TestPyprojTransform:
    def test_matches_closed_form_mercator(self, pm):
        x, y = pm.transform((116.397428, 39.90923), "EPSG:4326", "EPSG:3857")
        expected = pm.lng_lat_to_web_mercator([116.397428, 39.90923])
        assert x == pytest.approx(expected.x, abs=1e-3)
        assert y == pytest.approx(expected.y, abs=1e-3)

    def test_same_crs_is_identity(self, pm):
        assert pm.transform((1.5, 2.5), "EPSG:4326", "EPSG:4326") == (1.5, 2.5)

    def test_transformer_cached(self, pm):
        pm.transform((0, 0), "EPSG:4326", "EPSG:3857")
        pm.transform((1, 1), "EPSG:4326", "EPSG:3857")
        assert len(pm._transformers) == 1

    def test_unknown_crs_raises_value_error(self, pm):
        with pytest.raises(ValueError):
            pm.transform((0, 0), "EPSG:4326", "NOT-A-CRS")

    def test_is_valid_projection(self, pm):
        assert pm.is_valid_projection("EPSG:3857") is True
        assert pm.is_valid_projection("EPSG:4326") is True
        assert pm.is_valid_projection("NOT-A-CRS") is False


@pytest.mark.unit
class TestConvert:
    def test_without_backend_returns_input(self, pm):
        result = asyncio.run(pm.convert([116.4, 39.9]))
        assert result == GeodeticPoint(116.4, 39.9)
        assert pm.supports_convert is False

    def test_backend_without_capability_returns_input(self, make_backend):
        backend = make_backend()
        pm = ProjectionManager(backend)
        assert asyncio.run(pm.convert([116.4, 39.9])) == GeodeticPoint(116.4, 39.9)
        assert backend.converted == []

    def test_delegates_to_converting_backend(self, make_backend):
        backend = make_backend(capabilities={"crs_convert"})
        pm = ProjectionManager(backend)
        result = asyncio.run(pm.convert([116.4, 39.9], target_system="gcj02"))
        assert result.lng == pytest.approx(116.406)
        assert backend.converted[0][1:] == ("gps", "gcj02")

    def test_destroy_detaches_backend(self, make_backend):
        backend = make_backend(capabilities={"crs_convert"})
        pm = ProjectionManager(backend)
        pm.destroy()
        assert asyncio.run(pm.convert([1, 2])) == GeodeticPoint(1, 2)
        assert backend.converted == []
