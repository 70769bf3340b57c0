"""
Unit tests for the local tangent plane projector.

Tests cover:
- Origin handling (set, reset, use without origin)
- Forward projection of known offsets
- Round trip accuracy within 100 km
- Polar origin guard
- Antimeridian crossing
- Haversine distance
"""

import math

import pytest

from anchor_core.localization.tangent_plane import (
    LocalTangentPlane,
    EARTH_RADIUS_M,
    distance_m,
    wrap_longitude_deg,
)


class TestOrigin:
    """Tests for origin management."""

    def test_no_origin_initially(self):
        """Test projector starts without origin."""
        plane = LocalTangentPlane()

        assert not plane.has_origin
        assert plane.origin is None

    def test_set_origin(self):
        """Test origin is stored and reported in degrees."""
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)

        assert plane.has_origin
        lat, lon = plane.origin
        assert lat == pytest.approx(52.0, abs=1e-12)
        assert lon == pytest.approx(8.0, abs=1e-12)

    def test_reset_clears_origin(self):
        """Test reset forgets the origin."""
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)
        plane.reset()

        assert not plane.has_origin

    def test_projection_without_origin_raises(self):
        """Test both conversions require an origin."""
        plane = LocalTangentPlane()

        with pytest.raises(ValueError):
            plane.to_local_ne(52.0, 8.0)

        with pytest.raises(ValueError):
            plane.to_lat_lon(0.0, 0.0)


class TestProjection:
    """Tests for forward and inverse projection."""

    def test_origin_maps_to_zero(self):
        """Test the origin itself projects to (0, 0)."""
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)

        north, east = plane.to_local_ne(52.0, 8.0)

        assert north == pytest.approx(0.0, abs=1e-9)
        assert east == pytest.approx(0.0, abs=1e-9)

    def test_north_offset(self):
        """Test one arc-second of latitude maps to R * angle meters north."""
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)

        north, east = plane.to_local_ne(52.0 + 1.0 / 3600.0, 8.0)

        expected = math.radians(1.0 / 3600.0) * EARTH_RADIUS_M
        assert north == pytest.approx(expected, rel=1e-9)
        assert east == pytest.approx(0.0, abs=1e-9)

    def test_east_offset_scaled_by_latitude(self):
        """Test east distance shrinks by cos(lat0)."""
        plane = LocalTangentPlane()
        plane.set_origin(60.0, 8.0)

        north, east = plane.to_local_ne(60.0, 8.001)

        expected = math.radians(0.001) * EARTH_RADIUS_M * math.cos(math.radians(60.0))
        assert east == pytest.approx(expected, rel=1e-9)
        assert north == pytest.approx(0.0, abs=1e-9)

    @pytest.mark.parametrize("origin", [
        (52.0, 8.0),
        (-33.9, 151.2),
        (0.0, 0.0),
        (10.0, 179.5),
        (78.2, 15.6),
    ])
    @pytest.mark.parametrize("offset", [
        (100.0, -250.0),
        (-5000.0, 12000.0),
        (70000.0, 70000.0),
    ])
    def test_round_trip(self, origin, offset):
        """Test to_lat_lon(to_local_ne(p)) returns p within 1e-6 degrees."""
        plane = LocalTangentPlane()
        plane.set_origin(*origin)

        lat, lon = plane.to_lat_lon(*offset)
        north, east = plane.to_local_ne(lat, lon)
        lat2, lon2 = plane.to_lat_lon(north, east)

        assert lat2 == pytest.approx(lat, abs=1e-6)
        assert lon2 == pytest.approx(lon, abs=1e-6)

    def test_across_antimeridian(self):
        """Test a point just east of 180° projects to a small east offset."""
        plane = LocalTangentPlane()
        plane.set_origin(-17.0, 179.9995)

        north, east = plane.to_local_ne(-17.0, -179.9995)

        expected = math.radians(0.001) * EARTH_RADIUS_M * math.cos(math.radians(-17.0))
        assert north == pytest.approx(0.0, abs=1e-9)
        assert east == pytest.approx(expected, rel=1e-6)
        assert east == pytest.approx(distance_m(-17.0, 179.9995, -17.0, -179.9995), rel=1e-3)

    def test_inverse_normalises_longitude(self):
        """Test to_lat_lon wraps past 180° into [-180, 180)."""
        plane = LocalTangentPlane()
        plane.set_origin(-17.0, 179.9995)

        east = math.radians(0.001) * EARTH_RADIUS_M * math.cos(math.radians(-17.0))
        lat, lon = plane.to_lat_lon(0.0, east)

        assert lat == pytest.approx(-17.0, abs=1e-12)
        assert lon == pytest.approx(-179.9995, abs=1e-9)

    @pytest.mark.parametrize("lon, expected", [
        (180.0, -180.0),
        (-180.0, -180.0),
        (181.0, -179.0),
        (-359.999, 0.001),
        (8.0, 8.0),
    ])
    def test_wrap_longitude(self, lon, expected):
        """Test longitude normalisation into [-180, 180)."""
        assert wrap_longitude_deg(lon) == pytest.approx(expected, abs=1e-9)

    def test_polar_origin_keeps_longitude(self):
        """Test inverse at a polar origin does not divide by cos(90°)."""
        plane = LocalTangentPlane()
        plane.set_origin(90.0, 25.0)

        lat, lon = plane.to_lat_lon(-100.0, 500.0)

        assert math.isfinite(lat)
        assert lon == pytest.approx(25.0)


class TestDistance:
    """Tests for great-circle distance."""

    def test_zero_distance(self):
        """Test identical points are 0 m apart."""
        assert distance_m(52.0, 8.0, 52.0, 8.0) == 0.0

    def test_one_degree_latitude(self):
        """Test one degree along a meridian equals R * pi / 180."""
        expected = EARTH_RADIUS_M * math.pi / 180.0

        assert distance_m(10.0, 10.0, 11.0, 10.0) == pytest.approx(expected, rel=1e-9)

    def test_symmetric(self):
        """Test distance does not depend on argument order."""
        d1 = distance_m(52.0, 8.0, 52.01, 8.02)
        d2 = distance_m(52.01, 8.02, 52.0, 8.0)

        assert d1 == pytest.approx(d2)

    def test_matches_plane_for_short_offsets(self):
        """Test haversine and plane projection agree at anchor scale."""
        plane = LocalTangentPlane()
        plane.set_origin(52.0, 8.0)
        lat, lon = plane.to_lat_lon(30.0, 40.0)

        assert distance_m(52.0, 8.0, lat, lon) == pytest.approx(50.0, abs=0.01)

    def test_antipodal(self):
        """Test antipodal points are half a circumference apart."""
        assert distance_m(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_M)
