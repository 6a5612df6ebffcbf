"""
Tests for geospatial helpers
"""
import math
import pytest
from utils.geo import (
    is_valid_coordinates,
    hazard_coordinate,
    point_to_segment_distance_km,
    min_distance_to_path_km,
    quadratic_bezier,
    midpoint,
    unit_perpendicular,
    offset_point,
    flat_distance_deg,
)

# One step is ~19.76m of longitude at this latitude
LAT = 48.8566
STEP = 0.00027


class TestCoordinateValidity:
    """Test coordinate range validation"""

    @pytest.mark.parametrize('lat,lng', [(0, 0), (90, 180), (-90, -180), (48.8566, 2.3522)])
    def test_valid(self, lat, lng):
        assert is_valid_coordinates(lat, lng) is True

    @pytest.mark.parametrize('lat,lng', [
        (91, 0), (0, 181), (float('nan'), 0), (0, float('inf')), ('abc', 0), (None, 0)
    ])
    def test_invalid(self, lat, lng):
        assert is_valid_coordinates(lat, lng) is False


class TestHazardCoordinate:
    """Test report location extraction"""

    def test_plain_location(self):
        """Test {'lat', 'lng'} locations"""
        report = {'location': {'lat': 48.85, 'lng': 2.35}}
        assert hazard_coordinate(report) == {'lat': 48.85, 'lng': 2.35}

    def test_geojson_location(self):
        """Test GeoJSON points are [lng, lat]"""
        report = {'location': {'type': 'Point', 'coordinates': [2.35, 48.85]}}
        assert hazard_coordinate(report) == {'lat': 48.85, 'lng': 2.35}

    def test_missing_location_raises(self):
        """Test reports without location raise KeyError"""
        with pytest.raises(KeyError):
            hazard_coordinate({'category': 'obstacle'})


class TestSegmentDistance:
    """Test point-to-segment distance"""

    def test_point_on_segment(self):
        """Test a point on the segment is at distance 0"""
        start = {'lat': LAT, 'lng': 2.35}
        end = {'lat': LAT, 'lng': 2.35 + 10 * STEP}
        point = {'lat': LAT, 'lng': 2.35 + 5 * STEP}
        assert point_to_segment_distance_km(point, start, end) == pytest.approx(0.0, abs=1e-6)

    def test_perpendicular_distance(self):
        """Test distance measured perpendicular to the segment (~20m north)"""
        start = {'lat': LAT, 'lng': 2.35}
        end = {'lat': LAT, 'lng': 2.35 + 10 * STEP}
        point = {'lat': LAT + 0.00018, 'lng': 2.35 + 5 * STEP}
        assert point_to_segment_distance_km(point, start, end) * 1000 == pytest.approx(20.0, abs=0.2)

    def test_projection_clamped_to_endpoint(self):
        """Test points beyond the segment measure to the nearest endpoint"""
        start = {'lat': LAT, 'lng': 2.35}
        end = {'lat': LAT, 'lng': 2.35 + STEP}
        point = {'lat': LAT, 'lng': 2.35 + 3 * STEP}
        expected = point_to_segment_distance_km(point, end, end)
        assert point_to_segment_distance_km(point, start, end) == pytest.approx(expected)
        assert expected * 1000 == pytest.approx(2 * 19.76, abs=0.2)

    def test_degenerate_segment(self):
        """Test zero-length segments measure to the start point"""
        start = {'lat': LAT, 'lng': 2.35}
        point = {'lat': LAT + 0.001, 'lng': 2.35}
        assert point_to_segment_distance_km(point, start, dict(start)) == pytest.approx(0.1112, abs=0.001)

    def test_min_distance_to_path(self):
        """Test minimum over all path segments"""
        path = [
            {'lat': LAT, 'lng': 2.35},
            {'lat': LAT, 'lng': 2.35 + STEP},
            {'lat': LAT + 0.001, 'lng': 2.35 + STEP},
        ]
        point = {'lat': LAT + 0.0005, 'lng': 2.35 + STEP}
        assert min_distance_to_path_km(point, path) == pytest.approx(0.0, abs=1e-6)


class TestDetourGeometry:
    """Test Bezier and offset helpers"""

    def test_bezier_endpoints(self):
        """Test t=0 and t=1 return the curve endpoints"""
        p0 = {'lat': 0.0, 'lng': 0.0}
        control = {'lat': 1.0, 'lng': 0.5}
        p1 = {'lat': 0.0, 'lng': 1.0}
        assert quadratic_bezier(p0, control, p1, 0) == p0
        assert quadratic_bezier(p0, control, p1, 1) == p1

    def test_bezier_midpoint(self):
        """Test t=0.5 reaches half of the control displacement"""
        p0 = {'lat': 0.0, 'lng': 0.0}
        control = {'lat': 1.0, 'lng': 0.5}
        p1 = {'lat': 0.0, 'lng': 1.0}
        point = quadratic_bezier(p0, control, p1, 0.5)
        assert point['lat'] == pytest.approx(0.5)
        assert point['lng'] == pytest.approx(0.5)

    def test_midpoint(self):
        assert midpoint({'lat': 0, 'lng': 0}, {'lat': 2, 'lng': 4}) == {'lat': 1, 'lng': 2}

    def test_unit_perpendicular_eastbound(self):
        """Test perpendicular of an eastbound segment points along latitude"""
        perp = unit_perpendicular({'lat': 0, 'lng': 0}, {'lat': 0, 'lng': 1})
        assert perp == (-1.0, 0.0)

    def test_unit_perpendicular_is_unit_length(self):
        perp = unit_perpendicular({'lat': 0, 'lng': 0}, {'lat': 3, 'lng': 4})
        assert math.hypot(*perp) == pytest.approx(1.0)

    def test_unit_perpendicular_degenerate(self):
        assert unit_perpendicular({'lat': 1, 'lng': 1}, {'lat': 1, 'lng': 1}) == (0.0, 0.0)

    def test_offset_point_north(self):
        """Test a 111m northward offset is one thousandth of a degree"""
        origin = {'lat': LAT, 'lng': 2.35}
        moved = offset_point(origin, (1.0, 0.0), 111)
        assert moved['lat'] == pytest.approx(LAT + 0.001)
        assert moved['lng'] == pytest.approx(2.35)

    def test_offset_point_scales_longitude(self):
        """Test longitude offsets are scaled by cos(latitude)"""
        origin = {'lat': 60.0, 'lng': 0.0}
        moved = offset_point(origin, (0.0, 1.0), 111)
        assert moved['lng'] == pytest.approx(0.0005)

    def test_flat_distance(self):
        assert flat_distance_deg({'lat': 0, 'lng': 0}, {'lat': 0.0003, 'lng': 0.0004}) == pytest.approx(0.0005)
