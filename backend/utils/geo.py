"""
Geospatial utilities for the routing engine.
Includes coordinate validation, point-to-segment distance, Bezier interpolation
and the small equirectangular offsets used to build detours.
"""
import math
from typing import Any, Dict, List, Tuple

from shapely.geometry import LineString, Point

from utils.distance import haversine_distance, distance_km

# Meters per degree of latitude (equirectangular approximation)
METERS_PER_DEGREE = 111000.0


def is_valid_coordinates(latitude: float, longitude: float) -> bool:
    """
    Validate geographic coordinates, including edge cases at equator and prime meridian.

    Args:
        latitude: Latitude value (-90 to 90), where 0 is the equator
        longitude: Longitude value (-180 to 180), where 0 is the prime meridian

    Returns:
        True if coordinates are valid, False otherwise

    Examples:
        >>> is_valid_coordinates(0, 0)  # Gulf of Guinea (equator + prime meridian)
        True
        >>> is_valid_coordinates(48.8566, 2.3522)
        True
        >>> is_valid_coordinates(91, 0)  # Invalid latitude
        False
    """
    try:
        lat = float(latitude)
        lon = float(longitude)

        # NaN and infinity checks
        if math.isnan(lat) or math.isnan(lon) or math.isinf(lat) or math.isinf(lon):
            return False

        return -90 <= lat <= 90 and -180 <= lon <= 180
    except (TypeError, ValueError):
        return False


def hazard_coordinate(report: Dict[str, Any]) -> Dict[str, float]:
    """
    Extract the {'lat', 'lng'} location of a hazard report.

    Accepts either a plain coordinate dict or a GeoJSON point
    ({'type': 'Point', 'coordinates': [lng, lat]}) as stored by the report database.

    Raises:
        KeyError, TypeError, ValueError: If the report has no usable location
    """
    location = report['location']
    if 'coordinates' in location:
        lng, lat = location['coordinates'][0], location['coordinates'][1]
    else:
        lat, lng = location['lat'], location['lng']
    return {'lat': float(lat), 'lng': float(lng)}


def point_to_segment_distance_km(
    point: Dict[str, float],
    seg_start: Dict[str, float],
    seg_end: Dict[str, float]
) -> float:
    """
    Distance from a point to a path segment, in kilometers.

    The point is projected onto the segment in flat lng/lat space (lng as x, lat as y),
    the projection is clamped to the segment, and the great-circle distance to the
    clamped point is returned.

    Args:
        point: {'lat', 'lng'} point
        seg_start: Segment start
        seg_end: Segment end

    Returns:
        Distance in kilometers
    """
    if seg_start['lat'] == seg_end['lat'] and seg_start['lng'] == seg_end['lng']:
        return distance_km(point, seg_start)

    segment = LineString([(seg_start['lng'], seg_start['lat']), (seg_end['lng'], seg_end['lat'])])
    # project() is already clamped to [0, length]
    closest = segment.interpolate(segment.project(Point(point['lng'], point['lat'])))
    return haversine_distance(point['lat'], point['lng'], closest.y, closest.x)


def min_distance_to_path_km(point: Dict[str, float], path: List[Dict[str, float]]) -> float:
    """Minimum point-to-segment distance from a point to any segment of the path."""
    if len(path) == 1:
        return distance_km(point, path[0])
    return min(
        point_to_segment_distance_km(point, path[i], path[i + 1])
        for i in range(len(path) - 1)
    )


def quadratic_bezier(
    p0: Dict[str, float],
    control: Dict[str, float],
    p1: Dict[str, float],
    t: float
) -> Dict[str, float]:
    """Point at parameter t (0..1) on the quadratic Bezier curve p0 -> control -> p1."""
    u = 1 - t
    return {
        'lat': u * u * p0['lat'] + 2 * u * t * control['lat'] + t * t * p1['lat'],
        'lng': u * u * p0['lng'] + 2 * u * t * control['lng'] + t * t * p1['lng'],
    }


def midpoint(a: Dict[str, float], b: Dict[str, float]) -> Dict[str, float]:
    """Arithmetic midpoint of two coordinates (fine for the short spans we detour over)."""
    return {'lat': (a['lat'] + b['lat']) / 2, 'lng': (a['lng'] + b['lng']) / 2}


def unit_perpendicular(start: Dict[str, float], end: Dict[str, float]) -> Tuple[float, float]:
    """
    Unit vector perpendicular to start -> end, as (dlat, dlng).

    Returns (0.0, 0.0) for a degenerate segment.
    """
    perp_lat = -(end['lng'] - start['lng'])
    perp_lng = end['lat'] - start['lat']
    magnitude = math.hypot(perp_lat, perp_lng)
    if magnitude == 0:
        return 0.0, 0.0
    return perp_lat / magnitude, perp_lng / magnitude


def offset_point(
    origin: Dict[str, float],
    direction: Tuple[float, float],
    meters: float
) -> Dict[str, float]:
    """
    Displace a point along a (dlat, dlng) unit direction by a distance in meters.

    Uses a local equirectangular approximation: the longitude component is
    scaled by cos(latitude) of the origin.
    """
    degrees = meters / METERS_PER_DEGREE
    return {
        'lat': origin['lat'] + direction[0] * degrees,
        'lng': origin['lng'] + direction[1] * degrees * math.cos(math.radians(origin['lat'])),
    }


def flat_distance_deg(a: Dict[str, float], b: Dict[str, float]) -> float:
    """Euclidean distance in raw degree space (used for hotspot clustering)."""
    return math.hypot(a['lat'] - b['lat'], a['lng'] - b['lng'])
