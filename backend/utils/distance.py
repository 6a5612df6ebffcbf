"""
Great-circle distances for walking paths.

Scoring and detour synthesis measure the same path vertices against the same
hazard locations many times per request, so the raw haversine is memoized.
"""
import math
from functools import lru_cache
from typing import Dict, List

# Earth's mean radius in kilometers
EARTH_RADIUS_KM = 6371.0


@lru_cache(maxsize=10000)
def haversine_distance(lat_a: float, lng_a: float, lat_b: float, lng_b: float) -> float:
    """
    Haversine distance in kilometers between two WGS84 positions.

    Args:
        lat_a: Latitude of the first position in degrees
        lng_a: Longitude of the first position in degrees
        lat_b: Latitude of the second position in degrees
        lng_b: Longitude of the second position in degrees

    Returns:
        Distance in kilometers

    Examples:
        >>> # Place de la Concorde to the Louvre pyramid
        >>> round(haversine_distance(48.8656, 2.3212, 48.8611, 2.3358), 2)
        1.18
        >>> haversine_distance(48.8566, 2.3522, 48.8566, 2.3522)
        0.0

    Note:
        Inputs are not range-checked; validate coordinates before calling.
    """
    phi_a = math.radians(lat_a)
    phi_b = math.radians(lat_b)
    d_phi = math.radians(lat_b - lat_a)
    d_lambda = math.radians(lng_b - lng_a)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi_a) * math.cos(phi_b) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def distance_km(a: Dict[str, float], b: Dict[str, float]) -> float:
    """Great-circle distance in km between two {'lat', 'lng'} points."""
    return haversine_distance(a['lat'], a['lng'], b['lat'], b['lng'])


def path_length_km(path: List[Dict[str, float]]) -> float:
    """
    Total length of a path as the sum of its consecutive segment distances.

    Args:
        path: Ordered list of {'lat', 'lng'} points

    Returns:
        Length in kilometers (0.0 for paths with fewer than 2 points)
    """
    return sum(distance_km(path[i - 1], path[i]) for i in range(1, len(path)))


def clear_distance_cache() -> None:
    """Drop all memoized haversine results."""
    haversine_distance.cache_clear()


def get_cache_info() -> Dict[str, int]:
    """Hit/miss counters and size of the haversine memo."""
    hits, misses, maxsize, currsize = haversine_distance.cache_info()
    return {'hits': hits, 'misses': misses, 'maxsize': maxsize, 'currsize': currsize}
