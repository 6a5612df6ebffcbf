"""
Route Comparator

Decides whether two candidate paths are materially the same route by sampling
both at the same number of points and averaging the distance between
corresponding samples.
"""
import math
from typing import Dict, List

from utils.distance import distance_km

DEFAULT_SIMILARITY_THRESHOLD_KM = 0.05  # 50 meters
DEFAULT_SAMPLES = 10


def sample_route(path: List[Dict[str, float]], num_samples: int = DEFAULT_SAMPLES) -> List[Dict[str, float]]:
    """
    Pick exactly `num_samples` points from the path by nearest index.

    Indices are spread evenly from the first to the last point and rounded half
    up; short paths repeat points.

    Examples:
        >>> [p['i'] for p in sample_route([{'i': i} for i in range(4)], 7)]
        [0, 1, 1, 2, 2, 3, 3]
    """
    if num_samples <= 1:
        return [path[0]]

    step = (len(path) - 1) / (num_samples - 1)
    return [path[min(int(math.floor(i * step + 0.5)), len(path) - 1)] for i in range(num_samples)]


def routes_difference_km(
    route_a: List[Dict[str, float]],
    route_b: List[Dict[str, float]],
    num_samples: int = DEFAULT_SAMPLES
) -> float:
    """Mean great-circle distance (km) between corresponding samples of two routes."""
    sampled_a = sample_route(route_a, num_samples)
    sampled_b = sample_route(route_b, num_samples)
    total = sum(distance_km(a, b) for a, b in zip(sampled_a, sampled_b))
    return total / len(sampled_a)


def are_routes_similar(
    route_a: List[Dict[str, float]],
    route_b: List[Dict[str, float]],
    threshold_km: float = DEFAULT_SIMILARITY_THRESHOLD_KM,
    num_samples: int = DEFAULT_SAMPLES
) -> bool:
    """
    True when the routes are on average less than `threshold_km` apart.

    Args:
        route_a: First path
        route_b: Second path
        threshold_km: Similarity threshold in km (default 50m)
        num_samples: Number of points sampled from each path

    Returns:
        True if the routes should be considered duplicates
    """
    if not route_a or not route_b:
        return not route_a and not route_b
    return routes_difference_km(route_a, route_b, num_samples) < threshold_km
