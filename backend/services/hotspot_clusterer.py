"""
Hotspot Clusterer

Groups nearby hazard reports into hotspots with first-fit single linkage:
each report joins the first existing cluster that has any member within
CLUSTER_RADIUS_DEG of it, otherwise it opens a new cluster.

The result depends on input order (first fit), but is deterministic for a given
order. Callers that need stable output must keep the report order stable.
"""
import logging
from functools import reduce
from typing import Any, Dict, List, Tuple

from config import get_config
from services.hazard_weighting import MALFORMED_REPORT_ERRORS
from utils.geo import flat_distance_deg, hazard_coordinate, min_distance_to_path_km
from utils.secure_logging import hash_identifier

logger = logging.getLogger(__name__)


def _centroid(points: Tuple[Dict[str, Any], ...]) -> Dict[str, float]:
    return {
        'lat': sum(p['lat'] for p in points) / len(points),
        'lng': sum(p['lng'] for p in points) / len(points),
    }


class HotspotClusterer:
    """Builds hotspots from hazard reports and flags those lying on a path."""

    def __init__(self, settings=None):
        self.settings = settings or get_config()

    def _join_cluster(self, clusters: Tuple[Dict[str, Any], ...], member: Dict[str, Any]) -> Tuple[Dict[str, Any], ...]:
        """Fold step: return a new cluster tuple with `member` placed first-fit."""
        radius = self.settings.CLUSTER_RADIUS_DEG

        for idx, cluster in enumerate(clusters):
            if any(flat_distance_deg(member, point) < radius for point in cluster['points']):
                points = cluster['points'] + (member,)
                joined = {'points': points, 'center': _centroid(points)}
                return clusters[:idx] + (joined,) + clusters[idx + 1:]

        return clusters + ({'points': (member,), 'center': {'lat': member['lat'], 'lng': member['lng']}},)

    def cluster_reports(self, hazards: List[Dict[str, Any]]) -> Tuple[Dict[str, Any], ...]:
        """
        Cluster reports without any significance filtering.

        Returns:
            Tuple of clusters, each {'points': tuple of members, 'center': {'lat', 'lng'}}
        """
        members = []
        for report in hazards:
            try:
                coord = hazard_coordinate(report)
                members.append({
                    'lat': coord['lat'],
                    'lng': coord['lng'],
                    'severity': float(report['severity']),
                    'category': report.get('category'),
                })
            except MALFORMED_REPORT_ERRORS as e:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Skipping malformed hazard report {hash_identifier(report_id)} in clustering: {e}")

        return reduce(self._join_cluster, members, ())

    def identify_hotspots(self, path: List[Dict[str, float]], hazards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Identify hotspots among the hazards and flag those on the path.

        A cluster is a hotspot when it has at least HOTSPOT_MIN_SIZE members or an
        average severity of at least HOTSPOT_MIN_SEVERITY.

        Args:
            path: Ordered list of {'lat', 'lng'} points
            hazards: Hazard reports (input order matters, see module docstring)

        Returns:
            List of hotspots sorted by descending severity:
            {'center', 'size', 'severity', 'on_path', 'categories'}
        """
        if not hazards:
            return []

        hotspots = []
        for cluster in self.cluster_reports(hazards):
            points = cluster['points']
            severity = sum(p['severity'] for p in points) / len(points)
            if len(points) < self.settings.HOTSPOT_MIN_SIZE and severity < self.settings.HOTSPOT_MIN_SEVERITY:
                continue

            categories = []
            for point in points:
                if point['category'] not in categories:
                    categories.append(point['category'])

            hotspots.append({
                'center': cluster['center'],
                'size': len(points),
                'severity': severity,
                'on_path': self.is_on_path(cluster['center'], path),
                'categories': categories,
            })

        # sorted() is stable, so equal severities keep cluster order
        return sorted(hotspots, key=lambda h: h['severity'], reverse=True)

    def is_on_path(self, point: Dict[str, float], path: List[Dict[str, float]]) -> bool:
        """True if the point lies within HOTSPOT_ON_PATH_TOLERANCE_M of any path segment."""
        if not path:
            return False
        distance_m = min_distance_to_path_km(point, path) * 1000
        return distance_m < self.settings.HOTSPOT_ON_PATH_TOLERANCE_M
