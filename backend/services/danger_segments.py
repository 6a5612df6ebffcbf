"""
Danger-Segment Detector

Scans a path for contiguous runs of points that lie within some hazard's danger
radius. Each run is widened by one index on both sides so a detour can be
anchored on points that are known to be safe; widened runs that touch or overlap
are merged.
"""
import logging
from functools import reduce
from typing import Any, Dict, List, Tuple

from config import get_config
from services.hazard_weighting import HazardWeightingModel, MALFORMED_REPORT_ERRORS
from utils.distance import distance_km
from utils.geo import hazard_coordinate
from utils.secure_logging import hash_identifier

logger = logging.getLogger(__name__)


def _merge_segment(segments: Tuple[Dict[str, int], ...], segment: Dict[str, int]) -> Tuple[Dict[str, int], ...]:
    """Fold step: append a segment, merging it into the previous one when they share indices."""
    if segments and segment['start_index'] <= segments[-1]['end_index']:
        previous = segments[-1]
        merged = {
            'start_index': previous['start_index'],
            'end_index': max(previous['end_index'], segment['end_index']),
        }
        return segments[:-1] + (merged,)
    return segments + (segment,)


class DangerSegmentDetector:
    """Finds DangerSegments ({'start_index', 'end_index'}) along a path."""

    def __init__(self, settings=None, weighting: HazardWeightingModel = None):
        self.settings = settings or get_config()
        self.weighting = weighting or HazardWeightingModel(self.settings)

    def danger_zones(self, hazards: List[Dict[str, Any]]) -> List[Tuple[Dict[str, float], float]]:
        """(location, danger_radius_m) for every well-formed hazard."""
        zones = []
        for report in hazards:
            try:
                zones.append((hazard_coordinate(report), self.weighting.danger_radius_m(report.get('category'))))
            except MALFORMED_REPORT_ERRORS as e:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Skipping malformed hazard report {hash_identifier(report_id)}: {e}")
        return zones

    @staticmethod
    def is_point_dangerous(point: Dict[str, float], zones: List[Tuple[Dict[str, float], float]]) -> bool:
        """True if the point lies within the danger radius of any zone."""
        return any(distance_km(point, location) * 1000 <= radius for location, radius in zones)

    def find_danger_segments(self, path: List[Dict[str, float]], hazards: List[Dict[str, Any]]) -> List[Dict[str, int]]:
        """
        Find the dangerous segments of a path.

        Args:
            path: Ordered list of {'lat', 'lng'} points
            hazards: Hazard reports

        Returns:
            Non-overlapping segments in path order, each
            {'start_index', 'end_index'} with 0 <= start <= end < len(path)
        """
        if not path or not hazards:
            return []

        zones = self.danger_zones(hazards)
        if not zones:
            return []

        last_index = len(path) - 1
        flags = [self.is_point_dangerous(point, zones) for point in path]

        runs = []
        run_start = None
        for idx, dangerous in enumerate(flags):
            if dangerous and run_start is None:
                run_start = idx
            elif not dangerous and run_start is not None:
                runs.append((run_start, idx - 1))
                run_start = None
        if run_start is not None:
            runs.append((run_start, last_index))

        widened = (
            {'start_index': max(0, start - 1), 'end_index': min(last_index, end + 1)}
            for start, end in runs
        )
        return list(reduce(_merge_segment, widened, ()))
