"""
Deviation Synthesizer

Builds safer variants of a path by bending it away from hazards. Detours are
purely geometric: a stretch of path is replaced by a quadratic Bezier curve whose
control point is pushed sideways, towards whichever side of the path scores
safer. Nothing here knows about streets, so a detour may leave walkable ground.

Every synthesized path is a new list. When it would be more than
MAX_LENGTH_RATIO times longer than the input, it is discarded and the input path
object is returned unchanged.
"""
import logging
import math
from datetime import datetime
from functools import reduce
from typing import Any, Callable, Dict, List, Optional

from config import get_config
from services.danger_segments import DangerSegmentDetector
from services.hazard_weighting import HazardWeightingModel, MALFORMED_REPORT_ERRORS
from services.time_decay import local_now
from utils.distance import distance_km, path_length_km
from utils.geo import (
    hazard_coordinate,
    midpoint,
    offset_point,
    quadratic_bezier,
    unit_perpendicular,
)
from utils.secure_logging import hash_identifier
from utils.validators import normalize_preferences

logger = logging.getLogger(__name__)

# Repulsion route tuning (degrees of displacement per unit of force)
REPULSION_SCALE_DEG = 0.0001
REPULSION_MIN_SEVERITY = 4.0


class DeviationSynthesizer:
    """
    Synthesizes detoured paths around hazards.

    Args:
        settings: Configuration class/object (defaults to get_config())
        clock: Callable returning the current datetime, used for report ageing
        weighting: Optional HazardWeightingModel
        detector: Optional DangerSegmentDetector
    """

    def __init__(
        self,
        settings=None,
        clock: Optional[Callable[[], datetime]] = None,
        weighting: Optional[HazardWeightingModel] = None,
        detector: Optional[DangerSegmentDetector] = None
    ):
        self.settings = settings or get_config()
        self.clock = clock or local_now
        self.weighting = weighting or HazardWeightingModel(self.settings, self.clock)
        self.detector = detector or DangerSegmentDetector(self.settings, self.weighting)

    # ========== Detour geometry ==========

    def hazard_profiles(self, hazards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Precompute location, radius, effective severity and avoidance of each hazard.

        Malformed reports are logged and skipped.
        """
        now = self.clock()
        profiles = []
        for report in hazards:
            try:
                category_config = self.weighting.get_category_config(report.get('category'))
                profiles.append({
                    'location': hazard_coordinate(report),
                    'danger_radius_m': category_config['danger_radius_m'],
                    'avoidance_factor': category_config['avoidance_factor'],
                    'effective_severity': self.weighting.effective_severity(report, now),
                })
            except MALFORMED_REPORT_ERRORS as e:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Skipping malformed hazard report {hash_identifier(report_id)}: {e}")
        return profiles

    @staticmethod
    def score_detour_point(point: Dict[str, float], profiles: List[Dict[str, Any]]) -> float:
        """
        Local safety of a candidate detour point: 10 minus the weight of every hazard
        within twice its danger radius, falling off linearly over that window.
        """
        score = 10.0
        for profile in profiles:
            window_m = profile['danger_radius_m'] * 2
            distance_m = distance_km(point, profile['location']) * 1000
            if window_m > 0 and distance_m <= window_m:
                falloff = 1 - min(1.0, distance_m / window_m)
                score -= profile['effective_severity'] * profile['avoidance_factor'] * falloff
        return score

    def choose_detour_side(
        self,
        center: Dict[str, float],
        perpendicular: tuple,
        profiles: List[Dict[str, Any]]
    ) -> int:
        """
        Pick the safer side (-1 or +1) of the path at `center`.

        Each side is sampled at the DETOUR_SAMPLE_OFFSETS_M distances and the sample
        scores are summed; the strictly higher sum wins, ties go to side -1.
        """
        best_side = -1
        best_score = -math.inf
        for side in (-1, 1):
            direction = (side * perpendicular[0], side * perpendicular[1])
            side_score = sum(
                self.score_detour_point(offset_point(center, direction, meters), profiles)
                for meters in self.settings.DETOUR_SAMPLE_OFFSETS_M
            )
            if side_score > best_score:
                best_score = side_score
                best_side = side
        return best_side

    def _detour_section(
        self,
        path: List[Dict[str, float]],
        start_index: int,
        end_index: int,
        profiles: List[Dict[str, Any]],
        max_deviation_m: float
    ) -> List[Dict[str, float]]:
        start_point = path[start_index]
        end_point = path[end_index]
        num_points = end_index - start_index + 1
        if num_points == 1:
            return [dict(start_point)]

        center = midpoint(start_point, end_point)
        perpendicular = unit_perpendicular(start_point, end_point)
        side = self.choose_detour_side(center, perpendicular, profiles)
        control = offset_point(center, (side * perpendicular[0], side * perpendicular[1]), max_deviation_m)

        return [
            quadratic_bezier(start_point, control, end_point, i / (num_points - 1))
            for i in range(num_points)
        ]

    def create_detour(
        self,
        path: List[Dict[str, float]],
        segment: Dict[str, int],
        hazards: List[Dict[str, Any]],
        max_deviation_m: Optional[float] = None
    ) -> List[Dict[str, float]]:
        """
        Curved replacement for one danger segment.

        Args:
            path: Ordered list of {'lat', 'lng'} points
            segment: {'start_index', 'end_index'} into the path
            hazards: Hazard reports used to choose the detour side
            max_deviation_m: Sideways displacement of the Bezier control point
                (defaults to DEFAULT_DETOUR_DEVIATION_M)

        Returns:
            New points, as many as the segment spans, starting and ending on the
            segment's endpoints
        """
        if max_deviation_m is None:
            max_deviation_m = self.settings.DEFAULT_DETOUR_DEVIATION_M
        return self._detour_section(
            path,
            segment['start_index'],
            segment['end_index'],
            self.hazard_profiles(hazards),
            max_deviation_m
        )

    @staticmethod
    def replace_path_section(
        path: List[Dict[str, float]],
        start_index: int,
        end_index: int,
        replacement: List[Dict[str, float]]
    ) -> List[Dict[str, float]]:
        """New path with path[start_index:end_index + 1] swapped for `replacement`."""
        return list(path[:start_index]) + list(replacement) + list(path[end_index + 1:])

    def smooth_path(self, path: List[Dict[str, float]], window: Optional[int] = None) -> List[Dict[str, float]]:
        """
        Sliding-window average of interior points; first and last points are kept.
        """
        if window is None:
            window = self.settings.SMOOTHING_WINDOW
        if len(path) <= 2:
            return list(path)

        half = window // 2
        last_index = len(path) - 1
        smoothed = [path[0]]
        for i in range(1, last_index):
            neighbours = path[max(0, i - half):min(last_index, i + half) + 1]
            smoothed.append({
                'lat': sum(p['lat'] for p in neighbours) / len(neighbours),
                'lng': sum(p['lng'] for p in neighbours) / len(neighbours),
            })
        smoothed.append(path[-1])
        return smoothed

    def within_length_budget(self, original: List[Dict[str, float]], candidate: List[Dict[str, float]]) -> bool:
        """True if the candidate is at most MAX_LENGTH_RATIO times the original's length."""
        return path_length_km(candidate) <= self.settings.MAX_LENGTH_RATIO * path_length_km(original)

    def _accept_or_revert(
        self,
        original: List[Dict[str, float]],
        candidate: List[Dict[str, float]],
        mode: str
    ) -> List[Dict[str, float]]:
        if self.within_length_budget(original, candidate):
            return candidate
        logger.info(
            f"Discarding {mode} detour: {path_length_km(candidate):.3f}km exceeds "
            f"{self.settings.MAX_LENGTH_RATIO}x original {path_length_km(original):.3f}km"
        )
        return original

    # ========== Route synthesis ==========

    def relevant_hazards(
        self,
        path: List[Dict[str, float]],
        hazards: List[Dict[str, Any]],
        preferences: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Hazards that actually reach the path (distance <= danger radius).

        Lighting reports only count from severity LIGHTING_DETOUR_MIN_SEVERITY up,
        and not at all when the user does not prioritize lighting.
        """
        preferences = normalize_preferences(preferences)
        relevant = []
        for report in hazards:
            try:
                category = report.get('category')
                if category == 'poor_lighting' and (
                    not preferences['prioritize_light']
                    or float(report['severity']) < self.settings.LIGHTING_DETOUR_MIN_SEVERITY
                ):
                    continue
                if self.weighting.distance_to_path_m(report, path) <= self.weighting.danger_radius_m(category):
                    relevant.append(report)
            except MALFORMED_REPORT_ERRORS as e:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Skipping malformed hazard report {hash_identifier(report_id)}: {e}")
        return relevant

    def synthesize_safer_route(
        self,
        path: List[Dict[str, float]],
        hazards: List[Dict[str, Any]],
        preferences: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, float]]:
        """
        Nudge every dangerous interior point away from the hazards around it.

        Each dangerous point is replaced, in path order, by the apex of a detour over
        its two neighbours. The deviation grows with how deep the point sits inside
        the worst hazard's radius, from DEFAULT_DETOUR_DEVIATION_M up to
        SAFER_ROUTE_MAX_DEVIATION_M. The result is smoothed.

        Returns:
            A new path, or the input path itself when nothing needs to change or
            the detour would be too long
        """
        if not path or len(path) < 3 or not hazards:
            return path

        relevant = self.relevant_hazards(path, hazards, preferences)
        if not relevant:
            return path

        profiles = self.hazard_profiles(relevant)
        dangerous_indices = [
            i for i in range(1, len(path) - 1)
            if self._clearance_needed_m(path[i], profiles) is not None
        ]
        if not dangerous_indices:
            return path

        max_deviation_m = self.settings.SAFER_ROUTE_MAX_DEVIATION_M
        default_deviation_m = self.settings.DEFAULT_DETOUR_DEVIATION_M

        def _nudge(current: List[Dict[str, float]], idx: int) -> List[Dict[str, float]]:
            clearance_m = self._clearance_needed_m(current[idx], profiles) or 0.0
            deviation_m = min(max_deviation_m, max(default_deviation_m, clearance_m))
            apex = self._detour_section(current, idx - 1, idx + 1, profiles, deviation_m)[1]
            return self.replace_path_section(current, idx, idx, [apex])

        detoured = reduce(_nudge, dangerous_indices, list(path))
        logger.debug(f"Safer route: nudged {len(dangerous_indices)} of {len(path)} points")
        return self._accept_or_revert(path, self.smooth_path(detoured), 'safer')

    @staticmethod
    def _clearance_needed_m(point: Dict[str, float], profiles: List[Dict[str, Any]]) -> Optional[float]:
        """How far inside the deepest danger radius the point is, or None if it is outside all of them."""
        clearance = None
        for profile in profiles:
            distance_m = distance_km(point, profile['location']) * 1000
            if distance_m <= profile['danger_radius_m']:
                depth = profile['danger_radius_m'] - distance_m
                clearance = depth if clearance is None else max(clearance, depth)
        return clearance

    def synthesize_max_safety_route(
        self,
        path: List[Dict[str, float]],
        hazards: List[Dict[str, Any]],
        preferences: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, float]]:
        """
        Replace each danger segment with a pronounced detour (MAX_SAFETY_DEVIATION_M).

        Falls back to synthesize_safer_route when the path has no danger segments.
        """
        if not path or len(path) < 2 or not hazards:
            return path

        segments = self.detector.find_danger_segments(path, hazards)
        if not segments:
            return self.synthesize_safer_route(path, hazards, preferences)

        profiles = self.hazard_profiles(hazards)
        max_deviation_m = self.settings.MAX_SAFETY_DEVIATION_M

        def _detour(current: List[Dict[str, float]], segment: Dict[str, int]) -> List[Dict[str, float]]:
            start, end = segment['start_index'], segment['end_index']
            section = self._detour_section(current, start, end, profiles, max_deviation_m)
            return self.replace_path_section(current, start, end, section)

        detoured = reduce(_detour, segments, list(path))
        logger.debug(f"Max safety route: detoured {len(segments)} danger segments")
        return self._accept_or_revert(path, self.smooth_path(detoured), 'max safety')

    def synthesize_repulsion_route(
        self,
        path: List[Dict[str, float]],
        hazards: List[Dict[str, Any]]
    ) -> Optional[List[Dict[str, float]]]:
        """
        Push interior points away from severe hazards.

        Every hazard with effective severity >= 4 repels points within twice its
        influence radius (30m + 10m per severity point) with an inverse-square
        falloff. Returns None when there is no severe hazard to avoid.
        """
        if not path or len(path) < 3 or not hazards:
            return None

        severe = []
        for profile in self.hazard_profiles(hazards):
            if profile['effective_severity'] >= REPULSION_MIN_SEVERITY:
                influence_m = 2 * (30 + profile['effective_severity'] * 10)
                severe.append(dict(profile, influence_m=influence_m))
        if not severe:
            return None

        def _repel(point: Dict[str, float]) -> Dict[str, float]:
            push_lat = push_lng = 0.0
            for hazard in severe:
                distance_m = distance_km(point, hazard['location']) * 1000
                if distance_m >= hazard['influence_m']:
                    continue
                force = (hazard['effective_severity'] / 5) * (1 - distance_m / hazard['influence_m']) ** 2
                d_lat = point['lat'] - hazard['location']['lat']
                d_lng = point['lng'] - hazard['location']['lng']
                magnitude = math.hypot(d_lat, d_lng)
                if magnitude > 0:
                    push_lat += d_lat / magnitude * force * REPULSION_SCALE_DEG
                    push_lng += d_lng / magnitude * force * REPULSION_SCALE_DEG
            return {'lat': point['lat'] + push_lat, 'lng': point['lng'] + push_lng}

        repelled = [path[0]] + [_repel(point) for point in path[1:-1]] + [path[-1]]
        return self._accept_or_revert(path, self.smooth_path(repelled), 'repulsion')
