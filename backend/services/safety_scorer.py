"""
Safety Scorer

Aggregates weighted hazard reports along a path into a composite 0-10 safety
score and three sub-factors (lighting, crowdedness, report density).

Scoring:
1. Significant hazards: weight > 0 against the nearest point of the path
2. score = 10 - min(6, avg_weight * 1.2) - min(3, direct_hazards * 0.8)
   where a hazard is "direct" when it lies within half its danger radius
3. Sub-factors depend on time of day (injectable clock) and user preferences
4. Score clamped to [0, 10], factors rounded to one decimal

Degenerate paths and failed hazard lookups (hazards=None) get a neutral score
of 5 rather than an error.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config import get_config
from services.hazard_weighting import HazardWeightingModel
from services.hotspot_clusterer import HotspotClusterer
from services.time_decay import local_now
from utils.distance import path_length_km
from utils.validators import normalize_preferences

logger = logging.getLogger(__name__)

# (upper bound exclusive, score) for hazards per km; anything beyond scores 0
REPORT_DENSITY_BANDS = [
    (0.5, 9),
    (1.0, 8),
    (1.5, 7),
    (2.0, 6),
    (2.5, 5),
    (3.0, 4),
    (5.0, 3),
    (7.0, 2),
    (10.0, 1),
]


class SafetyScorer:
    """
    Computes ScoreResult dictionaries for paths.

    Args:
        settings: Configuration class/object (defaults to get_config())
        clock: Callable returning the current datetime; its hour drives the
            lighting and crowdedness heuristics
        weighting: Optional HazardWeightingModel (built from settings/clock if omitted)
        clusterer: Optional HotspotClusterer (built from settings if omitted)
    """

    NEUTRAL_SCORE = 5.0
    MAX_SCORE = 10.0

    # Score penalties
    MAX_WEIGHT_PENALTY = 6.0
    WEIGHT_PENALTY_FACTOR = 1.2
    MAX_DIRECT_PENALTY = 3.0
    DIRECT_PENALTY_PER_HAZARD = 0.8

    def __init__(
        self,
        settings=None,
        clock: Optional[Callable[[], datetime]] = None,
        weighting: Optional[HazardWeightingModel] = None,
        clusterer: Optional[HotspotClusterer] = None
    ):
        self.settings = settings or get_config()
        self.clock = clock or local_now
        self.weighting = weighting or HazardWeightingModel(self.settings, self.clock)
        self.clusterer = clusterer or HotspotClusterer(self.settings)

    @classmethod
    def neutral_result(cls) -> Dict[str, Any]:
        """Fail-open default used when a path cannot be scored."""
        return {
            'safety_score': cls.NEUTRAL_SCORE,
            'safety_factors': {
                'lighting': cls.NEUTRAL_SCORE,
                'crowdedness': cls.NEUTRAL_SCORE,
                'report_density': cls.NEUTRAL_SCORE,
            },
            'hotspots': [],
            'report_count': 0,
        }

    def compute_safety_score(
        self,
        path: List[Dict[str, float]],
        hazards: Optional[List[Dict[str, Any]]],
        preferences: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Score a path against a set of hazard reports.

        Args:
            path: Ordered list of {'lat', 'lng'} points
            hazards: Active hazard reports, or None if the lookup failed
            preferences: User preferences (prioritize_light, avoid_isolated_areas)

        Returns:
            Dictionary with:
            - safety_score: 0-10 (higher is safer)
            - safety_factors: {'lighting', 'crowdedness', 'report_density'}
            - hotspots: Hotspots formed by the significant hazards
            - report_count: Number of significant hazards
        """
        if not path or len(path) < 2:
            logger.debug("Path has fewer than 2 points, returning neutral safety score")
            return self.neutral_result()

        if hazards is None:
            logger.warning("No hazard data available, returning neutral safety score")
            return self.neutral_result()

        now = self.clock()
        preferences = normalize_preferences(preferences)
        significant = self.weighting.weigh_hazards(path, hazards, now)

        score = self.MAX_SCORE
        if significant:
            avg_weight = sum(h['weight'] for h in significant) / len(significant)
            score -= min(self.MAX_WEIGHT_PENALTY, avg_weight * self.WEIGHT_PENALTY_FACTOR)

            direct_count = sum(1 for h in significant if h['distance_m'] <= h['danger_radius_m'] / 2)
            score -= min(self.MAX_DIRECT_PENALTY, direct_count * self.DIRECT_PENALTY_PER_HAZARD)

        safety_factors = {
            'lighting': self.calculate_lighting_score(significant, preferences, now.hour),
            'crowdedness': self.calculate_crowdedness_score(significant, preferences, now.hour),
            'report_density': self.calculate_report_density(len(significant), path_length_km(path)),
        }

        hotspots = self.clusterer.identify_hotspots(path, [h['report'] for h in significant])

        return {
            'safety_score': max(0.0, min(self.MAX_SCORE, score)),
            'safety_factors': {
                name: min(self.MAX_SCORE, round(value, 1)) for name, value in safety_factors.items()
            },
            'hotspots': hotspots,
            'report_count': len(significant),
        }

    @staticmethod
    def calculate_lighting_score(
        significant: List[Dict[str, Any]],
        preferences: Dict[str, bool],
        hour: int
    ) -> float:
        """
        Lighting factor: 8 by day, 6 at night (20:00-06:00), lowered by poor_lighting reports.
        """
        is_night = hour >= 20 or hour < 6
        score = 6.0 if is_night else 8.0

        lighting_issues = [h for h in significant if h['category'] == 'poor_lighting']
        if lighting_issues:
            # Dusk and dawn already count as dark for lighting reports
            time_multiplier = 1.5 if (hour >= 19 or hour <= 7) else 1.0
            avg_severity = sum(h['effective_severity'] for h in lighting_issues) / len(lighting_issues)
            score -= min(4.0, avg_severity * 0.6 * time_multiplier)

            if preferences['prioritize_light']:
                score -= min(1.5, len(lighting_issues) * 0.3)

        return max(2.0, score)

    @staticmethod
    def calculate_crowdedness_score(
        significant: List[Dict[str, Any]],
        preferences: Dict[str, bool],
        hour: int
    ) -> float:
        """
        Crowdedness factor: 6 by default, 8 at commute hours, 4 (or 3) late at night,
        lowered by unsafe_area reports.
        """
        score = 6.0
        if 8 <= hour <= 9 or 17 <= hour <= 19:
            score = 8.0
        elif hour >= 22 or hour <= 5:
            score = 3.0 if preferences['avoid_isolated_areas'] else 4.0

        unsafe_areas = [h for h in significant if h['category'] == 'unsafe_area']
        if unsafe_areas:
            time_multiplier = 1.5 if (hour >= 20 or hour <= 6) else 1.0
            avg_severity = sum(h['effective_severity'] for h in unsafe_areas) / len(unsafe_areas)
            score -= min(4.0, avg_severity * 0.7 * time_multiplier)

            if preferences['avoid_isolated_areas']:
                score -= min(2.0, len(unsafe_areas) * 0.4)

        return max(1.0, score)

    @staticmethod
    def calculate_report_density(report_count: int, length_km: float) -> float:
        """
        Banded score from hazards per kilometer of path.

        Examples:
            >>> SafetyScorer.calculate_report_density(0, 2.0)
            10.0
            >>> SafetyScorer.calculate_report_density(1, 2.0)  # 0.5/km
            8.0
            >>> SafetyScorer.calculate_report_density(25, 2.0)  # 12.5/km
            0.0
        """
        if report_count == 0:
            return 10.0

        density = report_count / (length_km or 1.0)
        for upper_bound, band_score in REPORT_DENSITY_BANDS:
            if density < upper_bound:
                return float(band_score)
        return 0.0
