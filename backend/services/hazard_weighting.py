"""
Hazard Weighting Model

Turns a hazard report into a weight relative to a point or path:

    effective_severity = severity * age_factor
    proximity_factor   = clamp(1 - distance / danger_radius, 0, 1)   (0 beyond the radius)
    weight             = effective_severity * proximity_factor * avoidance_factor

Danger radii and avoidance factors come from the injected settings, never from
module state, so each deployment (and each test) can use its own table.
"""
import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from config import get_config
from services.time_decay import TimeDecayService, local_now
from utils.geo import hazard_coordinate, min_distance_to_path_km
from utils.secure_logging import hash_identifier

logger = logging.getLogger(__name__)

# Exceptions raised by reports with missing or mistyped fields
MALFORMED_REPORT_ERRORS = (KeyError, TypeError, ValueError, IndexError, AttributeError)


class HazardWeightingModel:
    """
    Computes effective severity, proximity and weight of hazard reports.

    Args:
        settings: Configuration class/object (defaults to get_config())
        clock: Callable returning the current datetime, used for report ageing
    """

    def __init__(self, settings=None, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings or get_config()
        self.clock = clock or local_now
        self.category_config = self.settings.CATEGORY_CONFIG
        self.unknown_category_config = self.settings.UNKNOWN_CATEGORY_CONFIG

    def get_category_config(self, category: Optional[str]) -> Dict[str, float]:
        """
        Danger radius and avoidance factor for a category.

        Unknown or missing categories get UNKNOWN_CATEGORY_CONFIG (30m, 1.0).
        """
        category_config = self.category_config.get(category)
        if category_config is None:
            logger.debug(f"No category config for '{category}', using fallback")
            return dict(self.unknown_category_config)
        return {
            'danger_radius_m': category_config.get(
                'danger_radius_m', self.unknown_category_config['danger_radius_m']),
            'avoidance_factor': category_config.get(
                'avoidance_factor', self.unknown_category_config['avoidance_factor']),
        }

    def danger_radius_m(self, category: Optional[str]) -> float:
        return self.get_category_config(category)['danger_radius_m']

    def effective_severity(self, report: Dict[str, Any], reference_time: Optional[datetime] = None) -> float:
        """Severity scaled by the report's age factor."""
        if reference_time is None:
            reference_time = self.clock()
        age_factor = TimeDecayService.get_report_age_factor(
            report,
            reference_time,
            validity_days=self.settings.REPORT_VALIDITY_DAYS,
            min_factor=self.settings.MIN_AGE_FACTOR
        )
        return float(report['severity']) * age_factor

    @staticmethod
    def proximity_factor(distance_m: float, danger_radius_m: float) -> float:
        """
        Linear falloff from 1 at the hazard to 0 at its danger radius.

        Examples:
            >>> HazardWeightingModel.proximity_factor(0, 50)
            1.0
            >>> HazardWeightingModel.proximity_factor(25, 50)
            0.5
            >>> HazardWeightingModel.proximity_factor(200, 50)
            0.0

        An unknown (NaN) distance counts as out of range.
        """
        if math.isnan(distance_m) or danger_radius_m <= 0 or distance_m > danger_radius_m:
            return 0.0
        return max(0.0, min(1.0, 1.0 - distance_m / danger_radius_m))

    def calculate_weight(
        self,
        report: Dict[str, Any],
        distance_m: float,
        reference_time: Optional[datetime] = None
    ) -> float:
        """Weight of a report at the given distance from the target point/segment."""
        category_config = self.get_category_config(report.get('category'))
        proximity = self.proximity_factor(distance_m, category_config['danger_radius_m'])
        if proximity <= 0:
            return 0.0
        return self.effective_severity(report, reference_time) * proximity * category_config['avoidance_factor']

    def distance_to_path_m(self, report: Dict[str, Any], path: List[Dict[str, float]]) -> float:
        """Minimum distance (meters) from the report to any segment of the path."""
        return min_distance_to_path_km(hazard_coordinate(report), path) * 1000

    def assess_hazard(
        self,
        report: Dict[str, Any],
        path: List[Dict[str, float]],
        reference_time: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Full weighting breakdown of one report against a path.

        Returns:
            Dictionary with report, category, distance_m, danger_radius_m,
            effective_severity and weight
        """
        if reference_time is None:
            reference_time = self.clock()

        category = report.get('category')
        category_config = self.get_category_config(category)
        distance_m = self.distance_to_path_m(report, path)
        effective_severity = self.effective_severity(report, reference_time)

        return {
            'report': report,
            'category': category,
            'distance_m': distance_m,
            'danger_radius_m': category_config['danger_radius_m'],
            'effective_severity': effective_severity,
            'weight': self.calculate_weight(report, distance_m, reference_time),
        }

    def weigh_hazards(
        self,
        path: List[Dict[str, float]],
        hazards: List[Dict[str, Any]],
        reference_time: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Assess every hazard against the path and keep the significant ones (weight > 0).

        Malformed reports are logged and skipped.
        """
        if reference_time is None:
            reference_time = self.clock()

        significant = []
        for report in hazards:
            try:
                assessment = self.assess_hazard(report, path, reference_time)
            except MALFORMED_REPORT_ERRORS as e:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Skipping malformed hazard report {hash_identifier(report_id)}: {e}")
                continue

            if assessment['weight'] > 0:
                significant.append(assessment)

        return significant
