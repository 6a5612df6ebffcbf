"""
Validation utilities for paths, coordinates and hazard reports.

Provides centralized validation logic for:
- Coordinate dictionaries and paths ({'lat', 'lng'} points)
- Hazard categories and severity levels
- Complete hazard report validation
- Normalization of user route preferences
"""
from typing import Any, Dict, List, Optional, Tuple

from utils.geo import hazard_coordinate, is_valid_coordinates


class CoordinateValidator:
    """Validator for geographic coordinates and paths."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """
        Validate latitude and longitude ranges.

        Examples:
            >>> CoordinateValidator.validate_coordinates(48.8566, 2.3522)
            True
            >>> CoordinateValidator.validate_coordinates(91, 0)  # Invalid latitude
            False
        """
        return is_valid_coordinates(lat, lng)

    @staticmethod
    def validate_coordinate_dict(coord: Dict[str, float]) -> bool:
        """
        Validate coordinate dictionary with 'lat' and 'lng' keys.

        Examples:
            >>> CoordinateValidator.validate_coordinate_dict({'lat': 48.8566, 'lng': 2.3522})
            True
            >>> CoordinateValidator.validate_coordinate_dict({'lat': 91, 'lng': 0})
            False
            >>> CoordinateValidator.validate_coordinate_dict({'invalid': 'keys'})
            False
        """
        try:
            return CoordinateValidator.validate_coordinates(coord['lat'], coord['lng'])
        except (KeyError, TypeError):
            return False

    @staticmethod
    def validate_path(path: List[Dict[str, float]]) -> bool:
        """
        Validate a path: at least two points, every point a valid coordinate dict.
        """
        if not isinstance(path, (list, tuple)) or len(path) < 2:
            return False
        return all(CoordinateValidator.validate_coordinate_dict(point) for point in path)


class HazardValidator:
    """Validator for hazard report categories, severities and report data."""

    VALID_CATEGORIES = [
        'poor_lighting',
        'unsafe_area',
        'construction',
        'obstacle',
        'bad_weather'
    ]

    MIN_SEVERITY = 1
    MAX_SEVERITY = 5

    @staticmethod
    def validate_category(category: str) -> bool:
        """
        Check whether a category is one of the known hazard categories.

        Unknown categories are still scored (with the fallback radius), so this is
        informational rather than a reason to reject a report.

        Examples:
            >>> HazardValidator.validate_category('unsafe_area')
            True
            >>> HazardValidator.validate_category('stray_dogs')
            False
        """
        if not category or not isinstance(category, str):
            return False
        return category in HazardValidator.VALID_CATEGORIES

    @staticmethod
    def validate_severity(severity: Any) -> Tuple[bool, Optional[str]]:
        """
        Validate a numeric severity level (1 to 5).

        Examples:
            >>> HazardValidator.validate_severity(3)
            (True, None)
            >>> HazardValidator.validate_severity(7)
            (False, 'severity must be between 1 and 5')
        """
        if isinstance(severity, bool):
            return False, 'severity must be a number'
        try:
            value = float(severity)
        except (ValueError, TypeError):
            return False, 'severity must be a number'
        if not (HazardValidator.MIN_SEVERITY <= value <= HazardValidator.MAX_SEVERITY):
            return False, 'severity must be between 1 and 5'
        return True, None

    @staticmethod
    def validate_report(report: Dict) -> Tuple[bool, Optional[str]]:
        """
        Validate a hazard report before it is handed to the scoring engine.

        Checks:
        - Required fields (location, category, severity)
        - Location is a usable coordinate (plain or GeoJSON)
        - Severity range

        Returns:
            Tuple of (is_valid, error_message)

        Examples:
            >>> HazardValidator.validate_report({
            ...     'location': {'lat': 48.8566, 'lng': 2.3522},
            ...     'category': 'obstacle',
            ...     'severity': 2
            ... })
            (True, None)
        """
        if not isinstance(report, dict):
            return False, 'report must be a dictionary'

        required_fields = ['location', 'category', 'severity']
        missing_fields = [field for field in required_fields if field not in report]
        if missing_fields:
            return False, f'Missing required fields: {", ".join(missing_fields)}'

        try:
            coord = hazard_coordinate(report)
        except (KeyError, TypeError, ValueError, IndexError):
            return False, 'location must be {lat, lng} or a GeoJSON point'
        if not is_valid_coordinates(coord['lat'], coord['lng']):
            return False, 'location is out of range'

        if not report['category'] or not isinstance(report['category'], str):
            return False, 'category must be a non-empty string'

        return HazardValidator.validate_severity(report['severity'])


def normalize_preferences(preferences: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    """
    Normalize user route preferences.

    Both flags default to True when absent. camelCase keys sent by web clients
    (prioritizeLight, avoidIsolatedAreas) are accepted; snake_case wins when both
    are present.

    Examples:
        >>> normalize_preferences(None)
        {'prioritize_light': True, 'avoid_isolated_areas': True}
        >>> normalize_preferences({'prioritizeLight': False})
        {'prioritize_light': False, 'avoid_isolated_areas': True}
    """
    preferences = preferences or {}

    def _flag(snake: str, camel: str) -> bool:
        if snake in preferences:
            return bool(preferences[snake])
        if camel in preferences:
            return bool(preferences[camel])
        return True

    return {
        'prioritize_light': _flag('prioritize_light', 'prioritizeLight'),
        'avoid_isolated_areas': _flag('avoid_isolated_areas', 'avoidIsolatedAreas'),
    }
