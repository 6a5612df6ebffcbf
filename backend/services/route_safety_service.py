"""
Route Safety Service for Hazard-Aware Walking Navigation

Glue between the external collaborators (hazard report store, routing
provider) and the scoring engine. Both collaborators are injected callables:

    hazard_fetcher(region, validity_days) -> List[HazardReport]
    route_provider(origin, destination)   -> List[{'path', 'distance_km', 'duration_min'}]

Features:
- Validates origin/destination before doing any work
- Queries hazards inside a padded bounding box around the trip
- Drops malformed, expired and out-of-window reports
- Applies the configured policy when the hazard store is unavailable
- Falls back to a straight-line path when the routing provider returns nothing
- Returns ranked candidate routes from the CandidateAssembler
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import get_config
from services.candidate_assembler import CandidateAssembler
from services.time_decay import TimeDecayService, local_now
from utils.distance import distance_km
from utils.secure_logging import hash_identifier, redact_coordinates, redact_pii
from utils.validators import CoordinateValidator, HazardValidator

# Configure logging
logger = logging.getLogger(__name__)


class RouteSafetyService:
    """
    Service producing safety-ranked walking routes between two points.

    Args:
        hazard_fetcher: Callable(region, validity_days) returning hazard reports
        route_provider: Callable(origin, destination) returning provider routes
        settings: Configuration class/object (defaults to get_config())
        clock: Callable returning the current datetime
        assembler: Optional CandidateAssembler
    """

    FAIL_OPEN = 'fail_open'
    FAIL_CLOSED = 'fail_closed'

    def __init__(
        self,
        hazard_fetcher: Callable[[Dict[str, float], int], List[Dict[str, Any]]],
        route_provider: Callable[[Dict[str, float], Dict[str, float]], List[Dict[str, Any]]],
        settings=None,
        clock: Optional[Callable[[], datetime]] = None,
        assembler: Optional[CandidateAssembler] = None
    ):
        self.hazard_fetcher = hazard_fetcher
        self.route_provider = route_provider
        self.settings = settings or get_config()
        self.clock = clock or local_now
        self.assembler = assembler or CandidateAssembler(self.settings, self.clock)

        self.failure_policy = self.settings.HAZARD_FAILURE_POLICY
        if self.failure_policy not in (self.FAIL_OPEN, self.FAIL_CLOSED):
            logger.warning(f"Unknown HAZARD_FAILURE_POLICY '{self.failure_policy}', using {self.FAIL_CLOSED}")
            self.failure_policy = self.FAIL_CLOSED

        logger.info(f"RouteSafetyService initialized (hazard failure policy: {self.failure_policy})")

    def get_safe_routes(
        self,
        origin: Dict[str, float],
        destination: Dict[str, float],
        preferences: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Calculate safety-ranked walking routes from origin to destination.

        Args:
            origin: {"lat": float, "lng": float}
            destination: {"lat": float, "lng": float}
            preferences: User preferences (prioritize_light, avoid_isolated_areas)

        Returns:
            Dictionary containing:
            - success: False only for invalid input
            - count: Number of routes
            - routes: Ranked CandidateRoutes, first one labelled 'recommended'
            - hazard_count: Number of active hazards considered (None if unavailable)
            - warnings: Human-readable notes about degraded results

        Example:
            >>> service = RouteSafetyService(store.fetch_hazards_near, provider.get_directions)
            >>> result = service.get_safe_routes(
            ...     origin={"lat": 48.8566, "lng": 2.3522},
            ...     destination={"lat": 48.8606, "lng": 2.3376}
            ... )
            >>> best = result['routes'][0]
            >>> print(f"{best['distance_km']:.2f}km, safety {best['safety_score']:.1f}/10")
        """
        if not CoordinateValidator.validate_coordinate_dict(origin) or \
                not CoordinateValidator.validate_coordinate_dict(destination):
            logger.error("Invalid origin or destination coordinates")
            return {
                'success': False,
                'error': 'Invalid origin or destination coordinates',
                'count': 0,
                'routes': [],
            }

        origin_lat, origin_lng = redact_coordinates(origin['lat'], origin['lng'])
        dest_lat, dest_lng = redact_coordinates(destination['lat'], destination['lng'])
        logger.info(f"Calculating safe routes from ({origin_lat}, {origin_lng}) to ({dest_lat}, {dest_lng})")

        warnings = []

        # Step 1: Hazards
        region = self.calculate_bounding_region(origin, destination)
        hazards, hazard_warning = self.fetch_hazards(region)
        if hazard_warning:
            warnings.append(hazard_warning)

        # Step 2: Base routes
        base_routes = self.fetch_base_routes(origin, destination)
        if not base_routes:
            logger.warning("Routing provider returned no usable route, using straight-line fallback")
            warnings.append('No walking route available from the routing provider; showing a straight line')
            base_routes = [self.straight_line_route(origin, destination)]

        # Step 3: Score, synthesize and rank
        routes = self.assembler.assemble_candidates(base_routes, hazards, preferences)

        return {
            'success': True,
            'count': len(routes),
            'routes': routes,
            'hazard_count': len(hazards) if hazards is not None else None,
            'warnings': warnings,
        }

    def calculate_bounding_region(
        self,
        origin: Dict[str, float],
        destination: Dict[str, float]
    ) -> Dict[str, float]:
        """
        Bounding box around origin and destination, padded by HAZARD_SEARCH_BUFFER_DEG.

        Returns:
            {"min_lat": float, "max_lat": float, "min_lng": float, "max_lng": float}
        """
        buffer_deg = self.settings.HAZARD_SEARCH_BUFFER_DEG
        return {
            'min_lat': min(origin['lat'], destination['lat']) - buffer_deg,
            'max_lat': max(origin['lat'], destination['lat']) + buffer_deg,
            'min_lng': min(origin['lng'], destination['lng']) - buffer_deg,
            'max_lng': max(origin['lng'], destination['lng']) + buffer_deg,
        }

    def fetch_hazards(self, region: Dict[str, float]) -> Tuple[Optional[List[Dict[str, Any]]], Optional[str]]:
        """
        Fetch and filter hazards for a region.

        Returns:
            (hazards, warning). hazards is None when the store failed and the
            policy is fail_closed; it is [] under fail_open.
        """
        try:
            raw_hazards = self.hazard_fetcher(region, self.settings.REPORT_VALIDITY_DAYS)
        except Exception as e:
            logger.error(redact_pii(f"Hazard lookup failed: {e}"), exc_info=True)
            if self.failure_policy == self.FAIL_OPEN:
                return [], 'Hazard reports are unavailable; routes were scored without them'
            return None, 'Hazard reports are unavailable; safety scores are neutral estimates'

        hazards = self.filter_active_hazards(raw_hazards or [])
        logger.info(f"Using {len(hazards)} active hazard reports")
        return hazards, None

    def filter_active_hazards(self, hazards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Keep well-formed reports that are neither expired nor older than the validity window."""
        now = self.clock()
        active = []
        for report in hazards:
            is_valid, error = HazardValidator.validate_report(report)
            if not is_valid:
                report_id = report.get('id') if isinstance(report, dict) else None
                logger.warning(f"Dropping hazard report {hash_identifier(report_id)}: {error}")
                continue
            if not TimeDecayService.is_report_active(report, now, self.settings.REPORT_VALIDITY_DAYS):
                continue
            active.append(report)
        return active

    def fetch_base_routes(self, origin: Dict[str, float], destination: Dict[str, float]) -> List[Dict[str, Any]]:
        """Call the routing provider, keeping only routes with a valid path."""
        try:
            provider_routes = self.route_provider(origin, destination) or []
        except Exception as e:
            logger.error(redact_pii(f"Routing provider request failed: {e}"), exc_info=True)
            return []

        routes = []
        for idx, route in enumerate(provider_routes):
            if not isinstance(route, dict) or not CoordinateValidator.validate_path(route.get('path')):
                logger.warning(f"Ignoring provider route {idx}: invalid path")
                continue
            routes.append(route)
        return routes

    def straight_line_route(self, origin: Dict[str, float], destination: Dict[str, float]) -> Dict[str, Any]:
        """Two-point fallback route with a walking-speed duration estimate."""
        start = {'lat': origin['lat'], 'lng': origin['lng']}
        end = {'lat': destination['lat'], 'lng': destination['lng']}
        length_km = distance_km(start, end)
        return {
            'path': [start, end],
            'distance_km': length_km,
            'duration_min': self.assembler.estimate_duration_min(length_km),
        }
