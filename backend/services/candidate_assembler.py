"""
Candidate Assembler

Turns the routing provider's paths into a ranked list of CandidateRoutes:
the main route, a synthesized safer route, a synthesized maximum-safety route
and the provider's own alternatives, each scored, deduplicated and sorted.
"""
import logging
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional

from config import get_config
from services.deviation_synthesizer import DeviationSynthesizer
from services.route_comparator import are_routes_similar
from services.safety_scorer import SafetyScorer
from services.time_decay import local_now
from utils.distance import path_length_km

logger = logging.getLogger(__name__)

RECOMMENDED_LABEL = 'recommended'


class CandidateAssembler:
    """
    Builds and ranks candidate routes.

    Args:
        settings: Configuration class/object (defaults to get_config())
        clock: Callable returning the current datetime
        scorer: Optional SafetyScorer
        synthesizer: Optional DeviationSynthesizer
    """

    def __init__(
        self,
        settings=None,
        clock: Optional[Callable[[], datetime]] = None,
        scorer: Optional[SafetyScorer] = None,
        synthesizer: Optional[DeviationSynthesizer] = None
    ):
        self.settings = settings or get_config()
        self.clock = clock or local_now
        self.scorer = scorer or SafetyScorer(self.settings, self.clock)
        self.synthesizer = synthesizer or DeviationSynthesizer(self.settings, self.clock, self.scorer.weighting)

    def estimate_duration_min(self, distance_km: float) -> int:
        """Walking time in whole minutes at WALKING_SPEED_KMH."""
        return int(round(distance_km / self.settings.WALKING_SPEED_KMH * 60))

    def _build_candidate(
        self,
        route_type: str,
        path: List[Dict[str, float]],
        score: Dict[str, Any],
        distance_km: Optional[float] = None,
        duration_min: Optional[float] = None
    ) -> Dict[str, Any]:
        if distance_km is None:
            distance_km = path_length_km(path)
        if duration_min is None:
            duration_min = self.estimate_duration_min(distance_km)

        return {
            'id': None,
            'label': route_type,
            'route_type': route_type,
            'path': path,
            'distance_km': distance_km,
            'duration_min': duration_min,
            'safety_score': score['safety_score'],
            'safety_factors': score['safety_factors'],
            'hotspots': score['hotspots'][:self.settings.MAX_HOTSPOTS_PER_ROUTE],
        }

    def _is_duplicate(self, path: List[Dict[str, float]], candidates: List[Dict[str, Any]]) -> bool:
        return any(
            are_routes_similar(path, candidate['path'], self.settings.SIMILARITY_THRESHOLD_KM,
                               self.settings.SIMILARITY_SAMPLES)
            for candidate in candidates
        )

    def assemble_candidates(
        self,
        base_routes: List[Dict[str, Any]],
        hazards: Optional[List[Dict[str, Any]]],
        preferences: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Assemble the ranked list of route options.

        Args:
            base_routes: Provider routes, main route first, each
                {'path', 'distance_km', 'duration_min'} (distance/duration optional)
            hazards: Active hazard reports, or None when hazard data is unavailable
            preferences: User preferences

        Returns:
            Candidates sorted by safety (near-ties broken by shorter duration); the
            first one is labelled 'recommended'
        """
        if not base_routes:
            return []

        main_route = base_routes[0]
        main_path = main_route['path']
        main_score = self.scorer.compute_safety_score(main_path, hazards, preferences)
        base_score = main_score['safety_score']

        candidates = [self._build_candidate(
            'main', main_path, main_score,
            main_route.get('distance_km'), main_route.get('duration_min')
        )]

        # Detours shift the path less than the similarity threshold, so synthesized
        # routes are only deduplicated against each other, never against main
        synthesized = []

        if hazards and base_score < self.settings.SAFER_ROUTE_SCORE_THRESHOLD:
            safer_path = self.synthesizer.synthesize_safer_route(main_path, hazards, preferences)
            safer_score = self.scorer.compute_safety_score(safer_path, hazards, preferences)
            if safer_score['safety_score'] > base_score + self.settings.MIN_SCORE_IMPROVEMENT:
                synthesized.append(self._build_candidate('safer', safer_path, safer_score))
            else:
                logger.debug(
                    f"Safer route not kept: {safer_score['safety_score']:.2f} vs base {base_score:.2f}"
                )

            if base_score < self.settings.MAX_SAFETY_SCORE_THRESHOLD:
                max_path = self.synthesizer.synthesize_max_safety_route(main_path, hazards, preferences)
                if max_path is main_path:
                    logger.debug("Max-safety synthesis left the main route unchanged")
                elif self._is_duplicate(max_path, synthesized):
                    logger.debug("Max-safety route too similar to the safer route, dropped")
                else:
                    max_score = self.scorer.compute_safety_score(max_path, hazards, preferences)
                    synthesized.append(self._build_candidate('max_safety', max_path, max_score))

            if self.settings.ENABLE_REPULSION_ROUTE:
                repulsion_path = self.synthesizer.synthesize_repulsion_route(main_path, hazards)
                if repulsion_path is not None and not self._is_duplicate(repulsion_path, synthesized):
                    repulsion_score = self.scorer.compute_safety_score(repulsion_path, hazards, preferences)
                    synthesized.append(self._build_candidate('repulsion', repulsion_path, repulsion_score))

        candidates.extend(synthesized)

        for alternative in base_routes[1:1 + self.settings.MAX_PROVIDER_ALTERNATIVES]:
            alternative_score = self.scorer.compute_safety_score(alternative['path'], hazards, preferences)
            candidates.append(self._build_candidate(
                'alternative', alternative['path'], alternative_score,
                alternative.get('distance_km'), alternative.get('duration_min')
            ))

        for idx, candidate in enumerate(candidates):
            candidate['id'] = f"route_{idx}"

        ranked = self.rank_candidates(candidates)
        ranked[0]['label'] = RECOMMENDED_LABEL

        logger.info(
            f"Assembled {len(ranked)} candidate routes, recommended {ranked[0]['route_type']} "
            f"with safety score {ranked[0]['safety_score']:.1f}/10"
        )
        return ranked

    def rank_candidates(self, candidates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Sort by safety score descending; scores closer than SCORE_TIE_MARGIN are
        ordered by shorter duration instead.
        """
        margin = self.settings.SCORE_TIE_MARGIN

        def _compare(a: Dict[str, Any], b: Dict[str, Any]) -> int:
            if abs(a['safety_score'] - b['safety_score']) < margin:
                return (a['duration_min'] > b['duration_min']) - (a['duration_min'] < b['duration_min'])
            return -1 if a['safety_score'] > b['safety_score'] else 1

        return sorted(candidates, key=cmp_to_key(_compare))
