"""
Test suite for the SafeWalk routing engine.

This package contains:
- test_distance.py / test_geo.py: Geometry helpers
- test_validators.py: Coordinate, report and preference validation
- test_time_decay.py: Report ageing and activity
- test_hazard_weighting.py: Severity, proximity and weight
- test_safety_scorer.py: Composite score and sub-factors
- test_hotspot_clusterer.py: Hotspot clustering
- test_danger_segments.py: Danger segment detection
- test_deviation_synthesizer.py: Safer / max-safety / repulsion detours
- test_route_comparator.py: Route similarity
- test_candidate_assembler.py: Candidate assembly and ranking
- test_route_safety_service.py: End-to-end service with mocked collaborators

Run tests:
    pip install -e ".[test]"
    python -m pytest
"""
