"""
Configuration file for the SafeWalk routing engine.

Every engine class takes one of these classes (or any object exposing the
same attributes) as its ``settings`` argument, so deployments and tests can
swap values without touching module state.
"""
import os
from dotenv import load_dotenv

load_dotenv()


# Danger radius (meters) and avoidance multiplier per hazard category
DEFAULT_CATEGORY_CONFIG = {
    'poor_lighting': {'danger_radius_m': 5, 'avoidance_factor': 0.8},
    'unsafe_area': {'danger_radius_m': 50, 'avoidance_factor': 1.5},
    'construction': {'danger_radius_m': 5, 'avoidance_factor': 0.6},
    'obstacle': {'danger_radius_m': 10, 'avoidance_factor': 0.5},
    'bad_weather': {'danger_radius_m': 100, 'avoidance_factor': 0.7},
}

# Fallback for categories missing from the table
UNKNOWN_CATEGORY_CONFIG = {'danger_radius_m': 30, 'avoidance_factor': 1.0}


class Config:
    """Base configuration"""

    # Hazard reports
    CATEGORY_CONFIG = DEFAULT_CATEGORY_CONFIG
    UNKNOWN_CATEGORY_CONFIG = UNKNOWN_CATEGORY_CONFIG
    REPORT_VALIDITY_DAYS = int(os.getenv('REPORT_VALIDITY_DAYS', '30'))
    MIN_AGE_FACTOR = 0.5
    HAZARD_SEARCH_BUFFER_DEG = float(os.getenv('HAZARD_SEARCH_BUFFER_DEG', '0.005'))  # ~500m

    # 'fail_closed' scores routes neutrally when hazards cannot be fetched,
    # 'fail_open' treats the failure as an empty hazard list
    HAZARD_FAILURE_POLICY = os.getenv('HAZARD_FAILURE_POLICY', 'fail_closed')

    # Hotspots
    CLUSTER_RADIUS_DEG = 0.0004             # ~50m in flat lat/lng space
    HOTSPOT_ON_PATH_TOLERANCE_M = 25.0
    HOTSPOT_MIN_SIZE = 2
    HOTSPOT_MIN_SEVERITY = 4.0
    MAX_HOTSPOTS_PER_ROUTE = 5

    # Detours
    DEFAULT_DETOUR_DEVIATION_M = 15.0
    SAFER_ROUTE_MAX_DEVIATION_M = float(os.getenv('SAFER_ROUTE_MAX_DEVIATION_M', '30'))
    MAX_SAFETY_DEVIATION_M = float(os.getenv('MAX_SAFETY_DEVIATION_M', '40'))
    DETOUR_SAMPLE_OFFSETS_M = (10, 20, 30)
    LIGHTING_DETOUR_MIN_SEVERITY = 4
    SMOOTHING_WINDOW = 3
    MAX_LENGTH_RATIO = 1.2
    ENABLE_REPULSION_ROUTE = os.getenv('ENABLE_REPULSION_ROUTE', 'False').lower() == 'true'

    # Route comparison
    SIMILARITY_THRESHOLD_KM = 0.05
    SIMILARITY_SAMPLES = 10

    # Candidate assembly
    SAFER_ROUTE_SCORE_THRESHOLD = 9.0
    MAX_SAFETY_SCORE_THRESHOLD = 7.0
    MIN_SCORE_IMPROVEMENT = 0.5
    SCORE_TIE_MARGIN = 1.0
    MAX_PROVIDER_ALTERNATIVES = 2
    WALKING_SPEED_KMH = 5.0


class TestingConfig(Config):
    """Testing configuration with environment overrides ignored"""
    REPORT_VALIDITY_DAYS = 30
    HAZARD_SEARCH_BUFFER_DEG = 0.005
    HAZARD_FAILURE_POLICY = 'fail_closed'
    SAFER_ROUTE_MAX_DEVIATION_M = 30.0
    MAX_SAFETY_DEVIATION_M = 40.0
    ENABLE_REPULSION_ROUTE = False


config = {
    'production': Config,
    'testing': TestingConfig,
    'default': Config
}


def get_config(name=None):
    """Resolve a configuration class by name (falls back to 'default')."""
    if name is None:
        name = os.getenv('SAFEWALK_ENV', 'default')
    return config.get(name, config['default'])
