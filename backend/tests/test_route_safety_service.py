"""
Tests for RouteSafetyService

Tests the end-to-end flow with a mocked hazard store and routing provider.
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from config import TestingConfig
from services.route_safety_service import RouteSafetyService
from utils.distance import distance_km


NOW = datetime(2025, 6, 15, 14, 0, 0, tzinfo=timezone.utc)
LAT = 48.8566
STEP = 0.00027  # ~19.76m of longitude

ORIGIN = {'lat': LAT, 'lng': 2.35}
DESTINATION = {'lat': LAT, 'lng': 2.35 + 10 * STEP}


@pytest.fixture
def straight_path():
    return [{'lat': LAT, 'lng': 2.35 + i * STEP} for i in range(11)]


@pytest.fixture
def mock_provider(straight_path):
    """Routing provider returning one walking route"""
    return Mock(return_value=[{'path': straight_path, 'distance_km': 0.198, 'duration_min': 3}])


@pytest.fixture
def mock_hazards():
    """Hazard store returning nothing by default"""
    return Mock(return_value=[])


def make_service(hazard_fetcher, route_provider, settings=TestingConfig):
    return RouteSafetyService(hazard_fetcher, route_provider, settings=settings, clock=lambda: NOW)


def make_report(report_id='hazard_1', age=timedelta(hours=1), **overrides):
    report = {
        'id': report_id,
        'location': {'lat': LAT, 'lng': 2.35 + 5 * STEP},
        'category': 'unsafe_area',
        'severity': 4,
        'created_at': (NOW - age).isoformat(),
    }
    report.update(overrides)
    return report


class TestInputValidation:
    """Test rejected requests"""

    def test_invalid_origin(self, mock_hazards, mock_provider):
        service = make_service(mock_hazards, mock_provider)
        result = service.get_safe_routes({'lat': 120, 'lng': 2.35}, DESTINATION)

        assert result['success'] is False
        assert 'error' in result
        assert result['routes'] == []
        assert result['count'] == 0
        mock_hazards.assert_not_called()
        mock_provider.assert_not_called()

    def test_missing_destination_keys(self, mock_hazards, mock_provider):
        service = make_service(mock_hazards, mock_provider)
        assert service.get_safe_routes(ORIGIN, {'latitude': LAT})['success'] is False


class TestSafeRoutes:
    """Test the happy path"""

    def test_clean_route(self, mock_hazards, mock_provider):
        service = make_service(mock_hazards, mock_provider)
        result = service.get_safe_routes(ORIGIN, DESTINATION)

        assert result['success'] is True
        assert result['count'] == 1
        assert result['hazard_count'] == 0
        assert result['warnings'] == []
        assert result['routes'][0]['safety_score'] == 10.0
        assert result['routes'][0]['label'] == 'recommended'
        mock_provider.assert_called_once_with(ORIGIN, DESTINATION)

    def test_hazard_region_and_window(self, mock_hazards, mock_provider):
        """Test hazards are requested for the padded bounding box and validity window"""
        service = make_service(mock_hazards, mock_provider)
        service.get_safe_routes(ORIGIN, DESTINATION)

        region, validity_days = mock_hazards.call_args[0]
        assert validity_days == 30
        assert region['min_lat'] == pytest.approx(LAT - 0.005)
        assert region['max_lat'] == pytest.approx(LAT + 0.005)
        assert region['min_lng'] == pytest.approx(2.345)
        assert region['max_lng'] == pytest.approx(2.35 + 10 * STEP + 0.005)

    def test_hazard_on_route(self, mock_provider):
        fetcher = Mock(return_value=[make_report()])
        service = make_service(fetcher, mock_provider)
        result = service.get_safe_routes(ORIGIN, DESTINATION)

        assert result['hazard_count'] == 1
        assert result['count'] >= 2
        assert result['routes'][0]['route_type'] == 'safer'
        scores = [route['safety_score'] for route in result['routes']]
        assert max(scores) > 3.2

    def test_preferences_forwarded(self, mock_hazards, mock_provider):
        service = make_service(mock_hazards, mock_provider)
        service.assembler = Mock()
        service.assembler.assemble_candidates.return_value = []
        prefs = {'prioritizeLight': False}

        service.get_safe_routes(ORIGIN, DESTINATION, prefs)

        base_routes, hazards, preferences = service.assembler.assemble_candidates.call_args[0]
        assert hazards == []
        assert preferences is prefs


class TestHazardFiltering:
    """Test which stored reports reach the scorer"""

    def test_inactive_and_malformed_reports_dropped(self, mock_provider):
        reports = [
            make_report('fresh'),
            make_report('old', age=timedelta(days=45)),
            make_report('expired', temporary=True, expires_at=(NOW - timedelta(minutes=5)).isoformat()),
            make_report('bad_severity', severity=9),
            {'id': 'no_location', 'category': 'obstacle', 'severity': 2},
        ]
        service = make_service(Mock(return_value=reports), mock_provider)

        active = service.filter_active_hazards(reports)
        assert [r['id'] for r in active] == ['fresh']
        assert service.get_safe_routes(ORIGIN, DESTINATION)['hazard_count'] == 1

    def test_none_from_store_treated_as_empty(self, mock_provider):
        service = make_service(Mock(return_value=None), mock_provider)
        assert service.get_safe_routes(ORIGIN, DESTINATION)['hazard_count'] == 0


class TestHazardFailurePolicy:
    """Test hazard store outages"""

    def test_fail_closed_scores_neutral(self, mock_provider):
        """Test a failed lookup yields neutral scores and a warning"""
        fetcher = Mock(side_effect=ConnectionError('store unreachable'))
        service = make_service(fetcher, mock_provider)
        result = service.get_safe_routes(ORIGIN, DESTINATION)

        assert result['success'] is True
        assert result['hazard_count'] is None
        assert len(result['warnings']) == 1
        assert all(route['safety_score'] == 5.0 for route in result['routes'])

    def test_fail_open_scores_without_hazards(self, mock_provider):
        class FailOpen(TestingConfig):
            HAZARD_FAILURE_POLICY = 'fail_open'

        fetcher = Mock(side_effect=TimeoutError('slow store'))
        service = make_service(fetcher, mock_provider, settings=FailOpen)
        result = service.get_safe_routes(ORIGIN, DESTINATION)

        assert result['hazard_count'] == 0
        assert len(result['warnings']) == 1
        assert result['routes'][0]['safety_score'] == 10.0

    def test_unknown_policy_fails_closed(self, mock_provider):
        class Misconfigured(TestingConfig):
            HAZARD_FAILURE_POLICY = 'shrug'

        service = make_service(Mock(side_effect=RuntimeError('boom')), mock_provider, settings=Misconfigured)
        assert service.failure_policy == RouteSafetyService.FAIL_CLOSED
        assert service.get_safe_routes(ORIGIN, DESTINATION)['hazard_count'] is None


class TestRoutingFallback:
    """Test routing provider outages"""

    def test_provider_error_uses_straight_line(self, mock_hazards):
        provider = Mock(side_effect=ConnectionError('provider down'))
        service = make_service(mock_hazards, provider)
        result = service.get_safe_routes(ORIGIN, DESTINATION)

        assert result['success'] is True
        assert result['count'] == 1
        route = result['routes'][0]
        assert route['path'] == [ORIGIN, DESTINATION]
        assert route['distance_km'] == pytest.approx(distance_km(ORIGIN, DESTINATION))
        assert route['duration_min'] == 2
        assert len(result['warnings']) == 1

    def test_provider_returns_nothing(self, mock_hazards):
        service = make_service(mock_hazards, Mock(return_value=[]))
        result = service.get_safe_routes(ORIGIN, DESTINATION)
        assert len(result['routes'][0]['path']) == 2

    def test_invalid_provider_routes_ignored(self, mock_hazards, straight_path):
        provider = Mock(return_value=[
            {'path': [{'lat': LAT, 'lng': 2.35}]},
            'not a route',
            {'path': straight_path},
        ])
        service = make_service(mock_hazards, provider)

        routes = service.fetch_base_routes(ORIGIN, DESTINATION)
        assert len(routes) == 1
        assert routes[0]['path'] is straight_path

    def test_bounding_region_unordered_points(self, mock_hazards, mock_provider):
        service = make_service(mock_hazards, mock_provider)
        region = service.calculate_bounding_region(DESTINATION, ORIGIN)
        assert region['min_lng'] < region['max_lng']
        assert region['min_lat'] < region['max_lat']
