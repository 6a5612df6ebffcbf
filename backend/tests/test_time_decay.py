"""
Tests for Time Decay Service

Tests report age, age factor and activity filtering.
"""
import pytest
from datetime import datetime, timedelta, timezone
from services.time_decay import TimeDecayService, parse_timestamp, local_now


NOW = datetime(2025, 6, 15, 14, 0, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    """Test timestamp parsing"""

    def test_iso_with_offset(self):
        parsed = parse_timestamp('2025-06-15T12:00:00+00:00')
        assert parsed == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_z_suffix(self):
        """Test 'Z' is read as UTC"""
        parsed = parse_timestamp('2025-06-15T12:00:00Z')
        assert parsed == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        parsed = parse_timestamp('2025-06-15T12:00:00')
        assert parsed.tzinfo is not None
        assert parsed == datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_datetime_passthrough(self):
        assert parse_timestamp(NOW) == NOW

    @pytest.mark.parametrize('value', [None, 12345, 'yesterday', ''])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_local_now_is_aware(self):
        assert local_now().tzinfo is not None


class TestAgeCalculations:
    """Test age in days and age factor"""

    def test_age_days_with_reference_time(self):
        created = (NOW - timedelta(days=3, hours=12)).isoformat()
        assert TimeDecayService.calculate_age_days(created, NOW) == pytest.approx(3.5)

    def test_future_timestamp_clamped(self):
        """Test future timestamps count as age 0"""
        created = (NOW + timedelta(hours=1)).isoformat()
        assert TimeDecayService.calculate_age_days(created, NOW) == 0.0

    def test_naive_reference_time(self):
        created = '2025-06-14T14:00:00+00:00'
        assert TimeDecayService.calculate_age_days(created, datetime(2025, 6, 15, 14, 0)) == pytest.approx(1.0)

    @pytest.mark.parametrize('age_days,expected', [
        (0, 1.0),
        (3, 0.9),
        (6, 0.8),
        (15, 0.5),
        (30, 0.5),
        (365, 0.5),
    ])
    def test_age_factor(self, age_days, expected):
        """Test factor = max(0.5, 1 - age/30)"""
        assert TimeDecayService.get_age_factor(age_days, 30) == pytest.approx(expected)

    def test_age_factor_never_below_minimum(self):
        for age in range(0, 100, 7):
            assert TimeDecayService.get_age_factor(age) >= 0.5

    def test_age_factor_custom_window(self):
        assert TimeDecayService.get_age_factor(5, validity_days=10, min_factor=0.2) == pytest.approx(0.5)
        assert TimeDecayService.get_age_factor(9, validity_days=10, min_factor=0.2) == pytest.approx(0.2)

    def test_report_age_factor(self):
        report = {'id': 'r1', 'created_at': (NOW - timedelta(days=30)).isoformat()}
        assert TimeDecayService.get_report_age_factor(report, NOW) == pytest.approx(0.5)

    def test_report_without_created_at_is_fresh(self):
        """Test missing or unparseable created_at counts as fresh"""
        assert TimeDecayService.get_report_age_factor({'id': 'r1'}, NOW) == 1.0
        assert TimeDecayService.get_report_age_factor({'id': 'r2', 'created_at': 'n/a'}, NOW) == 1.0


class TestReportActivity:
    """Test activity filtering"""

    def test_fresh_report_active(self):
        report = {'created_at': (NOW - timedelta(days=2)).isoformat()}
        assert TimeDecayService.is_report_active(report, NOW) is True

    def test_old_report_inactive(self):
        """Test reports older than the validity window are dropped"""
        report = {'created_at': (NOW - timedelta(days=31)).isoformat()}
        assert TimeDecayService.is_report_active(report, NOW) is False

    def test_report_at_window_edge_active(self):
        report = {'created_at': (NOW - timedelta(days=30)).isoformat()}
        assert TimeDecayService.is_report_active(report, NOW) is True

    def test_expired_temporary_report(self):
        report = {
            'created_at': (NOW - timedelta(hours=5)).isoformat(),
            'temporary': True,
            'expires_at': (NOW - timedelta(hours=1)).isoformat(),
        }
        assert TimeDecayService.is_report_active(report, NOW) is False

    def test_unexpired_temporary_report(self):
        report = {
            'created_at': (NOW - timedelta(hours=5)).isoformat(),
            'temporary': True,
            'expires_at': (NOW + timedelta(hours=1)).isoformat(),
        }
        assert TimeDecayService.is_report_active(report, NOW) is True

    def test_expiry_ignored_for_permanent_reports(self):
        """Test expires_at only applies to temporary reports"""
        report = {
            'created_at': (NOW - timedelta(hours=5)).isoformat(),
            'temporary': False,
            'expires_at': (NOW - timedelta(hours=1)).isoformat(),
        }
        assert TimeDecayService.is_report_active(report, NOW) is True

    def test_unknown_age_active(self):
        assert TimeDecayService.is_report_active({'id': 'r1'}, NOW) is True

    def test_custom_validity_window(self):
        report = {'created_at': (NOW - timedelta(days=10)).isoformat()}
        assert TimeDecayService.is_report_active(report, NOW, validity_days=7) is False
