"""
Time Decay Service for Hazard Reports

Computes report age, the severity age factor and report activity. Older reports
still count, but never for less than half of their reported severity.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def local_now() -> datetime:
    """Default clock: current wall-clock time in the server's local timezone."""
    return datetime.now().astimezone()


def parse_timestamp(timestamp: Any) -> datetime:
    """
    Parse an ISO 8601 string or datetime into a timezone-aware datetime.

    Naive values are assumed to be UTC.

    Raises:
        ValueError: If the timestamp is missing or cannot be parsed
    """
    try:
        if isinstance(timestamp, str):
            parsed = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
        elif isinstance(timestamp, datetime):
            parsed = timestamp
        else:
            raise ValueError(f"Invalid timestamp type: {type(timestamp)}")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"Failed to parse timestamp '{timestamp}': {e}")


class TimeDecayService:
    """
    Service for calculating time-based decay of hazard report severity.

    age_factor = max(MIN_AGE_FACTOR, 1 - age_days / validity_days)
    """

    DEFAULT_VALIDITY_DAYS = 30
    MIN_AGE_FACTOR = 0.5

    @staticmethod
    def calculate_age_days(timestamp: Any, reference_time: Optional[datetime] = None) -> float:
        """
        Calculate age in days from timestamp to reference time (or now).

        Args:
            timestamp: ISO 8601 timestamp string or datetime
            reference_time: Optional reference datetime (defaults to current UTC time)

        Returns:
            Age in days as float, never negative (future timestamps count as age 0)

        Raises:
            ValueError: If timestamp is invalid or cannot be parsed
        """
        report_time = parse_timestamp(timestamp)

        if reference_time is None:
            reference_time = datetime.now(timezone.utc)
        elif reference_time.tzinfo is None:
            reference_time = reference_time.replace(tzinfo=timezone.utc)

        age_seconds = (reference_time - report_time).total_seconds()
        return max(0.0, age_seconds / SECONDS_PER_DAY)

    @staticmethod
    def get_age_factor(
        age_days: float,
        validity_days: float = DEFAULT_VALIDITY_DAYS,
        min_factor: float = MIN_AGE_FACTOR
    ) -> float:
        """
        Severity multiplier for a report of the given age.

        Examples:
            >>> TimeDecayService.get_age_factor(0, 30)
            1.0
            >>> TimeDecayService.get_age_factor(15, 30)
            0.5
            >>> TimeDecayService.get_age_factor(30, 30)
            0.5
        """
        if validity_days <= 0:
            return min_factor
        return max(min_factor, min(1.0, 1.0 - age_days / validity_days))

    @staticmethod
    def get_report_age_factor(
        report: Dict[str, Any],
        reference_time: Optional[datetime] = None,
        validity_days: float = DEFAULT_VALIDITY_DAYS,
        min_factor: float = MIN_AGE_FACTOR
    ) -> float:
        """
        Age factor for a report dict using its 'created_at' field.

        Reports with a missing or unparseable creation time are treated as fresh
        (factor 1.0) so their full severity is counted.
        """
        try:
            age_days = TimeDecayService.calculate_age_days(report.get('created_at'), reference_time)
        except ValueError:
            logger.debug(f"Report {report.get('id')} has no usable created_at, treating as fresh")
            return 1.0
        return TimeDecayService.get_age_factor(age_days, validity_days, min_factor)

    @staticmethod
    def is_report_active(
        report: Dict[str, Any],
        reference_time: Optional[datetime] = None,
        validity_days: float = DEFAULT_VALIDITY_DAYS
    ) -> bool:
        """
        Determine whether a report should still be considered.

        A report is inactive when it is temporary and its expiry has passed, or when
        it is older than the validity window. Reports with unknown age stay active.
        """
        if reference_time is None:
            reference_time = datetime.now(timezone.utc)
        elif reference_time.tzinfo is None:
            reference_time = reference_time.replace(tzinfo=timezone.utc)

        if report.get('temporary') and report.get('expires_at') is not None:
            try:
                if parse_timestamp(report['expires_at']) <= reference_time:
                    return False
            except ValueError:
                logger.warning(f"Report {report.get('id')} has an invalid expires_at, keeping it")

        try:
            age_days = TimeDecayService.calculate_age_days(report.get('created_at'), reference_time)
        except ValueError:
            return True

        return age_days <= validity_days
