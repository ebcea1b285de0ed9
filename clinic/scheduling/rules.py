"""Clinic business rules for appointment start times and durations."""

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from clinic.core import config
from clinic.scheduling.errors import Violation

WEEKEND = 'weekend'
BUSINESS_HOURS = 'business_hours'
INVALID_DURATION = 'invalid_duration'
DURATION_BOUNDS = 'duration_bounds'


@dataclass(frozen=True)
class BusinessRules:
    open_hour: int = config.BUSINESS_OPEN_HOUR
    close_hour: int = config.BUSINESS_CLOSE_HOUR
    slot_minutes: int = config.APPOINTMENT_SLOT_MINUTES
    min_duration_minutes: int = config.MIN_APPOINTMENT_MINUTES
    max_duration_minutes: int = config.MAX_APPOINTMENT_MINUTES
    buffer_minutes: int = config.APPOINTMENT_BUFFER_MINUTES

    @property
    def open_time(self) -> time:
        return time(self.open_hour, 0)

    def closing_datetime(self, day: datetime) -> datetime:
        return datetime.combine(day.date(), time(0, 0)) + timedelta(hours=self.close_hour)


DEFAULT_RULES = BusinessRules()


def validate_business_rules(
    start_time: datetime,
    duration_minutes: int,
    rules: BusinessRules = DEFAULT_RULES,
) -> list[Violation]:
    """
    Check a candidate start and duration against the clinic's rules.

    Returns the violations in rule order (weekend, business hours, duration
    granularity, duration bounds). An empty list means the candidate is
    valid. ``start_time`` must already be clinic-local.
    """
    violations: list[Violation] = []

    if start_time.weekday() >= 5:
        violations.append(Violation(WEEKEND, 'Appointments cannot be scheduled on weekends.'))

    # Compared in minutes so huge durations cannot overflow datetime.
    minutes_until_close = (rules.closing_datetime(start_time) - start_time).total_seconds() / 60
    if (
        start_time.time() < rules.open_time
        or start_time.hour >= rules.close_hour
        or duration_minutes > minutes_until_close
    ):
        violations.append(
            Violation(
                BUSINESS_HOURS,
                f'Appointments must start and end between {rules.open_hour:02d}:00 '
                f'and {rules.close_hour:02d}:00.',
            )
        )

    if duration_minutes % rules.slot_minutes != 0:
        violations.append(
            Violation(
                INVALID_DURATION,
                f'Duration must be a multiple of {rules.slot_minutes} minutes.',
            )
        )

    if duration_minutes < rules.min_duration_minutes:
        violations.append(
            Violation(
                DURATION_BOUNDS,
                f'Duration must be at least {rules.min_duration_minutes} minutes.',
            )
        )
    elif duration_minutes > rules.max_duration_minutes:
        violations.append(
            Violation(
                DURATION_BOUNDS,
                f'Duration must be at most {rules.max_duration_minutes} minutes.',
            )
        )

    return violations
