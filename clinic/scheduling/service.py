"""
Scheduling service shared by appointment creation, update and preview.

Both entry points are read-only: they never touch the database, so the
caller owns the transaction that loads existing bookings and persists the
result.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from clinic.scheduling.conflicts import Booking, comparable_bookings, find_conflicts
from clinic.scheduling.errors import Conflict, ConflictError, ValidationError, Violation
from clinic.scheduling.interval import Interval, to_clinic_time
from clinic.scheduling.rules import DEFAULT_RULES, BusinessRules, validate_business_rules

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class AppointmentCandidate:
    doctor_id: int
    start_time: datetime
    duration_minutes: int


@dataclass(frozen=True)
class SchedulingResult:
    interval: Interval
    violations: list[Violation] = field(default_factory=list)
    conflicts: list[Conflict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations and not self.conflicts


def evaluate_appointment(
    candidate: AppointmentCandidate,
    existing_appointments: Iterable[Booking],
    exclude_id: int | None = None,
    rules: BusinessRules = DEFAULT_RULES,
) -> SchedulingResult:
    """Collect every violation and conflict for ``candidate`` without raising."""
    start_time = to_clinic_time(candidate.start_time).replace(second=0, microsecond=0)
    # Anything past a day is already a bounds violation.
    occupied_minutes = min(max(candidate.duration_minutes, 0), MINUTES_PER_DAY)
    interval = Interval.from_duration(start_time, occupied_minutes)

    violations = validate_business_rules(start_time, candidate.duration_minutes, rules)
    same_day = comparable_bookings(candidate.doctor_id, start_time, existing_appointments, exclude_id)
    conflicts = find_conflicts(interval, same_day, rules.buffer_minutes)

    return SchedulingResult(interval=interval, violations=violations, conflicts=conflicts)


def schedule_appointment(
    candidate: AppointmentCandidate,
    existing_appointments: Iterable[Booking],
    exclude_id: int | None = None,
    rules: BusinessRules = DEFAULT_RULES,
) -> Interval:
    """
    Validate ``candidate`` against the business rules and the doctor's calendar.

    Business rules are checked first; if any fail a ``ValidationError`` is
    raised and conflicts are not looked at. Otherwise ``existing_appointments``
    is narrowed to the same doctor, the same local day and active statuses,
    minus ``exclude_id`` (the appointment being rescheduled), and any
    overlap with a buffered booking raises ``ConflictError``.

    Returns the unbuffered interval to persist.
    """
    result = evaluate_appointment(candidate, existing_appointments, exclude_id, rules)

    if result.violations:
        logger.info(
            'Appointment for doctor %s rejected by business rules: %s',
            candidate.doctor_id,
            [violation.code for violation in result.violations],
        )
        raise ValidationError(result.violations)

    if result.conflicts:
        logger.info(
            'Appointment for doctor %s at %s conflicts with %s',
            candidate.doctor_id,
            result.interval.start.isoformat(),
            [conflict.appointment_id for conflict in result.conflicts],
        )
        raise ConflictError(result.conflicts)

    return result.interval
