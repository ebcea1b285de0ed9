from datetime import datetime, timezone

import pytest

from clinic.scheduling.conflicts import Booking
from clinic.scheduling.errors import ConflictError, ValidationError
from clinic.scheduling.interval import Interval
from clinic.scheduling.rules import BUSINESS_HOURS, DURATION_BOUNDS, INVALID_DURATION, WEEKEND
from clinic.scheduling.service import AppointmentCandidate, evaluate_appointment, schedule_appointment

DOCTOR_ID = 11


@pytest.fixture
def existing() -> list[Booking]:
    return [
        Booking(id=1, doctor_id=DOCTOR_ID, start_time=datetime(2024, 1, 15, 14, 0), duration_minutes=60),
        Booking(id=2, doctor_id=DOCTOR_ID, start_time=datetime(2024, 1, 15, 9, 0), duration_minutes=30, status='canceled'),
    ]


def test_candidate_inside_buffer_raises_conflict(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 14, 45), 30)

    with pytest.raises(ConflictError) as exception_info:
        schedule_appointment(candidate, existing)

    assert exception_info.value.appointment_ids == [1]
    assert exception_info.value.conflicts[0].end_time == datetime(2024, 1, 15, 15, 0)


def test_candidate_touching_buffer_is_scheduled(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 15, 15), 30)

    interval = schedule_appointment(candidate, existing)

    assert interval == Interval(datetime(2024, 1, 15, 15, 15), datetime(2024, 1, 15, 15, 45))


def test_saturday_candidate_raises_weekend_violation(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 20, 10, 0), 60)

    with pytest.raises(ValidationError) as exception_info:
        schedule_appointment(candidate, existing)

    assert exception_info.value.codes == [WEEKEND]


def test_twenty_minute_candidate_raises_invalid_duration(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 10, 0), 20)

    with pytest.raises(ValidationError) as exception_info:
        schedule_appointment(candidate, existing)

    assert exception_info.value.codes == [INVALID_DURATION]


def test_candidate_after_closing_raises_business_hours(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 18, 30), 60)

    with pytest.raises(ValidationError) as exception_info:
        schedule_appointment(candidate, existing)

    assert exception_info.value.codes == [BUSINESS_HOURS]


def test_business_rules_are_checked_before_conflicts(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 14, 0), 20)

    with pytest.raises(ValidationError):
        schedule_appointment(candidate, existing)


def test_canceled_booking_frees_its_slot(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 9, 0), 30)

    assert schedule_appointment(candidate, existing).start == datetime(2024, 1, 15, 9, 0)


def test_rescheduling_ignores_own_previous_interval(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 14, 30), 60)

    with pytest.raises(ConflictError):
        schedule_appointment(candidate, existing)

    interval = schedule_appointment(candidate, existing, exclude_id=1)
    assert interval.start == datetime(2024, 1, 15, 14, 30)


def test_evaluation_is_idempotent(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 14, 45), 20)

    first = evaluate_appointment(candidate, existing)
    second = evaluate_appointment(candidate, existing)

    assert first == second
    assert not first.ok
    assert [violation.code for violation in first.violations] == [INVALID_DURATION]
    assert [conflict.appointment_id for conflict in first.conflicts] == [1]


def test_aware_start_is_converted_to_clinic_time(existing: list[Booking]) -> None:
    # 17:00 UTC is 14:00 in Sao Paulo.
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 17, 0, tzinfo=timezone.utc), 30)

    result = evaluate_appointment(candidate, existing)

    assert result.interval.start == datetime(2024, 1, 15, 14, 0)
    assert [conflict.appointment_id for conflict in result.conflicts] == [1]


def test_seconds_are_truncated_from_start(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 10, 0, 42, 5000), 30)

    assert schedule_appointment(candidate, existing).start == datetime(2024, 1, 15, 10, 0)


def test_huge_duration_is_a_violation_not_an_overflow(existing: list[Booking]) -> None:
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 9, 0), 10**10)

    result = evaluate_appointment(candidate, existing)

    assert DURATION_BOUNDS in [violation.code for violation in result.violations]
    with pytest.raises(ValidationError):
        schedule_appointment(candidate, existing)


def test_aware_bookings_are_compared_in_clinic_time() -> None:
    # 17:00 UTC is 14:00 in Sao Paulo.
    booking = Booking(id=5, doctor_id=DOCTOR_ID, start_time=datetime(2024, 1, 15, 17, 0, tzinfo=timezone.utc), duration_minutes=60)
    candidate = AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 17, 30, tzinfo=timezone.utc), 30)

    with pytest.raises(ConflictError) as exception_info:
        schedule_appointment(candidate, [booking])

    assert exception_info.value.appointment_ids == [5]
    assert exception_info.value.conflicts[0].start_time == datetime(2024, 1, 15, 14, 0)


def test_aware_booking_conflicts_with_naive_candidate() -> None:
    booking = Booking(id=6, doctor_id=DOCTOR_ID, start_time=datetime(2024, 1, 15, 17, 0, tzinfo=timezone.utc), duration_minutes=60)

    result = evaluate_appointment(AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 14, 45), 30), [booking])
    assert [conflict.appointment_id for conflict in result.conflicts] == [6]

    result = evaluate_appointment(AppointmentCandidate(DOCTOR_ID, datetime(2024, 1, 15, 15, 15), 30), [booking])
    assert result.ok
