from datetime import datetime

import pytest

from clinic.scheduling.rules import (
    BUSINESS_HOURS,
    DURATION_BOUNDS,
    INVALID_DURATION,
    WEEKEND,
    BusinessRules,
    validate_business_rules,
)


def codes(start_time: datetime, duration_minutes: int, rules: BusinessRules | None = None) -> list[str]:
    if rules is None:
        return [violation.code for violation in validate_business_rules(start_time, duration_minutes)]
    return [violation.code for violation in validate_business_rules(start_time, duration_minutes, rules)]


def test_weekday_appointment_inside_business_hours_is_valid() -> None:
    assert validate_business_rules(datetime(2024, 1, 15, 9, 0), 60) == []


@pytest.mark.parametrize(
    ('start_time', 'duration_minutes', 'expected'),
    [
        (datetime(2024, 1, 20, 10, 0), 60, [WEEKEND]),
        (datetime(2024, 1, 21, 10, 0), 30, [WEEKEND]),
        (datetime(2024, 1, 15, 10, 0), 20, [INVALID_DURATION]),
        (datetime(2024, 1, 15, 18, 30), 60, [BUSINESS_HOURS]),
        (datetime(2024, 1, 15, 6, 45), 30, [BUSINESS_HOURS]),
        (datetime(2024, 1, 15, 17, 30), 45, [BUSINESS_HOURS]),
        (datetime(2024, 1, 15, 18, 0), 15, [BUSINESS_HOURS]),
        (datetime(2024, 1, 15, 10, 0), 10, [INVALID_DURATION, DURATION_BOUNDS]),
        (datetime(2024, 1, 15, 9, 0), 195, [DURATION_BOUNDS]),
        (datetime(2024, 1, 15, 9, 0), 0, [DURATION_BOUNDS]),
    ],
)
def test_validate_business_rules_reports_violations(
    start_time: datetime,
    duration_minutes: int,
    expected: list[str],
) -> None:
    assert codes(start_time, duration_minutes) == expected


@pytest.mark.parametrize(
    ('start_time', 'duration_minutes'),
    [
        (datetime(2024, 1, 15, 7, 0), 15),
        (datetime(2024, 1, 15, 17, 30), 30),
        (datetime(2024, 1, 15, 9, 0), 180),
        (datetime(2024, 1, 19, 16, 45), 75),
    ],
)
def test_validate_business_rules_accepts_boundaries(start_time: datetime, duration_minutes: int) -> None:
    assert codes(start_time, duration_minutes) == []


def test_weekend_is_reported_regardless_of_other_fields() -> None:
    assert codes(datetime(2024, 1, 20, 20, 0), 20) == [WEEKEND, BUSINESS_HOURS, INVALID_DURATION]


@pytest.mark.parametrize('duration_minutes', [16, 25, 50, 61, 179])
def test_durations_off_the_quarter_hour_are_invalid(duration_minutes: int) -> None:
    assert INVALID_DURATION in codes(datetime(2024, 1, 15, 8, 0), duration_minutes)


def test_business_hours_violation_is_reported_once() -> None:
    assert codes(datetime(2024, 1, 15, 19, 0), 120).count(BUSINESS_HOURS) == 1


def test_custom_rules_allow_longer_appointments() -> None:
    rules = BusinessRules(max_duration_minutes=480)

    assert codes(datetime(2024, 1, 15, 8, 0), 240, rules) == []
    assert codes(datetime(2024, 1, 15, 8, 0), 240) == [DURATION_BOUNDS]


def test_violation_messages_name_the_opening_hours() -> None:
    violations = validate_business_rules(datetime(2024, 1, 15, 18, 30), 60)

    assert violations[0].message == 'Appointments must start and end between 07:00 and 18:00.'


def test_huge_duration_is_reported_instead_of_overflowing() -> None:
    assert codes(datetime(2024, 1, 15, 9, 0), 10**10) == [BUSINESS_HOURS, INVALID_DURATION, DURATION_BOUNDS]
