"""Detect overlaps between a candidate appointment and a doctor's calendar."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from clinic.scheduling.errors import Conflict
from clinic.scheduling.interval import Interval, to_clinic_time
from clinic.scheduling.status import is_active


@dataclass(frozen=True)
class Booking:
    """The parts of an appointment that matter for conflict detection."""

    id: int | None
    doctor_id: int
    start_time: datetime
    duration_minutes: int
    status: str = 'scheduled'

    @property
    def local_start(self) -> datetime:
        return to_clinic_time(self.start_time)

    @property
    def interval(self) -> Interval:
        return Interval.from_duration(self.local_start, self.duration_minutes)

    @classmethod
    def from_appointment(cls, appointment) -> 'Booking':
        return cls(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            start_time=appointment.start_time,
            duration_minutes=appointment.duration_minutes,
            status=appointment.status,
        )


def comparable_bookings(
    doctor_id: int,
    day: datetime,
    bookings: Iterable[Booking],
    exclude_id: int | None = None,
) -> list[Booking]:
    """Same doctor, same local day, active status, minus ``exclude_id``."""
    return [
        booking
        for booking in bookings
        if booking.doctor_id == doctor_id
        and booking.local_start.date() == to_clinic_time(day).date()
        and is_active(booking.status)
        and (exclude_id is None or booking.id != exclude_id)
    ]


def find_conflicts(
    candidate: Interval,
    existing: Iterable[Booking],
    buffer_minutes: int,
) -> list[Conflict]:
    """
    Return the bookings whose buffered interval overlaps ``candidate``.

    The buffer is applied once, around each existing booking, so two
    appointments of the same doctor end up at least ``buffer_minutes``
    apart. A candidate starting exactly when a buffered booking ends is
    not a conflict.
    """
    conflicts: list[Conflict] = []

    for booking in existing:
        interval = booking.interval
        if candidate.overlaps(interval.buffered(buffer_minutes)):
            conflicts.append(Conflict(booking.id, interval.start, interval.end))

    return conflicts


def has_conflict(
    doctor_id: int,
    candidate: Interval,
    bookings: Iterable[Booking],
    buffer_minutes: int,
    exclude_id: int | None = None,
) -> bool:
    same_day = comparable_bookings(doctor_id, candidate.start, bookings, exclude_id)
    return bool(find_conflicts(candidate, same_day, buffer_minutes))
