"""Time interval value type used by conflict detection."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from clinic.core import config


def to_clinic_time(value: datetime, timezone_name: str | None = None) -> datetime:
    """
    Normalize a timestamp to naive clinic-local time.

    Naive values are taken to already be clinic-local. Aware values are
    converted to ``timezone_name`` (``CLINIC_TIMEZONE`` by default) and the
    tzinfo is dropped, so "same day" and business-hour checks use the
    clinic's wall clock.
    """
    if value.tzinfo is None:
        return value
    zone = ZoneInfo(timezone_name or config.CLINIC_TIMEZONE)
    return value.astimezone(zone).replace(tzinfo=None)


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` occupancy of a doctor's time."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError('Interval end must not be earlier than its start.')

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> 'Interval':
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def buffered(self, buffer_minutes: int) -> 'Interval':
        margin = timedelta(minutes=buffer_minutes)
        return Interval(start=self.start - margin, end=self.end + margin)

    def overlaps(self, other: 'Interval') -> bool:
        # Touching edges do not overlap.
        return self.start < other.end and self.end > other.start
