"""Errors raised by the scheduling service."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Violation:
    code: str
    message: str

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message}


@dataclass(frozen=True)
class Conflict:
    """An existing appointment that overlaps the candidate."""

    appointment_id: int | None
    start_time: datetime
    end_time: datetime

    def to_dict(self) -> dict:
        return {
            'id': self.appointment_id,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
        }


class SchedulingError(Exception):
    """Base class for scheduling failures."""


class ValidationError(SchedulingError):
    """The candidate breaks one or more business rules."""

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        super().__init__('; '.join(violation.message for violation in self.violations))

    @property
    def codes(self) -> list[str]:
        return [violation.code for violation in self.violations]


class ConflictError(SchedulingError):
    """The candidate overlaps another appointment of the same doctor."""

    def __init__(self, conflicts: list[Conflict]):
        self.conflicts = list(conflicts)
        super().__init__(
            'Doctor already has an appointment at this time '
            f'({len(self.conflicts)} conflicting).'
        )

    @property
    def appointment_ids(self) -> list[int | None]:
        return [conflict.appointment_id for conflict in self.conflicts]


class InvalidTransitionError(SchedulingError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f'Cannot change appointment status from {current} to {target}.')
