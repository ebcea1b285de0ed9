"""Appointment status values and the transitions allowed between them."""

from enum import Enum

from clinic.scheduling.errors import InvalidTransitionError


class AppointmentStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELED = 'canceled'
    NO_SHOW = 'no_show'


# Statuses that still occupy the doctor's calendar.
ACTIVE_STATUSES = frozenset({
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.IN_PROGRESS,
})

INITIAL_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})

# Statuses whose time, duration or doctor may still change.
RESCHEDULABLE_STATUSES = INITIAL_STATUSES

# Rows in these statuses must be kept.
UNDELETABLE_STATUSES = frozenset({AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED})

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def is_active(status: str | None) -> bool:
    return status in {item.value for item in ACTIVE_STATUSES}


def is_terminal(status: str) -> bool:
    return not TRANSITIONS[AppointmentStatus(status)]


def can_transition(current: str, target: str) -> bool:
    current_status = AppointmentStatus(current)
    target_status = AppointmentStatus(target)
    return current_status == target_status or target_status in TRANSITIONS[current_status]


def ensure_transition(current: str, target: str) -> AppointmentStatus:
    """Return ``target`` as a status, raising if ``current`` cannot move to it."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return AppointmentStatus(target)
