import pytest

from clinic.scheduling.errors import InvalidTransitionError
from clinic.scheduling.status import (
    AppointmentStatus,
    can_transition,
    ensure_transition,
    is_active,
    is_terminal,
)


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('scheduled', 'confirmed'),
        ('scheduled', 'canceled'),
        ('scheduled', 'no_show'),
        ('confirmed', 'in_progress'),
        ('confirmed', 'completed'),
        ('confirmed', 'no_show'),
        ('in_progress', 'completed'),
        ('completed', 'completed'),
    ],
)
def test_allowed_transitions(current: str, target: str) -> None:
    assert can_transition(current, target)
    assert ensure_transition(current, target) == AppointmentStatus(target)


@pytest.mark.parametrize(
    ('current', 'target'),
    [
        ('completed', 'scheduled'),
        ('canceled', 'confirmed'),
        ('no_show', 'scheduled'),
        ('in_progress', 'canceled'),
        ('confirmed', 'scheduled'),
    ],
)
def test_illegal_transitions_raise(current: str, target: str) -> None:
    with pytest.raises(InvalidTransitionError) as exception_info:
        ensure_transition(current, target)

    assert exception_info.value.current == current
    assert exception_info.value.target == target


def test_terminal_and_active_statuses() -> None:
    assert [status.value for status in AppointmentStatus if is_terminal(status.value)] == [
        'completed',
        'canceled',
        'no_show',
    ]
    assert is_active('in_progress')
    assert not is_active('canceled')
    assert not is_active(None)
