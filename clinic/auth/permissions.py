"""Role-based permissions and clinic tenancy checks."""

from clinic.models.profile import Profile

APPOINTMENTS_READ = 'appointments:read'
APPOINTMENTS_WRITE = 'appointments:write'
APPOINTMENTS_DELETE = 'appointments:delete'

SUPER_ADMIN = 'super_admin'
ADMIN = 'admin'
DOCTOR = 'doctor'
NURSE = 'nurse'
RECEPTIONIST = 'receptionist'
ASSISTANT = 'assistant'

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    SUPER_ADMIN: frozenset({APPOINTMENTS_READ, APPOINTMENTS_WRITE, APPOINTMENTS_DELETE}),
    ADMIN: frozenset({APPOINTMENTS_READ, APPOINTMENTS_WRITE, APPOINTMENTS_DELETE}),
    DOCTOR: frozenset({APPOINTMENTS_READ, APPOINTMENTS_WRITE}),
    NURSE: frozenset({APPOINTMENTS_READ, APPOINTMENTS_WRITE}),
    RECEPTIONIST: frozenset({APPOINTMENTS_READ, APPOINTMENTS_WRITE}),
    ASSISTANT: frozenset({APPOINTMENTS_READ}),
}

# Roles that may be booked as the attending doctor.
BOOKABLE_ROLES = frozenset({DOCTOR, ADMIN})


def has_permission(role: str | None, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role or '', frozenset())


def has_all_permissions(role: str | None, permissions: list[str]) -> bool:
    return all(has_permission(role, permission) for permission in permissions)


def can_access_clinic(user: Profile, clinic_id: int | None) -> bool:
    if user.role == SUPER_ADMIN:
        return True
    return clinic_id is not None and user.clinic_id == clinic_id


def can_access_appointment(user: Profile, appointment) -> bool:
    """Doctors only see their own appointments; other staff see their clinic's."""
    if not can_access_clinic(user, appointment.clinic_id):
        return False
    if user.role == DOCTOR:
        return appointment.doctor_id == user.id
    return True
