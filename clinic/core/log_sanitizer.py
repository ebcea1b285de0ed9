"""Redact patient-identifying data before it reaches a log record."""

from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = {
    "full_name",
    "patient_name",
    "email",
    "phone",
    "emergency_phone",
    "address",
    "birth_date",
    "medical_history",
    "allergies",
    "medications",
    "notes",
    "description",
    "emergency_contact",
    "document_number",
    "password",
}

MASKABLE_FIELDS = {"email", "phone", "emergency_phone"}


def mask_email(email: str) -> str:
    """Mask an email address, e.g. ``jane@clinic.com`` -> ``j**e@c******com``."""
    if not email or "@" not in email:
        return "[EMAIL_REDACTED]"

    local, domain = email.split("@", 1)
    masked_local = local[0] + "*" * (len(local) - 2) + local[-1] if len(local) > 2 else "***"
    masked_domain = domain[0] + "*" * (len(domain) - 4) + domain[-3:] if len(domain) > 4 else "***"
    return f"{masked_local}@{masked_domain}"


def mask_phone(phone: str) -> str:
    digits = "".join(char for char in phone if char.isdigit())
    if len(digits) < 4:
        return "[PHONE_REDACTED]"
    return "*" * (len(digits) - 4) + digits[-4:]


def sanitize_for_log(data: Any) -> Any:
    """
    Return a copy of ``data`` safe to log.

    Sensitive keys are replaced with ``[REDACTED]``; emails and phone
    numbers are masked instead so support can still correlate records.
    Nested dicts and lists are sanitized recursively. Non-container values
    are returned unchanged.
    """
    if isinstance(data, list):
        return [sanitize_for_log(item) for item in data]

    if not isinstance(data, dict):
        return data

    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        normalized_key = str(key).lower()
        if normalized_key in SENSITIVE_FIELDS:
            if value and normalized_key == "email":
                sanitized[key] = mask_email(str(value))
            elif value and normalized_key in MASKABLE_FIELDS:
                sanitized[key] = mask_phone(str(value))
            else:
                sanitized[key] = REDACTED
        elif isinstance(value, (dict, list)):
            sanitized[key] = sanitize_for_log(value)
        else:
            sanitized[key] = value

    return sanitized
