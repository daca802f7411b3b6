"""
Input normalisation and validation for account fields.
"""

from __future__ import annotations

from auth.errors import ValidationError

# bcrypt only looks at the first 72 bytes of its input.
MAX_PASSWORD_BYTES = 72


def normalize_email(value: str) -> str:
    return value.strip().lower()


def is_valid_email(value: str) -> bool:
    return value != "" and "@" in value


def validate_email(value: str) -> str:
    """Normalise *value* and raise ``ValidationError`` if it is not an email."""
    email = normalize_email(value)
    if not is_valid_email(email):
        raise ValidationError("invalid email")
    return email


def validate_name(value: str, message: str = "name is required") -> str:
    name = value.strip()
    if not name:
        raise ValidationError(message)
    return name


def validate_password(value: str, min_length: int = 8) -> str:
    if len(value) < min_length:
        raise ValidationError("password too short")
    if len(value.encode()) > MAX_PASSWORD_BYTES:
        raise ValidationError("password too long")
    return value
