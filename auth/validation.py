"""
auth/validation.py -- Structural checks on registration and reset input.

Pure functions, no I/O. Failures come back as FieldError lists so the service
can hand them straight to the client.

The rules are deliberately minimal (length > 2, "@" present) and are known to
be weak; tightening them changes what existing clients may submit.
"""

from __future__ import annotations

from auth.models import FieldError

_MIN_LENGTH_MESSAGE = "length must be greater than 2"


def validate_register(username: str, email: str, password: str) -> list[FieldError] | None:
    """Return every violation in field order, or None if the input is acceptable."""
    errors: list[FieldError] = []

    if len(username) <= 2:
        errors.append(FieldError(field="username", message=_MIN_LENGTH_MESSAGE))
    # "@" is what tells an email apart from a username at login.
    if "@" in username:
        errors.append(FieldError(field="username", message="cannot include an @"))

    if "@" not in email:
        errors.append(FieldError(field="email", message="invalid email"))

    if len(password) <= 2:
        errors.append(FieldError(field="password", message=_MIN_LENGTH_MESSAGE))

    return errors or None


def validate_new_password(password: str) -> list[FieldError] | None:
    if len(password) <= 2:
        return [FieldError(field="newPassword", message=_MIN_LENGTH_MESSAGE)]
    return None
