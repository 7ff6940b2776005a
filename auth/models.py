"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond trivial
constructors). Stores and the service do the work.

Layer rule: no imports from api/, core/, cache/, or posts/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered forum account.

    hashed_password is the bcrypt hash. It never leaves the process: the API
    layer maps User onto a response model that has no password field.
    """

    username: str
    email: str
    hashed_password: str
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed on every mutation


@dataclass
class FieldError:
    """A soft failure attached to one input field (or "error" for store codes)."""

    field: str
    message: str


@dataclass
class UserResponse:
    """Result of register / login / change-password.

    Exactly one side is populated: user on success, a non-empty errors list
    on failure.
    """

    user: User | None = None
    errors: list[FieldError] | None = None

    @classmethod
    def ok(cls, user: User) -> UserResponse:
        return cls(user=user)

    @classmethod
    def fail(cls, field: str, message: str) -> UserResponse:
        return cls(errors=[FieldError(field=field, message=message)])

    @property
    def succeeded(self) -> bool:
        return self.user is not None
