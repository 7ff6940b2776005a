"""
API request and response models for the forum REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
posts/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON keys are camelCase on the wire (usernameOrEmail, newPassword, createdAt)
so they line up with the field names carried by FieldError. Python attributes
stay snake_case; the alias generator does the translation both ways.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
UserOut has no password field, so a hash can never be serialized by accident.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User, UserResponse
from posts.models import Post


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/v1/auth/register.

    Only upper bounds live here. The domain rules (length > 2, "@" handling)
    are checked by auth/validation.py and come back as field errors, not 422s.
    """

    username: str = Field(max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class LoginRequest(_CamelModel):
    username_or_email: str = Field(max_length=255)
    password: str = Field(max_length=255)


class ForgotPasswordRequest(_CamelModel):
    email: str = Field(max_length=255)


class ChangePasswordRequest(_CamelModel):
    token: str = Field(max_length=255)
    new_password: str = Field(max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class FieldErrorModel(_CamelModel):
    field: str
    message: str


class UserOut(_CamelModel):
    """Public view of a User."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    username: str
    email: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserResponseModel(_CamelModel):
    """Either user or errors. Routes serialize with exclude_none so only one key appears."""

    user: Optional[UserOut] = None
    errors: Optional[list[FieldErrorModel]] = None

    @classmethod
    def from_result(cls, result: UserResponse) -> "UserResponseModel":
        if result.user is not None:
            return cls(user=UserOut.from_domain(result.user))
        return cls(errors=[FieldErrorModel(field=e.field, message=e.message) for e in result.errors or []])


class MeResponse(_CamelModel):
    """Response for GET /api/v1/auth/me. user is null when not logged in."""

    user: Optional[UserOut] = None


class OkResponse(BaseModel):
    ok: bool


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)


class PostPatch(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)


class PostOut(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    title: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, post: Post) -> "PostOut":
        return cls(id=post.id, title=post.title, created_at=post.created_at, updated_at=post.updated_at)


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
