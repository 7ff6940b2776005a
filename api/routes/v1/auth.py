"""
api/routes/v1/auth.py -- Account and session REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create account; sets session cookie
  POST /api/v1/auth/login            -- password login; sets session cookie
  POST /api/v1/auth/logout           -- destroys session; always clears cookie
  GET  /api/v1/auth/me               -- current user or null
  POST /api/v1/auth/forgot-password  -- email a reset link (always ok=true)
  POST /api/v1/auth/change-password  -- redeem reset token; sets session cookie

All routes are public. Business failures (duplicate username, wrong password,
expired token) return 200 with an "errors" list -- they are results, not HTTP
errors. Only request-shape problems (422) and infrastructure faults (500)
leave the 2xx range.

Handlers are plain `def`: every store call blocks, and FastAPI runs sync
handlers in its thread pool so the event loop stays free.

Security:
  Cache-Control: no-store on every response that can carry a session cookie.
  No rate limiting on login or forgot-password (known gap).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    OkResponse,
    RegisterRequest,
    UserOut,
    UserResponseModel,
)
from auth.dependencies import apply_session_cookie, get_session
from auth.service import AuthService
from auth.sessions import SessionHandle

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/auth/register", response_model=UserResponseModel, response_model_exclude_none=True)
def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    session: SessionHandle = Depends(get_session),
) -> UserResponseModel:
    """Create an account and log it in."""
    result = _service(request).register(body.username, body.email, body.password, session)
    apply_session_cookie(response, session)
    response.headers["Cache-Control"] = "no-store"
    return UserResponseModel.from_result(result)


@router.post("/auth/login", response_model=UserResponseModel, response_model_exclude_none=True)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    session: SessionHandle = Depends(get_session),
) -> UserResponseModel:
    """Authenticate with username or email plus password."""
    result = _service(request).login(body.username_or_email, body.password, session)
    apply_session_cookie(response, session)
    response.headers["Cache-Control"] = "no-store"
    return UserResponseModel.from_result(result)


@router.post("/auth/logout", response_model=OkResponse)
def logout(
    request: Request,
    response: Response,
    session: SessionHandle = Depends(get_session),
) -> OkResponse:
    """Destroy the session. ok reports whether the store-level destroy worked."""
    ok = _service(request).logout(session)
    apply_session_cookie(response, session)
    return OkResponse(ok=ok)


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, session: SessionHandle = Depends(get_session)) -> MeResponse:
    """Return the logged-in user, or {"user": null}. Not an error when logged out."""
    user = _service(request).me(session)
    return MeResponse(user=UserOut.from_domain(user) if user is not None else None)


@router.post("/auth/forgot-password", response_model=OkResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> OkResponse:
    """Send a reset link if the email is registered. Always ok=true otherwise."""
    return OkResponse(ok=_service(request).forgot_password(body.email))


@router.post("/auth/change-password", response_model=UserResponseModel, response_model_exclude_none=True)
def change_password(
    request: Request,
    response: Response,
    body: ChangePasswordRequest,
    session: SessionHandle = Depends(get_session),
) -> UserResponseModel:
    """Redeem a reset token, set the new password and log the user in."""
    result = _service(request).change_password(body.token, body.new_password, session)
    apply_session_cookie(response, session)
    response.headers["Cache-Control"] = "no-store"
    return UserResponseModel.from_result(result)
