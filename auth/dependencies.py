"""
auth/dependencies.py -- FastAPI Depends() helpers for cookie sessions.

The session cookie (name from Settings.session_cookie_name, "qid" by default)
carries only an opaque session id. get_session() wraps it in a SessionHandle
for the service; apply_session_cookie() writes the handle's outcome back onto
the response:

  handle.cleared -> delete the cookie (logout; always, even if the store
                    could not destroy the record)
  handle.issued  -> set the cookie to the new session id (login, register,
                    change-password)

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/ or posts/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, Response

from auth.models import User
from auth.sessions import SessionHandle, SessionStore
from core.config import get_settings


def get_session(request: Request) -> SessionHandle:
    """Build the SessionHandle for this request from the session cookie.

    Use as a FastAPI dependency:
        @router.post("/auth/login")
        def route(session: SessionHandle = Depends(get_session)): ...
    """
    store: SessionStore = request.app.state.session_store
    session_id = request.cookies.get(get_settings().session_cookie_name) or None
    return SessionHandle(store=store, session_id=session_id)


def apply_session_cookie(response: Response, session: SessionHandle) -> None:
    """Mirror the handle's outcome onto the session cookie.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the session TTL in the cache so both expire together.
    """
    settings = get_settings()
    if session.cleared:
        response.delete_cookie(
            settings.session_cookie_name,
            httponly=True,
            samesite="lax",
            secure=settings.secure_cookies,
        )
    elif session.issued and session.session_id:
        response.set_cookie(
            settings.session_cookie_name,
            value=session.session_id,
            httponly=True,
            samesite="lax",
            secure=settings.secure_cookies,
            max_age=settings.session_ttl_seconds,
        )


def try_get_current_user(request: Request) -> User | None:
    """Resolve the session cookie to a User. Never raises for a bad session."""
    session = get_session(request)
    user_id = session.user_id()
    if user_id is None:
        return None
    return request.app.state.user_store.get_by_id(user_id)


def get_current_user(request: Request) -> User:
    """Require a logged-in session. Raises HTTP 401 if there is none.

    Use as a FastAPI dependency:
        @router.post("/posts")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
