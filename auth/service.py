"""
auth/service.py -- Registration, login, logout and password reset.

AuthService is the one place that coordinates the user store, the session
store, the reset-token store, password hashing and outgoing email. Every
collaborator is passed in at construction time; every per-request piece of
state arrives as an argument (the SessionHandle in particular), so the
service holds no request context of its own.

Failure policy:
  Expected failures (bad input, duplicate account, wrong password, expired
  token) come back as UserResponse.errors. Nothing here raises for them.
  Infrastructure failures (database down, cache down, email delivery error)
  propagate to the caller untouched.

Known weaknesses kept on purpose:
  - "incorrect password" tells the caller the account exists.
  - No rate limiting or lockout on login or forgot-password.
  - Validation only requires length > 2 (see auth/validation.py).

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging

from auth.email import EmailSender
from auth.models import User, UserResponse
from auth.passwords import burn_verify, hash_password, verify_password
from auth.reset import ResetTokenStore
from auth.sessions import SessionHandle
from auth.store import DuplicateUserError, UserStore, UserStoreError
from auth.validation import validate_new_password, validate_register

logger = logging.getLogger("forum.auth")


class AuthService:
    def __init__(
        self,
        user_store: UserStore,
        reset_tokens: ResetTokenStore,
        email_sender: EmailSender,
        frontend_url: str = "http://localhost:3000",
    ) -> None:
        self.user_store = user_store
        self.reset_tokens = reset_tokens
        self.email_sender = email_sender
        self.frontend_url = frontend_url.rstrip("/")

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, session: SessionHandle) -> UserResponse:
        """Create an account and log it in.

        Duplicate detection relies on the database UNIQUE constraints, not on
        a prior lookup, so concurrent registrations for the same name yield
        exactly one account.
        """
        errors = validate_register(username, email, password)
        if errors:
            return UserResponse(errors=errors)

        hashed = hash_password(password)
        try:
            user = self.user_store.create_user(username, email, hashed)
        except DuplicateUserError as exc:
            if exc.field == "email":
                return UserResponse.fail("email", "email was already taken")
            return UserResponse.fail("username", "username was already taken")
        except UserStoreError as exc:
            return UserResponse.fail("error", f"unexpected database error (code {exc.code})")

        session.establish(user.id)
        logger.info("Registered user=%d username=%s", user.id, user.username)
        return UserResponse.ok(user)

    def login(self, username_or_email: str, password: str, session: SessionHandle) -> UserResponse:
        user = self.user_store.find_by_username_or_email(username_or_email)
        if user is None:
            # Same bcrypt cost as a real check, so timing does not give it away.
            burn_verify(password)
            return UserResponse.fail("usernameOrEmail", "that account doesn't exist")

        if not verify_password(password, user.hashed_password):
            return UserResponse.fail("password", "incorrect password")

        session.establish(user.id)
        logger.info("Login user=%d", user.id)
        return UserResponse.ok(user)

    def logout(self, session: SessionHandle) -> bool:
        """Destroy the session. The cookie is cleared even when this returns False."""
        ok = session.destroy()
        if not ok:
            logger.warning("Logout could not destroy the session record")
        return ok

    def me(self, session: SessionHandle) -> User | None:
        """Return the logged-in user, or None when logged out or the account is gone."""
        user_id = session.user_id()
        if user_id is None:
            return None
        return self.user_store.get_by_id(user_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str) -> bool:
        """Email a reset link if the address is registered.

        Returns True either way so the response does not reveal which
        addresses have accounts. An exception from the email sender
        propagates.
        """
        user = self.user_store.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown address")
            return True

        token = self.reset_tokens.issue(user.id)
        link = f'<a href="{self.frontend_url}/change-password/{token}">reset password</a>'
        self.email_sender.send(user.email, link)
        return True

    def change_password(self, token: str, new_password: str, session: SessionHandle) -> UserResponse:
        """Redeem a reset token, set the new password and log the user in.

        The token is consumed before the user lookup, so it is gone even when
        the account it pointed at no longer exists.
        """
        errors = validate_new_password(new_password)
        if errors:
            return UserResponse(errors=errors)

        user_id = self.reset_tokens.consume(token)
        if user_id is None:
            return UserResponse.fail("token", "token expired")

        user = self.user_store.get_by_id(user_id)
        if user is None:
            return UserResponse.fail("token", "user no longer exists")

        hashed = hash_password(new_password)
        if not self.user_store.update_password(user.id, hashed):
            # Deleted between the lookup and the update.
            return UserResponse.fail("token", "user no longer exists")

        refreshed = self.user_store.get_by_id(user.id) or user
        session.establish(refreshed.id)
        logger.info("Password changed for user=%d", refreshed.id)
        return UserResponse.ok(refreshed)
