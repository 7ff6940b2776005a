"""
auth/sessions.py -- Server-side sessions keyed by an opaque session id.

The browser only ever holds the session id (httpOnly cookie). The record it
points at lives in the key-value cache under "sess:<id>" as a small JSON
object, currently just {"userId": <int>}.

Two pieces:

  SessionStore   -- create / read / destroy against the cache.
  SessionHandle  -- the per-request session capability. The HTTP layer builds
                    one from the incoming cookie, passes it to AuthService,
                    then reads .issued / .cleared to decide whether to set or
                    delete the cookie on the response. The service never sees
                    the request or response objects.

Session ids come from secrets.token_urlsafe(32): 256 bits of entropy, so ids
are unguessable and need no signature.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass

from cache.store import CacheError

logger = logging.getLogger("forum.auth")

_KEY_PREFIX = "sess:"


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore:
    """Session records in a key-value cache (SQLiteCache or RedisCache)."""

    def __init__(self, cache, ttl_seconds: int) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    def create(self, session_id: str, user_id: int) -> None:
        self._cache.set(_KEY_PREFIX + session_id, json.dumps({"userId": user_id}), self.ttl_seconds)

    def read(self, session_id: str) -> int | None:
        """Return the user id bound to session_id, or None if absent or expired."""
        raw = self._cache.get(_KEY_PREFIX + session_id)
        if raw is None:
            return None
        try:
            return int(json.loads(raw)["userId"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding malformed session record sid=%s...", session_id[:8])
            return None

    def destroy(self, session_id: str) -> bool:
        """Delete the session. Missing sessions count as success.

        A cache failure is logged and reported as False; it never raises, so
        logout can always finish clearing the cookie.
        """
        try:
            self._cache.delete(_KEY_PREFIX + session_id)
        except CacheError:
            logger.exception("Failed to destroy session sid=%s...", session_id[:8])
            return False
        return True


@dataclass
class SessionHandle:
    """The session attached to one request.

    session_id is the id from the incoming cookie (None if there was none).
    issued is set when establish() minted a new id the client must store;
    cleared is set when destroy() ran and the client must drop its cookie.
    """

    store: SessionStore
    session_id: str | None = None
    issued: bool = False
    cleared: bool = False

    def user_id(self) -> int | None:
        if not self.session_id or self.cleared:
            return None
        return self.store.read(self.session_id)

    def establish(self, user_id: int) -> str:
        """Bind user_id to a freshly minted session id and return the id.

        A new id is issued on every login so an id planted before
        authentication never becomes an authenticated session.
        """
        session_id = new_session_id()
        self.store.create(session_id, user_id)
        self.session_id = session_id
        self.issued = True
        self.cleared = False
        return session_id

    def destroy(self) -> bool:
        """Destroy the current session; the cookie is cleared whatever the outcome."""
        self.cleared = True
        self.issued = False
        if not self.session_id:
            return True
        return self.store.destroy(self.session_id)
