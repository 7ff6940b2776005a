"""
auth/reset.py -- Single-use password-reset tokens.

issue() stores "forget-password:<token>" -> user id in the key-value cache
with a 24 hour TTL (configurable). consume() pops the entry with the cache's
atomic get-and-delete, so a token redeems at most once even when two
change-password requests race on it.

A user may hold several live tokens at once; each one is independent.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
import secrets

logger = logging.getLogger("forum.auth")

FORGET_PASSWORD_PREFIX = "forget-password:"

DEFAULT_RESET_TTL = 60 * 60 * 24  # 24 hours


class ResetTokenStore:
    def __init__(self, cache, ttl_seconds: int = DEFAULT_RESET_TTL) -> None:
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    def issue(self, user_id: int) -> str:
        """Mint a token for user_id and return it. 256 bits of entropy."""
        token = secrets.token_urlsafe(32)
        self._cache.set(FORGET_PASSWORD_PREFIX + token, str(user_id), self.ttl_seconds)
        logger.info("Issued reset token for user=%d tok=%s...", user_id, token[:8])
        return token

    def consume(self, token: str) -> int | None:
        """Redeem token: return its user id and delete it, or None if unknown/expired."""
        raw = self._cache.pop(FORGET_PASSWORD_PREFIX + token)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Discarding malformed reset token record tok=%s...", token[:8])
            return None
