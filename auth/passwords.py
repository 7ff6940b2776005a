"""
auth/passwords.py -- Password hashing and verification.

Passwords: bcrypt used directly (no passlib wrapper). Bcrypt is the right
choice for low-entropy secrets because its cost factor makes brute-force
expensive, and every hash carries its own random salt, so hashing the same
password twice yields two different strings.

The _DUMMY_HASH constant enables timing equalization in the login flow: an
unknown account still costs one bcrypt check, so response time alone does not
reveal whether a username or email is on file.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import bcrypt

_BCRYPT_MAX_BYTES = 72

# bcrypt cost factor. Tests lower this to keep the suite fast.
_BCRYPT_ROUNDS = 12


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes of its input, and bcrypt 5.x
    raises on anything longer, so the input is cut to 72 bytes here and in
    verify_password().
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed hash (ValueError)
    counts as a mismatch rather than an error.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("forum_timing_dummy")


def burn_verify(plain: str) -> None:
    """Run one bcrypt check against the dummy hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)
