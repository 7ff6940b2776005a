"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  username and email each carry a UNIQUE constraint. create_user() does NOT
  check for an existing row first -- two concurrent registrations would both
  pass such a check. The database arbitrates instead, and the IntegrityError
  it raises is translated into DuplicateUserError. The raw driver error code
  (Postgres SQLSTATE 23505, SQLite SQLITE_CONSTRAINT_UNIQUE) stays inside this
  module.

DB path: forum.db at the project root unless DATABASE_URL says otherwise.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError

from auth.models import User

logger = logging.getLogger("forum.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'forum.db'}"

# Postgres SQLSTATE for unique_violation.
_PG_UNIQUE_VIOLATION = "23505"
_SQLITE_UNIQUE_VIOLATION = "SQLITE_CONSTRAINT_UNIQUE"

_PG_CONSTRAINT_RE = re.compile(r'unique constraint "([^"]+)"')
_SQLITE_COLUMN_RE = re.compile(r"UNIQUE constraint failed: (users\.\w+)")
_CONSTRAINT_FIELDS = {"uq_users_username": "username", "uq_users_email": "email"}
_COLUMN_FIELDS = {"users.username": "username", "users.email": "email"}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False),
    Column("email", String(255), nullable=False),
    Column("password", Text, nullable=False),  # bcrypt hash, never plaintext
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("username", name="uq_users_username"),
    UniqueConstraint("email", name="uq_users_email"),
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UserStoreError(Exception):
    """The database rejected a write for a reason other than a duplicate.

    code is the driver's error code (SQLSTATE, SQLite error name, or the
    SQLAlchemy error code as a last resort). It is safe to show to clients;
    the full message is not.
    """

    def __init__(self, code: str) -> None:
        super().__init__(f"user store error {code}")
        self.code = code


class DuplicateUserError(UserStoreError):
    """Insert violated the username or email UNIQUE constraint.

    field is "username" or "email" when the database names the constraint in
    its error message, otherwise None.
    """

    def __init__(self, code: str, field: str | None = None) -> None:
        super().__init__(code)
        self.field = field


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_code(exc: DBAPIError) -> str:
    """Pull the most specific error code the driver exposes."""
    orig = exc.orig
    for attr in ("pgcode", "sqlstate", "sqlite_errorname"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    return exc.code or type(orig).__name__


def _is_unique_violation(exc: IntegrityError, code: str) -> bool:
    if code in (_PG_UNIQUE_VIOLATION, _SQLITE_UNIQUE_VIOLATION):
        return True
    # Older sqlite3 modules have no sqlite_errorname; fall back to the message.
    message = str(exc.orig)
    return "UNIQUE constraint failed" in message or "duplicate key value" in message


def _colliding_field(exc: IntegrityError) -> str | None:
    """Map the violated UNIQUE constraint back to "username" or "email".

    Only the constraint name is consulted, never the offending value, so a
    username like "emailfan" is still reported as a username collision.
    """
    orig = exc.orig
    # psycopg exposes the constraint name directly.
    constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if constraint is None:
        # Postgres: duplicate key value violates unique constraint "uq_users_email"
        match = _PG_CONSTRAINT_RE.search(str(orig))
        if match:
            constraint = match.group(1)
    if constraint is not None:
        return _CONSTRAINT_FIELDS.get(constraint)

    # SQLite: "UNIQUE constraint failed: users.email"
    match = _SQLITE_COLUMN_RE.search(str(orig))
    if match:
        return _COLUMN_FIELDS.get(match.group(1))
    return None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        user = store.create_user("alice", "a@x.com", hash_password("secret123"))
        store.find_by_username_or_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_username_or_email(self, value: str) -> User | None:
        """Resolve a login identifier: anything containing "@" is an email.

        Usernames cannot contain "@" (see auth/validation.py), so the two
        lookups never overlap.
        """
        if "@" in value:
            return self.get_by_email(value)
        return self.get_by_username(value)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, username: str, email: str, hashed_password: str) -> User:
        """Insert a new user and return it with its assigned id and timestamps.

        Raises DuplicateUserError if username or email is already taken and
        UserStoreError for any other constraint or data failure. Connection
        failures (OperationalError and friends) propagate unchanged.
        """
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        email=email,
                        password=hashed_password,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            code = _error_code(exc)
            if _is_unique_violation(exc, code):
                raise DuplicateUserError(code, _colliding_field(exc)) from exc
            logger.warning("User insert rejected by database (code=%s)", code)
            raise UserStoreError(code) from exc
        except DataError as exc:
            code = _error_code(exc)
            logger.warning("User insert rejected by database (code=%s)", code)
            raise UserStoreError(code) from exc

        return User(
            id=result.inserted_primary_key[0],
            username=username,
            email=email,
            hashed_password=hashed_password,
            created_at=now,
            updated_at=now,
        )

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace the password hash and stamp updated_at in one UPDATE.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password=hashed_password, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except DBAPIError:
            logger.warning("User store ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
