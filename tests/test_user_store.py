"""Unit tests for auth/store.py -- the user repository.

Covers:
- create_user() assigns ids and timestamps
- UNIQUE(username) and UNIQUE(email) surface as DuplicateUserError, with the
  colliding field read from the constraint name
- a failed insert writes nothing
- find_by_username_or_email() routes on "@"
- update_password() replaces the hash and refreshes updated_at only
"""

import time
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError

from auth.store import DuplicateUserError, UserStore, UserStoreError, _colliding_field


class TestCreateUser:
    def test_assigns_id_and_timestamps(self, user_store: UserStore) -> None:
        user = user_store.create_user("alice", "a@x.com", "hash")
        assert user.id == 1
        assert user.created_at
        assert user.created_at == user.updated_at

        stored = user_store.get_by_id(user.id)
        assert stored == user

    def test_ids_increase(self, user_store: UserStore) -> None:
        first = user_store.create_user("alice", "a@x.com", "hash")
        second = user_store.create_user("bob", "b@x.com", "hash")
        assert second.id > first.id

    def test_duplicate_username(self, user_store: UserStore) -> None:
        user_store.create_user("alice", "a@x.com", "hash")
        with pytest.raises(DuplicateUserError) as excinfo:
            user_store.create_user("alice", "b@y.com", "hash2")
        assert excinfo.value.field == "username"

    def test_duplicate_email(self, user_store: UserStore) -> None:
        user_store.create_user("alice", "a@x.com", "hash")
        with pytest.raises(DuplicateUserError) as excinfo:
            user_store.create_user("bob", "a@x.com", "hash2")
        assert excinfo.value.field == "email"

    def test_duplicate_is_a_store_error_with_code(self, user_store: UserStore) -> None:
        user_store.create_user("alice", "a@x.com", "hash")
        with pytest.raises(UserStoreError) as excinfo:
            user_store.create_user("alice", "a@x.com", "hash")
        assert excinfo.value.code

    def test_failed_insert_leaves_original_untouched(self, user_store: UserStore) -> None:
        original = user_store.create_user("alice", "a@x.com", "hash")
        with pytest.raises(DuplicateUserError):
            user_store.create_user("alice", "b@y.com", "other")
        assert user_store.get_by_username("alice") == original
        assert user_store.get_by_email("b@y.com") is None


class TestLookups:
    def test_lookup_by_email_when_value_contains_at(self, user_store: UserStore) -> None:
        user = user_store.create_user("alice", "a@x.com", "hash")
        assert user_store.find_by_username_or_email("a@x.com") == user

    def test_lookup_by_username_otherwise(self, user_store: UserStore) -> None:
        user = user_store.create_user("alice", "a@x.com", "hash")
        assert user_store.find_by_username_or_email("alice") == user

    def test_no_fuzzy_matching(self, user_store: UserStore) -> None:
        user_store.create_user("alice", "a@x.com", "hash")
        assert user_store.find_by_username_or_email("ali") is None
        assert user_store.find_by_username_or_email("ALICE") is None
        assert user_store.find_by_username_or_email("a@x.co") is None

    def test_email_value_never_matches_username_column(self, user_store: UserStore) -> None:
        user_store.create_user("alice", "a@x.com", "hash")
        assert user_store.find_by_username_or_email("alice@") is None

    def test_missing_id(self, user_store: UserStore) -> None:
        assert user_store.get_by_id(999) is None


class TestCollidingField:
    """Duplicate attribution reads the constraint name, not the offending value."""

    @staticmethod
    def _integrity_error(message: str, **attrs) -> IntegrityError:
        orig = Exception(message)
        for name, value in attrs.items():
            setattr(orig, name, value)
        return IntegrityError("INSERT INTO users ...", {}, orig)

    def test_postgres_username_containing_email(self) -> None:
        exc = self._integrity_error(
            'duplicate key value violates unique constraint "uq_users_username"\n'
            "DETAIL:  Key (username)=(emailfan) already exists.",
            pgcode="23505",
        )
        assert _colliding_field(exc) == "username"

    def test_postgres_email_constraint(self) -> None:
        exc = self._integrity_error(
            'duplicate key value violates unique constraint "uq_users_email"\n'
            "DETAIL:  Key (email)=(username@x.com) already exists.",
            pgcode="23505",
        )
        assert _colliding_field(exc) == "email"

    def test_postgres_diag_constraint_name_wins(self) -> None:
        exc = self._integrity_error(
            "duplicate key value",
            diag=SimpleNamespace(constraint_name="uq_users_email"),
        )
        assert _colliding_field(exc) == "email"

    def test_sqlite_column(self) -> None:
        exc = self._integrity_error("UNIQUE constraint failed: users.username")
        assert _colliding_field(exc) == "username"

    def test_unknown_constraint(self) -> None:
        exc = self._integrity_error('duplicate key value violates unique constraint "users_pkey"')
        assert _colliding_field(exc) is None

    def test_emailish_username_via_store(self, user_store: UserStore) -> None:
        user_store.create_user("emailfan", "a@x.com", "hash")
        with pytest.raises(DuplicateUserError) as excinfo:
            user_store.create_user("emailfan", "b@y.com", "hash2")
        assert excinfo.value.field == "username"


class TestUpdatePassword:
    def test_replaces_hash_and_refreshes_updated_at(self, user_store: UserStore) -> None:
        user = user_store.create_user("alice", "a@x.com", "old-hash")
        time.sleep(0.01)
        assert user_store.update_password(user.id, "new-hash") is True

        stored = user_store.get_by_id(user.id)
        assert stored.hashed_password == "new-hash"
        assert stored.created_at == user.created_at
        assert stored.updated_at > user.updated_at
        assert stored.username == "alice"

    def test_unknown_id_returns_false(self, user_store: UserStore) -> None:
        assert user_store.update_password(42, "hash") is False


def test_ping(user_store: UserStore) -> None:
    assert user_store.ping() is True
