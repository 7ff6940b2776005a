"""
tests/conftest.py -- Shared test fixtures for the forum backend.

This module provides:
  - fast_bcrypt (autouse): drops the bcrypt cost factor so hashing is cheap
  - user_store / post_store / cache: isolated in-memory stores per test
  - RecordingEmailSender + auth_service: the service wired to those stores
  - last_reset_token: the raw token from the most recent reset email
  - api_client: TestClient over the real app with a patched lifespan
  - lenient_api_client: same, but server errors become 500 responses

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.
Each fixture call uses a fresh uuid in the name so tests never share rows.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

import auth.passwords
from api.main import app
from auth.reset import ResetTokenStore
from auth.service import AuthService
from auth.sessions import SessionHandle, SessionStore
from auth.store import UserStore
from cache.store import SQLiteCache
from posts.store import PostStore


class RecordingEmailSender:
    """Email capability that remembers every message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def send(self, to_address: str, html_body: str) -> None:
        self.sent.append((to_address, html_body))


def shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


def _token_from_link(html_body: str) -> str:
    """Pull the raw token out of a '.../change-password/<token>"' reset link."""
    return html_body.split("/change-password/", 1)[1].split('"', 1)[0]


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(auth.passwords, "_BCRYPT_ROUNDS", 4)


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url=shared_memory_url("test_users"))
    yield store
    store.close()


@pytest.fixture
def post_store() -> Generator[PostStore, None, None]:
    store = PostStore(db_url=shared_memory_url("test_posts"))
    yield store
    store.close()


@pytest.fixture
def cache() -> Generator[SQLiteCache, None, None]:
    c = SQLiteCache(":memory:")
    yield c
    c.close()


@pytest.fixture
def session_store(cache: SQLiteCache) -> SessionStore:
    return SessionStore(cache, ttl_seconds=3600)


@pytest.fixture
def new_session(session_store: SessionStore):
    """Factory for fresh, cookie-less session handles (one per simulated client)."""

    def _make() -> SessionHandle:
        return SessionHandle(store=session_store)

    return _make


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def last_reset_token(email_sender: RecordingEmailSender):
    """Return a callable giving the token from the most recent reset email."""

    def _get() -> str:
        _to, body = email_sender.sent[-1]
        return _token_from_link(body)

    return _get


@pytest.fixture
def auth_service(user_store: UserStore, cache: SQLiteCache, email_sender: RecordingEmailSender) -> AuthService:
    return AuthService(
        user_store=user_store,
        reset_tokens=ResetTokenStore(cache),
        email_sender=email_sender,
        frontend_url="http://localhost:3000",
    )


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, post_store: PostStore, cache: SQLiteCache, email_sender):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the local forum.db / forum_cache.db files.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.post_store = post_store
        app.state.cache = cache
        app.state.session_store = SessionStore(cache, ttl_seconds=3600)
        app.state.auth_service = AuthService(
            user_store=user_store,
            reset_tokens=ResetTokenStore(cache),
            email_sender=email_sender,
            frontend_url="http://localhost:3000",
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def api_client(
    user_store: UserStore,
    post_store: PostStore,
    cache: SQLiteCache,
    email_sender: RecordingEmailSender,
) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by this test's stores.

    The client keeps cookies between requests like a browser, so a login
    followed by GET /auth/me behaves exactly as it would in production.
    """
    app.router.lifespan_context = _patch_lifespan(user_store, post_store, cache, email_sender)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def lenient_api_client(
    user_store: UserStore,
    post_store: PostStore,
    cache: SQLiteCache,
    email_sender: RecordingEmailSender,
) -> Generator[TestClient, None, None]:
    """Like api_client, but unhandled errors become 500 responses instead of raising."""
    app.router.lifespan_context = _patch_lifespan(user_store, post_store, cache, email_sender)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
