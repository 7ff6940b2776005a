"""
tests/test_posts.py -- PostStore unit tests and /api/v1/posts integration tests.

Coverage:
  - PostStore CRUD, newest-first ordering, updated_at refresh
  - public reads, login-required writes (401 envelope when logged out)
"""

from __future__ import annotations

import time

from fastapi.testclient import TestClient

from posts.store import PostStore


class TestPostStore:
    def test_create_and_get(self, post_store: PostStore) -> None:
        post = post_store.create_post("first post")
        assert post.id == 1
        assert post_store.get_post(post.id) == post

    def test_list_newest_first(self, post_store: PostStore) -> None:
        post_store.create_post("one")
        post_store.create_post("two")
        assert [p.title for p in post_store.list_posts()] == ["two", "one"]

    def test_update_refreshes_updated_at(self, post_store: PostStore) -> None:
        post = post_store.create_post("draft")
        time.sleep(0.01)
        updated = post_store.update_post(post.id, "final")
        assert updated.title == "final"
        assert updated.created_at == post.created_at
        assert updated.updated_at > post.updated_at

    def test_update_missing(self, post_store: PostStore) -> None:
        assert post_store.update_post(99, "x") is None

    def test_delete(self, post_store: PostStore) -> None:
        post = post_store.create_post("bye")
        assert post_store.delete_post(post.id) is True
        assert post_store.delete_post(post.id) is False
        assert post_store.get_post(post.id) is None


def _login(client: TestClient) -> None:
    client.post(
        "/api/v1/auth/register",
        json={"username": "alice", "email": "a@x.com", "password": "secret123"},
    )


class TestPostRoutes:
    def test_writes_require_login(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/posts", json={"title": "hello"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"
        assert api_client.patch("/api/v1/posts/1", json={"title": "x"}).status_code == 401
        assert api_client.delete("/api/v1/posts/1").status_code == 401

    def test_crud_round_trip(self, api_client: TestClient) -> None:
        _login(api_client)

        created = api_client.post("/api/v1/posts", json={"title": "  hello  "})
        assert created.status_code == 201
        post = created.json()
        assert post["title"] == "hello"
        assert "createdAt" in post and "updatedAt" in post

        assert api_client.get("/api/v1/posts").json()[0]["id"] == post["id"]
        assert api_client.get(f"/api/v1/posts/{post['id']}").json()["title"] == "hello"

        patched = api_client.patch(f"/api/v1/posts/{post['id']}", json={"title": "edited"})
        assert patched.json()["title"] == "edited"

        assert api_client.delete(f"/api/v1/posts/{post['id']}").json() == {"ok": True}
        assert api_client.get(f"/api/v1/posts/{post['id']}").json() is None
        assert api_client.delete(f"/api/v1/posts/{post['id']}").json() == {"ok": False}

    def test_missing_post_update_returns_null(self, api_client: TestClient) -> None:
        _login(api_client)
        assert api_client.patch("/api/v1/posts/42", json={"title": "x"}).json() is None

    def test_empty_title_is_422(self, api_client: TestClient) -> None:
        _login(api_client)
        assert api_client.post("/api/v1/posts", json={"title": "   "}).status_code == 422

    def test_reads_are_public(self, api_client: TestClient) -> None:
        assert api_client.get("/api/v1/posts").json() == []
