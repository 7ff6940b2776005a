"""
cache/store.py -- SQLite-backed key-value cache with per-entry TTL.

Holds the short-lived records of the auth layer: server-side sessions and
password-reset tokens. Used for local development and tests; production
deployments point REDIS_URL at a Redis server and get cache/redis_store.py
instead. Both backends expose the same five calls, so callers never check
which one they hold.

Usage:
    cache = SQLiteCache()
    cache.set("sess:abc", '{"userId": 1}', ttl=3600)
    cache.get("sess:abc")        # returns str or None
    cache.pop("sess:abc")        # atomic get-and-delete
    cache.purge_expired()        # call periodically to trim old entries

Concurrency:
    One sqlite3 connection is shared by every worker thread
    (check_same_thread=False). All statements run under self._lock, which
    also makes pop() a single critical section: two threads popping the same
    key can never both see the value.
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger("forum.cache")

_DEFAULT_DB = Path(__file__).parent / "forum_cache.db"

_DDL = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class CacheError(Exception):
    """The cache backend failed (connection lost, disk error, ...)."""


class SQLiteCache:
    def __init__(self, db_path: Union[Path, str] = _DEFAULT_DB) -> None:
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()

    def set(self, key: str, value: str, ttl: int) -> None:
        """Store value under key for ttl seconds, replacing any existing entry."""
        with self._lock:
            try:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_cache (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, value, time.time() + ttl),
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                raise CacheError(str(exc)) from exc

    def get(self, key: str) -> Optional[str]:
        """Return the value for key if it exists and hasn't expired."""
        with self._lock:
            try:
                row = self._fetch_live(key)
            except sqlite3.Error as exc:
                raise CacheError(str(exc)) from exc
        return row

    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""
        with self._lock:
            try:
                self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise CacheError(str(exc)) from exc

    def pop(self, key: str) -> Optional[str]:
        """Return the live value for key and delete it in the same critical section."""
        with self._lock:
            try:
                value = self._fetch_live(key)
                self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise CacheError(str(exc)) from exc
        return value

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            try:
                cursor = self._conn.execute("DELETE FROM kv_cache WHERE expires_at <= ?", (time.time(),))
                self._conn.commit()
            except sqlite3.Error as exc:
                raise CacheError(str(exc)) from exc
        if cursor.rowcount:
            logger.info("Purged %d expired cache entries", cursor.rowcount)
        return cursor.rowcount

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self._lock:
            try:
                self._conn.execute("SELECT 1").fetchone()
            except sqlite3.Error:
                logger.warning("Cache ping failed", exc_info=True)
                return False
        return True

    def _fetch_live(self, key: str) -> Optional[str]:
        # Caller holds self._lock.
        row = self._conn.execute(
            "SELECT value, expires_at FROM kv_cache WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None
        value, expires_at = row
        if time.time() >= expires_at:
            self._conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
            self._conn.commit()
            return None
        return value

    def close(self) -> None:
        self._conn.close()
