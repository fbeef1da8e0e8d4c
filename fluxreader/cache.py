"""SQLite-backed TTL cache for fluxreader."""

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Optional

from .config import DEFAULT_CACHE_PATH


class TTLCache:
    """Key/value cache with per-key expiry, stored in SQLite.

    Values are stored as JSON, so anything cached must be JSON-serializable.
    """

    def __init__(self, db_path: Optional[Path] = None, default_ttl: int = 300):
        """Initialize the cache.

        Args:
            db_path: Path to the SQLite file. Defaults to ~/.fluxreader/cache.db
            default_ttl: Expiry in seconds for keys stored without an explicit ttl
        """
        self.db_path = Path(db_path) if db_path else DEFAULT_CACHE_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.default_ttl = default_ttl
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_db(self) -> None:
        """Create the cache table if it doesn't exist."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS cache (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL NOT NULL
            );
        """)
        conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value.

        Args:
            key: Cache key

        Returns:
            The value, or None if absent or expired
        """
        conn = self._get_conn()
        row = conn.execute("SELECT value, expires_at FROM cache WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        if row["expires_at"] <= time.time():
            self.remove(key)
            return None
        return json.loads(row["value"])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Seconds until expiry, defaults to default_ttl
        """
        expires_at = time.time() + (self.default_ttl if ttl is None else ttl)
        conn = self._get_conn()
        conn.execute(
            "INSERT OR REPLACE INTO cache (key, value, expires_at) VALUES (?, ?, ?)",
            (key, json.dumps(value), expires_at),
        )
        conn.commit()

    def remove(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key was present
        """
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM cache WHERE key = ?", (key,))
        conn.commit()
        return cursor.rowcount > 0

    def clear(self) -> None:
        """Remove every key."""
        conn = self._get_conn()
        conn.execute("DELETE FROM cache")
        conn.commit()

    def fetch(self, key: str, fetcher: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached value for key, calling fetcher on a miss.

        Exceptions raised by fetcher propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = fetcher()
        self.set(key, value, ttl)
        return value

    def stats(self) -> int:
        """Number of live (unexpired) keys."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT COUNT(*) FROM cache WHERE expires_at > ?", (time.time(),)
        ).fetchone()
        return row[0]
