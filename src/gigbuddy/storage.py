"""SQLite key-value storage for gigbuddy.

Stores:
- The Spotify OAuth credential
- The saved gig list

Each value is an opaque JSON blob under a fixed key. Every write runs in its
own transaction, so readers see either the old or the new blob.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator


class Storage:
    """SQLite-backed key-value store."""

    def __init__(self, db_path: Path):
        """Initialize the storage.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_db_exists()
        self._create_tables()

    def _ensure_db_exists(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create storage tables if they don't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
            """)
            conn.commit()

    def get(self, key: str) -> str | None:
        """Get the blob stored under a key."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Replace the blob stored under a key."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (key, value),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()

    def clear_all(self) -> None:
        """Remove everything."""
        with self._get_connection() as conn:
            conn.execute("DELETE FROM kv_store")
            conn.commit()
