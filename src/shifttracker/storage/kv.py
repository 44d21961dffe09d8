"""SQLite-backed key-value record for local durable state."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from ..errors import StorageUnavailable

logger = logging.getLogger(__name__)

# Stable, application-namespaced keys
SNAPSHOT_KEY = "shift-tracker:snapshot"
LOCK_KEY = "shift-lock:v1"
SALT_KEY = "shift-lock:salt"


class SqliteKeyValueStore:
    """Durable string key-value store with one row per key."""

    def __init__(self, db_path: str = "data/shifttracker.db") -> None:
        """Initialize key-value database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with proper cleanup.

        Raises:
            StorageUnavailable: If the database cannot be opened or written
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Storage operation failed: {e}") from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self.get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()
            logger.debug(f"Initialized key-value store at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        """Read the value stored under ``key``.

        Args:
            key: Record key

        Returns:
            Stored text, or None if the key is absent
        """
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM kv_entries WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """Write ``value`` under ``key``, replacing any previous value."""
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO kv_entries (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )
            conn.commit()

    def delete(self, key: str) -> bool:
        """Delete ``key``.

        Returns:
            True if key was deleted, False if key didn't exist
        """
        with self.get_connection() as conn:
            cursor = conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    def items(self) -> Dict[str, str]:
        """Return all entries, ordered by key."""
        with self.get_connection() as conn:
            rows = conn.execute("SELECT key, value FROM kv_entries ORDER BY key").fetchall()
            return {row[0]: row[1] for row in rows}
