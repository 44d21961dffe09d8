"""Sync journal tracking using SQLite."""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from ..domain.models import SyncResult
from ..utils.logging import short_room

logger = logging.getLogger(__name__)


class SyncJournal:
    """Records every pull, push and live delivery."""

    def __init__(self, db_path: str = "data/sync_journal.db") -> None:
        """Initialize journal database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sync_operations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    success BOOLEAN NOT NULL,
                    room TEXT,
                    direction TEXT,
                    message TEXT,
                    duration_ms INTEGER DEFAULT 0
                )
                """
            )
            conn.commit()
            logger.debug(f"Initialized sync journal at {self.db_path}")

    def record(self, result: SyncResult) -> int:
        """Record a sync operation.

        Args:
            result: Operation outcome

        Returns:
            ID of recorded entry
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO sync_operations (timestamp, operation, success, room, direction, message, duration_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    datetime.now().isoformat(),
                    result.operation,
                    result.success,
                    short_room(result.room_id),
                    result.direction,
                    result.message,
                    result.duration_ms,
                ),
            )
            conn.commit()
            entry_id = cursor.lastrowid
            logger.debug(
                f"Recorded {result.operation} #{entry_id}: success={result.success}, "
                f"direction={result.direction}"
            )
            return int(entry_id) if entry_id is not None else -1

    def get_last(self, limit: int = 50) -> list[dict[str, Any]]:
        """Get last N journal entries, newest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM sync_operations ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            entries = []
            for row in rows:
                entry = dict(row)
                entry["success"] = bool(entry["success"])
                entries.append(entry)
            return entries

    def get_stats(self) -> dict[str, Any]:
        """Get overall sync statistics.

        Returns:
            Dictionary of statistics
        """
        with sqlite3.connect(self.db_path) as conn:
            stats = conn.execute(
                """
                SELECT
                    COUNT(*) as total,
                    SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END) as successful,
                    SUM(CASE WHEN success = 0 THEN 1 ELSE 0 END) as failed,
                    SUM(CASE WHEN operation = 'push' THEN 1 ELSE 0 END) as pushes,
                    SUM(CASE WHEN operation = 'pull' THEN 1 ELSE 0 END) as pulls,
                    AVG(duration_ms) as avg_duration_ms
                FROM sync_operations
                """
            ).fetchone()

            return {
                "total": stats[0] or 0,
                "successful": stats[1] or 0,
                "failed": stats[2] or 0,
                "pushes": stats[3] or 0,
                "pulls": stats[4] or 0,
                "avg_duration_ms": stats[5] or 0,
            }

    def clear_old_records(self, days: int = 90) -> None:
        """Delete journal entries older than N days."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                DELETE FROM sync_operations
                WHERE datetime(timestamp) < datetime('now', ? || ' days')
                """,
                (f"-{days}",),
            )
            conn.commit()
            logger.info(f"Cleaned up sync journal entries older than {days} days")
