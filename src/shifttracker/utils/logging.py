"""Structured logging setup for machine-readable sync logs."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ..domain.models import SyncResult


def short_room(room_id: str) -> str:
    """Room ids grant access to the room; only a prefix is ever logged."""
    return room_id[:8] if room_id else ""


class StructuredLogger:
    """Handles structured JSON logging for sync operations."""

    def __init__(self, log_dir: str = "./logs") -> None:
        self.log_dir = Path(log_dir)
        self.log_file = self.log_dir / "sync.jsonl"

        # Ensure log directory exists
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

        self.logger = structlog.get_logger("shifttracker.sync")

    def log_sync_start(self, operation: str, room_id: str) -> None:
        """Log sync operation start."""
        self.logger.info(
            "sync_started",
            operation=operation,
            room=short_room(room_id),
            timestamp=datetime.now().isoformat(),
        )

    def log_sync_complete(self, result: SyncResult, error: Optional[str] = None) -> None:
        """Log sync operation completion."""
        log_entry: Dict[str, Any] = {
            "operation": result.operation,
            "status": "success" if result.success else "failure",
            "room": short_room(result.room_id),
            "direction": result.direction,
            "duration_ms": result.duration_ms,
            "message": result.message,
            "timestamp": datetime.now().isoformat(),
        }

        if error:
            log_entry["error"] = error

        self.logger.info("sync_completed", **log_entry)

        # Also write to file in JSONL format for easy parsing
        self._write_to_file(log_entry)

    def log_remote_error(self, operation: str, error: str) -> None:
        """Log remote backend errors."""
        self.logger.error(
            "remote_error",
            operation=operation,
            error=error,
            timestamp=datetime.now().isoformat(),
        )

    def log_snapshot_applied(self, room_id: str, updated_at: int) -> None:
        """Log a remote snapshot replacing local state."""
        self.logger.info(
            "remote_snapshot_applied",
            room=short_room(room_id),
            updated_at=updated_at,
            timestamp=datetime.now().isoformat(),
        )

    def _write_to_file(self, log_entry: Dict[str, Any]) -> None:
        """Write log entry to JSONL file."""
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except OSError as e:
            # Don't fail sync operation due to logging issues
            logging.getLogger(__name__).warning(f"Failed to write to log file: {e}")


def setup_console_logging(level: str) -> None:
    """Setup basic console logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
