"""Composition root wiring storage, stopwatch, lock and sync together."""

import logging
from typing import Any, Callable, Optional

from apscheduler.schedulers.base import BaseScheduler

from .config import Config
from .domain.models import Snapshot
from .errors import RemoteUnavailable
from .lock import AccessLock
from .monitoring.health_check import HealthChecker
from .monitoring.metrics_exporter import MetricsExporter
from .preferences import update_prefs
from .remote.factory import RemoteFactory
from .remote.firestore_client import FirestoreClient
from .reporting import ReportSummary, filter_by_tag, summarize
from .stopwatch import Stopwatch
from .storage.kv import SqliteKeyValueStore
from .storage.snapshot_store import SnapshotStore
from .sync.engine import SyncEngine
from .sync.journal import SyncJournal
from .utils.logging import StructuredLogger
from .utils.time_math import now_ms

logger = logging.getLogger(__name__)

RemoteBuilder = Callable[[Config], Optional[FirestoreClient]]


class ShiftTracker:
    """Owns every component; consumers receive them from here."""

    def __init__(
        self,
        config: Config,
        remote_factory: RemoteBuilder = RemoteFactory.create_document_store,
        scheduler: Optional[BaseScheduler] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize tracker.

        Args:
            config: Application configuration
            remote_factory: Builds the remote client (None for local-only)
            scheduler: Scheduler for sync timers; owned by the engine if omitted
            clock: Millisecond clock
        """
        self.config = config
        self.kv = SqliteKeyValueStore(str(config.db_path))
        self.store = SnapshotStore(self.kv, clock=clock)
        self.stopwatch = Stopwatch(self.store, clock=clock)
        self.lock = AccessLock(self.kv)

        self.metrics_exporter = (
            MetricsExporter(config.metrics["metrics_dir"]) if config.metrics.get("enabled") else None
        )
        self.journal = SyncJournal(str(config.journal_path))
        self.structured_logger = StructuredLogger(config.log["log_dir"])

        try:
            self.remote = remote_factory(config)
        except RemoteUnavailable as e:
            logger.warning(f"Remote backend unavailable, running local-only: {e}")
            self.remote = None
        self.sync = SyncEngine(
            self.store,
            self.remote,
            scheduler=scheduler,
            debounce_seconds=float(config.sync["debounce_seconds"]),
            poll_interval_seconds=float(config.sync["poll_interval_seconds"]),
            journal=self.journal,
            structured_logger=self.structured_logger,
            metrics_exporter=self.metrics_exporter,
            clock=clock,
        )
        self.health_checker = HealthChecker(self.remote, self.metrics_exporter)

    @property
    def snapshot(self) -> Snapshot:
        return self.store.current

    def start(self) -> None:
        """Load local state and start sync if enabled."""
        logger.info("Starting ShiftTracker...")
        snapshot = self.store.load()
        self.journal.clear_old_records(int(self.config.sync.get("journal_retention_days", 90)))
        self.sync.start()
        if snapshot.prefs.auto_sync and snapshot.prefs.sync_code.strip():
            self.sync.start_live_sync(snapshot.prefs.sync_code)
        logger.info(f"ShiftTracker started with {len(snapshot.history)} shift(s) in history")

    def stop(self) -> None:
        logger.info("Stopping ShiftTracker...")
        self.sync.shutdown()
        logger.info("ShiftTracker stopped")

    def update_prefs(self, **changes: Any) -> Snapshot:
        """Update preferences; restarts the live feed if sync settings changed."""
        before = self.store.current.prefs
        snapshot = self.store.update(lambda s: update_prefs(s, changes))
        after = snapshot.prefs

        if (before.sync_code, before.auto_sync) != (after.sync_code, after.auto_sync):
            if after.auto_sync and after.sync_code:
                self.sync.start_live_sync(after.sync_code)
            else:
                self.sync.stop_live_sync()
        return snapshot

    def report(self, tag: Optional[str] = None) -> ReportSummary:
        snapshot = self.store.current
        return summarize(filter_by_tag(snapshot.history, tag), snapshot.prefs)
