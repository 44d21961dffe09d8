"""Room-based snapshot synchronization.

A room is a remote document addressed by SHA-256 of the trimmed sync
passcode. Anyone who knows the passcode can read and write the room; this
is a sharing mechanism, not authentication.

Reconciliation is last-write-wins: pushes overwrite the room's snapshot and
every delivered remote snapshot replaces the local one. Remote failures
never block local tracking; without a configured backend every operation
degrades to a no-op.
"""

import hashlib
import itertools
import logging
import sqlite3
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from ..domain.models import Snapshot, SyncResult
from ..errors import TransportError, ValidationError
from ..monitoring.metrics_exporter import MetricsExporter
from ..remote.firestore_client import FirestoreClient, RemoteDocument
from ..storage.snapshot_store import ORIGIN_LOCAL, SnapshotStore
from ..utils.logging import StructuredLogger, short_room
from ..utils.time_math import now_ms
from .debounce import Debouncer
from .journal import SyncJournal

logger = logging.getLogger(__name__)

RemoteCallback = Callable[[Optional[Snapshot]], None]

PUSH_JOB_ID = "auto_push"


def room_id_from_passcode(code: str) -> str:
    """Derive the room id for a sync passcode.

    Args:
        code: Sync passcode; surrounding whitespace is ignored

    Returns:
        64-character hex SHA-256 digest

    Raises:
        ValidationError: If the passcode is empty or whitespace
    """
    if not code or not code.strip():
        raise ValidationError("Sync passcode required")
    return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()


class Subscription:
    """Handle for a live room feed. Call it to stop receiving updates."""

    def __init__(self, cancel: Optional[Callable[[], None]] = None) -> None:
        self._cancel = cancel
        self._lock = threading.Lock()
        self.active = cancel is not None

    def __call__(self) -> None:
        with self._lock:
            if not self.active:
                return
            self.active = False
            cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()


class _RoomFeed:
    """Polling state for one subscription."""

    def __init__(self, room_id: str, callback: RemoteCallback, job_id: str) -> None:
        self.room_id = room_id
        self.callback = callback
        self.job_id = job_id
        self.lock = threading.Lock()
        self.active = True
        self.seen_any = False
        self.last_update_time: Optional[str] = None


class SyncEngine:
    """Pull, push and live-subscribe against the remote room."""

    def __init__(
        self,
        store: SnapshotStore,
        remote: Optional[FirestoreClient],
        scheduler: Optional[BaseScheduler] = None,
        debounce_seconds: float = 2.0,
        poll_interval_seconds: float = 5.0,
        journal: Optional[SyncJournal] = None,
        structured_logger: Optional[StructuredLogger] = None,
        metrics_exporter: Optional[MetricsExporter] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize sync engine.

        Args:
            store: Snapshot store to read from and deliver into
            remote: Remote document client, or None when not configured
            scheduler: Scheduler for debounced pushes and polling; a
                background scheduler is created and owned if omitted
            debounce_seconds: Quiet period before an auto-push
            poll_interval_seconds: Live feed polling interval
            journal: Optional operation journal
            structured_logger: Optional structured event logger
            metrics_exporter: Optional Prometheus exporter
            clock: Millisecond clock
        """
        self.store = store
        self.remote = remote
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler()
        self.poll_interval_seconds = poll_interval_seconds
        self.journal = journal
        self.structured_logger = structured_logger
        self.metrics_exporter = metrics_exporter
        self.clock = clock
        self.debouncer = Debouncer(self.scheduler, self._auto_push, debounce_seconds, PUSH_JOB_ID)
        self._feed_ids = itertools.count(1)
        self._subscriptions: List[Subscription] = []
        self._remove_listener: Optional[Callable[[], None]] = None
        self._live: Optional[Subscription] = None

    @property
    def available(self) -> bool:
        """Whether a remote backend is configured."""
        return self.remote is not None

    def start(self) -> None:
        """Start the scheduler (if owned) and auto-sync wiring."""
        if self._owns_scheduler and not self.scheduler.running:
            self.scheduler.start()
        self.enable_auto_sync()
        logger.info(f"SyncEngine started (remote={'on' if self.available else 'off'})")

    def shutdown(self) -> None:
        """Cancel timers and subscriptions and release the scheduler."""
        self.disable_auto_sync()
        self.debouncer.cancel()
        for subscription in list(self._subscriptions):
            subscription()
        self._subscriptions.clear()
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("SyncEngine stopped")

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def pull(self, code: str) -> Optional[Snapshot]:
        """Fetch the room's snapshot.

        Returns:
            Migrated remote snapshot, or None if the backend is not
            configured or the room holds no snapshot

        Raises:
            ValidationError: If the passcode is empty
            TransportError: If the configured backend fails
        """
        if self.remote is None:
            logger.warning("Remote backend not configured, pull skipped")
            return None

        room_id = room_id_from_passcode(code)
        started = time.monotonic()
        self._log_start("pull", room_id)
        try:
            document = self.remote.get_document(room_id)
        except TransportError as e:
            self._finish("pull", room_id, started, False, "none", str(e))
            raise

        snapshot = self._snapshot_from(document)
        message = "room empty" if snapshot is None else "snapshot fetched"
        self._finish("pull", room_id, started, True, "pull", message)
        return snapshot

    def push(self, code: str, snapshot: Optional[Snapshot] = None) -> None:
        """Upsert the snapshot into the room.

        Args:
            code: Sync passcode
            snapshot: Snapshot to push; defaults to the store's current one

        Raises:
            ValidationError: If the passcode is empty
            TransportError: If the configured backend fails
        """
        if self.remote is None:
            logger.debug("Remote backend not configured, push skipped")
            return

        room_id = room_id_from_passcode(code)
        snapshot = snapshot if snapshot is not None else self.store.current
        payload = snapshot.to_dict()
        payload["updatedAt"] = self.clock()

        started = time.monotonic()
        self._log_start("push", room_id)
        try:
            self.remote.upsert_document(
                room_id,
                {"snapshot": payload},
                server_timestamp_fields=("updatedAt",),
            )
        except TransportError as e:
            self._finish("push", room_id, started, False, "none", str(e))
            raise
        self._finish("push", room_id, started, True, "push", "snapshot uploaded")

    def subscribe(self, code: str, callback: RemoteCallback) -> Subscription:
        """Establish a live feed of the room.

        ``callback`` receives the remote snapshot (or None once the room is
        emptied) on every remote change, and right away if the room already
        holds data. Delivery order beyond "last delivered wins" is not
        guaranteed.

        Returns:
            Handle that stops the feed when called. A no-op handle when the
            backend is not configured.
        """
        if self.remote is None:
            logger.warning("Remote backend not configured, live sync disabled")
            return Subscription()

        room_id = room_id_from_passcode(code)
        feed = _RoomFeed(room_id, callback, f"subscribe_{next(self._feed_ids)}")

        self.scheduler.add_job(
            self._poll,
            "interval",
            seconds=self.poll_interval_seconds,
            args=[feed],
            id=feed.job_id,
            name=f"Room feed {short_room(room_id)}",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )

        def cancel() -> None:
            with feed.lock:
                feed.active = False
            try:
                self.scheduler.remove_job(feed.job_id)
            except JobLookupError:
                pass
            logger.info(f"Unsubscribed from room {short_room(room_id)}")

        subscription = Subscription(cancel)
        self._subscriptions.append(subscription)
        logger.info(f"Subscribed to room {short_room(room_id)}")
        return subscription

    def _poll(self, feed: _RoomFeed) -> None:
        """Fetch the room once and deliver it if it changed."""
        if not feed.active or self.remote is None:
            return
        try:
            document = self.remote.get_document(feed.room_id)
        except TransportError as e:
            logger.warning(f"Live sync poll failed, keeping local data: {e}")
            if self.structured_logger:
                self.structured_logger.log_remote_error("subscribe", str(e))
            return

        with feed.lock:
            if not feed.active:
                return
            if document is None:
                if not feed.seen_any:
                    return
                feed.seen_any = False
                feed.last_update_time = None
                snapshot: Optional[Snapshot] = None
            else:
                if feed.seen_any and document.update_time == feed.last_update_time:
                    return
                feed.seen_any = True
                feed.last_update_time = document.update_time
                snapshot = self._snapshot_from(document)

        # the callback may cancel its own feed, which takes feed.lock
        if feed.active:
            feed.callback(snapshot)

    def _snapshot_from(self, document: Optional[RemoteDocument]) -> Optional[Snapshot]:
        if document is None:
            return None
        raw = document.data.get("snapshot")
        if not isinstance(raw, dict):
            return None
        try:
            return self.store.migrate(raw)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable remote snapshot: {e}")
            return None

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def apply_remote(self, snapshot: Optional[Snapshot]) -> bool:
        """Adopt a delivered remote snapshot (last write wins).

        Returns:
            True if local state was replaced
        """
        if snapshot is None:
            return False
        current = self.store.current
        if snapshot == current:
            return False
        self.store.replace(snapshot)
        logger.info(f"Applied remote snapshot updated at {snapshot.updated_at}")
        if self.structured_logger:
            self.structured_logger.log_snapshot_applied(
                room_id_from_passcode(snapshot.prefs.sync_code) if snapshot.prefs.sync_code else "",
                snapshot.updated_at,
            )
        return True

    def sync_now(self, code: Optional[str] = None) -> SyncResult:
        """Pull, then adopt the remote snapshot if newer, else push local.

        Args:
            code: Sync passcode; defaults to the stored preference

        Returns:
            Result naming the direction taken
        """
        code = code if code is not None else self.store.current.prefs.sync_code
        if self.remote is None:
            return SyncResult.skipped("sync", "Remote backend not configured, sync disabled")
        if not code or not code.strip():
            return SyncResult.skipped("sync", "Sync passcode not set")

        room_id = room_id_from_passcode(code)
        started = time.monotonic()
        try:
            remote_snapshot = self.pull(code)
            local = self.store.current
            if remote_snapshot is not None and remote_snapshot.updated_at > local.updated_at:
                self.apply_remote(remote_snapshot)
                direction, message = "pull", "Adopted newer remote snapshot"
            else:
                self.push(code, local)
                direction = "push"
                message = (
                    "Local snapshot uploaded to empty room"
                    if remote_snapshot is None
                    else "Local snapshot is newer, pushed to room"
                )
        except TransportError as e:
            return self._finish("sync", room_id, started, False, "none", f"Sync failed: {e}")
        return self._finish("sync", room_id, started, True, direction, message)

    # ------------------------------------------------------------------
    # Auto-sync
    # ------------------------------------------------------------------

    def enable_auto_sync(self) -> None:
        """Queue a debounced push after every local mutation."""
        if self._remove_listener is None:
            self._remove_listener = self.store.add_listener(self._on_store_change)

    def disable_auto_sync(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _on_store_change(self, snapshot: Snapshot, origin: str) -> None:
        if origin != ORIGIN_LOCAL or not self.available:
            return
        if snapshot.prefs.auto_sync and snapshot.prefs.sync_code.strip():
            self.debouncer.trigger()

    def _auto_push(self) -> None:
        """Debounced push of the current snapshot. Failures are logged only."""
        snapshot = self.store.current
        code = snapshot.prefs.sync_code
        if not (snapshot.prefs.auto_sync and code.strip()):
            return
        try:
            self.push(code, snapshot)
        except TransportError as e:
            logger.warning(f"Auto-sync push failed, local data kept: {e}")

    def start_live_sync(self, code: Optional[str] = None) -> Subscription:
        """Subscribe to the room and apply delivered snapshots newer than local.

        Replaces any live feed started earlier.
        """
        self.stop_live_sync()
        code = code if code is not None else self.store.current.prefs.sync_code
        self._live = self.subscribe(code, self._apply_live)
        return self._live

    def _apply_live(self, snapshot: Optional[Snapshot]) -> bool:
        """Adopt a live delivery unless local state holds a later write.

        Deliveries older than local are skipped, and so are deliveries stamped
        the same as local while a push is still pending.
        """
        if snapshot is None:
            return False
        local = self.store.current
        if snapshot.updated_at < local.updated_at or (
            snapshot.updated_at == local.updated_at and self.debouncer.pending
        ):
            logger.debug(
                f"Ignoring remote snapshot from {snapshot.updated_at}, local is at {local.updated_at}"
            )
            return False
        return self.apply_remote(snapshot)

    def stop_live_sync(self) -> None:
        if self._live is not None:
            self._live()
            self._live = None

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _log_start(self, operation: str, room_id: str) -> None:
        logger.debug(f"{operation} started for room {short_room(room_id)}")
        if self.structured_logger:
            self.structured_logger.log_sync_start(operation, room_id)

    def _finish(
        self,
        operation: str,
        room_id: str,
        started: float,
        success: bool,
        direction: str,
        message: str,
    ) -> SyncResult:
        result = SyncResult(
            operation=operation,
            success=success,
            room_id=room_id,
            direction=direction,
            message=message,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        if success:
            logger.info(f"{operation} ok for room {short_room(room_id)}: {message}")
        else:
            logger.error(f"{operation} failed for room {short_room(room_id)}: {message}")

        if self.structured_logger:
            self.structured_logger.log_sync_complete(result, error=None if success else message)
        if self.journal:
            try:
                self.journal.record(result)
            except sqlite3.Error as e:
                logger.warning(f"Failed to journal {operation}: {e}")
        if self.metrics_exporter:
            self.metrics_exporter.export_sync_metrics(result, self.store.current)
        return result

    def status(self) -> Dict[str, Any]:
        """Summarize sync state for display."""
        prefs = self.store.current.prefs
        return {
            "remote_configured": self.available,
            "auto_sync": prefs.auto_sync,
            "sync_code_set": bool(prefs.sync_code.strip()),
            "push_pending": self.debouncer.pending,
            "live": self._live is not None and self._live.active,
        }
