"""Snapshot store: single owner of the in-memory snapshot and its persistence."""

import dataclasses
import json
import logging
import threading
from typing import Any, Callable, List, Optional

from ..domain.models import Snapshot
from ..errors import StorageUnavailable
from ..utils.time_math import now_ms
from .kv import SNAPSHOT_KEY, SqliteKeyValueStore
from .migrations import CURRENT_SCHEMA_VERSION, default_raw_snapshot, migrate_raw

logger = logging.getLogger(__name__)

ORIGIN_LOCAL = "local"
ORIGIN_REMOTE = "remote"

SnapshotListener = Callable[[Snapshot, str], None]


class SnapshotStore:
    """Owns the canonical snapshot.

    Every mutation goes through ``update`` or ``replace``: the new snapshot is
    persisted and swapped in under a lock, then listeners are told about it
    together with its origin (local edit or remote delivery).
    """

    def __init__(
        self,
        kv: SqliteKeyValueStore,
        clock: Callable[[], int] = now_ms,
        key: str = SNAPSHOT_KEY,
    ) -> None:
        """Initialize snapshot store.

        Args:
            kv: Durable key-value record
            clock: Millisecond clock, injectable for tests
            key: Record key holding the serialized snapshot
        """
        self.kv = kv
        self.clock = clock
        self.key = key
        self.last_save_ok = True
        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        self._snapshot: Optional[Snapshot] = None

    @property
    def current(self) -> Snapshot:
        """Current snapshot, loading from storage on first access."""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self.load()
            return self._snapshot

    def default_snapshot(self) -> Snapshot:
        return Snapshot.from_dict(default_raw_snapshot(self.clock()))

    def migrate(self, raw: Any) -> Snapshot:
        """Upgrade a possibly older-shaped record and build a snapshot.

        Args:
            raw: Decoded record (any shape)

        Returns:
            Snapshot stamped with the current schema version
        """
        return Snapshot.from_dict(migrate_raw(raw, self.clock()))

    def load(self) -> Snapshot:
        """Read the durable record.

        Returns a fresh default snapshot when the record is absent, unreadable
        or unparsable. Never raises.
        """
        try:
            text = self.kv.get(self.key)
        except StorageUnavailable as e:
            logger.warning(f"Local snapshot unavailable, starting fresh: {e}")
            text = None

        if text is None:
            snapshot = self.default_snapshot()
        else:
            try:
                snapshot = self.migrate(json.loads(text))
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(f"Discarding unparsable local snapshot: {e}")
                snapshot = self.default_snapshot()

        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def save(self, snapshot: Snapshot, touch: bool = True) -> Snapshot:
        """Persist ``snapshot`` and make it current.

        Write failures are logged and swallowed; the in-memory snapshot stays
        authoritative for this session.

        Args:
            snapshot: Snapshot to store
            touch: Stamp ``updated_at`` with the current time

        Returns:
            The stamped snapshot that is now current
        """
        changes: dict = {"schema_version": CURRENT_SCHEMA_VERSION}
        if touch:
            changes["updated_at"] = self.clock()
        stamped = dataclasses.replace(snapshot, **changes)

        with self._lock:
            self._snapshot = stamped
            try:
                self.kv.set(self.key, json.dumps(stamped.to_dict(), ensure_ascii=False))
                self.last_save_ok = True
            except StorageUnavailable as e:
                self.last_save_ok = False
                logger.warning(f"Failed to persist snapshot, keeping it in memory: {e}")
        return stamped

    def update(self, mutate: Callable[[Snapshot], Snapshot]) -> Snapshot:
        """Apply a local mutation atomically.

        Args:
            mutate: Function returning the next snapshot. If it raises,
                nothing is stored and the error propagates.

        Returns:
            The saved snapshot
        """
        with self._lock:
            saved = self.save(mutate(self.current))
        self._notify(saved, ORIGIN_LOCAL)
        return saved

    def replace(self, snapshot: Snapshot, origin: str = ORIGIN_REMOTE) -> Snapshot:
        """Adopt a snapshot wholesale, keeping its own ``updated_at``.

        Used for last-write-wins delivery from the remote room.
        """
        with self._lock:
            saved = self.save(snapshot, touch=False)
        self._notify(saved, origin)
        return saved

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            Function that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify(self, snapshot: Snapshot, origin: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot, origin)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}")
