"""Local durable storage for snapshots and lock state."""

from .kv import LOCK_KEY, SALT_KEY, SNAPSHOT_KEY, SqliteKeyValueStore
from .snapshot_store import CURRENT_SCHEMA_VERSION, SnapshotStore

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "LOCK_KEY",
    "SALT_KEY",
    "SNAPSHOT_KEY",
    "SnapshotStore",
    "SqliteKeyValueStore",
]
