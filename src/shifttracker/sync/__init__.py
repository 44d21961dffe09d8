"""Remote synchronization of snapshots."""

from .engine import Subscription, SyncEngine, room_id_from_passcode

__all__ = ["Subscription", "SyncEngine", "room_id_from_passcode"]
