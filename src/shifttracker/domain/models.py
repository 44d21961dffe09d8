"""Domain models and value objects for shift tracking.

All models are immutable. State changes produce new instances via
``dataclasses.replace`` so a snapshot handed to a reader is never
modified underneath it.

JSON shape uses camelCase keys so that snapshots stored by other clients
of the same room stay readable.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class WatchStatus(str, Enum):
    """Stopwatch states."""

    IDLE = "IDLE"
    WORKING = "WORKING"
    ON_BREAK = "ON_BREAK"


@dataclass(frozen=True)
class BreakRange:
    """A pause inside a shift. ``end_ms`` is None while the break is open."""

    start_ms: int
    end_ms: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.end_ms is None

    def to_dict(self) -> Dict[str, Any]:
        return {"startMs": self.start_ms, "endMs": self.end_ms}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BreakRange":
        end_ms = data.get("endMs")
        return cls(
            start_ms=int(data["startMs"]),
            end_ms=int(end_ms) if end_ms is not None else None,
        )


@dataclass(frozen=True)
class WatchState:
    """Live stopwatch session. At most one per snapshot."""

    status: WatchStatus = WatchStatus.IDLE
    start_time_ms: Optional[int] = None
    end_time_ms: Optional[int] = None
    breaks: Tuple[BreakRange, ...] = ()
    target_minutes: Optional[int] = None

    @property
    def open_break(self) -> Optional[BreakRange]:
        """Return the open break, if any."""
        for br in self.breaks:
            if br.is_open:
                return br
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "startTimeMs": self.start_time_ms,
            "endTimeMs": self.end_time_ms,
            "breaks": [b.to_dict() for b in self.breaks],
        }
        if self.target_minutes is not None:
            data["targetMinutes"] = self.target_minutes
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchState":
        status = data.get("status", WatchStatus.IDLE.value)
        try:
            watch_status = WatchStatus(status)
        except ValueError:
            watch_status = WatchStatus.IDLE
        target = data.get("targetMinutes")
        return cls(
            status=watch_status,
            start_time_ms=data.get("startTimeMs"),
            end_time_ms=data.get("endTimeMs"),
            breaks=tuple(BreakRange.from_dict(b) for b in data.get("breaks") or []),
            target_minutes=int(target) if target is not None else None,
        )


@dataclass(frozen=True)
class ManualState:
    """Scratch state for a manually entered (backdated) shift."""

    breaks: Tuple[BreakRange, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"breaks": [b.to_dict() for b in self.breaks]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManualState":
        return cls(breaks=tuple(BreakRange.from_dict(b) for b in data.get("breaks") or []))


@dataclass(frozen=True)
class HistoryRecord:
    """A completed shift. Immutable once appended to history."""

    id: str
    start_ms: int
    end_ms: int
    breaks: Tuple[BreakRange, ...]
    break_ms: int
    net_ms: int
    note: str = ""
    tags: Tuple[str, ...] = ()

    @property
    def gross_ms(self) -> int:
        return self.end_ms - self.start_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "startMs": self.start_ms,
            "endMs": self.end_ms,
            "breaks": [b.to_dict() for b in self.breaks],
            "breakMs": self.break_ms,
            "netMs": self.net_ms,
            "note": self.note,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryRecord":
        return cls(
            id=str(data["id"]),
            start_ms=int(data["startMs"]),
            end_ms=int(data["endMs"]),
            breaks=tuple(BreakRange.from_dict(b) for b in data.get("breaks") or []),
            break_ms=int(data.get("breakMs", 0)),
            net_ms=int(data.get("netMs", 0)),
            note=data.get("note") or "",
            tags=tuple(data.get("tags") or []),
        )


# Preference fields this package understands; anything else is carried in ``extra``
_PREF_KEYS = (
    "hourFormat",
    "theme",
    "targetMinutes",
    "hourlyRate",
    "currency",
    "autoSync",
    "syncCode",
)


@dataclass(frozen=True)
class Preferences:
    """User-configurable settings."""

    hour_format: int = 24
    theme: str = "dark"
    target_minutes: int = 420
    hourly_rate: Optional[float] = None
    currency: str = "USD"
    auto_sync: bool = False
    sync_code: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "hourFormat": self.hour_format,
                "theme": self.theme,
                "targetMinutes": self.target_minutes,
                "currency": self.currency,
                "autoSync": self.auto_sync,
                "syncCode": self.sync_code,
            }
        )
        if self.hourly_rate is not None:
            data["hourlyRate"] = self.hourly_rate
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Preferences":
        rate = data.get("hourlyRate")
        return cls(
            hour_format=int(data.get("hourFormat", 24)),
            theme=data.get("theme", "dark"),
            target_minutes=int(data.get("targetMinutes", 420)),
            hourly_rate=float(rate) if rate is not None else None,
            currency=data.get("currency") or "USD",
            auto_sync=bool(data.get("autoSync", False)),
            sync_code=data.get("syncCode") or "",
            extra={k: v for k, v in data.items() if k not in _PREF_KEYS},
        )


_SNAPSHOT_KEYS = (
    "schemaVersion",
    "createdAt",
    "updatedAt",
    "watch",
    "manual",
    "history",
    "prefs",
)


@dataclass(frozen=True)
class Snapshot:
    """Root aggregate of all user data."""

    schema_version: int
    created_at: int
    updated_at: int
    watch: WatchState = field(default_factory=WatchState)
    manual: ManualState = field(default_factory=ManualState)
    history: Tuple[HistoryRecord, ...] = ()
    prefs: Preferences = field(default_factory=Preferences)
    extra: Dict[str, Any] = field(default_factory=dict)

    def find_record(self, record_id: str) -> Optional[HistoryRecord]:
        for record in self.history:
            if record.id == record_id:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON-compatible shape stored locally and remotely."""
        data: Dict[str, Any] = dict(self.extra)
        data.update(
            {
                "schemaVersion": self.schema_version,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
                "watch": self.watch.to_dict(),
                "manual": self.manual.to_dict(),
                "history": [r.to_dict() for r in self.history],
                "prefs": self.prefs.to_dict(),
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Build a snapshot from an already migrated record.

        Args:
            data: Record with every substructure present

        Returns:
            Snapshot instance
        """
        history: List[HistoryRecord] = [HistoryRecord.from_dict(r) for r in data["history"]]
        return cls(
            schema_version=int(data["schemaVersion"]),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            watch=WatchState.from_dict(data["watch"]),
            manual=ManualState.from_dict(data["manual"]),
            history=tuple(history),
            prefs=Preferences.from_dict(data["prefs"]),
            extra={k: v for k, v in data.items() if k not in _SNAPSHOT_KEYS},
        )


@dataclass(frozen=True)
class LockState:
    """Persisted access lock. Kept outside the snapshot and never synced."""

    hash: str = ""
    enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"hash": self.hash, "enabled": self.enabled}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockState":
        return cls(hash=data.get("hash") or "", enabled=bool(data.get("enabled", False)))


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a sync operation."""

    operation: str
    success: bool
    room_id: str = ""
    direction: str = "none"
    message: str = ""
    duration_ms: int = 0

    @classmethod
    def skipped(cls, operation: str, message: str) -> "SyncResult":
        """Create result for operations skipped because sync is unavailable."""
        return cls(operation=operation, success=False, direction="none", message=message)
