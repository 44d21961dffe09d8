"""Stopwatch state machine and history ledger operations.

Transitions are pure functions ``(snapshot, now) -> snapshot``; the
``Stopwatch`` class binds them to a ``SnapshotStore`` so each transition is
persisted atomically.

    IDLE --start--> WORKING --begin_break--> ON_BREAK --end_break--> WORKING
    WORKING | ON_BREAK --finish--> IDLE (+ history record)
    WORKING | ON_BREAK --discard--> IDLE
"""

import dataclasses
import logging
import uuid
from typing import Callable, Iterable, Optional, Sequence, Union

from .domain.models import BreakRange, HistoryRecord, ManualState, Snapshot, WatchState, WatchStatus
from .errors import StateTransitionError, ValidationError
from .storage.snapshot_store import SnapshotStore
from .utils.tags import parse_tags
from .utils.time_math import break_ms, close_open_breaks, live_working_ms, net_ms, now_ms, validate_shift

logger = logging.getLogger(__name__)

TagsInput = Union[str, Iterable[str]]


def _new_record_id() -> str:
    return uuid.uuid4().hex


def _idle_watch(snapshot: Snapshot) -> WatchState:
    return WatchState(target_minutes=snapshot.prefs.target_minutes)


def _require(snapshot: Snapshot, action: str, *allowed: WatchStatus) -> None:
    status = snapshot.watch.status
    if status not in allowed:
        raise StateTransitionError(action, status.value)


def build_record(
    start_ms: int,
    end_ms: int,
    breaks: Sequence[BreakRange],
    note: str = "",
    tags: TagsInput = (),
    record_id: Optional[str] = None,
) -> HistoryRecord:
    """Validate boundaries and compute a history record.

    Raises:
        ValidationError: If any boundary is out of range
    """
    validate_shift(start_ms, end_ms, breaks)
    return HistoryRecord(
        id=record_id or _new_record_id(),
        start_ms=start_ms,
        end_ms=end_ms,
        breaks=tuple(breaks),
        break_ms=break_ms(breaks),
        net_ms=net_ms(start_ms, end_ms, breaks),
        note=note or "",
        tags=parse_tags(tags),
    )


def start(snapshot: Snapshot, now: int) -> Snapshot:
    _require(snapshot, "start", WatchStatus.IDLE)
    watch = WatchState(
        status=WatchStatus.WORKING,
        start_time_ms=now,
        end_time_ms=None,
        breaks=(),
        target_minutes=snapshot.prefs.target_minutes,
    )
    return dataclasses.replace(snapshot, watch=watch)


def begin_break(snapshot: Snapshot, now: int) -> Snapshot:
    _require(snapshot, "begin a break", WatchStatus.WORKING)
    watch = dataclasses.replace(
        snapshot.watch,
        status=WatchStatus.ON_BREAK,
        breaks=snapshot.watch.breaks + (BreakRange(start_ms=now),),
    )
    return dataclasses.replace(snapshot, watch=watch)


def end_break(snapshot: Snapshot, now: int) -> Snapshot:
    """Close the open break and resume work.

    If the watch claims ON_BREAK but no open break exists, the inconsistent
    state is repaired: a warning is logged and the transition happens anyway.
    Extra open entries beyond the latest are dropped.
    """
    _require(snapshot, "end a break", WatchStatus.ON_BREAK)
    breaks = list(snapshot.watch.breaks)
    open_indexes = [i for i, br in enumerate(breaks) if br.is_open]

    if not open_indexes:
        logger.warning("ON_BREAK without an open break; resuming work without closing one")
    else:
        if len(open_indexes) > 1:
            logger.warning(f"Dropping {len(open_indexes) - 1} dangling open break(s)")
            for i in reversed(open_indexes[:-1]):
                del breaks[i]
        last = max(i for i, br in enumerate(breaks) if br.is_open)
        breaks[last] = BreakRange(breaks[last].start_ms, max(now, breaks[last].start_ms))

    watch = dataclasses.replace(snapshot.watch, status=WatchStatus.WORKING, breaks=tuple(breaks))
    return dataclasses.replace(snapshot, watch=watch)


def finish(
    snapshot: Snapshot,
    now: int,
    note: str = "",
    tags: TagsInput = (),
    record_id: Optional[str] = None,
) -> Snapshot:
    """Finalize the session into a history record and reset to IDLE.

    An open break is closed at ``now`` first.
    """
    _require(snapshot, "finish", WatchStatus.WORKING, WatchStatus.ON_BREAK)
    watch = snapshot.watch
    if watch.start_time_ms is None:
        raise ValidationError("Active session has no start time")

    record = build_record(
        watch.start_time_ms,
        now,
        close_open_breaks(watch.breaks, now),
        note=note,
        tags=tags,
        record_id=record_id,
    )
    return dataclasses.replace(
        snapshot,
        watch=_idle_watch(snapshot),
        history=snapshot.history + (record,),
    )


def discard(snapshot: Snapshot, now: int) -> Snapshot:
    """Cancel the current session without recording it."""
    _require(snapshot, "discard", WatchStatus.WORKING, WatchStatus.ON_BREAK)
    return dataclasses.replace(snapshot, watch=_idle_watch(snapshot))


def add_manual_break(snapshot: Snapshot, start_ms: int, end_ms: int) -> Snapshot:
    if end_ms <= start_ms:
        raise ValidationError("Break end must be after its start")
    manual = ManualState(breaks=snapshot.manual.breaks + (BreakRange(start_ms, end_ms),))
    return dataclasses.replace(snapshot, manual=manual)


def clear_manual(snapshot: Snapshot) -> Snapshot:
    return dataclasses.replace(snapshot, manual=ManualState())


def add_manual_shift(
    snapshot: Snapshot,
    start_ms: int,
    end_ms: int,
    breaks: Optional[Sequence[BreakRange]] = None,
    note: str = "",
    tags: TagsInput = (),
) -> Snapshot:
    """Append a backdated shift.

    Args:
        snapshot: Current snapshot
        start_ms: Shift start
        end_ms: Shift end, must be after ``start_ms``
        breaks: Closed breaks; defaults to the manual scratch breaks
        note: Free text note
        tags: Tags (normalized)

    Returns:
        Snapshot with the record appended and the manual scratch cleared
    """
    if end_ms <= start_ms:
        raise ValidationError("End must be after Start")
    record = build_record(
        start_ms,
        end_ms,
        tuple(breaks) if breaks is not None else snapshot.manual.breaks,
        note=note,
        tags=tags,
    )
    return dataclasses.replace(
        snapshot,
        manual=ManualState(),
        history=snapshot.history + (record,),
    )


def delete_record(snapshot: Snapshot, record_id: str) -> Snapshot:
    if snapshot.find_record(record_id) is None:
        raise ValidationError(f"No history record with id {record_id}")
    history = tuple(r for r in snapshot.history if r.id != record_id)
    return dataclasses.replace(snapshot, history=history)


class Stopwatch:
    """Stopwatch bound to a snapshot store."""

    def __init__(self, store: SnapshotStore, clock: Callable[[], int] = now_ms) -> None:
        """Initialize stopwatch.

        Args:
            store: Snapshot store that persists every transition
            clock: Millisecond clock
        """
        self.store = store
        self.clock = clock

    @property
    def status(self) -> WatchStatus:
        return self.store.current.watch.status

    def start(self) -> Snapshot:
        snapshot = self.store.update(lambda s: start(s, self.clock()))
        logger.info(f"Shift started at {snapshot.watch.start_time_ms}")
        return snapshot

    def begin_break(self) -> Snapshot:
        snapshot = self.store.update(lambda s: begin_break(s, self.clock()))
        logger.info("Break started")
        return snapshot

    def end_break(self) -> Snapshot:
        snapshot = self.store.update(lambda s: end_break(s, self.clock()))
        logger.info("Break ended")
        return snapshot

    def finish(self, note: str = "", tags: TagsInput = ()) -> HistoryRecord:
        """Finish the session.

        Returns:
            The appended history record
        """
        snapshot = self.store.update(lambda s: finish(s, self.clock(), note=note, tags=tags))
        record = snapshot.history[-1]
        logger.info(f"Shift {record.id} finished: net={record.net_ms}ms, breaks={record.break_ms}ms")
        return record

    def discard(self) -> Snapshot:
        snapshot = self.store.update(lambda s: discard(s, self.clock()))
        logger.info("Current shift discarded")
        return snapshot

    def add_manual_break(self, start_ms: int, end_ms: int) -> Snapshot:
        return self.store.update(lambda s: add_manual_break(s, start_ms, end_ms))

    def clear_manual(self) -> Snapshot:
        return self.store.update(clear_manual)

    def add_manual_shift(
        self,
        start_ms: int,
        end_ms: int,
        breaks: Optional[Sequence[BreakRange]] = None,
        note: str = "",
        tags: TagsInput = (),
    ) -> HistoryRecord:
        snapshot = self.store.update(
            lambda s: add_manual_shift(s, start_ms, end_ms, breaks=breaks, note=note, tags=tags)
        )
        record = snapshot.history[-1]
        logger.info(f"Manual shift {record.id} added")
        return record

    def delete_record(self, record_id: str) -> Snapshot:
        snapshot = self.store.update(lambda s: delete_record(s, record_id))
        logger.info(f"Deleted history record {record_id}")
        return snapshot

    def live_working_ms(self) -> int:
        return live_working_ms(self.store.current.watch, self.clock())
