"""Shift time arithmetic.

Pure functions over millisecond timestamps. Nothing here reads storage or
the clock except ``now_ms``.
"""

import time
from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple

from ..domain.models import BreakRange, WatchState, WatchStatus
from ..errors import ValidationError

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def break_ms(breaks: Iterable[BreakRange], now: Optional[int] = None) -> int:
    """Sum break durations.

    Args:
        breaks: Break ranges
        now: When given, an open break counts up to ``now`` (live preview).
            When omitted, open breaks contribute nothing.

    Returns:
        Total break time in milliseconds
    """
    total = 0
    for br in breaks:
        if br.end_ms is not None:
            total += br.end_ms - br.start_ms
        elif now is not None:
            total += max(0, now - br.start_ms)
    return total


def net_ms(start_ms: int, end_ms: int, breaks: Iterable[BreakRange]) -> int:
    """Net working time: gross minus closed breaks, never negative."""
    return max(0, (end_ms - start_ms) - break_ms(breaks))


def live_working_ms(watch: WatchState, now: int) -> int:
    """Working time of the active session as of ``now``.

    An open break is counted as break time up to ``now``.
    """
    if watch.status == WatchStatus.IDLE or watch.start_time_ms is None:
        return 0
    end = watch.end_time_ms if watch.end_time_ms is not None else now
    return max(0, (end - watch.start_time_ms) - break_ms(watch.breaks, now=end))


def close_open_breaks(breaks: Iterable[BreakRange], at_ms: int) -> Tuple[BreakRange, ...]:
    """Return breaks with every open entry closed at ``at_ms``."""
    return tuple(
        BreakRange(br.start_ms, at_ms) if br.end_ms is None else br for br in breaks
    )


def validate_shift(start_ms: int, end_ms: int, breaks: Sequence[BreakRange]) -> None:
    """Check shift and break boundaries before a record is created.

    Raises:
        ValidationError: If the shift ends before it starts, a break is still
            open, or a break falls outside ``[start_ms, end_ms]``
    """
    if end_ms < start_ms:
        raise ValidationError("Shift end must not be before its start")
    for br in breaks:
        if br.end_ms is None:
            raise ValidationError("Breaks must be closed before finalizing a shift")
        if br.end_ms < br.start_ms:
            raise ValidationError("Break end must not be before its start")
        if br.start_ms < start_ms or br.end_ms > end_ms:
            raise ValidationError("Break falls outside the shift boundaries")


def ms_to_hours(ms: int) -> float:
    return ms / MS_PER_HOUR


def format_duration(ms: int) -> str:
    """Format milliseconds as a short duration (e.g., 2h 30m)."""
    total_minutes = max(0, round(ms / MS_PER_MINUTE))
    hours, minutes = divmod(total_minutes, 60)

    if hours == 0:
        return f"{minutes}m"
    elif minutes == 0:
        return f"{hours}h"
    else:
        return f"{hours}h {minutes}m"


def format_hh_mm(ms: int) -> str:
    """Format milliseconds as H:MM."""
    total_minutes = max(0, round(ms / MS_PER_MINUTE))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}:{minutes:02d}"


def format_clock(timestamp_ms: int, hour_format: int = 24) -> str:
    """Format a timestamp as local clock time in 12h or 24h style."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000)
    if hour_format == 12:
        return moment.strftime("%I:%M %p")
    return moment.strftime("%H:%M")


def format_currency(amount: float, currency: str = "USD") -> str:
    return f"{amount:,.2f} {currency}"
