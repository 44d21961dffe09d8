"""Derived statistics and CSV export over the shift history.

Nothing here is stored: every figure is recomputed from the history records.
An hourly rate of zero or unset disables earnings (reported as None).
"""

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .domain.models import HistoryRecord, Preferences
from .utils.time_math import MS_PER_MINUTE, format_duration, format_hh_mm, ms_to_hours

CSV_HEADERS = [
    "Date",
    "Start Time",
    "End Time",
    "Duration (HH:MM)",
    "Break Time (HH:MM)",
    "Net Working Time (HH:MM)",
    "Overtime (HH:MM)",
    "Tags",
    "Notes",
]


@dataclass(frozen=True)
class ReportSummary:
    """Aggregate figures for a set of shifts."""

    total_shifts: int
    total_gross_ms: int
    total_break_ms: int
    total_net_ms: int
    average_net_ms: int
    total_overtime_ms: int
    earnings: Optional[float]
    currency: str

    @property
    def total_hours(self) -> float:
        return ms_to_hours(self.total_net_ms)


def earnings_for(net_ms: int, hourly_rate: Optional[float]) -> Optional[float]:
    """Earnings for ``net_ms`` of work, or None when no rate is set."""
    if not hourly_rate:
        return None
    return ms_to_hours(net_ms) * hourly_rate


def overtime_ms(record: HistoryRecord, target_minutes: int) -> int:
    return max(0, record.net_ms - target_minutes * MS_PER_MINUTE)


def filter_by_tag(records: Iterable[HistoryRecord], tag: Optional[str]) -> List[HistoryRecord]:
    if not tag:
        return list(records)
    wanted = tag.strip().lower()
    return [r for r in records if wanted in r.tags]


def filter_by_range(
    records: Iterable[HistoryRecord],
    start_ms: Optional[int] = None,
    end_ms: Optional[int] = None,
) -> List[HistoryRecord]:
    """Keep records whose start lies within ``[start_ms, end_ms)``."""
    return [
        r
        for r in records
        if (start_ms is None or r.start_ms >= start_ms) and (end_ms is None or r.start_ms < end_ms)
    ]


def summarize(records: Sequence[HistoryRecord], prefs: Preferences) -> ReportSummary:
    """Compute totals, average shift length, overtime and earnings."""
    total_net = sum(r.net_ms for r in records)
    count = len(records)
    return ReportSummary(
        total_shifts=count,
        total_gross_ms=sum(r.gross_ms for r in records),
        total_break_ms=sum(r.break_ms for r in records),
        total_net_ms=total_net,
        average_net_ms=total_net // count if count else 0,
        total_overtime_ms=sum(overtime_ms(r, prefs.target_minutes) for r in records),
        earnings=earnings_for(total_net, prefs.hourly_rate),
        currency=prefs.currency,
    )


def _date(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%m/%d/%Y")


def _time(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%H:%M")


def _row(record: HistoryRecord, target_minutes: int) -> List[str]:
    return [
        _date(record.start_ms),
        _time(record.start_ms),
        _time(record.end_ms),
        format_hh_mm(record.gross_ms),
        format_hh_mm(record.break_ms),
        format_hh_mm(record.net_ms),
        format_hh_mm(overtime_ms(record, target_minutes)),
        "; ".join(record.tags),
        record.note,
    ]


def to_csv(records: Sequence[HistoryRecord], prefs: Preferences) -> str:
    """Render one CSV row per shift."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in records:
        writer.writerow(_row(record, prefs.target_minutes))
    return buffer.getvalue()


def to_summary_csv(
    records: Sequence[HistoryRecord],
    prefs: Preferences,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a summary block followed by the detailed rows."""
    summary = summarize(records, prefs)
    generated_at = generated_at or datetime.now()

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["SHIFT TRACKER SUMMARY REPORT"])
    writer.writerow([f"Generated on: {generated_at.strftime('%B %d, %Y %H:%M')}"])
    writer.writerow([])
    writer.writerow(["SUMMARY STATISTICS"])
    writer.writerow(["Total Shifts", summary.total_shifts])
    writer.writerow(["Total Net Working Time", format_duration(summary.total_net_ms)])
    writer.writerow(["Total Break Time", format_duration(summary.total_break_ms)])
    writer.writerow(["Total Overtime", format_duration(summary.total_overtime_ms)])
    writer.writerow(["Average Shift Length", format_duration(summary.average_net_ms)])
    if summary.earnings is not None:
        writer.writerow(["Total Earnings", f"{summary.earnings:.2f} {summary.currency}"])
    writer.writerow([])
    writer.writerow(CSV_HEADERS)
    for record in records:
        writer.writerow(_row(record, prefs.target_minutes))
    return buffer.getvalue()
