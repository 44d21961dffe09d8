"""Tests for shift time arithmetic."""

import pytest

from shifttracker.domain.models import BreakRange, WatchState, WatchStatus
from shifttracker.errors import ValidationError
from shifttracker.utils.time_math import (
    MS_PER_HOUR,
    MS_PER_MINUTE,
    break_ms,
    close_open_breaks,
    format_clock,
    format_currency,
    format_duration,
    format_hh_mm,
    live_working_ms,
    net_ms,
    validate_shift,
)


class TestBreakAndNet:
    """Test break totals and net working time."""

    def test_break_ms_sums_closed_breaks(self):
        breaks = [BreakRange(1000, 4000), BreakRange(5000, 5500)]
        assert break_ms(breaks) == 3500

    def test_open_break_ignored_without_now(self):
        assert break_ms([BreakRange(1000, 4000), BreakRange(6000)]) == 3000

    def test_open_break_counts_up_to_now(self):
        assert break_ms([BreakRange(6000)], now=9000) == 3000

    def test_net_ms(self):
        assert net_ms(0, 10_000, [BreakRange(1000, 4000)]) == 7000

    def test_net_ms_never_negative(self):
        """Overlapping breaks can exceed the gross time; net clamps at zero."""
        breaks = [BreakRange(0, 8000), BreakRange(0, 8000)]
        assert net_ms(0, 10_000, breaks) == 0

    def test_close_open_breaks(self):
        closed = close_open_breaks([BreakRange(1000, 2000), BreakRange(3000)], 5000)
        assert closed == (BreakRange(1000, 2000), BreakRange(3000, 5000))


class TestLiveWorkingMs:
    """Test live preview of the active session."""

    def test_idle_is_zero(self):
        assert live_working_ms(WatchState(), 10_000) == 0

    def test_open_break_counted_as_break(self):
        watch = WatchState(
            status=WatchStatus.ON_BREAK,
            start_time_ms=0,
            breaks=(BreakRange(1000, 4000), BreakRange(6000)),
        )
        assert live_working_ms(watch, 10_000) == 3000

    def test_working(self):
        watch = WatchState(status=WatchStatus.WORKING, start_time_ms=0)
        assert live_working_ms(watch, 2 * MS_PER_HOUR) == 2 * MS_PER_HOUR


class TestValidateShift:
    """Test boundary validation before records are created."""

    def test_valid_shift(self):
        validate_shift(0, 10_000, [BreakRange(1000, 4000)])

    def test_end_before_start(self):
        with pytest.raises(ValidationError):
            validate_shift(10_000, 0, [])

    def test_open_break_rejected(self):
        with pytest.raises(ValidationError):
            validate_shift(0, 10_000, [BreakRange(1000)])

    def test_break_outside_shift(self):
        with pytest.raises(ValidationError):
            validate_shift(1000, 10_000, [BreakRange(500, 2000)])
        with pytest.raises(ValidationError):
            validate_shift(0, 10_000, [BreakRange(9000, 11_000)])

    def test_inverted_break(self):
        with pytest.raises(ValidationError):
            validate_shift(0, 10_000, [BreakRange(4000, 1000)])


class TestFormatting:
    """Test display helpers."""

    def test_format_duration(self):
        assert format_duration(150 * MS_PER_MINUTE) == "2h 30m"
        assert format_duration(45 * MS_PER_MINUTE) == "45m"
        assert format_duration(2 * MS_PER_HOUR) == "2h"
        assert format_duration(0) == "0m"

    def test_format_hh_mm(self):
        assert format_hh_mm(150 * MS_PER_MINUTE) == "2:30"
        assert format_hh_mm(5 * MS_PER_MINUTE) == "0:05"

    def test_format_clock_respects_hour_format(self):
        ts = 1_700_000_000_000
        assert format_clock(ts, 24).count(":") == 1
        assert format_clock(ts, 12)[-2:] in ("AM", "PM")

    def test_format_currency(self):
        assert format_currency(1234.5, "EUR") == "1,234.50 EUR"
