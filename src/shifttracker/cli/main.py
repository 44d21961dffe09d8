"""Command-line front end for shifttracker."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import Config
from ..domain.models import BreakRange
from ..errors import StateTransitionError, TransportError, ValidationError
from ..reporting import filter_by_range, filter_by_tag, to_csv, to_summary_csv
from ..tracker import ShiftTracker
from ..utils.logging import setup_console_logging
from .console import TrackerConsole

logger = logging.getLogger(__name__)

# CLI preference names -> (attribute, converter)
PREF_OPTIONS: Dict[str, tuple] = {
    "hour-format": ("hour_format", int),
    "theme": ("theme", str),
    "target-minutes": ("target_minutes", int),
    "hourly-rate": ("hourly_rate", float),
    "currency": ("currency", str),
    "auto-sync": ("auto_sync", lambda v: v.lower() in ("true", "1", "yes", "on")),
    "sync-code": ("sync_code", str),
}

# Commands that read state only and skip the access lock
UNGATED_COMMANDS = {"lock"}


def parse_timestamp(value: str) -> int:
    """Parse a local ISO date-time (e.g. ``2024-05-01 09:30``) into epoch ms."""
    try:
        return int(datetime.fromisoformat(value).timestamp() * 1000)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date-time: {value}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shifttracker", description="Local-first shift tracker")
    parser.add_argument("--config", default="config.json", help="Configuration file path")
    parser.add_argument("--passcode", help="Access lock passcode (prompted when needed)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("status", help="Show stopwatch state")
    commands.add_parser("start", help="Start a shift")
    commands.add_parser("break", help="Begin a break")
    commands.add_parser("resume", help="End the current break")
    finish = commands.add_parser("finish", help="Finish the shift and record it")
    finish.add_argument("--note", default="")
    finish.add_argument("--tags", default="", help="Comma-separated tags")
    commands.add_parser("discard", help="Discard the current shift")

    add = commands.add_parser("add", help="Add a past shift")
    add.add_argument("--start", required=True, type=parse_timestamp)
    add.add_argument("--end", required=True, type=parse_timestamp)
    add.add_argument(
        "--break",
        dest="breaks",
        nargs=2,
        action="append",
        metavar=("START", "END"),
        type=parse_timestamp,
        default=[],
    )
    add.add_argument("--note", default="")
    add.add_argument("--tags", default="")

    delete = commands.add_parser("delete", help="Delete a history record")
    delete.add_argument("record_id")

    history = commands.add_parser("history", help="List recorded shifts")
    history.add_argument("--tag")
    history.add_argument("--since", type=parse_timestamp, help="Only shifts starting at or after")
    history.add_argument("--until", type=parse_timestamp, help="Only shifts starting before")

    report = commands.add_parser("report", help="Show totals")
    report.add_argument("--tag")

    export = commands.add_parser("export", help="Export history as CSV")
    export.add_argument("--tag")
    export.add_argument("--summary", action="store_true", help="Prepend summary statistics")
    export.add_argument("-o", "--output", help="Output file (default: stdout)")

    lock = commands.add_parser("lock", help="Manage the access lock")
    lock.add_argument("action", choices=["status", "set", "verify", "disable"])

    sync = commands.add_parser("sync", help="Synchronize with the shared room")
    sync.add_argument("action", choices=["status", "pull", "push", "now"])
    sync.add_argument("--code", help="Sync passcode (defaults to the saved one)")
    sync.add_argument("--apply", action="store_true", help="Adopt the pulled snapshot")

    prefs = commands.add_parser("prefs", help="Show or change preferences")
    prefs.add_argument("changes", nargs="*", metavar="KEY=VALUE", help=", ".join(PREF_OPTIONS))

    return parser


def parse_pref_changes(pairs: List[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` arguments into preference changes."""
    changes: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or key not in PREF_OPTIONS:
            raise ValidationError(f"Unknown preference: {pair}")
        attribute, convert = PREF_OPTIONS[key]
        try:
            changes[attribute] = convert(value)
        except ValueError as e:
            raise ValidationError(f"Invalid value for {key}: {value}") from e
    return changes


class CommandRunner:
    """Executes one parsed CLI command against a tracker."""

    def __init__(self, tracker: ShiftTracker, ui: TrackerConsole) -> None:
        self.tracker = tracker
        self.ui = ui
        self.handlers: Dict[str, Callable[[argparse.Namespace], int]] = {
            "status": self.status,
            "start": self.start,
            "break": self.begin_break,
            "resume": self.end_break,
            "finish": self.finish,
            "discard": self.discard,
            "add": self.add,
            "delete": self.delete,
            "history": self.history,
            "report": self.report,
            "export": self.export,
            "lock": self.lock,
            "sync": self.sync,
            "prefs": self.prefs,
        }

    def run(self, args: argparse.Namespace) -> int:
        if args.command not in UNGATED_COMMANDS and not self._unlock(args.passcode):
            self.ui.show_error("Incorrect passcode")
            return 1
        return self.handlers[args.command](args)

    def _unlock(self, passcode: Optional[str]) -> bool:
        lock = self.tracker.lock
        if not lock.is_lock_enabled():
            return True
        code = passcode if passcode is not None else self.ui.ask_secret("Passcode")
        return lock.verify_passcode(code)

    def status(self, args: argparse.Namespace) -> int:
        snapshot = self.tracker.snapshot
        self.ui.show_status(snapshot.watch, self.tracker.stopwatch.live_working_ms(), snapshot.prefs)
        return 0

    def start(self, args: argparse.Namespace) -> int:
        self.tracker.stopwatch.start()
        return self.status(args)

    def begin_break(self, args: argparse.Namespace) -> int:
        self.tracker.stopwatch.begin_break()
        return self.status(args)

    def end_break(self, args: argparse.Namespace) -> int:
        self.tracker.stopwatch.end_break()
        return self.status(args)

    def finish(self, args: argparse.Namespace) -> int:
        record = self.tracker.stopwatch.finish(note=args.note, tags=args.tags)
        self.ui.show_record(record, self.tracker.snapshot.prefs)
        return 0

    def discard(self, args: argparse.Namespace) -> int:
        if not self.ui.ask_confirmation("Discard the current shift?"):
            return 1
        self.tracker.stopwatch.discard()
        self.ui.show_success("Shift discarded")
        return 0

    def add(self, args: argparse.Namespace) -> int:
        breaks = [BreakRange(start, end) for start, end in args.breaks]
        record = self.tracker.stopwatch.add_manual_shift(
            args.start, args.end, breaks=breaks, note=args.note, tags=args.tags
        )
        self.ui.show_record(record, self.tracker.snapshot.prefs)
        return 0

    def delete(self, args: argparse.Namespace) -> int:
        self.tracker.stopwatch.delete_record(args.record_id)
        self.ui.show_success(f"Deleted {args.record_id}")
        return 0

    def history(self, args: argparse.Namespace) -> int:
        snapshot = self.tracker.snapshot
        records = filter_by_range(filter_by_tag(snapshot.history, args.tag), args.since, args.until)
        self.ui.show_history(records, snapshot.prefs)
        return 0

    def report(self, args: argparse.Namespace) -> int:
        self.ui.show_report(self.tracker.report(args.tag), args.tag)
        return 0

    def export(self, args: argparse.Namespace) -> int:
        snapshot = self.tracker.snapshot
        records = filter_by_tag(snapshot.history, args.tag)
        render = to_summary_csv if args.summary else to_csv
        text = render(records, snapshot.prefs)
        if args.output:
            Path(args.output).write_text(text, encoding="utf-8")
            self.ui.show_success(f"Exported {len(records)} shift(s) to {args.output}")
        else:
            sys.stdout.write(text)
        return 0

    def lock(self, args: argparse.Namespace) -> int:
        lock = self.tracker.lock
        if args.action == "status":
            self.ui.show_dict("Access lock", {"enabled": lock.is_lock_enabled()})
            return 0
        if args.action == "verify":
            ok = lock.verify_passcode(args.passcode or self.ui.ask_secret("Passcode"))
            if not ok:
                self.ui.show_error("Incorrect passcode")
                return 1
            self.ui.show_success("Passcode accepted")
            return 0

        # set/disable require the current passcode when a lock is active
        if not self._unlock(args.passcode):
            self.ui.show_error("Incorrect passcode")
            return 1
        if args.action == "set":
            code = self.ui.ask_secret("New passcode (4-8 digits)")
            lock.change_passcode(code, self.ui.ask_secret("Confirm passcode"))
            self.ui.show_success("Access lock enabled")
        else:
            lock.disable_lock()
            self.ui.show_success("Access lock disabled")
        return 0

    def sync(self, args: argparse.Namespace) -> int:
        engine = self.tracker.sync
        if args.action == "status":
            self.ui.show_dict("Sync", engine.status())
            return 0
        if not engine.available:
            self.ui.show_warning("Remote backend not configured; running local-only")
            return 0

        code = args.code or self.tracker.snapshot.prefs.sync_code
        if args.action == "now":
            with self.ui.progress_spinner("Synchronizing..."):
                result = engine.sync_now(code)
            self.ui.show_sync_result(result)
            return 0 if result.success else 1

        with self.ui.progress_spinner(f"{args.action.capitalize()}ing..."):
            if args.action == "push":
                engine.push(code)
                self.ui.show_success("Snapshot pushed")
                return 0
            remote = engine.pull(code)
        if remote is None:
            self.ui.show_warning("Room is empty")
        elif args.apply:
            applied = engine.apply_remote(remote)
            self.ui.show_success("Remote snapshot applied" if applied else "Already up to date")
        else:
            self.ui.show_dict(
                "Remote snapshot",
                {"updated_at": remote.updated_at, "shifts": len(remote.history)},
            )
        return 0

    def prefs(self, args: argparse.Namespace) -> int:
        if args.changes:
            self.tracker.update_prefs(**parse_pref_changes(args.changes))
        prefs = self.tracker.snapshot.prefs
        self.ui.show_dict("Preferences", {k: v for k, v in prefs.to_dict().items() if k != "syncCode"})
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    config = Config(args.config)
    setup_console_logging("DEBUG" if args.verbose else "WARNING")

    ui = TrackerConsole()
    is_valid, errors = config.validate()
    if not ui.validate_config(errors if not is_valid else []):
        return 1

    tracker = ShiftTracker(config)
    tracker.store.load()
    tracker.sync.enable_auto_sync()
    try:
        code = CommandRunner(tracker, ui).run(args)
        # One-shot process: push now instead of waiting for the debounce
        tracker.sync.debouncer.flush()
        return code
    except (ValidationError, StateTransitionError) as e:
        ui.show_error(str(e))
        return 2
    except TransportError as e:
        ui.show_error(f"Remote sync unavailable: {e}")
        return 3
    finally:
        tracker.sync.disable_auto_sync()


if __name__ == "__main__":
    sys.exit(main())
