"""Terminal output for the shifttracker CLI using rich."""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from ..domain.models import HistoryRecord, Preferences, SyncResult, WatchState, WatchStatus
from ..reporting import ReportSummary, earnings_for
from ..utils.time_math import format_clock, format_currency, format_duration

STATUS_STYLES = {
    WatchStatus.IDLE: "dim",
    WatchStatus.WORKING: "green bold",
    WatchStatus.ON_BREAK: "yellow bold",
}


class TrackerConsole:
    """Minimal rich front end for tracker state."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def show_banner(self) -> None:
        banner = Text("shifttracker", style="bold blue")
        banner.append(" • local-first shift tracking", style="dim")
        self.console.print(Panel(banner, border_style="blue"))

    def show_status(self, watch: WatchState, working_ms: int, prefs: Preferences) -> None:
        """Show stopwatch state with live working time and target progress."""
        style = STATUS_STYLES[watch.status]
        line = Text(watch.status.value, style=style)
        if watch.status != WatchStatus.IDLE and watch.start_time_ms is not None:
            target_ms = watch.target_minutes * 60_000
            line.append(
                f" • since {format_clock(watch.start_time_ms, prefs.hour_format)}"
                f" • {format_duration(working_ms)} of {format_duration(target_ms)}"
                f" • {len(watch.breaks)} break(s)",
                style="white",
            )
            earnings = earnings_for(working_ms, prefs.hourly_rate)
            if earnings is not None:
                line.append(f" • {format_currency(earnings, prefs.currency)}", style="blue")
        self.console.print(Panel(line, border_style=style.split()[0], title="Stopwatch"))

    def show_record(self, record: HistoryRecord, prefs: Preferences) -> None:
        self.console.print(
            f"✅ [green]Shift recorded[/green] • "
            f"[cyan]{format_clock(record.start_ms, prefs.hour_format)}"
            f"–{format_clock(record.end_ms, prefs.hour_format)}[/cyan] • "
            f"[white]{format_duration(record.net_ms)} net[/white] • "
            f"[dim]{format_duration(record.break_ms)} breaks[/dim] • "
            f"[dim]{record.id}[/dim]"
        )

    def show_history(self, records: Sequence[HistoryRecord], prefs: Preferences) -> None:
        """Show history records as a table, newest first."""
        if not records:
            self.console.print("[dim]No shifts recorded yet[/dim]")
            return

        table = Table(show_header=True, box=None)
        table.add_column("ID", style="dim", width=10, overflow="ellipsis")
        table.add_column("Start", style="cyan")
        table.add_column("End", style="cyan")
        table.add_column("Breaks", justify="right")
        table.add_column("Net", justify="right", style="blue")
        table.add_column("Tags", style="magenta")
        table.add_column("Note", overflow="ellipsis", style="dim")

        for record in sorted(records, key=lambda r: r.start_ms, reverse=True):
            table.add_row(
                record.id[:10],
                format_clock(record.start_ms, prefs.hour_format),
                format_clock(record.end_ms, prefs.hour_format),
                format_duration(record.break_ms),
                format_duration(record.net_ms),
                ", ".join(record.tags),
                record.note,
            )
        self.console.print(table)

    def show_report(self, summary: ReportSummary, tag: Optional[str] = None) -> None:
        title = f"Report • {tag}" if tag else "Report"
        lines = [
            f"[white]{summary.total_shifts} shift(s)[/white]",
            f"[blue]{format_duration(summary.total_net_ms)} net[/blue]",
            f"[dim]{format_duration(summary.total_break_ms)} breaks[/dim]",
            f"[yellow]{format_duration(summary.total_overtime_ms)} overtime[/yellow]",
            f"avg {format_duration(summary.average_net_ms)}",
        ]
        if summary.earnings is not None:
            lines.append(f"[green]{format_currency(summary.earnings, summary.currency)}[/green]")
        self.console.print(Panel(" • ".join(lines), border_style="green", title=title))

    def show_sync_result(self, result: SyncResult) -> None:
        if result.success:
            self.console.print(
                f"✅ [green bold]{result.duration_ms}ms[/green bold] • "
                f"[cyan]{result.direction}[/cyan] • {result.message}"
            )
        else:
            self.show_error(result.message)

    def show_dict(self, title: str, data: Dict[str, Any]) -> None:
        table = Table(show_header=False, box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            table.add_row(str(key), str(value))
        self.console.print(Panel(table, title=title, border_style="blue"))

    def validate_config(self, errors: List[str]) -> bool:
        """Show configuration validation results."""
        if errors:
            self.console.print("❌ [red bold]Configuration Error[/red bold]")
            for error in errors:
                self.console.print(f"   • {error}", style="red")
            return False
        return True

    def show_success(self, message: str) -> None:
        self.console.print(f"✅ [green]{message}[/green]")

    def show_error(self, error: str) -> None:
        """Show error message."""
        self.console.print(f"❌ [red bold]Error:[/red bold] {error}")

    def show_warning(self, message: str) -> None:
        """Show warning message."""
        self.console.print(f"⚠️  [yellow]{message}[/yellow]")

    def ask_secret(self, message: str) -> str:
        return self.console.input(f"🔒 {message}: ", password=True)

    def ask_confirmation(self, message: str) -> bool:
        """Ask for user confirmation."""
        response = self.console.input(f"❓ {message} [y/N]: ")
        return response.lower().startswith("y")

    @contextmanager
    def progress_spinner(self, description: str):
        """Context manager for showing a spinner with description."""
        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            console=self.console,
            transient=True,
        ) as progress:
            task = progress.add_task(description, total=None)
            try:
                yield progress
            finally:
                progress.remove_task(task)
