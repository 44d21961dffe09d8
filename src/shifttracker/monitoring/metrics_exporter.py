"""Prometheus metrics exporter for monitoring."""

import logging
from datetime import datetime
from pathlib import Path

from prometheus_client import CollectorRegistry, Gauge, Info, write_to_textfile

from .. import __version__
from ..domain.models import Snapshot, SyncResult
from ..utils.time_math import ms_to_hours

logger = logging.getLogger(__name__)


class MetricsExporter:
    """Export sync and tracking metrics to Prometheus textfile format."""

    def __init__(self, metrics_dir: str = "./metrics") -> None:
        self.metrics_dir = Path(metrics_dir)
        self.metrics_dir.mkdir(parents=True, exist_ok=True)
        self.metrics_file = self.metrics_dir / "shifttracker.prom"
        self.health_file = self.metrics_dir / "health.prom"

    def export_sync_metrics(self, result: SyncResult, snapshot: Snapshot) -> None:
        """Export the last sync result together with ledger totals."""
        registry = CollectorRegistry()

        Gauge(
            "shifttracker_sync_duration_seconds",
            "Duration of last sync operation in seconds",
            registry=registry,
        ).set(result.duration_ms / 1000.0)

        Gauge(
            "shifttracker_sync_success",
            "Whether last sync was successful (1=success, 0=failure)",
            registry=registry,
        ).set(1 if result.success else 0)

        Gauge(
            "shifttracker_last_sync_timestamp",
            "Timestamp of last sync operation",
            registry=registry,
        ).set(datetime.now().timestamp())

        Gauge(
            "shifttracker_history_records_total",
            "Number of completed shifts in history",
            registry=registry,
        ).set(len(snapshot.history))

        Gauge(
            "shifttracker_net_hours_total",
            "Total net working hours in history",
            registry=registry,
        ).set(ms_to_hours(sum(r.net_ms for r in snapshot.history)))

        Info("shifttracker_build_info", "Build information", registry=registry).info(
            {
                "version": __version__,
                "last_operation": result.operation,
                "direction": result.direction,
            }
        )

        try:
            write_to_textfile(str(self.metrics_file), registry)
        except OSError as e:
            logger.warning(f"Failed to write metrics: {e}")

    def export_health_metrics(self, remote_healthy: bool) -> None:
        """Export health check metrics."""
        registry = CollectorRegistry()

        Gauge(
            "shifttracker_remote_healthy",
            "Remote document store health status (1=healthy, 0=unhealthy)",
            registry=registry,
        ).set(1 if remote_healthy else 0)

        try:
            write_to_textfile(str(self.health_file), registry)
        except OSError as e:
            logger.warning(f"Failed to write health metrics: {e}")
