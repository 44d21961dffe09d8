"""Tests for the sync journal, metrics export and health checks."""

import json
from unittest.mock import Mock

from shifttracker.domain.models import Snapshot, SyncResult
from shifttracker.monitoring.health_check import HealthChecker
from shifttracker.monitoring.metrics_exporter import MetricsExporter
from shifttracker.sync.journal import SyncJournal
from shifttracker.utils.logging import StructuredLogger, short_room

ROOM = "a" * 64


class TestSyncJournal:
    """Test the SQLite operation journal."""

    def test_record_and_stats(self, tmp_path):
        journal = SyncJournal(str(tmp_path / "journal.db"))
        journal.record(SyncResult("push", True, ROOM, "push", "ok", 120))
        journal.record(SyncResult("pull", False, ROOM, "none", "offline", 80))

        entries = journal.get_last(10)
        assert [e["operation"] for e in entries] == ["pull", "push"]
        assert entries[0]["success"] is False
        assert entries[0]["room"] == "aaaaaaaa"

        stats = journal.get_stats()
        assert stats["total"] == 2
        assert stats["successful"] == 1
        assert stats["failed"] == 1
        assert stats["pushes"] == 1
        assert stats["pulls"] == 1
        assert stats["avg_duration_ms"] == 100

    def test_empty_stats(self, tmp_path):
        stats = SyncJournal(str(tmp_path / "journal.db")).get_stats()
        assert stats["total"] == 0

    def test_clear_old_records_keeps_recent(self, tmp_path):
        journal = SyncJournal(str(tmp_path / "journal.db"))
        journal.record(SyncResult("push", True, ROOM))
        journal.clear_old_records(days=90)
        assert len(journal.get_last()) == 1


class TestStructuredLogger:
    """Test machine-readable sync logs."""

    def test_completed_operation_written_as_jsonl(self, tmp_path):
        logger = StructuredLogger(str(tmp_path / "logs"))
        logger.log_sync_complete(SyncResult("push", False, ROOM, "none", "offline"), error="offline")

        line = (tmp_path / "logs" / "sync.jsonl").read_text().strip()
        entry = json.loads(line)
        assert entry["operation"] == "push"
        assert entry["status"] == "failure"
        assert entry["error"] == "offline"
        assert entry["room"] == "aaaaaaaa"
        assert ROOM not in line

    def test_short_room(self):
        assert short_room(ROOM) == "aaaaaaaa"
        assert short_room("") == ""


class TestMetricsExporter:
    """Test Prometheus textfile output."""

    def test_sync_metrics_file(self, tmp_path):
        exporter = MetricsExporter(str(tmp_path / "metrics"))
        snapshot = Snapshot(schema_version=2, created_at=0, updated_at=0)

        exporter.export_sync_metrics(SyncResult("push", True, ROOM, "push", "ok", 250), snapshot)

        text = exporter.metrics_file.read_text()
        assert "shifttracker_sync_success 1.0" in text
        assert "shifttracker_sync_duration_seconds 0.25" in text
        assert "shifttracker_history_records_total 0.0" in text

    def test_health_metrics_file(self, tmp_path):
        exporter = MetricsExporter(str(tmp_path / "metrics"))
        exporter.export_health_metrics(False)
        assert "shifttracker_remote_healthy 0.0" in exporter.health_file.read_text()


class TestHealthChecker:
    """Test remote health reporting."""

    def test_local_only_is_healthy(self):
        status = HealthChecker(None).check_all()
        assert status["remote"]["status"] == "disabled"
        assert status["overall"]["status"] == "healthy"

    def test_remote_failure_is_degraded(self):
        remote = Mock()
        remote.test_connection.return_value = False
        exporter = Mock()

        status = HealthChecker(remote, exporter).check_all()

        assert status["remote"]["status"] == "unhealthy"
        assert status["overall"]["status"] == "degraded"
        exporter.export_health_metrics.assert_called_once_with(False)

    def test_remote_ok(self):
        remote = Mock()
        remote.test_connection.return_value = True
        assert HealthChecker(remote).check_all()["remote"]["status"] == "healthy"
