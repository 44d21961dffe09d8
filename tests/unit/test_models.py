"""Tests for domain models and tag normalization."""

from shifttracker.domain.models import (
    BreakRange,
    HistoryRecord,
    Preferences,
    Snapshot,
    WatchState,
    WatchStatus,
)
from shifttracker.utils.tags import parse_tags, unique_tags


class TestParseTags:
    """Test tag normalization."""

    def test_comma_string(self):
        assert parse_tags(" Client-A, night ,,CLIENT-a") == ("client-a", "night")

    def test_iterable(self):
        assert parse_tags(["Night", "weekend, night"]) == ("night", "weekend")

    def test_empty(self):
        assert parse_tags("") == ()

    def test_unique_tags(self):
        assert unique_tags([("b", "a"), ("a",), ()]) == ["a", "b"]


class TestSnapshotSerialization:
    """Test camelCase shape of serialized snapshots."""

    def test_to_dict_keys(self):
        snapshot = Snapshot(schema_version=2, created_at=1, updated_at=2)
        data = snapshot.to_dict()
        assert set(data) == {
            "schemaVersion",
            "createdAt",
            "updatedAt",
            "watch",
            "manual",
            "history",
            "prefs",
        }
        assert data["watch"]["status"] == "IDLE"

    def test_unknown_fields_preserved(self):
        """Fields written by other clients of the room survive a round trip."""
        record = HistoryRecord("r1", 0, 10_000, (BreakRange(1000, 4000),), 3000, 7000, "n", ("a",))
        snapshot = Snapshot(
            schema_version=2,
            created_at=1,
            updated_at=2,
            watch=WatchState(status=WatchStatus.WORKING, start_time_ms=5),
            history=(record,),
            prefs=Preferences(extra={"language": "de"}),
            extra={"deviceName": "tablet"},
        )
        restored = Snapshot.from_dict(snapshot.to_dict())
        assert restored == snapshot
        assert restored.to_dict()["prefs"]["language"] == "de"
        assert restored.to_dict()["deviceName"] == "tablet"

    def test_unknown_status_falls_back_to_idle(self):
        assert WatchState.from_dict({"status": "PAUSED"}).status == WatchStatus.IDLE

    def test_open_break(self):
        watch = WatchState(breaks=(BreakRange(1, 2), BreakRange(3)))
        assert watch.open_break == BreakRange(3)

    def test_find_record(self):
        record = HistoryRecord("r1", 0, 10, (), 0, 10)
        snapshot = Snapshot(schema_version=2, created_at=1, updated_at=2, history=(record,))
        assert snapshot.find_record("r1") is record
        assert snapshot.find_record("missing") is None
