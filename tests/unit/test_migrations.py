"""Tests for snapshot schema migration."""

import pytest

from shifttracker.domain.models import Snapshot, WatchStatus
from shifttracker.storage.migrations import CURRENT_SCHEMA_VERSION, migrate_raw

NOW = 1_700_000_000_000


class TestMigrateRaw:
    """Test upgrading older-shaped records."""

    def test_non_dict_gives_default(self):
        out = migrate_raw(["not", "a", "snapshot"], NOW)
        assert out["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert out["history"] == []
        assert out["watch"]["status"] == "IDLE"

    def test_empty_record_filled(self):
        out = migrate_raw({}, NOW)
        snapshot = Snapshot.from_dict(out)
        assert snapshot.created_at == NOW
        assert snapshot.watch.status == WatchStatus.IDLE
        assert snapshot.prefs.target_minutes == 420
        assert snapshot.prefs.auto_sync is False
        assert snapshot.prefs.sync_code == ""

    def test_legacy_record_keeps_user_data(self):
        """A v0 record without ids, tags or sync prefs keeps its history."""
        legacy = {
            "createdAt": 100,
            "updatedAt": 200,
            "history": [
                {"startMs": 0, "endMs": 10_000, "breaks": [{"startMs": 1000, "endMs": 4000}]},
            ],
            "prefs": {"hourFormat": 12, "hourlyRate": 20},
        }
        snapshot = Snapshot.from_dict(migrate_raw(legacy, NOW))

        assert snapshot.schema_version == CURRENT_SCHEMA_VERSION
        assert snapshot.created_at == 100
        assert snapshot.updated_at == 200
        assert snapshot.prefs.hour_format == 12
        assert snapshot.prefs.hourly_rate == 20
        assert snapshot.prefs.target_minutes == 420

        record = snapshot.history[0]
        assert record.id == "0"
        assert record.break_ms == 3000
        assert record.net_ms == 7000
        assert record.tags == ()
        assert record.note == ""

    def test_malformed_history_records_dropped(self):
        raw = {"history": [{"startMs": "x"}, "junk", {"startMs": 0, "endMs": 5}]}
        out = migrate_raw(raw, NOW)
        assert len(out["history"]) == 1

    def test_idempotent(self):
        legacy = {
            "watch": {"status": "WORKING", "startTimeMs": 5, "breaks": [{"startMs": 6}]},
            "history": [{"startMs": 0, "endMs": 10, "tags": "A, b"}],
            "prefs": {"theme": "light"},
        }
        once = migrate_raw(legacy, NOW)
        twice = migrate_raw(once, NOW + 1000)
        assert once == twice

    def test_input_not_mutated(self):
        raw = {"prefs": {}}
        migrate_raw(raw, NOW)
        assert raw == {"prefs": {}}

    def test_future_version_treated_as_unknown(self):
        out = migrate_raw({"schemaVersion": 99}, NOW)
        assert out["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert out["history"] == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"prefs": "x"},
            {"watch": []},
            {"manual": 5},
            {"history": {}},
            {"watch": {"status": "PAUSED", "startTimeMs": "soon", "breaks": [{"startMs": 1}, "x"]}},
            {"prefs": {"hourFormat": "12", "targetMinutes": "long", "currency": 7, "autoSync": "yes"}},
        ],
    )
    def test_current_version_with_wrong_shapes_is_repaired(self, overrides):
        raw = {**migrate_raw({}, NOW), **overrides}
        snapshot = Snapshot.from_dict(migrate_raw(raw, NOW))
        assert snapshot.schema_version == CURRENT_SCHEMA_VERSION
        assert snapshot.prefs.target_minutes == 420
        assert snapshot.prefs.hour_format == 24

    def test_bad_record_fields_repaired_in_place(self):
        raw = migrate_raw({}, NOW)
        raw["history"] = [
            {"id": "a", "startMs": 0, "endMs": 10, "tags": ["bar"]},
            {"id": "b", "startMs": 20, "endMs": 30, "tags": 5, "note": None, "breaks": 7},
        ]
        snapshot = Snapshot.from_dict(migrate_raw(raw, NOW))

        assert [r.id for r in snapshot.history] == ["a", "b"]
        assert snapshot.history[0].tags == ("bar",)
        assert snapshot.history[1].tags == ()
        assert snapshot.history[1].breaks == ()
        assert snapshot.history[1].net_ms == 10
