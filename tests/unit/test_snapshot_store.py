"""Tests for the snapshot store and its key-value backend."""

import dataclasses
import json
from unittest.mock import Mock

import pytest

from shifttracker.domain.models import Preferences, WatchStatus
from shifttracker.errors import StorageUnavailable
from shifttracker.storage.kv import SNAPSHOT_KEY
from shifttracker.storage.migrations import CURRENT_SCHEMA_VERSION
from shifttracker.storage.snapshot_store import ORIGIN_LOCAL, ORIGIN_REMOTE, SnapshotStore


class TestSqliteKeyValueStore:
    """Test durable key-value records."""

    def test_set_get_replace_delete(self, kv):
        assert kv.get("a") is None
        kv.set("a", "1")
        kv.set("a", "2")
        assert kv.get("a") == "2"
        assert kv.items() == {"a": "2"}
        assert kv.delete("a") is True
        assert kv.delete("a") is False


class TestSnapshotStore:
    """Test load, save and mutation of the canonical snapshot."""

    def test_load_absent_gives_default(self, store, clock):
        snapshot = store.load()
        assert snapshot.schema_version == CURRENT_SCHEMA_VERSION
        assert snapshot.history == ()
        assert snapshot.watch.status == WatchStatus.IDLE
        assert snapshot.created_at == clock.now

    def test_load_unparsable_gives_default(self, kv, store):
        kv.set(SNAPSHOT_KEY, "{not json")
        assert store.load().history == ()

    def test_save_then_load_round_trip(self, kv, store, clock):
        snapshot = dataclasses.replace(store.load(), prefs=Preferences(theme="light"))
        clock.advance(5000)
        saved = store.save(snapshot)

        assert saved.updated_at == clock.now
        reloaded = SnapshotStore(kv, clock=clock).load()
        assert reloaded == saved
        assert reloaded.prefs.theme == "light"

    def test_load_migrates_legacy_record(self, kv, store):
        kv.set(SNAPSHOT_KEY, json.dumps({"history": [{"startMs": 0, "endMs": 60_000}]}))
        snapshot = store.load()
        assert snapshot.schema_version == CURRENT_SCHEMA_VERSION
        assert snapshot.history[0].net_ms == 60_000

    @pytest.mark.parametrize("overrides", [{"prefs": "x"}, {"watch": []}])
    def test_load_repairs_wrong_shapes_and_keeps_history(self, kv, store, clock, overrides):
        record = {"id": "a", "startMs": 0, "endMs": 60_000, "tags": 5}
        raw = {
            "schemaVersion": CURRENT_SCHEMA_VERSION,
            "createdAt": 1,
            "updatedAt": 2,
            "watch": {"status": "IDLE", "breaks": []},
            "manual": {"breaks": []},
            "history": [record],
            "prefs": {},
            **overrides,
        }
        kv.set(SNAPSHOT_KEY, json.dumps(raw))

        snapshot = store.load()

        assert [r.id for r in snapshot.history] == ["a"]
        assert snapshot.watch.status == WatchStatus.IDLE
        assert snapshot.updated_at == 2

    def test_save_failure_swallowed(self, clock):
        """A failing write keeps the in-memory snapshot authoritative."""
        kv = Mock()
        kv.get.return_value = None
        kv.set.side_effect = StorageUnavailable("quota exceeded")
        store = SnapshotStore(kv, clock=clock)

        saved = store.save(store.default_snapshot())

        assert store.last_save_ok is False
        assert store.current is saved

    def test_load_failure_gives_default(self, clock):
        kv = Mock()
        kv.get.side_effect = StorageUnavailable("disabled")
        assert SnapshotStore(kv, clock=clock).load().history == ()

    def test_update_notifies_local_origin(self, store):
        listener = Mock()
        store.add_listener(listener)

        saved = store.update(lambda s: dataclasses.replace(s, prefs=Preferences(theme="light")))

        listener.assert_called_once_with(saved, ORIGIN_LOCAL)

    def test_failed_mutation_stores_nothing(self, store):
        listener = Mock()
        store.add_listener(listener)
        before = store.current

        def boom(snapshot):
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            store.update(boom)

        assert store.current is before
        listener.assert_not_called()

    def test_replace_keeps_remote_updated_at(self, store, clock):
        listener = Mock()
        store.add_listener(listener)
        remote = dataclasses.replace(store.default_snapshot(), updated_at=42)

        saved = store.replace(remote)

        assert saved.updated_at == 42
        listener.assert_called_once_with(saved, ORIGIN_REMOTE)

    def test_remove_listener(self, store):
        listener = Mock()
        remove = store.add_listener(listener)
        remove()
        store.update(lambda s: s)
        listener.assert_not_called()

    def test_listener_error_does_not_break_update(self, store):
        store.add_listener(Mock(side_effect=RuntimeError("ui gone")))
        store.update(lambda s: s)
