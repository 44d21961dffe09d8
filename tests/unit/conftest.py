"""Shared fixtures for unit tests."""

import copy
from typing import Any, Dict, Iterable, Optional

import pytest

from shifttracker.errors import TransportError
from shifttracker.remote.firestore_client import RemoteDocument
from shifttracker.storage.kv import SqliteKeyValueStore
from shifttracker.storage.snapshot_store import SnapshotStore
from shifttracker.stopwatch import Stopwatch


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeDocumentStore:
    """In-memory stand-in for the Firestore client."""

    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.update_times: Dict[str, str] = {}
        self.server_time = 1_800_000_000_000
        self.fail_with: Optional[TransportError] = None
        self.gets = 0
        self.upserts = 0

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_document(self, doc_id: str) -> Optional[RemoteDocument]:
        self._check()
        self.gets += 1
        if doc_id not in self.documents:
            return None
        return RemoteDocument(
            doc_id=doc_id,
            data=copy.deepcopy(self.documents[doc_id]),
            update_time=self.update_times[doc_id],
        )

    def upsert_document(
        self,
        doc_id: str,
        fields: Dict[str, Any],
        server_timestamp_fields: Iterable[str] = (),
    ) -> str:
        self._check()
        self.upserts += 1
        self.server_time += 1
        document = self.documents.setdefault(doc_id, {})
        document.update(copy.deepcopy(fields))
        for name in server_timestamp_fields:
            document[name] = self.server_time
        self.update_times[doc_id] = str(self.server_time)
        return str(self.server_time)

    def delete(self, doc_id: str) -> None:
        self.documents.pop(doc_id, None)
        self.update_times.pop(doc_id, None)

    def test_connection(self) -> bool:
        return self.fail_with is None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv(tmp_path) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(str(tmp_path / "data" / "test.db"))


@pytest.fixture
def store(kv, clock) -> SnapshotStore:
    return SnapshotStore(kv, clock=clock)


@pytest.fixture
def stopwatch(store, clock) -> Stopwatch:
    return Stopwatch(store, clock=clock)


@pytest.fixture
def remote() -> FakeDocumentStore:
    return FakeDocumentStore()
