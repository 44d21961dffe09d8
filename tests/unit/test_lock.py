"""Tests for the local access lock."""

import json

import pytest

from shifttracker.errors import ValidationError
from shifttracker.lock import AccessLock
from shifttracker.storage.kv import LOCK_KEY, SALT_KEY, SqliteKeyValueStore


class TestAccessLock:
    """Test passcode hashing and verification."""

    def test_verify_when_disabled(self, kv):
        lock = AccessLock(kv)
        assert lock.is_lock_enabled() is False
        assert lock.verify_passcode("anything") is True

    def test_set_and_verify(self, kv):
        lock = AccessLock(kv)
        lock.set_passcode("1234")

        assert lock.is_lock_enabled() is True
        assert lock.verify_passcode("1234") is True
        for wrong in ("1235", "0234", "123", "12345", ""):
            assert lock.verify_passcode(wrong) is False

    @pytest.mark.parametrize("code", ["12ab", "123", "123456789", " 1234", "", "１２３４"])
    def test_invalid_format_leaves_state_unchanged(self, kv, code):
        lock = AccessLock(kv)
        lock.set_passcode("5678")
        before = kv.get(LOCK_KEY)

        with pytest.raises(ValidationError):
            lock.set_passcode(code)

        assert kv.get(LOCK_KEY) == before
        assert lock.verify_passcode("5678") is True

    def test_raw_passcode_never_stored(self, kv):
        AccessLock(kv).set_passcode("482913")
        assert all("482913" not in value for value in kv.items().values())

    def test_salt_generated_once(self, kv):
        lock = AccessLock(kv)
        lock.set_passcode("1234")
        salt = kv.get(SALT_KEY)
        lock.set_passcode("5678")
        AccessLock(kv).verify_passcode("5678")

        assert kv.get(SALT_KEY) == salt
        assert len(salt) == 32

    def test_hash_is_salted(self, kv, tmp_path):
        """The same passcode hashes differently on another device."""
        other = SqliteKeyValueStore(str(tmp_path / "other.db"))
        AccessLock(kv).set_passcode("1234")
        AccessLock(other).set_passcode("1234")

        assert json.loads(kv.get(LOCK_KEY))["hash"] != json.loads(other.get(LOCK_KEY))["hash"]

    def test_disable_is_idempotent(self, kv):
        lock = AccessLock(kv)
        lock.set_passcode("1234")
        lock.disable_lock()
        lock.disable_lock()

        assert lock.is_lock_enabled() is False
        assert lock.verify_passcode("0000") is True

    def test_change_passcode_requires_confirmation(self, kv):
        lock = AccessLock(kv)
        with pytest.raises(ValidationError):
            lock.change_passcode("1234", "1243")
        assert lock.is_lock_enabled() is False

        lock.change_passcode("1234", "1234")
        assert lock.verify_passcode("1234") is True

    def test_unreadable_state_treated_as_disabled(self, kv):
        kv.set(LOCK_KEY, "garbage")
        assert AccessLock(kv).is_lock_enabled() is False
