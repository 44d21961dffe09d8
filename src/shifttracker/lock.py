"""Local passcode lock guarding application entry.

Independent of the sync passcode. Only a salted SHA-256 hash is stored;
the raw passcode is never persisted or transmitted. The salt is generated
once per device and reused.
"""

import hashlib
import hmac
import json
import logging
import re
import secrets

from .domain.models import LockState
from .errors import ValidationError
from .storage.kv import LOCK_KEY, SALT_KEY, SqliteKeyValueStore

logger = logging.getLogger(__name__)

PASSCODE_PATTERN = re.compile(r"\d{4,8}", re.ASCII)
SALT_BYTES = 16


class AccessLock:
    """Passcode lock persisted in the local key-value record."""

    def __init__(self, kv: SqliteKeyValueStore) -> None:
        self.kv = kv

    def _salt(self) -> str:
        """Return the device salt, creating and persisting it on first use."""
        salt = self.kv.get(SALT_KEY)
        if not salt:
            salt = secrets.token_hex(SALT_BYTES)
            self.kv.set(SALT_KEY, salt)
            logger.debug("Generated new passcode salt")
        return salt

    def _hash(self, code: str) -> str:
        return hashlib.sha256((self._salt() + code).encode("utf-8")).hexdigest()

    def load_state(self) -> LockState:
        raw = self.kv.get(LOCK_KEY)
        if not raw:
            return LockState()
        try:
            return LockState.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable lock state: {e}")
            return LockState()

    def _save_state(self, state: LockState) -> None:
        self.kv.set(LOCK_KEY, json.dumps(state.to_dict()))

    def set_passcode(self, code: str) -> None:
        """Enable the lock with a new passcode.

        Args:
            code: 4 to 8 digits

        Raises:
            ValidationError: If the passcode format is invalid. The existing
                lock state is left untouched.
        """
        if not isinstance(code, str) or not PASSCODE_PATTERN.fullmatch(code):
            raise ValidationError("Passcode must be 4-8 digits.")
        self._save_state(LockState(hash=self._hash(code), enabled=True))
        logger.info("Passcode lock enabled")

    def change_passcode(self, code: str, confirmation: str) -> None:
        """Set a new passcode after checking it was typed twice identically."""
        if code != confirmation:
            raise ValidationError("Passcodes do not match.")
        self.set_passcode(code)

    def verify_passcode(self, code: str) -> bool:
        """Check ``code`` against the stored hash.

        Returns:
            True when the lock is disabled, otherwise whether the code matches
        """
        state = self.load_state()
        if not (state.enabled and state.hash):
            return True
        return hmac.compare_digest(self._hash(code or ""), state.hash)

    def disable_lock(self) -> None:
        """Clear the stored hash and disable the lock. Idempotent."""
        self._save_state(LockState(hash="", enabled=False))
        logger.info("Passcode lock disabled")

    def is_lock_enabled(self) -> bool:
        state = self.load_state()
        return state.enabled and bool(state.hash)
