"""Exception hierarchy for shifttracker."""

from typing import Optional


class ShiftTrackerError(Exception):
    """Base class for all shifttracker errors."""


class ValidationError(ShiftTrackerError):
    """Input failed validation (passcode format, shift boundaries, prefs)."""


class StateTransitionError(ShiftTrackerError):
    """Stopwatch action invoked in an incompatible state."""

    def __init__(self, action: str, status: str) -> None:
        super().__init__(f"Cannot {action} while {status}")
        self.action = action
        self.status = status


class StorageUnavailable(ShiftTrackerError):
    """Local durable storage could not be read or written."""


class RemoteUnavailable(ShiftTrackerError):
    """Remote backend is not configured or cannot be reached."""


class TransportError(ShiftTrackerError):
    """A configured remote backend rejected or failed a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
