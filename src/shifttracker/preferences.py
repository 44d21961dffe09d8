"""Validated preference updates."""

import dataclasses
from typing import Any, Dict

from .domain.models import Preferences, Snapshot
from .errors import ValidationError

THEMES = ("dark", "light")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_prefs(prefs: Preferences) -> None:
    """Check preference values.

    Raises:
        ValidationError: On the first invalid field
    """
    if prefs.hour_format not in (12, 24):
        raise ValidationError("hourFormat must be 12 or 24")
    if prefs.theme not in THEMES:
        raise ValidationError(f"theme must be one of {', '.join(THEMES)}")
    if not _is_int(prefs.target_minutes) or prefs.target_minutes <= 0:
        raise ValidationError("targetMinutes must be positive")
    if prefs.hourly_rate is not None and (
        not isinstance(prefs.hourly_rate, (int, float)) or prefs.hourly_rate < 0
    ):
        raise ValidationError("hourlyRate must not be negative")
    if not isinstance(prefs.currency, str) or len(prefs.currency) != 3 or not prefs.currency.isalpha():
        raise ValidationError("currency must be a 3-letter ISO code")
    if not isinstance(prefs.auto_sync, bool):
        raise ValidationError("autoSync must be true or false")


def update_prefs(snapshot: Snapshot, changes: Dict[str, Any]) -> Snapshot:
    """Return ``snapshot`` with preference fields replaced.

    Args:
        snapshot: Current snapshot
        changes: Field name -> value, using ``Preferences`` attribute names

    Returns:
        Updated snapshot
    """
    known = {f.name for f in dataclasses.fields(Preferences)} - {"extra"}
    unknown = set(changes) - known
    if unknown:
        raise ValidationError(f"Unknown preference(s): {', '.join(sorted(unknown))}")

    normalized = dict(changes)
    if normalized.get("currency"):
        normalized["currency"] = str(normalized["currency"]).upper()
    if "sync_code" in normalized:
        normalized["sync_code"] = (normalized["sync_code"] or "").strip()

    prefs = dataclasses.replace(snapshot.prefs, **normalized)
    validate_prefs(prefs)
    return dataclasses.replace(snapshot, prefs=prefs)
