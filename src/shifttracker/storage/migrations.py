"""Snapshot schema migrations.

Each step upgrades a raw (JSON-compatible) record across one version gap.
Steps are pure: they copy what they change and never mutate their input.
Every step is total over any dict input and idempotent, so re-running a
step on already upgraded data is harmless.
"""

import copy
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..utils.tags import parse_tags

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 2

DEFAULT_TARGET_MINUTES = 420

RawSnapshot = Dict[str, Any]
MigrationStep = Callable[[RawSnapshot, int], RawSnapshot]


def default_raw_snapshot(now: int) -> RawSnapshot:
    """Fresh record at the current schema version."""
    return {
        "schemaVersion": CURRENT_SCHEMA_VERSION,
        "createdAt": now,
        "updatedAt": now,
        "watch": _default_watch(),
        "manual": {"breaks": []},
        "history": [],
        "prefs": _default_prefs(),
    }


def _default_watch() -> Dict[str, Any]:
    return {
        "status": "IDLE",
        "startTimeMs": None,
        "endTimeMs": None,
        "breaks": [],
        "targetMinutes": DEFAULT_TARGET_MINUTES,
    }


def _default_prefs() -> Dict[str, Any]:
    return {
        "hourFormat": 24,
        "theme": "dark",
        "targetMinutes": DEFAULT_TARGET_MINUTES,
        "currency": "USD",
        "autoSync": False,
        "syncCode": "",
    }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _clean_breaks(value: Any, closed: bool = False) -> List[Dict[str, Any]]:
    """Keep break entries with a numeric start and a numeric (or, unless ``closed``, absent) end."""
    if not isinstance(value, list):
        return []
    kept = []
    for b in value:
        if not isinstance(b, dict) or not _is_number(b.get("startMs")):
            continue
        end_ms = b.get("endMs")
        if _is_number(end_ms) or (end_ms is None and not closed):
            kept.append(b)
    return kept


def _repair_watch(watch: Any) -> Dict[str, Any]:
    if not isinstance(watch, dict):
        return _default_watch()
    merged = _default_watch()
    merged.pop("targetMinutes")
    merged.update(watch)
    if merged["status"] not in ("IDLE", "WORKING", "ON_BREAK"):
        merged["status"] = "IDLE"
    merged["breaks"] = _clean_breaks(merged["breaks"])
    for key in ("startTimeMs", "endTimeMs"):
        if merged[key] is not None and not _is_number(merged[key]):
            merged[key] = None
    if "targetMinutes" in merged and not _is_number(merged["targetMinutes"]):
        del merged["targetMinutes"]
    return merged


def _repair_manual(manual: Any) -> Dict[str, Any]:
    if not isinstance(manual, dict):
        return {"breaks": []}
    return {**manual, "breaks": _clean_breaks(manual.get("breaks"))}


def _repair_prefs(prefs: Any) -> Dict[str, Any]:
    out = dict(prefs) if isinstance(prefs, dict) else _default_prefs()
    if not _is_number(out.get("targetMinutes")) or out["targetMinutes"] <= 0:
        out["targetMinutes"] = DEFAULT_TARGET_MINUTES
    if not isinstance(out.get("autoSync"), bool):
        out["autoSync"] = False
    if not isinstance(out.get("syncCode"), str):
        out["syncCode"] = ""
    if out.get("hourFormat") not in (12, 24):
        out["hourFormat"] = 24
    if not isinstance(out.get("theme"), str):
        out["theme"] = "dark"
    if not isinstance(out.get("currency"), str) or not out["currency"]:
        out["currency"] = "USD"
    if "hourlyRate" in out and out["hourlyRate"] is not None and not _is_number(out["hourlyRate"]):
        del out["hourlyRate"]
    return out


def _to_v1(raw: RawSnapshot, now: int) -> RawSnapshot:
    """Fill every missing top-level substructure with defaults."""
    out = dict(raw)

    if not _is_number(out.get("createdAt")):
        out["createdAt"] = now
    if not _is_number(out.get("updatedAt")):
        out["updatedAt"] = out["createdAt"]

    out["watch"] = _repair_watch(out.get("watch"))
    out["manual"] = _repair_manual(out.get("manual"))

    if not isinstance(out.get("history"), list):
        out["history"] = []

    if not isinstance(out.get("prefs"), dict):
        out["prefs"] = _default_prefs()

    return out


def _backfill_record(record: Any) -> Optional[Dict[str, Any]]:
    """Repair one history record, or None if it has no usable start and end."""
    if (
        not isinstance(record, dict)
        or not _is_number(record.get("startMs"))
        or not _is_number(record.get("endMs"))
    ):
        return None
    rec = dict(record)
    breaks = _clean_breaks(rec.get("breaks"), closed=True)
    rec["breaks"] = breaks
    if not _is_number(rec.get("breakMs")):
        rec["breakMs"] = sum(b["endMs"] - b["startMs"] for b in breaks)
    if not _is_number(rec.get("netMs")):
        rec["netMs"] = max(0, (rec["endMs"] - rec["startMs"]) - rec["breakMs"])
    if rec.get("id") in (None, ""):
        rec["id"] = str(rec["startMs"])
    else:
        rec["id"] = str(rec["id"])
    if not isinstance(rec.get("note"), str):
        rec["note"] = ""
    tags = rec.get("tags")
    if isinstance(tags, (list, tuple)):
        tags = [t for t in tags if isinstance(t, str)]
    elif not isinstance(tags, str):
        tags = []
    rec["tags"] = list(parse_tags(tags))
    return rec


def _to_v2(raw: RawSnapshot, now: int) -> RawSnapshot:
    """Backfill preference fields and per-record note, tags, id and totals."""
    out = dict(raw)
    out["prefs"] = _repair_prefs(out.get("prefs"))

    history: List[Dict[str, Any]] = []
    for record in out.get("history") or []:
        rec = _backfill_record(record)
        if rec is None:
            logger.warning(f"Skipping malformed history record: {record!r}")
            continue
        history.append(rec)
    out["history"] = history

    return out


MIGRATIONS: Tuple[Tuple[int, MigrationStep], ...] = (
    (1, _to_v1),
    (2, _to_v2),
)


def _is_current_shape(raw: RawSnapshot) -> bool:
    """Whether every substructure is already in its repaired form."""
    history = raw.get("history")
    return (
        _is_number(raw.get("createdAt"))
        and _is_number(raw.get("updatedAt"))
        and _repair_watch(raw.get("watch")) == raw.get("watch")
        and _repair_manual(raw.get("manual")) == raw.get("manual")
        and _repair_prefs(raw.get("prefs")) == raw.get("prefs")
        and isinstance(history, list)
        and all(_backfill_record(r) == r for r in history)
    )


def _effective_version(raw: RawSnapshot) -> int:
    """Schema version to migrate from.

    Records with no usable version, a version from the future, or any
    substructure of the wrong shape are treated as version 0 and run
    through every step.
    """
    version = raw.get("schemaVersion")
    if not isinstance(version, int) or isinstance(version, bool):
        return 0
    if version < 0 or version > CURRENT_SCHEMA_VERSION:
        return 0
    if not _is_current_shape(raw):
        return 0
    return version


def migrate_raw(raw: Any, now: int) -> RawSnapshot:
    """Upgrade a raw record to the current schema.

    Args:
        raw: Decoded record of any older shape
        now: Timestamp used for missing creation/update times

    Returns:
        Record at ``CURRENT_SCHEMA_VERSION`` with every substructure present
    """
    if not isinstance(raw, dict):
        return default_raw_snapshot(now)

    out = copy.deepcopy(raw)
    version = _effective_version(out)
    for target, step in MIGRATIONS:
        if version < target:
            out = step(out, now)
            logger.debug(f"Migrated snapshot schema to v{target}")

    out["schemaVersion"] = CURRENT_SCHEMA_VERSION
    return out
