"""Flask JSON API exposing the tracker to a UI layer."""

import logging
from typing import Any, Dict

from flask import Flask, Response, jsonify, request

from ..domain.models import BreakRange
from ..errors import StateTransitionError, TransportError, ValidationError
from ..reporting import filter_by_range, filter_by_tag, to_csv
from ..tracker import ShiftTracker
from ..utils.tags import unique_tags
from ..utils.time_math import live_working_ms

logger = logging.getLogger(__name__)

# Preference keys accepted from clients (camelCase) -> attribute names
PREF_FIELDS = {
    "hourFormat": "hour_format",
    "theme": "theme",
    "targetMinutes": "target_minutes",
    "hourlyRate": "hourly_rate",
    "currency": "currency",
    "autoSync": "auto_sync",
    "syncCode": "sync_code",
}


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a timestamp in milliseconds")
    return int(value)


def create_app(tracker: ShiftTracker) -> Flask:
    """Create Flask application.

    Args:
        tracker: Started tracker instance

    Returns:
        Flask application
    """
    app = Flask(__name__)
    app.config["TRACKER"] = tracker

    @app.route("/api/snapshot", methods=["GET"])
    def get_snapshot() -> Any:
        """Get the full snapshot."""
        return jsonify(tracker.snapshot.to_dict())

    @app.route("/api/watch", methods=["GET"])
    def get_watch() -> Any:
        """Get stopwatch state with a live working-time preview."""
        watch = tracker.snapshot.watch
        return jsonify(
            {
                **watch.to_dict(),
                "workingMs": live_working_ms(watch, tracker.stopwatch.clock()),
            }
        )

    @app.route("/api/watch/<action>", methods=["POST"])
    def watch_action(action: str) -> Any:
        """Apply a stopwatch transition."""
        stopwatch = tracker.stopwatch
        if action == "start":
            snapshot = stopwatch.start()
        elif action == "break":
            snapshot = stopwatch.begin_break()
        elif action == "resume":
            snapshot = stopwatch.end_break()
        elif action == "discard":
            snapshot = stopwatch.discard()
        elif action == "finish":
            data = _json_body()
            record = stopwatch.finish(note=data.get("note", ""), tags=data.get("tags", ()))
            return jsonify({"record": record.to_dict()}), 201
        else:
            return jsonify({"error": f"Unknown action: {action}"}), 404
        return jsonify({"watch": snapshot.watch.to_dict()})

    @app.route("/api/manual", methods=["POST"])
    def add_manual() -> Any:
        """Add a backdated shift."""
        data = _json_body()
        breaks = None
        if "breaks" in data:
            try:
                breaks = [BreakRange.from_dict(b) for b in data["breaks"]]
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"Invalid breaks: {e}") from e
        record = tracker.stopwatch.add_manual_shift(
            _require_int(data, "startMs"),
            _require_int(data, "endMs"),
            breaks=breaks,
            note=data.get("note", ""),
            tags=data.get("tags", ()),
        )
        return jsonify({"record": record.to_dict()}), 201

    @app.route("/api/history", methods=["GET"])
    def get_history() -> Any:
        """Get history records, optionally filtered by tag and start time range."""
        records = filter_by_tag(tracker.snapshot.history, request.args.get("tag"))
        records = filter_by_range(
            records,
            start_ms=request.args.get("from", type=int),
            end_ms=request.args.get("to", type=int),
        )
        return jsonify({"records": [r.to_dict() for r in records]})

    @app.route("/api/tags", methods=["GET"])
    def get_tags() -> Any:
        return jsonify({"tags": unique_tags(r.tags for r in tracker.snapshot.history)})

    @app.route("/api/history/<record_id>", methods=["DELETE"])
    def delete_history(record_id: str) -> Any:
        tracker.stopwatch.delete_record(record_id)
        return jsonify({"success": True})

    @app.route("/api/report", methods=["GET"])
    def get_report() -> Any:
        """Get aggregate statistics."""
        summary = tracker.report(request.args.get("tag"))
        return jsonify(
            {
                "totalShifts": summary.total_shifts,
                "totalNetMs": summary.total_net_ms,
                "totalBreakMs": summary.total_break_ms,
                "totalHours": summary.total_hours,
                "averageNetMs": summary.average_net_ms,
                "totalOvertimeMs": summary.total_overtime_ms,
                "earnings": summary.earnings,
                "currency": summary.currency,
            }
        )

    @app.route("/api/export.csv", methods=["GET"])
    def export_csv() -> Any:
        snapshot = tracker.snapshot
        records = filter_by_tag(snapshot.history, request.args.get("tag"))
        return Response(
            to_csv(records, snapshot.prefs),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=shifts.csv"},
        )

    @app.route("/api/prefs", methods=["PATCH"])
    def patch_prefs() -> Any:
        """Update preferences."""
        data = _json_body()
        unknown = set(data) - set(PREF_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown preference(s): {', '.join(sorted(unknown))}")
        snapshot = tracker.update_prefs(**{PREF_FIELDS[k]: v for k, v in data.items()})
        return jsonify({"prefs": snapshot.prefs.to_dict()})

    @app.route("/api/lock", methods=["GET"])
    def get_lock() -> Any:
        return jsonify({"enabled": tracker.lock.is_lock_enabled()})

    @app.route("/api/lock", methods=["POST"])
    def set_lock() -> Any:
        """Set or change the passcode (confirmation required)."""
        data = _json_body()
        tracker.lock.change_passcode(str(data.get("code", "")), str(data.get("confirmation", "")))
        return jsonify({"enabled": True})

    @app.route("/api/lock/verify", methods=["POST"])
    def verify_lock() -> Any:
        data = _json_body()
        return jsonify({"ok": tracker.lock.verify_passcode(str(data.get("code", "")))})

    @app.route("/api/lock", methods=["DELETE"])
    def disable_lock() -> Any:
        tracker.lock.disable_lock()
        return jsonify({"enabled": False})

    @app.route("/api/sync/status", methods=["GET"])
    def sync_status() -> Any:
        return jsonify(tracker.sync.status())

    @app.route("/api/sync/pull", methods=["POST"])
    def sync_pull() -> Any:
        """Pull the room's snapshot; apply it when ``apply`` is true."""
        data = _json_body()
        code = data.get("code") or tracker.snapshot.prefs.sync_code
        remote = tracker.sync.pull(code)
        applied = bool(data.get("apply")) and tracker.sync.apply_remote(remote)
        return jsonify({"snapshot": remote.to_dict() if remote else None, "applied": applied})

    @app.route("/api/sync/push", methods=["POST"])
    def sync_push() -> Any:
        data = _json_body()
        code = data.get("code") or tracker.snapshot.prefs.sync_code
        tracker.sync.push(code)
        return jsonify({"success": True, "remoteConfigured": tracker.sync.available})

    @app.route("/api/sync/now", methods=["POST"])
    def sync_now() -> Any:
        """Trigger immediate synchronization."""
        data = _json_body()
        result = tracker.sync.sync_now(data.get("code"))
        return jsonify(
            {
                "success": result.success,
                "direction": result.direction,
                "message": result.message,
                "durationMs": result.duration_ms,
            }
        )

    @app.route("/api/sync/journal", methods=["GET"])
    def sync_journal() -> Any:
        limit = request.args.get("limit", 50, type=int)
        return jsonify(
            {"entries": tracker.journal.get_last(limit), "stats": tracker.journal.get_stats()}
        )

    @app.route("/api/health", methods=["GET"])
    def health() -> Any:
        return jsonify(tracker.health_checker.check_all())

    @app.errorhandler(ValidationError)
    def validation_error(error: ValidationError) -> Any:
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(StateTransitionError)
    def transition_error(error: StateTransitionError) -> Any:
        return jsonify({"error": str(error), "status": error.status}), 409

    @app.errorhandler(TransportError)
    def transport_error(error: TransportError) -> Any:
        logger.error(f"Remote request failed: {error}")
        return jsonify({"error": f"Remote sync unavailable: {error}"}), 502

    @app.errorhandler(404)
    def not_found(error: Exception) -> Any:
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error: Exception) -> Any:
        """Handle 500 errors."""
        logger.error(f"Internal server error: {error}")
        return jsonify({"error": "Internal server error"}), 500

    return app
