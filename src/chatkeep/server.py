"""
Local JSON endpoints backing the browser form.

Request bodies and response shapes follow the browser tool's API routes:
camelCase inputs, `{error}` bodies with a non-2xx status on failure.
"""

from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from chatkeep.errors import (
    AuthError, CapacityError, ChatkeepError, FetchError, NetworkError, StoreError, ValidationError,
)
from chatkeep.utils.logs import report
from chatkeep.archive.session import ArchiveSession
from chatkeep.connectors.chatwork.schema import room_id

logger = report.settings(__file__)

# Most specific first; AuthError and NetworkError are FetchErrors
_STATUS = (
    (ValidationError, 400),
    (AuthError, 401),
    (CapacityError, 409),
    (NetworkError, 504),
    (FetchError, 502),
    (StoreError, 500),
)


def status_for(exc: ChatkeepError) -> int:
    """HTTP status for a surfaced error."""
    for kind, status in _STATUS:
        if isinstance(exc, kind):
            return status
    return 500


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(session: ArchiveSession, run_auto_save: bool = False) -> Flask:
    """Build the Flask app around an archive session.

    With `run_auto_save`, one scheduler pass runs at startup when a token is
    already remembered.
    """
    app = Flask(__name__)
    app.config["ARCHIVE_SESSION"] = session
    app.json.ensure_ascii = False

    @app.errorhandler(ChatkeepError)
    def _handle_error(exc: ChatkeepError):
        status = status_for(exc)
        logger.warning("%s %s -> %d %s: %s", request.method, request.path, status, type(exc).__name__, exc)
        return jsonify({"error": str(exc)}), status

    @app.errorhandler(405)
    def _method_not_allowed(_exc):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(404)
    def _not_found(_exc):
        return jsonify({"error": "Not found"}), 404

    @app.post("/api/chatwork/rooms")
    def rooms():
        token: Optional[str] = _body().get("apiToken")
        return jsonify([r.to_api() for r in session.rooms(token)])

    @app.post("/api/chatwork/messages")
    def messages():
        body = _body()
        missing = [k for k in ("apiToken", "roomId", "startDate", "endDate") if not body.get(k)]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
        result, entry = session.fetch(
            body["roomId"], body["startDate"], body["endDate"],
            token=body["apiToken"], room_name=body.get("roomName"),
        )
        payload = result.to_dict()
        payload["logId"] = entry.id
        return jsonify(payload)

    @app.post("/api/auto-save")
    def auto_save():
        outcomes = session.auto_save(_body().get("apiToken"))
        return jsonify({"outcomes": [o.to_dict() for o in outcomes]})

    @app.get("/api/auto-save/rooms")
    def watched_rooms():
        entries = session.watch_list.list()
        return jsonify({
            "rooms": [e.to_dict() for e in entries],
            "count": len(entries),
            "limit": session.watch_list.cap,
        })

    @app.post("/api/auto-save/rooms")
    def toggle_room():
        body = _body()
        enabled = session.toggle_watch(body.get("roomId"), body.get("roomName"), body.get("intervalDays"))
        return jsonify({
            "roomId": room_id(body.get("roomId")),
            "enabled": enabled,
            "count": len(session.watch_list),
            "limit": session.watch_list.cap,
        })

    @app.patch("/api/auto-save/rooms/<room>")
    def update_room(room: str):
        entry = session.set_interval(room, _body().get("intervalDays"))
        return jsonify(entry.to_dict())

    @app.get("/api/logs")
    def logs():
        return jsonify([e.to_dict() for e in session.logs.list()])

    @app.get("/api/logs/<entry_id>")
    def log_entry(entry_id: str):
        entry = session.logs.get(entry_id)
        if entry is None:
            return jsonify({"error": f"No saved log {entry_id}"}), 404
        return jsonify(entry.to_dict())

    if run_auto_save and session.state.token:
        outcomes = session.auto_save()
        logger.info("Startup auto-save: %d room(s) processed", len(outcomes))

    return app
