from flask import Blueprint, current_app, jsonify


itam_sync_bp = Blueprint("itam_sync", __name__)


@itam_sync_bp.route("/api/sync/status", methods=["GET"])
def api_sync_status():
    heartbeat = current_app.extensions.get("itam_sync_heartbeat")
    if heartbeat is None:
        return jsonify({"ok": False, "error": "Sync heartbeat not configured"}), 503
    return jsonify({"ok": True, **heartbeat.status()})
