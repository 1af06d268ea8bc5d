"""Health check endpoints."""
from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness: the connection service is wired and its store is readable."""
    service = current_app.config.get("CONNECTION_SERVICE")
    if service is None:
        return jsonify({"status": "not ready", "reason": "connection service not configured"}), 503
    try:
        count = len(service.repository.list())
    except Exception as exc:
        current_app.logger.error(f"Readiness check failed: {exc}", exc_info=True)
        return jsonify({"status": "not ready", "reason": "connection store unavailable"}), 503
    return jsonify({"status": "ready", "connections": count}), 200
