"""Liveness and readiness endpoints (unauthenticated)."""
from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Process is up."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Report which collaborators are wired; 503 until services are registered."""
    services = current_app.extensions.get("crm_services")
    if services is None:
        return jsonify({"ready": False}), 503
    provisioning = services.provisioning
    return jsonify({
        "ready": True,
        "directory": provisioning.directory is not None,
        "store": type(provisioning.records.store).__name__,
        "notifier": type(provisioning.notifier).__name__ if provisioning.notifier is not None else None,
    }), 200
