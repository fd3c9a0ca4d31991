"""Console user endpoints (/api/users)."""
from __future__ import annotations
from typing import Any, Optional

from flask import Blueprint, current_app, jsonify, request

from crm_console.api.decorators import get_operator, require_admin_token
from crm_console.core.errors import ValidationError

bp = Blueprint("users", __name__)


def services():
    return current_app.extensions["crm_services"]


def result(data: Any = None, message: Optional[str] = None, status: int = 200):
    """Successful result envelope: {success, message?, data?}."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _bool_field(payload: dict, name: str) -> bool:
    value = payload.get(name)
    if not isinstance(value, bool):
        raise ValidationError(f"'{name}' must be a boolean")
    return value


@bp.route("/users", methods=["GET"])
@require_admin_token
def list_users():
    """Enriched listing; optional ?q=, ?status=, ?departmentId=."""
    users = services().provisioning.list_users(
        status=request.args.get("status") or None,
        department_id=request.args.get("departmentId") or None,
        query=request.args.get("q") or None,
    )
    return result(users)


@bp.route("/users/active", methods=["GET"])
@require_admin_token
def list_active_users():
    return result(services().provisioning.list_active_users())


@bp.route("/users/stats", methods=["GET"])
@require_admin_token
def user_statistics():
    return result(services().provisioning.user_statistics())


@bp.route("/users/by-employee/<employee_id>", methods=["GET"])
@require_admin_token
def get_user_by_employee_id(employee_id: str):
    return result(services().provisioning.get_user_by_employee_id(employee_id))


@bp.route("/users/<user_id>", methods=["GET"])
@require_admin_token
def get_user(user_id: str):
    return result(services().provisioning.get_user(user_id))


@bp.route("/users", methods=["POST"])
@require_admin_token
def create_user():
    user = services().provisioning.create_user(json_body(), operator=get_operator())
    return result(user, "User created successfully", 201)


@bp.route("/users/<user_id>", methods=["PATCH"])
@require_admin_token
def update_user(user_id: str):
    user = services().provisioning.update_user(user_id, json_body(), operator=get_operator())
    return result(user, "User updated successfully")


@bp.route("/users/<user_id>", methods=["DELETE"])
@require_admin_token
def delete_user(user_id: str):
    services().provisioning.delete_user(user_id, operator=get_operator())
    return result(message="User deleted successfully")


@bp.route("/users/<user_id>/status", methods=["PUT"])
@require_admin_token
def set_status(user_id: str):
    """Body: {"active": bool}."""
    active = _bool_field(json_body(), "active")
    user = services().provisioning.set_active(user_id, active, operator=get_operator())
    return result(user, f"User {'activated' if active else 'deactivated'}")


@bp.route("/users/<user_id>/access", methods=["PUT"])
@require_admin_token
def set_access(user_id: str):
    """Body: {"blocked": bool}."""
    blocked = _bool_field(json_body(), "blocked")
    user = services().provisioning.set_blocked(user_id, blocked, operator=get_operator())
    return result(user, f"Dashboard access {'blocked' if blocked else 'allowed'}")


@bp.route("/users/<user_id>/toggle-status", methods=["POST"])
@require_admin_token
def toggle_status(user_id: str):
    user = services().provisioning.toggle_status(user_id, operator=get_operator())
    return result(user, f"User status changed to {user['status']}")


@bp.route("/users/<user_id>/toggle-access", methods=["POST"])
@require_admin_token
def toggle_access(user_id: str):
    user = services().provisioning.toggle_blocked(user_id, operator=get_operator())
    return result(user, f"Dashboard access changed to {user['dashboardAccess']}")


@bp.route("/users/reset-password", methods=["POST"])
@require_admin_token
def reset_password():
    """Body: {"email": "..."}; returns the temporary password to the admin."""
    email = str(json_body().get("email") or "")
    temp_password = services().provisioning.reset_password(email, operator=get_operator())
    return result(
        {"email": email.strip().lower(), "temporaryPassword": temp_password},
        f"Temporary password has been set for {email.strip().lower()}. "
        "Admin must send password to user securely",
    )


@bp.route("/users/resend-verification", methods=["POST"])
@require_admin_token
def resend_verification():
    email = str(json_body().get("email") or "")
    services().provisioning.resend_verification(email, operator=get_operator())
    return result(message=f"Verification email sent to {email.strip().lower()}")
