"""Department and role endpoints (/api/departments, /api/roles)."""
from flask import Blueprint, request

from crm_console.api.decorators import get_operator, require_admin_token
from crm_console.api.users import json_body, result, services

bp = Blueprint("departments", __name__)


@bp.route("/departments", methods=["GET"])
@require_admin_token
def list_departments():
    return result(services().org.list_departments())


@bp.route("/departments", methods=["POST"])
@require_admin_token
def create_department():
    department = services().org.create_department(json_body(), operator=get_operator())
    return result(department, "Department created successfully", 201)


@bp.route("/departments/<department_id>", methods=["GET"])
@require_admin_token
def get_department(department_id: str):
    return result(services().org.get_department(department_id))


@bp.route("/departments/<department_id>", methods=["PATCH"])
@require_admin_token
def update_department(department_id: str):
    department = services().org.update_department(department_id, json_body(), operator=get_operator())
    return result(department, "Department updated successfully")


@bp.route("/departments/<department_id>", methods=["DELETE"])
@require_admin_token
def delete_department(department_id: str):
    services().org.delete_department(department_id, operator=get_operator())
    return result(message="Department deleted successfully")


@bp.route("/departments/<department_id>/users", methods=["GET"])
@require_admin_token
def list_department_users(department_id: str):
    services().org.get_department(department_id)
    return result(services().provisioning.list_users_by_department(department_id))


@bp.route("/departments/<department_id>/roles", methods=["GET"])
@require_admin_token
def list_roles(department_id: str):
    return result(services().org.list_roles(department_id))


@bp.route("/departments/<department_id>/roles", methods=["POST"])
@require_admin_token
def create_role(department_id: str):
    role = services().org.create_role(department_id, json_body(), operator=get_operator())
    return result(role, "Role created successfully", 201)


@bp.route("/roles", methods=["GET"])
@require_admin_token
def list_all_roles():
    return result(services().org.list_roles(request.args.get("departmentId") or None))


@bp.route("/roles/<role_id>", methods=["PATCH"])
@require_admin_token
def update_role(role_id: str):
    role = services().org.update_role(role_id, json_body(), operator=get_operator())
    return result(role, "Role updated successfully")


@bp.route("/roles/<role_id>", methods=["DELETE"])
@require_admin_token
def delete_role(role_id: str):
    services().org.delete_role(role_id, operator=get_operator())
    return result(message="Role deleted successfully")
