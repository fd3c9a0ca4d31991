"""Maintenance endpoints (/api/admin)."""
from flask import Blueprint, request

from crm_console.api.decorators import get_operator, require_admin_token
from crm_console.api.users import result, services

bp = Blueprint("admin", __name__)


@bp.route("/reconcile", methods=["POST"])
@require_admin_token
def reconcile():
    """Run the reconciliation pass; ?repair=true deletes orphaned identities."""
    payload = request.get_json(silent=True) or {}
    repair = request.args.get("repair", "").lower() == "true" or payload.get("repair") is True
    report = services().provisioning.reconcile(repair=repair, operator=get_operator())
    return result(report, "Reconciliation completed")
