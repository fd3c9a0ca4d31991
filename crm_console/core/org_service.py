"""Organisation structure service: departments and their roles."""
from __future__ import annotations
import logging
from typing import Any, Mapping, Optional

from crm_console.core.errors import GuardError, NotFoundError, ValidationError
from crm_console.core.models import DEPARTMENT, ROLE, SYSTEM_USER
from crm_console.core.records import Records
from crm_console.core.store import RecordStore
from crm_console.core.validators import optional_text, validate_name
from scripts import audit

logger = logging.getLogger(__name__)


def _clean(payload: Mapping[str, Any], *, partial: bool) -> dict[str, Any]:
    unknown = sorted(set(payload) - {"name", "description"})
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
    cleaned: dict[str, Any] = {}
    try:
        if "name" in payload or not partial:
            cleaned["name"] = validate_name(payload.get("name") or "", "Name")
        if "description" in payload:
            cleaned["description"] = optional_text(payload.get("description"), "Description")
    except ValueError as e:
        raise ValidationError(str(e)) from e
    return cleaned


class OrgService:
    """CRUD for departments and roles with referential guards."""

    def __init__(self, store: RecordStore, *, source: str = "api"):
        self.records = Records(store)
        self.source = source

    def _audit(self, event_type: audit.EventType, subject: str, **kwargs: Any) -> None:
        audit.safe_log_event(event_type, subject, source=self.source, **kwargs)

    # Departments

    def list_departments(self) -> list[dict]:
        """All departments, each with its roles nested under ``roles``."""
        departments, roles = self.records.departments_and_roles()
        by_department: dict[str, list[dict]] = {}
        for role in roles:
            by_department.setdefault(role.get("departmentId"), []).append(role)
        return [
            {**dept, "roles": sorted(by_department.get(dept["id"], []), key=lambda r: (r.get("name") or "").lower())}
            for dept in sorted(departments, key=lambda d: (d.get("name") or "").lower())
        ]

    def get_department(self, department_id: str) -> dict:
        department = self.records.get(DEPARTMENT, department_id)
        if not department:
            raise NotFoundError(f"Department '{department_id}' not found")
        return department

    def create_department(self, payload: Mapping[str, Any], *, operator: str = "system") -> dict:
        department = self.records.create(DEPARTMENT, _clean(payload, partial=False))
        self._audit("department_create", department["name"], operator=operator,
                             details={"departmentId": department["id"]})
        return department

    def update_department(self, department_id: str, payload: Mapping[str, Any], *, operator: str = "system") -> dict:
        self.get_department(department_id)
        changes = _clean(payload, partial=True)
        if not changes:
            return self.get_department(department_id)
        department = self.records.update(DEPARTMENT, department_id, changes)
        self._audit("department_update", department["name"], operator=operator,
                             details={"departmentId": department_id, "fields": sorted(changes)})
        return department

    def delete_department(self, department_id: str, *, operator: str = "system") -> None:
        """Delete a department and its roles.

        Refused while any user references the department; in that case
        nothing is modified.
        """
        department = self.get_department(department_id)
        users = self.records.users(departmentId=department_id)
        if users:
            raise GuardError(
                "Cannot delete department with existing users",
                data={"userCount": len(users)},
            )

        roles = self.records.roles(department_id)
        for role in roles:
            self.records.delete(ROLE, role["id"])
        self.records.delete(DEPARTMENT, department_id)
        logger.info("Deleted department %s and %d roles", department_id, len(roles))
        self._audit("department_delete", department.get("name", department_id), operator=operator,
                             details={"departmentId": department_id, "rolesDeleted": len(roles)})

    # Roles

    def list_roles(self, department_id: Optional[str] = None) -> list[dict]:
        if department_id:
            self.get_department(department_id)
        return self.records.roles(department_id)

    def get_role(self, role_id: str) -> dict:
        role = self.records.get(ROLE, role_id)
        if not role:
            raise NotFoundError(f"Role '{role_id}' not found")
        return role

    def create_role(self, department_id: str, payload: Mapping[str, Any], *, operator: str = "system") -> dict:
        self.get_department(department_id)
        data = _clean({k: v for k, v in payload.items() if k != "departmentId"}, partial=False)
        data["departmentId"] = department_id
        role = self.records.create(ROLE, data)
        self._audit("role_create", role["name"], operator=operator,
                             details={"roleId": role["id"], "departmentId": department_id})
        return role

    def update_role(self, role_id: str, payload: Mapping[str, Any], *, operator: str = "system") -> dict:
        role = self.get_role(role_id)
        if "departmentId" in payload and payload["departmentId"] != role.get("departmentId"):
            raise ValidationError("A role cannot be moved to another department")
        changes = _clean({k: v for k, v in payload.items() if k != "departmentId"}, partial=True)
        if not changes:
            return role
        updated = self.records.update(ROLE, role_id, changes)
        self._audit("role_update", updated["name"], operator=operator,
                             details={"roleId": role_id, "fields": sorted(changes)})
        return updated

    def delete_role(self, role_id: str, *, operator: str = "system") -> None:
        role = self.get_role(role_id)
        users = self.records.list(SYSTEM_USER, roleId=role_id)
        if users:
            raise GuardError("Cannot delete role assigned to existing users", data={"userCount": len(users)})
        self.records.delete(ROLE, role_id)
        self._audit("role_delete", role.get("name", role_id), operator=operator,
                             details={"roleId": role_id})
