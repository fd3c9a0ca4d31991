"""
Provisioning Service Layer: console user lifecycle

This module coordinates the identity directory, the record store and the
notification sender so that each admin action (create, delete, reset
password, status and access changes) runs as one logical operation. It is
used by both the HTTP API and the operator CLI.

Architecture:
    API (/api/*) ──┐
                   ├──> ProvisioningService ──> IdentityDirectory ──> Keycloak
    CLI (crm.py) ──┘           │
                               ├──> Records ──> RecordStore ──> GraphQL data API
                               ├──> NotificationSender ──> SMTP
                               └──> ProvisioningJournal (intent log)

Consistency:
    The directory and the store share no transaction. Create and delete are
    best effort and journaled step by step; ``reconcile()`` finds and repairs
    what a failed run left behind.
"""

from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from crm_console.core import journal as steps
from crm_console.core.directory import DirectoryError, DirectoryErrorKind, IdentityDirectory
from crm_console.core.errors import (
    DuplicateIdentityError,
    NotFoundError,
    ProvisioningError,
    UnknownProvisioningError,
    UpstreamUnavailableError,
    ValidationError,
)
from crm_console.core.journal import ProvisioningJournal
from crm_console.core.models import (
    ACCESS_ALLOWED,
    ACCESS_BLOCKED,
    DEPARTMENT,
    ROLE,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    SYSTEM_USER,
    SystemUser,
    is_login_locked,
)
from crm_console.core.notifications import NotificationSender, render_welcome_email
from crm_console.core.passwords import generate_temp_password
from crm_console.core.records import Records
from crm_console.core.store import RecordStore
from crm_console.core.validators import (
    require_fields,
    validate_email,
    validate_employee_id,
    validate_mobile,
    validate_name,
)
from scripts import audit

logger = logging.getLogger(__name__)

REQUIRED_CREATE_FIELDS = ("employeeId", "name", "email", "mobile", "departmentId", "roleId")
UPDATABLE_FIELDS = {"name", "mobile", "departmentId", "roleId", "lineManagerId"}
IMMUTABLE_FIELDS = {"id", "employeeId", "email", "createdDate"}
MANAGED_FIELDS = {"status", "dashboardAccess", "failedLoginAttempts", "accessBeforeDeactivation"}
SEARCH_FIELDS = ("employeeId", "name", "email", "mobile")


def directory_failure(error: DirectoryError) -> ProvisioningError:
    """Translate a tagged directory error into the provisioning taxonomy."""
    kind = error.kind
    if kind is DirectoryErrorKind.USERNAME_EXISTS:
        return DuplicateIdentityError("User account already exists", field="account")
    if kind is DirectoryErrorKind.NOT_FOUND:
        return NotFoundError("User not found in the authentication system")
    if kind is DirectoryErrorKind.INVALID_PASSWORD:
        return ValidationError("Invalid password format")
    if kind is DirectoryErrorKind.INVALID_PARAMETER:
        return ValidationError("Invalid parameters provided")
    if kind is DirectoryErrorKind.UNAVAILABLE:
        return UpstreamUnavailableError(f"Identity directory unavailable: {error.message}")
    return UnknownProvisioningError(f"Identity directory error: {error.message}")


class _KeyedLocks:
    """In-process mutual exclusion per string key.

    Entries are reference counted and dropped when the last holder or
    waiter releases them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        ordered = sorted(set(keys))
        locks = [self._acquire_entry(key) for key in ordered]
        acquired: list[threading.Lock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._release_entry(key)


def enrich_users(users: list[dict], departments: list[dict], roles: list[dict]) -> list[dict]:
    """Add departmentName, roleName, lineManagerName and loginLockout to each user."""
    department_names = {dept["id"]: dept.get("name") for dept in departments}
    role_names = {role["id"]: role.get("name") for role in roles}
    user_names = {user["id"]: user.get("name") for user in users}
    enriched = []
    for user in users:
        view = dict(user)
        view["departmentName"] = department_names.get(user.get("departmentId"))
        view["roleName"] = role_names.get(user.get("roleId"))
        view["lineManagerName"] = user_names.get(user.get("lineManagerId")) if user.get("lineManagerId") else None
        view["loginLockout"] = is_login_locked(user)
        enriched.append(view)
    return enriched


class ProvisioningService:
    """Orchestrates console user lifecycle across directory, store and mail.

    Args:
        store: Record store holding Department, Role and SystemUser
        directory: Identity directory adapter, or None when no administrative
            directory session is available (demo/local mode)
        notifier: Sender for the welcome email, or None to skip it
        journal: Intent log for create/delete, or None to disable journaling
        login_url: Sign-in link included in the welcome email
        source: Interface recorded on audit events ("api" or "cli")
    """

    def __init__(
        self,
        store: RecordStore,
        directory: Optional[IdentityDirectory] = None,
        notifier: Optional[NotificationSender] = None,
        journal: Optional[ProvisioningJournal] = None,
        *,
        login_url: Optional[str] = None,
        source: str = "api",
    ):
        self.records = Records(store)
        self.directory = directory
        self.notifier = notifier
        self.journal = journal
        self.login_url = login_url
        self.source = source
        self._locks = _KeyedLocks()

    # ─────────────────────────────────────────────────────────────────────
    # Journal and audit helpers
    # ─────────────────────────────────────────────────────────────────────

    def _audit(self, event_type: audit.EventType, subject: str, **kwargs: Any) -> None:
        audit.safe_log_event(event_type, subject, source=self.source, **kwargs)

    def _begin(self, operation: str, email: str, **details: Any) -> Optional[str]:
        if self.journal is None:
            return None
        return self.journal.begin(operation, email, **details)

    def _step(self, intent_id: Optional[str], step: str, **details: Any) -> None:
        if self.journal is not None and intent_id:
            self.journal.record(intent_id, step, **details)

    # ─────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> dict:
        user = self.records.get(SYSTEM_USER, user_id)
        if not user:
            raise NotFoundError(f"User '{user_id}' not found")
        return user

    def get_user_by_employee_id(self, employee_id: str) -> dict:
        matches = self.records.users(employeeId=(employee_id or "").strip().upper())
        if not matches:
            raise NotFoundError(f"No user with employee ID '{employee_id}'")
        return matches[0]

    def _require_department(self, department_id: str) -> dict:
        department = self.records.get(DEPARTMENT, department_id)
        if not department:
            raise ValidationError(f"Department '{department_id}' does not exist")
        return department

    def _require_role_in_department(self, role_id: str, department_id: str) -> dict:
        role = self.records.get(ROLE, role_id)
        if not role:
            raise ValidationError(f"Role '{role_id}' does not exist")
        if role.get("departmentId") != department_id:
            raise ValidationError("Role does not belong to the selected department")
        return role

    def _require_line_manager(self, manager_id: str, user_id: Optional[str] = None) -> dict:
        if user_id is not None and manager_id == user_id:
            raise ValidationError("A user cannot be their own line manager")
        manager = self.records.get(SYSTEM_USER, manager_id)
        if not manager:
            raise ValidationError(f"Line manager '{manager_id}' does not exist")
        return manager

    # ─────────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────────

    def _normalize_new_user(self, payload: Mapping[str, Any]) -> dict:
        try:
            require_fields(payload, REQUIRED_CREATE_FIELDS)
            normalized = {
                "employeeId": validate_employee_id(payload["employeeId"]),
                "name": validate_name(payload["name"], "Name"),
                "email": validate_email(payload["email"]),
                "mobile": validate_mobile(payload["mobile"]),
                "departmentId": str(payload["departmentId"]).strip(),
                "roleId": str(payload["roleId"]).strip(),
                "lineManagerId": (str(payload.get("lineManagerId") or "").strip() or None),
            }
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return normalized

    def create_user(self, payload: Mapping[str, Any], *, operator: str = "system") -> dict:
        """Create a console user: directory identity, domain record, welcome email.

        Every check runs before the first side effect. The identity is
        created first; if the record insert then fails the identity is left
        behind and the journal marks it for reconciliation.

        Returns:
            The created SystemUser record

        Raises:
            ValidationError: Missing/invalid field or broken cross-reference
            DuplicateIdentityError: Employee ID, email or account already exists
            UpstreamUnavailableError: Directory or store failure
        """
        fields = self._normalize_new_user(payload)
        email = fields["email"]
        employee_id = fields["employeeId"]

        with self._locks.hold(f"employee:{employee_id}", f"email:{email}"):
            department = self._require_department(fields["departmentId"])
            role = self._require_role_in_department(fields["roleId"], fields["departmentId"])
            if fields["lineManagerId"]:
                self._require_line_manager(fields["lineManagerId"])

            if self.records.users(employeeId=employee_id):
                raise DuplicateIdentityError("Employee ID already exists", field="employeeId")
            if self.records.users(email=email):
                raise DuplicateIdentityError("Email already registered", field="email")

            temp_password = generate_temp_password()
            intent_id = self._begin("create_user", email, employeeId=employee_id)

            identity_created = False
            if self.directory is not None:
                try:
                    directory_id = self.directory.create_user(email, fields["name"], temp_password)
                except DirectoryError as e:
                    self._step(intent_id, steps.STEP_FAILED, error=str(e))
                    self._audit(
                        "user_create", email, operator=operator,
                        details={"employeeId": employee_id, "error": str(e)}, success=False,
                    )
                    raise directory_failure(e) from e
                identity_created = True
                self._step(intent_id, steps.STEP_IDENTITY_CREATED, directoryId=directory_id)
            else:
                logger.warning(
                    "No identity directory session; identity for %s was not created (record only)", email
                )

            record = SystemUser(**fields).to_record()
            try:
                user = self.records.create(SYSTEM_USER, record)
            except UpstreamUnavailableError as e:
                self._step(intent_id, steps.STEP_FAILED, error=str(e), orphanedIdentity=identity_created)
                if identity_created:
                    logger.error(
                        "Record insert failed after identity creation; identity %s is orphaned until reconciled", email
                    )
                self._audit(
                    "user_create", email, operator=operator,
                    details={"employeeId": employee_id, "error": str(e)}, success=False,
                )
                raise
            self._step(intent_id, steps.STEP_RECORD_CREATED, userId=user["id"])
            self._step(intent_id, steps.STEP_COMPLETED)

        self._send_welcome(user, department, role, temp_password if identity_created else None)
        self._audit(
            "user_create", email, operator=operator,
            details={
                "userId": user["id"],
                "employeeId": employee_id,
                "departmentId": fields["departmentId"],
                "roleId": fields["roleId"],
                "identityCreated": identity_created,
            },
        )
        return user

    def _send_welcome(self, user: dict, department: dict, role: dict, temp_password: Optional[str]) -> None:
        """Send the welcome email; failures are logged and never raised."""
        if self.notifier is None:
            return
        subject, html_body, text_body = render_welcome_email(
            name=user["name"],
            email=user["email"],
            employee_id=user["employeeId"],
            department=department.get("name", ""),
            role=role.get("name", ""),
            temp_password=temp_password,
            login_url=self.login_url,
        )
        try:
            self.notifier.send_email(user["email"], subject, html_body, text_body)
        except Exception as e:  # welcome mail must never fail the create
            logger.warning("Welcome email to %s failed: %s", user["email"], e)

    # ─────────────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────────────

    def delete_user(self, user_id: str, *, operator: str = "system") -> None:
        """Delete the directory identity (best effort) and the domain record.

        A missing identity counts as deleted. Any other directory failure is
        logged and journaled, and the record is deleted anyway.
        """
        user = self.get_user(user_id)
        email = user["email"]
        intent_id = self._begin("delete_user", email, userId=user_id)

        identity_status = "skipped"
        if self.directory is not None:
            try:
                self.directory.delete_user(email)
                identity_status = "deleted"
                self._step(intent_id, steps.STEP_IDENTITY_DELETED)
            except DirectoryError as e:
                if e.kind is DirectoryErrorKind.NOT_FOUND:
                    identity_status = "absent"
                    self._step(intent_id, steps.STEP_IDENTITY_DELETED, alreadyAbsent=True)
                else:
                    identity_status = "failed"
                    logger.error("Failed to delete identity %s (continuing with record delete): %s", email, e)
                    self._step(intent_id, steps.STEP_IDENTITY_DELETE_FAILED, error=str(e))
        else:
            logger.warning("No identity directory session; only the record for %s is deleted", email)

        try:
            self.records.delete(SYSTEM_USER, user_id)
        except UpstreamUnavailableError as e:
            self._step(intent_id, steps.STEP_FAILED, error=str(e))
            self._audit(
                "user_delete", email, operator=operator,
                details={"userId": user_id, "identity": identity_status, "error": str(e)}, success=False,
            )
            raise
        self._step(intent_id, steps.STEP_RECORD_DELETED)
        self._step(intent_id, steps.STEP_COMPLETED)
        self._audit(
            "user_delete", email, operator=operator,
            details={"userId": user_id, "identity": identity_status},
        )

    # ─────────────────────────────────────────────────────────────────────
    # Credentials
    # ─────────────────────────────────────────────────────────────────────

    def _require_directory(self) -> IdentityDirectory:
        if self.directory is None:
            raise UpstreamUnavailableError("Identity directory is not configured")
        return self.directory

    def _require_identity(self, email: str) -> str:
        try:
            email = validate_email(email)
        except ValueError as e:
            raise ValidationError("Invalid parameters provided") from e
        directory = self._require_directory()
        try:
            identity = directory.get_user(email)
        except DirectoryError as e:
            raise directory_failure(e) from e
        if not identity:
            raise NotFoundError("User not found in the authentication system")
        return email

    def reset_password(self, email: str, *, operator: str = "system") -> str:
        """Set a new temporary (non-permanent) password and return it.

        No email is sent; the administrator delivers the password securely.
        """
        email = self._require_identity(email)
        temp_password = generate_temp_password()
        try:
            self.directory.set_temporary_password(email, temp_password)
        except DirectoryError as e:
            self._audit("password_reset", email, operator=operator, details={"error": str(e)}, success=False)
            raise directory_failure(e) from e
        self._audit("password_reset", email, operator=operator)
        return temp_password

    def resend_verification(self, email: str, *, operator: str = "system") -> None:
        """Ask the directory to send its verification email again."""
        email = self._require_identity(email)
        try:
            self.directory.send_verification_email(email)
        except DirectoryError as e:
            self._audit(
                "verification_resend", email, operator=operator, details={"error": str(e)}, success=False
            )
            raise directory_failure(e) from e
        self._audit("verification_resend", email, operator=operator)

    # ─────────────────────────────────────────────────────────────────────
    # Status and dashboard access
    # ─────────────────────────────────────────────────────────────────────

    def set_active(self, user_id: str, active: bool, *, operator: str = "system") -> dict:
        """Activate or deactivate a user.

        Deactivation remembers the current dashboard access and forces a
        block. Reactivation restores access only if it was allowed when the
        user was deactivated and no block was applied while inactive.
        """
        user = self.get_user(user_id)
        current = user.get("status", STATUS_ACTIVE)
        if active == (current == STATUS_ACTIVE):
            return user

        if active:
            restored = ACCESS_ALLOWED if user.get("accessBeforeDeactivation") == ACCESS_ALLOWED else ACCESS_BLOCKED
            changes = {
                "status": STATUS_ACTIVE,
                "dashboardAccess": restored,
                "accessBeforeDeactivation": None,
            }
        else:
            changes = {
                "status": STATUS_INACTIVE,
                "dashboardAccess": ACCESS_BLOCKED,
                "accessBeforeDeactivation": user.get("dashboardAccess", ACCESS_ALLOWED),
            }

        updated = self.records.update(SYSTEM_USER, user_id, changes)
        self._audit(
            "status_change", user["email"], operator=operator,
            details={"from": current, "to": changes["status"], "dashboardAccess": changes["dashboardAccess"]},
        )
        return updated

    def set_blocked(self, user_id: str, blocked: bool, *, operator: str = "system") -> dict:
        """Block or unblock dashboard access.

        Unblocking resets failedLoginAttempts to 0; blocking leaves it as is.
        Inactive users can be blocked (the block then survives reactivation)
        but not unblocked.
        """
        user = self.get_user(user_id)
        inactive = user.get("status") == STATUS_INACTIVE

        if blocked:
            changes: dict[str, Any] = {"dashboardAccess": ACCESS_BLOCKED}
            if inactive:
                changes["accessBeforeDeactivation"] = ACCESS_BLOCKED
        else:
            if inactive:
                raise ValidationError("Cannot change dashboard access for inactive users")
            changes = {"dashboardAccess": ACCESS_ALLOWED, "failedLoginAttempts": 0}

        updated = self.records.update(SYSTEM_USER, user_id, changes)
        self._audit(
            "access_change", user["email"], operator=operator,
            details={"from": user.get("dashboardAccess"), "to": changes["dashboardAccess"]},
        )
        return updated

    def toggle_status(self, user_id: str, *, operator: str = "system") -> dict:
        user = self.get_user(user_id)
        return self.set_active(user_id, user.get("status") != STATUS_ACTIVE, operator=operator)

    def toggle_blocked(self, user_id: str, *, operator: str = "system") -> dict:
        user = self.get_user(user_id)
        return self.set_blocked(user_id, user.get("dashboardAccess") != ACCESS_BLOCKED, operator=operator)

    # ─────────────────────────────────────────────────────────────────────
    # Update
    # ─────────────────────────────────────────────────────────────────────

    def update_user(self, user_id: str, changes: Mapping[str, Any], *, operator: str = "system") -> dict:
        """Update profile and placement fields of an existing user.

        Email, employee ID and creation date are immutable. Status and
        access go through the toggle operations.
        """
        user = self.get_user(user_id)

        immutable = sorted(
            name for name in IMMUTABLE_FIELDS
            if name in changes and changes[name] != user.get(name)
        )
        if immutable:
            raise ValidationError(f"Fields cannot be changed: {', '.join(immutable)}")
        managed = sorted(name for name in MANAGED_FIELDS if name in changes)
        if managed:
            raise ValidationError(f"Use the status/access operations to change: {', '.join(managed)}")
        unknown = sorted(set(changes) - UPDATABLE_FIELDS - IMMUTABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

        update: dict[str, Any] = {}
        try:
            if "name" in changes:
                update["name"] = validate_name(changes["name"], "Name")
            if "mobile" in changes:
                update["mobile"] = validate_mobile(changes["mobile"])
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if "departmentId" in changes:
            update["departmentId"] = str(changes["departmentId"] or "").strip()
            if not update["departmentId"]:
                raise ValidationError("Missing required fields: departmentId")
        if "roleId" in changes:
            update["roleId"] = str(changes["roleId"] or "").strip()
            if not update["roleId"]:
                raise ValidationError("Missing required fields: roleId")
        if "lineManagerId" in changes:
            update["lineManagerId"] = str(changes["lineManagerId"] or "").strip() or None

        if "departmentId" in update or "roleId" in update:
            department_id = update.get("departmentId", user.get("departmentId"))
            self._require_department(department_id)
            self._require_role_in_department(update.get("roleId", user.get("roleId")), department_id)
        if update.get("lineManagerId"):
            self._require_line_manager(update["lineManagerId"], user_id)

        if not update:
            return user
        updated = self.records.update(SYSTEM_USER, user_id, update)
        self._audit(
            "user_update", user["email"], operator=operator,
            details={"userId": user_id, "fields": sorted(update)},
        )
        return updated

    # ─────────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────────

    def list_users(
        self,
        *,
        status: Optional[str] = None,
        department_id: Optional[str] = None,
        query: Optional[str] = None,
    ) -> list[dict]:
        """Enriched user listing with optional filters and free-text search."""
        filters: dict[str, Any] = {}
        if status:
            if status not in (STATUS_ACTIVE, STATUS_INACTIVE):
                raise ValidationError(f"Invalid status filter '{status}'")
            filters["status"] = status
        if department_id:
            filters["departmentId"] = department_id

        users, departments, roles = self.records.users_departments_and_roles(**filters)
        if query:
            users = [user for user in users if _matches(user, query)]
        enriched = enrich_users(users, departments, roles)
        # Manager names may live outside the filtered set
        if filters:
            missing = {u["lineManagerId"] for u in enriched if u.get("lineManagerId") and not u["lineManagerName"]}
            for view in enriched:
                if view.get("lineManagerId") in missing:
                    manager = self.records.get(SYSTEM_USER, view["lineManagerId"])
                    view["lineManagerName"] = manager.get("name") if manager else None
        return enriched

    def search_users(self, query: str) -> list[dict]:
        """Case-insensitive substring search over employee ID, name, email and mobile."""
        return self.list_users(query=query)

    def list_active_users(self) -> list[dict]:
        return self.records.users(status=STATUS_ACTIVE)

    def list_users_by_department(self, department_id: str) -> list[dict]:
        return self.records.users(departmentId=department_id)

    def user_statistics(self) -> dict[str, int]:
        users = self.records.users()
        return {
            "total": len(users),
            "active": sum(1 for u in users if u.get("status") == STATUS_ACTIVE),
            "inactive": sum(1 for u in users if u.get("status") == STATUS_INACTIVE),
            "allowedAccess": sum(1 for u in users if u.get("dashboardAccess") == ACCESS_ALLOWED),
            "blockedAccess": sum(1 for u in users if u.get("dashboardAccess") == ACCESS_BLOCKED),
        }

    # ─────────────────────────────────────────────────────────────────────
    # Reconciliation
    # ─────────────────────────────────────────────────────────────────────

    def reconcile(self, *, repair: bool = False, operator: str = "system") -> dict[str, Any]:
        """Compare journal, directory and store; optionally repair orphans.

        Orphaned identities (identity exists, no record with that email, left
        by a failed create or a failed identity delete) are deleted when
        ``repair`` is set. Records whose identity is missing are only
        reported. Running the pass twice changes nothing the second time.
        """
        report: dict[str, Any] = {
            "directoryChecked": self.directory is not None,
            "orphanedIdentities": [],
            "repaired": [],
            "missingIdentities": [],
        }
        if self.directory is None:
            logger.warning("Reconcile skipped identity checks: no identity directory session")
            return report

        try:
            if self.journal is not None:
                self._reconcile_journal(report, repair)
                if repair:
                    removed = self.journal.compact()
                    if removed:
                        logger.info("Compacted %d settled intents from the provisioning journal", removed)
            for user in self.records.users():
                if self.directory.get_user(user["email"]) is None:
                    report["missingIdentities"].append({"userId": user["id"], "email": user["email"]})
        except DirectoryError as e:
            raise directory_failure(e) from e

        self._audit(
            "reconcile", "provisioning", operator=operator,
            details={
                "repair": repair,
                "orphaned": len(report["orphanedIdentities"]),
                "repaired": len(report["repaired"]),
                "missing": len(report["missingIdentities"]),
            },
        )
        return report

    def _reconcile_journal(self, report: dict[str, Any], repair: bool) -> None:
        for intent in self.journal.intents().values():
            if intent["reconciled"]:
                continue
            if not steps.leaves_identity(intent):
                continue

            email = intent["email"]
            if self.records.users(email=email):
                # A record owns the identity again; nothing is orphaned
                if repair:
                    self.journal.record(intent["intent"], steps.STEP_RECONCILED, outcome="record_present")
                continue
            if self.directory.get_user(email) is None:
                if repair:
                    self.journal.record(intent["intent"], steps.STEP_RECONCILED, outcome="identity_absent")
                continue

            report["orphanedIdentities"].append({"intent": intent["intent"], "email": email, "operation": intent["operation"]})
            if not repair:
                continue
            try:
                self.directory.delete_user(email)
            except DirectoryError as e:
                if e.kind is not DirectoryErrorKind.NOT_FOUND:
                    raise
            self.journal.record(intent["intent"], steps.STEP_RECONCILED, outcome="identity_deleted")
            report["repaired"].append(email)
            logger.info("Reconcile deleted orphaned identity %s", email)


def _matches(user: dict, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in str(user.get(field) or "").lower() for field in SEARCH_FIELDS)
