"""Domain records held in the record store.

Records travel as plain dicts with camelCase keys (the wire shape of the
data API); the dataclasses below document the fields and provide defaults
for new records.
"""
from __future__ import annotations
import datetime
from dataclasses import asdict, dataclass, field
from typing import Literal, Optional

UserStatus = Literal["active", "inactive"]
DashboardAccess = Literal["allowed", "blocked"]

STATUS_ACTIVE: UserStatus = "active"
STATUS_INACTIVE: UserStatus = "inactive"
ACCESS_ALLOWED: DashboardAccess = "allowed"
ACCESS_BLOCKED: DashboardAccess = "blocked"

# Display threshold only; nothing in the console increments the counter.
MAX_FAILED_LOGIN_ATTEMPTS = 3

DEPARTMENT = "Department"
ROLE = "Role"
SYSTEM_USER = "SystemUser"
MODELS = (DEPARTMENT, ROLE, SYSTEM_USER)


def utcnow_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass
class Department:
    name: str
    description: Optional[str] = None
    id: Optional[str] = None


@dataclass
class Role:
    name: str
    departmentId: str
    description: Optional[str] = None
    id: Optional[str] = None


@dataclass
class SystemUser:
    employeeId: str
    name: str
    email: str
    mobile: str
    departmentId: str
    roleId: str
    lineManagerId: Optional[str] = None
    status: UserStatus = STATUS_ACTIVE
    dashboardAccess: DashboardAccess = ACCESS_ALLOWED
    failedLoginAttempts: int = 0
    createdDate: str = field(default_factory=utcnow_iso)
    # Access held when the user was last deactivated; restored on reactivation.
    accessBeforeDeactivation: Optional[DashboardAccess] = None
    id: Optional[str] = None

    def to_record(self) -> dict:
        """Return the store input, without the id when it is not assigned yet."""
        record = asdict(self)
        if record["id"] is None:
            record.pop("id")
        return record


def is_login_locked(user: dict) -> bool:
    """Whether the failed-login counter has reached the lockout display threshold."""
    return int(user.get("failedLoginAttempts") or 0) >= MAX_FAILED_LOGIN_ATTEMPTS
