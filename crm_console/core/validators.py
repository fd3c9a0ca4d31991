"""Input validation helpers for console records."""
from __future__ import annotations
import re
from typing import Any, Iterable, Mapping

_MOBILE_RE = re.compile(r"^\+?[0-9][0-9 \-]{5,19}$")


def validate_email(email: str) -> str:
    """Validate email address.

    The stored and looked-up form is trimmed and lower-cased; the directory
    username is the same string, so uniqueness is case-insensitive.

    Args:
        email: Email address to validate

    Returns:
        Normalized (lower-case) email address

    Raises:
        ValueError: If email is invalid
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValueError("Invalid email format")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError("Invalid email format")
    if domain.startswith(".") or domain.endswith("."):
        raise ValueError("Invalid email format")
    if any(char.isspace() for char in email):
        raise ValueError("Invalid email format")
    if len(email) > 254:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_name(name: str, field: str) -> str:
    """Validate a free-text name field.

    Args:
        name: Name to validate
        field: Field name for error messages (e.g., "Name")

    Returns:
        Trimmed name

    Raises:
        ValueError: If name is invalid
    """
    name = (name or "").strip()
    if not name:
        raise ValueError(f"{field} is required")
    if len(name) > 128:
        raise ValueError(f"{field} exceeds maximum length")

    # Prevent injection attacks
    if any(char in name for char in "<>\"'`;&|$"):
        raise ValueError(f"{field} contains invalid characters")

    return name


def validate_employee_id(raw: str) -> str:
    """Trim, upper-case and validate an employee ID (letters, digits, dash, underscore).

    IDs are compared case-insensitively, so the stored form is upper case.
    """
    employee_id = (raw or "").strip().upper()
    if not employee_id:
        raise ValueError("Employee ID is required")
    if len(employee_id) > 32:
        raise ValueError("Employee ID must not exceed 32 characters")
    if not all(char.isalnum() or char in {"-", "_"} for char in employee_id):
        raise ValueError("Employee ID contains invalid characters")
    return employee_id


def validate_mobile(raw: str) -> str:
    """Trim and validate a mobile number."""
    mobile = (raw or "").strip()
    if not mobile:
        raise ValueError("Mobile is required")
    if not _MOBILE_RE.match(mobile):
        raise ValueError("Invalid mobile number format")
    return mobile


def require_fields(payload: Mapping[str, Any], fields: Iterable[str]) -> None:
    """Raise ValueError naming every missing or blank field."""
    missing = [
        name for name in fields
        if payload.get(name) is None or (isinstance(payload.get(name), str) and not payload[name].strip())
    ]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")


def optional_text(value: Any, field: str, max_length: int = 512) -> str | None:
    """Normalize an optional description field; blank becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValueError(f"{field} exceeds maximum length")
    return value
