"""Provisioning error taxonomy.

Every failure the orchestrator reports to callers is one of the classes
below. The API layer renders them with ``to_dict()`` using the same
``{success, message}`` envelope as successful results.
"""
from __future__ import annotations
from typing import Any, Optional


class ProvisioningError(Exception):
    """Base class for errors surfaced by provisioning operations."""

    status = 500
    kind = "Unknown"

    def __init__(self, message: str, *, data: Optional[dict[str, Any]] = None):
        self.message = message
        self.data = data
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API result envelope."""
        body: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "error": self.kind,
        }
        if self.data:
            body["data"] = self.data
        return body


class ValidationError(ProvisioningError):
    """Missing or malformed input, or a broken cross-reference."""

    status = 400
    kind = "ValidationError"


class DuplicateIdentityError(ProvisioningError):
    """An employee ID, email or directory account already exists."""

    status = 409
    kind = "DuplicateIdentity"

    def __init__(self, message: str, *, field: str):
        self.field = field
        super().__init__(message, data={"field": field})


class NotFoundError(ProvisioningError):
    """Identity or domain record does not exist."""

    status = 404
    kind = "NotFound"


class GuardError(ProvisioningError):
    """Deletion refused because other records still reference the target."""

    status = 409
    kind = "Guard"


class UpstreamUnavailableError(ProvisioningError):
    """Identity directory or record store could not be reached."""

    status = 502
    kind = "UpstreamUnavailable"


class UnknownProvisioningError(ProvisioningError):
    """Unclassified directory failure, wrapped with its original message."""

    status = 500
    kind = "Unknown"
