"""Identity directory errors.

``KeycloakAPIError`` is the raw HTTP failure raised by the client.
``DirectoryError`` is the closed, tagged error the directory adapter
exposes to the orchestrator; callers match on ``kind`` only.
"""
from __future__ import annotations
from enum import Enum


class KeycloakAPIError(Exception):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class DirectoryErrorKind(str, Enum):
    USERNAME_EXISTS = "username_exists"
    NOT_FOUND = "not_found"
    INVALID_PASSWORD = "invalid_password"
    INVALID_PARAMETER = "invalid_parameter"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class DirectoryError(Exception):
    """Failure reported by the identity directory adapter."""

    def __init__(self, kind: DirectoryErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


def classify_api_error(error: KeycloakAPIError) -> DirectoryError:
    """Map a raw Keycloak HTTP failure onto a tagged directory error."""
    status = error.status_code
    if status == 409:
        kind = DirectoryErrorKind.USERNAME_EXISTS
    elif status == 404:
        kind = DirectoryErrorKind.NOT_FOUND
    elif status == 400 and "password" in (error.message or "").lower():
        kind = DirectoryErrorKind.INVALID_PASSWORD
    elif status == 400:
        kind = DirectoryErrorKind.INVALID_PARAMETER
    elif status in (401, 403) or status >= 500:
        kind = DirectoryErrorKind.UNAVAILABLE
    else:
        kind = DirectoryErrorKind.UNKNOWN
    return DirectoryError(kind, error.message or str(error))
