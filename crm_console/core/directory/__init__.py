"""Identity directory (Keycloak Admin API) adapter.

Architecture:
- client.py: HTTP client with service-account authentication and auto-refresh
- users.py: identity lifecycle used by the provisioning orchestrator
- exceptions.py: raw HTTP error plus the tagged DirectoryError

Usage:
    from crm_console.core.directory import KeycloakClient, IdentityDirectory

    client = KeycloakClient("http://keycloak:8080", "crm", "crm-admin-console", secret)
    directory = IdentityDirectory(client, "crm")
    directory.create_user("a@example.com", "Ana", temp_password)
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import DirectoryError, DirectoryErrorKind, KeycloakAPIError, classify_api_error
from .users import IdentityDirectory

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "DirectoryError",
    "DirectoryErrorKind",
    "KeycloakAPIError",
    "classify_api_error",
    "IdentityDirectory",
]
