"""Identity directory adapter for console user accounts.

Each console user owns exactly one directory identity whose username is
the user's email. All failures leave this module as ``DirectoryError``.
"""
from __future__ import annotations
import sys
from typing import Optional

import requests

from .client import KeycloakClient
from .exceptions import DirectoryError, DirectoryErrorKind, KeycloakAPIError, classify_api_error


class IdentityDirectory:
    """Identity lifecycle operations against one Keycloak realm."""

    def __init__(self, client: KeycloakClient, realm: str):
        """Initialize the directory adapter.

        Args:
            client: Keycloak client (authenticates lazily)
            realm: Realm holding console identities
        """
        self.client = client
        self.realm = realm

    @property
    def _users_path(self) -> str:
        return f"/admin/realms/{self.realm}/users"

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return getattr(self.client, method)(path, **kwargs)
        except KeycloakAPIError as e:
            raise classify_api_error(e) from e
        except requests.RequestException as e:
            raise DirectoryError(DirectoryErrorKind.UNAVAILABLE, f"Identity directory unreachable: {e}") from e

    def get_user(self, username: str) -> Optional[dict]:
        """Return the identity whose username exactly matches, or None."""
        resp = self._call("get", self._users_path, params={"username": username, "exact": "true"})
        for user in resp.json() or []:
            if (user.get("username") or "").lower() == username.lower():
                return user
        return None

    def _require_user(self, username: str) -> dict:
        user = self.get_user(username)
        if not user:
            raise DirectoryError(DirectoryErrorKind.NOT_FOUND, f"User '{username}' not found")
        return user

    def create_user(self, email: str, name: str, temp_password: str) -> str:
        """Create an identity with a temporary credential and return its id.

        The email is marked verified and no invitation is sent by the
        directory; the console delivers its own welcome email. The
        credential must be changed at first sign-in.

        Raises:
            DirectoryError: USERNAME_EXISTS when the email is already registered
        """
        payload = {
            "username": email,
            "email": email,
            "emailVerified": True,
            "enabled": True,
            "firstName": name,
            "attributes": {"name": [name]},
            "credentials": [{"type": "password", "value": temp_password, "temporary": True}],
        }
        resp = self._call("post", self._users_path, json=payload)
        location = resp.headers.get("Location", "")
        user_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not user_id:
            user_id = self._require_user(email)["id"]
        print(f"[directory] Identity '{email}' created (id={user_id})", file=sys.stderr)
        return user_id

    def delete_user(self, username: str) -> None:
        """Delete the identity.

        Raises:
            DirectoryError: NOT_FOUND when the identity does not exist
        """
        user = self._require_user(username)
        self._call("delete", f"{self._users_path}/{user['id']}")
        print(f"[directory] Identity '{username}' deleted", file=sys.stderr)

    def set_temporary_password(self, username: str, password: str) -> None:
        """Set a non-permanent password the user must change at next sign-in."""
        user = self._require_user(username)
        self._call(
            "put",
            f"{self._users_path}/{user['id']}/reset-password",
            json={"type": "password", "temporary": True, "value": password},
        )
        print(f"[directory] Temporary password set for '{username}'", file=sys.stderr)

    def send_verification_email(self, username: str) -> None:
        """Ask the directory to (re)send its email verification message."""
        user = self._require_user(username)
        self._call("put", f"{self._users_path}/{user['id']}/send-verify-email")
        print(f"[directory] Verification email requested for '{username}'", file=sys.stderr)
