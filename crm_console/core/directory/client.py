"""Low-level HTTP client for the Keycloak Admin API.

Handles service-account authentication, token refresh and HTTP operations.
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

from .exceptions import KeycloakAPIError

REQUEST_TIMEOUT = 5
# Refresh this many seconds before the advertised expiry
TOKEN_REFRESH_LEEWAY = 10


class KeycloakClient:
    """HTTP client for the Keycloak Admin API with automatic token management.

    The client authenticates lazily with the client credentials grant the
    first time a request needs a token, and refreshes the token before it
    expires.

    Usage:
        client = KeycloakClient("http://keycloak:8080", "crm", "crm-admin-console", "secret")
        response = client.get("/admin/realms/crm/users", params={"username": "a@b.c"})
    """

    def __init__(self, base_url: str, auth_realm: str, client_id: str, client_secret: str):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (without /realms/...)
            auth_realm: Realm where the service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret
        """
        self.base_url = base_url.rstrip("/")
        self.auth_realm = auth_realm
        self.client_id = client_id
        self._client_secret = client_secret
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/realms/{self.auth_realm}/protocol/openid-connect/token"

    def authenticate(self) -> str:
        """Fetch a service account token using the client credentials flow."""
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }
        resp = requests.post(self.token_url, data=data, timeout=REQUEST_TIMEOUT)
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, self.token_url)
        payload = resp.json()
        self._token = payload["access_token"]
        expires_in = int(payload.get("expires_in") or 60)
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
        return self._token

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._token or not self._token_expires_at:
            self.authenticate()
            return
        if datetime.now() >= self._token_expires_at - timedelta(seconds=TOKEN_REFRESH_LEEWAY):
            self.authenticate()

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = dict(extra or {})
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
            requests.RequestException: On transport failure
        """
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.get(f"{self.base_url}{path}", params=params, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def post(self, path: str, json: Optional[Dict[str, Any]] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication."""
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.post(f"{self.base_url}{path}", json=json, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def put(self, path: str, json: Any = None, **kwargs) -> requests.Response:
        """Execute PUT request with automatic authentication."""
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.put(f"{self.base_url}{path}", json=json, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def delete(self, path: str, **kwargs) -> requests.Response:
        """Execute DELETE request with automatic authentication."""
        self._ensure_authenticated()
        headers = self._headers(kwargs.pop("headers", None))
        resp = requests.delete(f"{self.base_url}{path}", headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        self._handle_error(resp)
        return resp

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise KeycloakAPIError if the response status indicates an error."""
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, getattr(resp, "url", ""))
