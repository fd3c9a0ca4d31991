"""Tests for the Keycloak identity directory adapter with stubbed HTTP."""
import pytest
import requests

from crm_console.core.directory import (
    DirectoryError,
    DirectoryErrorKind,
    IdentityDirectory,
    KeycloakAPIError,
    KeycloakClient,
    classify_api_error,
)

BASE = "http://kc:8080"


class _StubResponse:
    def __init__(self, status_code=200, payload=None, headers=None, url=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.url = url
        self.text = "" if payload is None else str(payload)

    def json(self):
        return self._payload


class _Recorder:
    """Route stub for requests.get/post/put/delete keyed by (METHOD, path)."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, response):
        self.routes[(method, path)] = response

    def handler(self, method):
        def _handle(url, *args, **kwargs):
            path = url[len(BASE):]
            self.calls.append((method, path, kwargs))
            response = self.routes.get((method, path))
            if response is None:
                raise AssertionError(f"Unexpected {method} {path}")
            if isinstance(response, Exception):
                raise response
            response.url = url
            return response
        return _handle


@pytest.fixture()
def http(monkeypatch):
    recorder = _Recorder()
    recorder.add("POST", "/realms/crm/protocol/openid-connect/token",
                 _StubResponse(200, {"access_token": "svc-token", "expires_in": 300}))
    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(requests, method, recorder.handler(method.upper()))
    return recorder


@pytest.fixture()
def directory():
    client = KeycloakClient(BASE, "crm", "crm-admin-console", "secret")
    return IdentityDirectory(client, "crm")


def _lookup(http, users):
    http.add("GET", "/admin/realms/crm/users", _StubResponse(200, users))


def test_client_authenticates_lazily_with_client_credentials(http, directory):
    _lookup(http, [])

    directory.get_user("ana@example.com")

    token_call = http.calls[0]
    assert token_call[0] == "POST"
    assert token_call[2]["data"]["grant_type"] == "client_credentials"
    lookup = http.calls[1]
    assert lookup[2]["headers"]["Authorization"] == "Bearer svc-token"
    assert lookup[2]["params"] == {"username": "ana@example.com", "exact": "true"}


def test_token_is_reused_until_expiry(http, directory):
    _lookup(http, [])
    directory.get_user("a@example.com")
    directory.get_user("b@example.com")
    token_calls = [c for c in http.calls if c[1].endswith("/token")]
    assert len(token_calls) == 1


def test_get_user_matches_exact_username(http, directory):
    _lookup(http, [{"id": "1", "username": "ana@example.com.au"}, {"id": "2", "username": "ana@example.com"}])
    assert directory.get_user("ana@example.com")["id"] == "2"


def test_get_user_returns_none_when_absent(http, directory):
    _lookup(http, [])
    assert directory.get_user("ghost@example.com") is None


def test_create_user_payload_and_location_id(http, directory):
    http.add("POST", "/admin/realms/crm/users",
             _StubResponse(201, None, headers={"Location": f"{BASE}/admin/realms/crm/users/abc-123"}))

    user_id = directory.create_user("ana@example.com", "Ana Lopez", "Tmp#Pass1234")

    assert user_id == "abc-123"
    payload = http.calls[-1][2]["json"]
    assert payload["username"] == "ana@example.com"
    assert payload["email"] == "ana@example.com"
    assert payload["emailVerified"] is True
    assert payload["attributes"] == {"name": ["Ana Lopez"]}
    assert payload["credentials"] == [{"type": "password", "value": "Tmp#Pass1234", "temporary": True}]
    # The directory never sends its own invitation
    assert "requiredActions" not in payload


def test_create_user_conflict_is_username_exists(http, directory):
    http.add("POST", "/admin/realms/crm/users", _StubResponse(409, {"errorMessage": "User exists"}))

    with pytest.raises(DirectoryError) as excinfo:
        directory.create_user("ana@example.com", "Ana", "Tmp#Pass1234")
    assert excinfo.value.kind is DirectoryErrorKind.USERNAME_EXISTS


def test_delete_user_not_found(http, directory):
    _lookup(http, [])
    with pytest.raises(DirectoryError) as excinfo:
        directory.delete_user("ghost@example.com")
    assert excinfo.value.kind is DirectoryErrorKind.NOT_FOUND


def test_delete_user_by_resolved_id(http, directory):
    _lookup(http, [{"id": "42", "username": "ana@example.com"}])
    http.add("DELETE", "/admin/realms/crm/users/42", _StubResponse(204))

    directory.delete_user("ana@example.com")

    assert http.calls[-1][:2] == ("DELETE", "/admin/realms/crm/users/42")


def test_set_temporary_password_is_not_permanent(http, directory):
    _lookup(http, [{"id": "42", "username": "ana@example.com"}])
    http.add("PUT", "/admin/realms/crm/users/42/reset-password", _StubResponse(204))

    directory.set_temporary_password("ana@example.com", "Tmp#Pass1234")

    assert http.calls[-1][2]["json"] == {"type": "password", "temporary": True, "value": "Tmp#Pass1234"}


def test_password_policy_rejection(http, directory):
    _lookup(http, [{"id": "42", "username": "ana@example.com"}])
    http.add("PUT", "/admin/realms/crm/users/42/reset-password",
             _StubResponse(400, {"error": "invalidPasswordMinLengthMessage: password too short"}))

    with pytest.raises(DirectoryError) as excinfo:
        directory.set_temporary_password("ana@example.com", "x")
    assert excinfo.value.kind is DirectoryErrorKind.INVALID_PASSWORD


def test_send_verification_email(http, directory):
    _lookup(http, [{"id": "42", "username": "ana@example.com"}])
    http.add("PUT", "/admin/realms/crm/users/42/send-verify-email", _StubResponse(204))

    directory.send_verification_email("ana@example.com")

    assert http.calls[-1][:2] == ("PUT", "/admin/realms/crm/users/42/send-verify-email")


def test_transport_failure_is_unavailable(http, directory):
    http.add("GET", "/admin/realms/crm/users", requests.ConnectionError("refused"))
    with pytest.raises(DirectoryError) as excinfo:
        directory.get_user("ana@example.com")
    assert excinfo.value.kind is DirectoryErrorKind.UNAVAILABLE


def test_token_failure_is_unavailable(http, directory):
    http.add("POST", "/realms/crm/protocol/openid-connect/token", _StubResponse(401, {"error": "unauthorized_client"}))
    with pytest.raises(DirectoryError) as excinfo:
        directory.get_user("ana@example.com")
    assert excinfo.value.kind is DirectoryErrorKind.UNAVAILABLE


@pytest.mark.parametrize(
    "status,message,kind",
    [
        (409, "exists", DirectoryErrorKind.USERNAME_EXISTS),
        (404, "missing", DirectoryErrorKind.NOT_FOUND),
        (400, "Invalid password: too short", DirectoryErrorKind.INVALID_PASSWORD),
        (400, "unknown attribute", DirectoryErrorKind.INVALID_PARAMETER),
        (503, "down", DirectoryErrorKind.UNAVAILABLE),
        (418, "teapot", DirectoryErrorKind.UNKNOWN),
    ],
)
def test_classify_api_error(status, message, kind):
    assert classify_api_error(KeycloakAPIError(status, message, "/x")).kind is kind
