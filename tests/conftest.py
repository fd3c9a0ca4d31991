"""Pytest shared fixtures."""
import os
import pathlib
import sys
import time
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import jwt
import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from crm_console.config import AppConfig
from crm_console.core.directory import DirectoryError, DirectoryErrorKind
from crm_console.core.journal import ProvisioningJournal
from crm_console.core.org_service import OrgService
from crm_console.core.provisioning_service import ProvisioningService
from crm_console.core.store import InMemoryRecordStore
from crm_console.flask_app import create_app
from crm_console.services import Services
from scripts import audit


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from reaching live services.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _refuse(method):
        def _stub(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _stub

    for method in ("get", "post", "put", "delete"):
        monkeypatch.setattr(requests, method, _refuse(method.upper()))


@pytest.fixture(autouse=True)
def _isolated_audit(monkeypatch, tmp_path):
    """Write audit events to a per-test directory with a known key."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "console-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir


# ─────────────────────────────────────────────────────────────────────────────
# Collaborator fakes
# ─────────────────────────────────────────────────────────────────────────────
class FakeDirectory:
    """In-memory identity directory with injectable failures."""

    def __init__(self):
        self.identities: dict[str, dict] = {}
        self.passwords: dict[str, str] = {}
        self.verification_sent: list[str] = []
        self.failures: dict[str, DirectoryError] = {}
        self.calls: list[tuple] = []

    def fail(self, method: str, kind: DirectoryErrorKind, message: str = "injected failure"):
        self.failures[method] = DirectoryError(kind, message)

    def _check(self, method: str, *args):
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    def get_user(self, username):
        self._check("get_user", username)
        return self.identities.get(username.lower())

    def create_user(self, email, name, temp_password):
        self._check("create_user", email, name)
        if email in self.identities:
            raise DirectoryError(DirectoryErrorKind.USERNAME_EXISTS, "User exists with same username")
        identity_id = f"kc-{len(self.identities) + 1}"
        self.identities[email] = {"id": identity_id, "username": email, "email": email, "firstName": name}
        self.passwords[email] = temp_password
        return identity_id

    def delete_user(self, username):
        self._check("delete_user", username)
        if username not in self.identities:
            raise DirectoryError(DirectoryErrorKind.NOT_FOUND, f"User '{username}' not found")
        del self.identities[username]

    def set_temporary_password(self, username, password):
        self._check("set_temporary_password", username)
        if username not in self.identities:
            raise DirectoryError(DirectoryErrorKind.NOT_FOUND, f"User '{username}' not found")
        self.passwords[username] = password

    def send_verification_email(self, username):
        self._check("send_verification_email", username)
        self.verification_sent.append(username)


class FakeNotifier:
    def __init__(self):
        self.sent: list[dict] = []
        self.error: Optional[Exception] = None

    def send_email(self, recipient, subject, html_body, text_body):
        if self.error is not None:
            raise self.error
        self.sent.append({"recipient": recipient, "subject": subject, "html": html_body, "text": text_body})
        return f"<msg-{len(self.sent)}@test>"


@pytest.fixture()
def store():
    return InMemoryRecordStore()


@pytest.fixture()
def directory():
    return FakeDirectory()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def journal(tmp_path):
    return ProvisioningJournal(tmp_path / "journal.jsonl")


@pytest.fixture()
def service(store, directory, notifier, journal):
    return ProvisioningService(
        store, directory=directory, notifier=notifier, journal=journal,
        login_url="https://crm.example.com/login",
    )


@pytest.fixture()
def org(store):
    return OrgService(store)


@pytest.fixture()
def engineering(org):
    """Engineering department with a Technician role."""
    department = org.create_department({"name": "Engineering", "description": "Field engineering"})
    role = org.create_role(department["id"], {"name": "Technician"})
    return {"department": department, "role": role}


def user_payload(engineering, **overrides):
    payload = {
        "employeeId": "E100",
        "name": "Ana Lopez",
        "email": "ana@example.com",
        "mobile": "+1 555 0100",
        "departmentId": engineering["department"]["id"],
        "roleId": engineering["role"]["id"],
    }
    payload.update(overrides)
    return payload


# ─────────────────────────────────────────────────────────────────────────────
# Settings and Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        keycloak_url="",
        keycloak_realm="crm",
        keycloak_service_realm="crm",
        keycloak_service_client_id="crm-admin-console",
        keycloak_service_client_secret="",
        keycloak_issuer="https://localhost/realms/crm",
        keycloak_server_url="https://localhost/realms/crm",
        data_api_url="",
        data_api_key="",
        login_url="https://crm.example.com/login",
        admin_role="crm-admin",
        api_static_token="",
        journal_path="journal.jsonl",
        audit_log_signing_key="test-signing-key-for-audit-trail",
    )
    base.update(overrides)
    return AppConfig(**base)


@pytest.fixture()
def flask_app(service, org):
    app = create_app(make_config(), Services(provisioning=service, org=org))
    app.config.update(TESTING=True, SKIP_OAUTH_FOR_TESTS=True)
    return app


@pytest.fixture()
def client(flask_app):
    with flask_app.test_client() as client:
        with flask_app.app_context():
            yield client


# ─────────────────────────────────────────────────────────────────────────────
# RSA Key Pair for JWT Testing
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_key_pair():
    """Generate RSA key pair for JWT signing in tests."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return {
        "private_key": private_key,
        "private_pem": private_pem,
        "public_key": private_key.public_key(),
    }


def create_valid_jwt(
    rsa_key_pair: dict,
    issuer: str = "https://localhost/realms/crm",
    sub: str = "user-123",
    username: str = "alice",
    roles: Optional[list[str]] = None,
    exp_offset: int = 3600,
    kid: str = "default-key-id",
) -> str:
    """Create an RS256-signed JWT for testing."""
    if roles is None:
        roles = ["crm-admin"]
    now = int(time.time())
    payload = {
        "iss": issuer,
        "sub": sub,
        "exp": now + exp_offset,
        "iat": now,
        "preferred_username": username,
        "realm_access": {"roles": roles},
    }
    return jwt.encode(payload, rsa_key_pair["private_pem"], algorithm="RS256", headers={"kid": kid})


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires running stack)"
    )
    config.addinivalue_line(
        "markers", "critical: marks tests as critical provisioning invariants"
    )
