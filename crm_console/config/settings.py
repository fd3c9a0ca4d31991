"""Settings loader with environment variable, Docker secrets and runtime outputs integration."""
from __future__ import annotations
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


DEFAULT_RUNTIME_OUTPUTS = "crm_outputs.json"


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            print(f"[settings] ✓ Loaded {env_var} from environment (fallback)")
            return secret_value

    return None


def _load_runtime_outputs(path: str) -> dict[str, Any]:
    """Read the generated backend outputs artifact.

    The artifact is written by the deployment tooling and looks like::

        {"auth": {"url": "...", "user_pool_id": "..."},
         "data": {"url": "...", "api_key": "..."}}

    Missing or unreadable files yield an empty dict; environment variables
    then have to supply the values.
    """
    outputs_file = Path(path)
    if not outputs_file.exists():
        return {}
    try:
        payload = json.loads(outputs_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print(f"[settings] ✗ Failed to read runtime outputs {outputs_file}: {e}")
        return {}
    if not isinstance(payload, dict):
        print(f"[settings] ✗ Ignoring runtime outputs {outputs_file}: not a JSON object")
        return {}
    print(f"[settings] ✓ Loaded runtime outputs from {outputs_file}")
    return payload


@dataclass
class AppConfig:
    """Application configuration container."""
    # Mode
    demo_mode: bool

    # Identity directory (Keycloak)
    keycloak_url: str = ""
    keycloak_realm: str = "crm"
    keycloak_service_realm: str = "crm"
    keycloak_service_client_id: str = "crm-admin-console"
    keycloak_service_client_secret: str = ""
    keycloak_issuer: str = ""
    keycloak_server_url: str = ""

    # Domain record store (GraphQL data API)
    data_api_url: str = ""
    data_api_key: str = ""

    # Notification sender (SMTP)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "noreply@rodeo-drive.com"
    smtp_use_tls: bool = True
    login_url: str = "http://localhost:3000/login"

    # API access
    admin_role: str = "crm-admin"
    api_static_token: str = ""

    # Provisioning journal and audit
    journal_path: str = ".runtime/provisioning/journal.jsonl"
    audit_log_signing_key: str = ""

    @property
    def directory_enabled(self) -> bool:
        """Whether an administrative directory session can be opened.

        Without a Keycloak URL and service client secret the console runs
        without an identity directory (demo/local mode).
        """
        return bool(self.keycloak_url and self.keycloak_service_client_secret)

    @property
    def mail_enabled(self) -> bool:
        """Whether SMTP delivery is configured."""
        return bool(self.smtp_host)


def _get_or_generate(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or use demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        print(f"[demo-mode] Using default for {var_name}")
        os.environ[var_name] = demo_default
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def load_settings() -> AppConfig:
    """Load application settings from environment, /run/secrets and the runtime outputs artifact."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    # ─────────────────────────────────────────────────────────────────────────
    # Runtime outputs artifact (identity pool + data API endpoint)
    # Priority: environment variables > runtime outputs file > demo defaults
    # ─────────────────────────────────────────────────────────────────────────
    outputs_path = os.environ.get("CRM_RUNTIME_OUTPUTS", DEFAULT_RUNTIME_OUTPUTS)
    outputs = _load_runtime_outputs(outputs_path)
    auth_outputs = outputs.get("auth") or {}
    data_outputs = outputs.get("data") or {}

    # Identity directory
    keycloak_url = os.environ.get("KEYCLOAK_URL") or auth_outputs.get("url", "")
    keycloak_url = keycloak_url.rstrip("/")
    keycloak_realm = os.environ.get("KEYCLOAK_REALM") or auth_outputs.get("user_pool_id") or "crm"
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "crm-admin-console")

    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET"
    ) or ""

    default_issuer = f"{keycloak_url}/realms/{keycloak_realm}" if keycloak_url else ""
    keycloak_issuer = os.environ.get("KEYCLOAK_ISSUER", default_issuer)
    keycloak_server_url = os.environ.get("KEYCLOAK_SERVER_URL", keycloak_issuer)

    # Domain record store
    data_api_url = os.environ.get("DATA_API_URL") or data_outputs.get("url", "")
    if not data_api_url and not demo_mode:
        raise RuntimeError(
            "DATA_API_URL is required in production mode "
            f"(set it or provide data.url in {outputs_path})."
        )
    data_api_key = _load_secret_from_file("data_api_key", "DATA_API_KEY") or data_outputs.get("api_key", "")

    # SMTP
    smtp_host = os.environ.get("SMTP_HOST", "")
    smtp_port = int(os.environ.get("SMTP_PORT", "587"))
    smtp_user = os.environ.get("SMTP_USER", "")
    smtp_password = _load_secret_from_file("smtp_password", "SMTP_PASSWORD") or ""
    smtp_from = os.environ.get("SMTP_FROM") or os.environ.get("FROM_EMAIL") or "noreply@rodeo-drive.com"
    smtp_use_tls = os.environ.get("SMTP_USE_TLS", "true").lower() == "true"
    login_url = _get_or_generate(
        "CRM_LOGIN_URL",
        demo_default="http://localhost:3000/login",
        demo_mode=demo_mode
    )

    # API access
    admin_role = os.environ.get("CRM_ADMIN_ROLE", "crm-admin").strip().lower()
    api_static_token = _load_secret_from_file("crm_api_static_token", "CRM_API_STATIC_TOKEN") or ""
    if api_static_token and not demo_mode:
        print("[settings] ⚠️ CRM_API_STATIC_TOKEN ignored outside DEMO_MODE")
        api_static_token = ""

    # Journal
    journal_path = os.environ.get("CRM_JOURNAL_PATH", ".runtime/provisioning/journal.jsonl")

    # Audit log signing key
    audit_log_signing_key = _load_secret_from_file(
        "audit_log_signing_key",
        "AUDIT_LOG_SIGNING_KEY"
    )
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key
    elif demo_mode:
        demo_key = os.environ.get("AUDIT_LOG_SIGNING_KEY_DEMO", "demo-audit-signing-key-change-in-production")
        os.environ["AUDIT_LOG_SIGNING_KEY"] = demo_key
        audit_log_signing_key = demo_key
        print(f"[demo-mode] Using demo AUDIT_LOG_SIGNING_KEY: {demo_key[:20]}...")

    cfg = AppConfig(
        demo_mode=demo_mode,
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        keycloak_issuer=keycloak_issuer,
        keycloak_server_url=keycloak_server_url,
        data_api_url=data_api_url,
        data_api_key=data_api_key,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_password=smtp_password,
        smtp_from=smtp_from,
        smtp_use_tls=smtp_use_tls,
        login_url=login_url,
        admin_role=admin_role,
        api_static_token=api_static_token,
        journal_path=journal_path,
        audit_log_signing_key=audit_log_signing_key or "",
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    store_label = "graphql" if data_api_url else "in-memory"
    print(f"[settings] Mode={mode_label}; realm={keycloak_realm}; directory={'on' if cfg.directory_enabled else 'off'}; store={store_label}")

    if demo_mode:
        print("[settings] WARNING: Demo defaults in use. Do not deploy with these defaults.")

    return cfg
