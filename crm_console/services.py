"""Service wiring: builds the collaborators from settings and injects them."""
from __future__ import annotations
import sys
from dataclasses import dataclass
from typing import Optional

from crm_console.config import AppConfig
from crm_console.core.directory import IdentityDirectory, KeycloakClient
from crm_console.core.journal import ProvisioningJournal
from crm_console.core.notifications import LoggingEmailSender, NotificationSender, SmtpEmailSender
from crm_console.core.org_service import OrgService
from crm_console.core.provisioning_service import ProvisioningService
from crm_console.core.store import GraphQLRecordStore, InMemoryRecordStore, RecordStore


@dataclass
class Services:
    provisioning: ProvisioningService
    org: OrgService


def build_directory(cfg: AppConfig) -> Optional[IdentityDirectory]:
    """Identity directory adapter, or None when no admin session can be opened."""
    if not cfg.directory_enabled:
        print("[services] Identity directory not configured; identities will not be managed", file=sys.stderr)
        return None
    client = KeycloakClient(
        cfg.keycloak_url,
        cfg.keycloak_service_realm,
        cfg.keycloak_service_client_id,
        cfg.keycloak_service_client_secret,
    )
    return IdentityDirectory(client, cfg.keycloak_realm)


def build_store(cfg: AppConfig) -> RecordStore:
    if cfg.data_api_url:
        return GraphQLRecordStore(cfg.data_api_url, cfg.data_api_key)
    print("[services] DATA_API_URL not set; using in-memory record store", file=sys.stderr)
    return InMemoryRecordStore()


def build_notifier(cfg: AppConfig) -> NotificationSender:
    if cfg.mail_enabled:
        return SmtpEmailSender(
            cfg.smtp_host,
            cfg.smtp_port,
            cfg.smtp_user,
            cfg.smtp_password,
            from_email=cfg.smtp_from,
            use_tls=cfg.smtp_use_tls,
        )
    return LoggingEmailSender()


def build_services(
    cfg: AppConfig,
    *,
    store: Optional[RecordStore] = None,
    directory: Optional[IdentityDirectory] = None,
    notifier: Optional[NotificationSender] = None,
    journal: Optional[ProvisioningJournal] = None,
    source: str = "api",
) -> Services:
    """Create the services; explicitly passed collaborators win over settings.

    ``source`` is recorded on every audit event ("api" or "cli").
    """
    store = store if store is not None else build_store(cfg)
    if directory is None:
        directory = build_directory(cfg)
    notifier = notifier if notifier is not None else build_notifier(cfg)
    journal = journal if journal is not None else ProvisioningJournal(cfg.journal_path)

    provisioning = ProvisioningService(
        store,
        directory=directory,
        notifier=notifier,
        journal=journal,
        login_url=cfg.login_url,
        source=source,
    )
    return Services(provisioning=provisioning, org=OrgService(store, source=source))
