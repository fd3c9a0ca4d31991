"""Core Business Logic Module

Framework-free logic for the CRM admin console.

Module Structure:
    - directory/              : Keycloak Admin API client and identity adapter
    - store/                  : Record store adapters (GraphQL data API, in-memory)
    - provisioning_service.py : User lifecycle orchestrator
    - org_service.py          : Department and role management
    - records.py              : Store gateway with error translation
    - journal.py              : Provisioning intent log for reconciliation
    - notifications.py        : SMTP sender and welcome email
    - passwords.py            : Temporary credential generator
    - validators.py           : Input validation
    - errors.py               : Provisioning error taxonomy
    - models.py               : Record types and constants

These modules are NOT auto-imported; import explicitly when needed:
    from crm_console.core.provisioning_service import ProvisioningService
    from crm_console.core.errors import ProvisioningError
"""
