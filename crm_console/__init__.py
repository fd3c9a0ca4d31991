"""CRM Admin Console backend package.

To use the Flask app:
    from crm_console.flask_app import create_app

To use the provisioning orchestrator directly:
    from crm_console.flask_app import build_services
    services = build_services(load_settings())
    services.provisioning.create_user(...)
"""
# Note: flask_app is not imported here so the CLI and core modules can be
# used without pulling in Flask.
