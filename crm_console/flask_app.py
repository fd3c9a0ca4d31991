"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with its blueprints, middleware and services.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from crm_console.config import AppConfig, load_settings
from crm_console.services import Services, build_services


def create_app(cfg: Optional[AppConfig] = None, services: Optional[Services] = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        cfg: Settings (loaded from the environment when omitted)
        services: Pre-built services (built from ``cfg`` when omitted)
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode
    app.json.sort_keys = False
    app.logger.setLevel(logging.INFO)

    # Trust X-Forwarded-* headers from the reverse proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    app.extensions["crm_services"] = services or build_services(cfg)

    from crm_console.api import admin, departments, errors, health, users

    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp, url_prefix="/api")
    app.register_blueprint(departments.bp, url_prefix="/api")
    app.register_blueprint(admin.bp, url_prefix="/api/admin")

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print("[flask_app] Admin API registered at /api")
    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo defaults")

    return app
