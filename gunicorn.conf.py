"""Gunicorn configuration for the admin console API.

Run with: ``gunicorn -c gunicorn.conf.py crm_console.wsgi:app``

Secrets are read by the settings loader from /run/secrets (Docker secrets)
or the environment; workers only check that the mount is present.
"""
import os

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"

    from pathlib import Path
    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
            return

    if demo_mode:
        worker.log.info("No /run/secrets mount; DEMO_MODE uses environment and demo defaults")
    else:
        worker.log.warning("No /run/secrets mount; secrets must come from the environment")
