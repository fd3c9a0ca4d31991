"""Tests for health check endpoints."""
import pytest
from flask import Flask

from crm_console.api.health import bp as health_bp


@pytest.fixture()
def bare_client():
    app = Flask(__name__)
    app.register_blueprint(health_bp)
    with app.test_client() as client:
        yield client


def test_health_check(bare_client):
    """Liveness is plain text."""
    response = bare_client.get("/health")
    assert response.status_code == 200
    assert response.data == b"ok"
    assert response.content_type.startswith("text/plain")


def test_readiness_without_services(bare_client):
    response = bare_client.get("/ready")
    assert response.status_code == 503
    assert response.get_json() == {"ready": False}


def test_readiness_reports_collaborators(client):
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.get_json() == {
        "ready": True,
        "directory": True,
        "store": "InMemoryRecordStore",
        "notifier": "FakeNotifier",
    }
