"""
Integration tests for the license HTTP endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app, get_clock, get_transport

from conftest import FakeTransport

LICENSE = {
    "status": "active",
    "expires_at": None,
    "activations": {"limit": 1, "used": 1},
    "product": "Woo Stock Sync",
    "package": "Lifetime",
}


@pytest.fixture
def api_transport():
    return FakeTransport()


@pytest.fixture
def api_client(session_factory, api_transport, clock):
    """Fixture for a TestClient with the database, transport and clock overridden."""

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_transport] = lambda: api_transport
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_activate_and_status(api_client, api_transport):
    api_transport.respond("/licenses/activate", 201, {"data": LICENSE})

    response = api_client.post("/api/license/activate", json={"licenseKey": "ABCD1234EFGH"})

    assert response.status_code == 200
    assert response.json()["success"] is True

    status = api_client.get("/api/license/status").json()
    assert status["status"] == "active"
    assert status["licenseKey"] == "ABCD••••EFGH"
    assert status["remainingDays"] is None
    assert status["isValid"] is True


def test_activate_rejected_key(api_client, api_transport):
    api_transport.respond("/licenses/activate", 401, {"message": "Invalid license key."})

    response = api_client.post("/api/license/activate", json={"licenseKey": "ABCD1234EFGH"})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["httpCode"] == 401
    assert detail["isNetworkError"] is False

    status = api_client.get("/api/license/status").json()
    assert status["status"] == "invalid"
    assert status["presentation"]["action"] == "enter_key"


def test_activate_blank_key(api_client, api_transport):
    response = api_client.post("/api/license/activate", json={"licenseKey": "  "})

    assert response.status_code == 400
    assert response.json()["detail"] == "License key is required."
    assert api_transport.calls == []


def test_check_without_license(api_client):
    response = api_client.post("/api/license/check")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["activated"] is False


def test_deactivate_when_server_unreachable(api_client, api_transport):
    api_transport.respond("/licenses/activate", 201, {"data": LICENSE})
    api_client.post("/api/license/activate", json={"licenseKey": "ABCD1234EFGH"})
    api_transport.fail("/licenses/deactivate")

    response = api_client.post("/api/license/deactivate")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert api_client.get("/api/license/status").json()["hasLicense"] is False


def test_logs_record_activity(api_client, api_transport):
    api_transport.respond("/licenses/activate", 201, {"data": LICENSE})
    api_client.post("/api/license/activate", json={"licenseKey": "ABCD1234EFGH"})

    logs = api_client.get("/api/license/logs").json()

    assert logs[0]["type"] == "license"
    assert logs[0]["status"] == "success"


def test_health(api_client):
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_check_with_blank_key(api_client, api_transport):
    response = api_client.post("/api/license/check", json={"licenseKey": "   "})

    assert response.status_code == 200
    assert response.json()["message"] == "No license key found."
    assert api_transport.calls == []
