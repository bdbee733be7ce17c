"""
SafeWave - API Endpoint Tests

Tests for REST API endpoints using FastAPI TestClient.
These tests verify:
- Health and root endpoints
- The SOS trigger / cancel / report flow
- Contacts CRUD and validation errors
- Location sharing and automated detection controls

Run with: pytest tests/test_api_endpoints.py -v
"""

import time

import pytest
from fastapi.testclient import TestClient


def wait_for_idle(client: TestClient, timeout: float = 3.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get("/api/alerts/status").json()
        if status["state"] == "idle":
            return status
        assert time.monotonic() < deadline, f"alert stuck in {status['state']}"
        time.sleep(0.01)


def add_contacts(client: TestClient) -> None:
    client.post("/api/contacts", json={"name": "Asha", "email": "asha@example.com"})
    client.post("/api/contacts", json={"name": "Ravi", "phone": "+91 98765 43210"})


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_200(self, client: TestClient):
        response = client.get("/api/health")
        assert response.status_code == 200

    def test_health_returns_correct_structure(self, client: TestClient):
        data = client.get("/api/health").json()

        assert data["status"] in ["healthy", "degraded"]
        assert data["components"]["email_gateway"] == "dummy-email"
        assert data["components"]["call_gateway"] == "dummy-call"
        assert data["components"]["call_relay"] == "not_configured"


class TestRootEndpoint:
    """Tests for the root endpoint."""

    def test_root_returns_service_info(self, client: TestClient):
        data = client.get("/").json()

        assert data["service"] == "SafeWave"
        assert data["status"] == "operational"


class TestAlertEndpoints:
    """Tests for the SOS flow over HTTP."""

    def test_trigger_then_dispatch(self, client: TestClient):
        add_contacts(client)

        response = client.post("/api/alerts/trigger", json={"reason": "manual"})
        assert response.status_code == 200
        data = response.json()
        assert data["accepted"] is True
        assert data["state"] == "armed"
        alert_id = data["session"]["id"]

        status = wait_for_idle(client)
        assert status["dispatch_count"] == 1
        assert status["last_report"]["alert_id"] == alert_id

        reports = client.get("/api/alerts/reports").json()
        assert len(reports) == 1
        assert [(r["channel"], r["status"]) for r in reports[0]["results"]] == [
            ("email", "sent"),
            ("call", "sent"),
        ]
        assert reports[0]["results"][1]["recipient"] == "+919876543210"

    def test_trigger_without_body(self, client: TestClient):
        data = client.post("/api/alerts/trigger").json()
        assert data["accepted"] is True
        assert data["session"]["reason"] == "manual"
        client.post("/api/alerts/cancel")

    def test_second_trigger_not_accepted(self, client: TestClient):
        client.post("/api/alerts/trigger", json={})
        data = client.post("/api/alerts/trigger", json={}).json()

        assert data["accepted"] is False
        assert data["session"] is None
        client.post("/api/alerts/cancel")

    def test_cancel_within_window(self, client: TestClient):
        add_contacts(client)
        client.post("/api/alerts/trigger", json={})

        data = client.post("/api/alerts/cancel").json()

        assert data == {"canceled": True, "state": "idle"}
        time.sleep(0.2)
        assert client.get("/api/alerts/status").json()["dispatch_count"] == 0
        assert client.get("/api/alerts/reports").json() == []
        calls = client.app.state.arbiter.dispatcher.call_gateway.calls
        assert calls == []

    def test_cancel_when_idle(self, client: TestClient):
        assert client.post("/api/alerts/cancel").json()["canceled"] is False

    def test_log_lists_newest_first(self, client: TestClient):
        client.post("/api/alerts/trigger", json={})
        client.post("/api/alerts/cancel")

        entries = client.get("/api/alerts/log", params={"limit": 2}).json()

        assert entries[0]["message"] == "SOS canceled by user"
        assert entries[1]["message"].startswith("SOS initiated (manual)")

    def test_dispatch_without_contacts(self, client: TestClient):
        client.post("/api/alerts/trigger", json={})
        status = wait_for_idle(client)

        assert status["last_report"]["summary"] == "No contacts to notify"

    def test_report_limit_is_validated(self, client: TestClient):
        assert client.get("/api/alerts/reports", params={"limit": 0}).status_code == 422


class TestTestCallEndpoint:
    """Tests for POST /api/alerts/test-call."""

    def test_valid_number(self, client: TestClient):
        response = client.post("/api/alerts/test-call", json={"number": "+15550000001"})

        assert response.status_code == 200
        assert response.json()["status"] == "sent"

    def test_invalid_number(self, client: TestClient):
        response = client.post("/api/alerts/test-call", json={"number": "abc"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid phone format"


class TestLocationEndpoint:
    """Tests for POST /api/location."""

    def test_shared_fix_used_in_dispatch(self, client: TestClient):
        client.post("/api/contacts", json={"name": "Ravi", "phone": "+919876543210"})

        response = client.post("/api/location", json={"lat": 12.5, "lon": 77.25})
        assert response.status_code == 204

        client.post("/api/alerts/trigger", json={})
        status = wait_for_idle(client)

        assert status["last_known_location"] == {"lat": 12.5, "lon": 77.25}
        calls = client.app.state.arbiter.dispatcher.call_gateway.calls
        assert calls[0]["message"] == "I need help. Location: 12.5,77.25"

    def test_out_of_range_rejected(self, client: TestClient):
        assert client.post("/api/location", json={"lat": 123.0, "lon": 0.0}).status_code == 422


class TestContactEndpoints:
    """Tests for contacts CRUD."""

    def test_add_and_list(self, client: TestClient):
        response = client.post("/api/contacts", json={"name": "Ravi", "phone": "+91 98765 43210"})
        assert response.status_code == 201
        assert response.json()["phone"] == "+919876543210"

        data = client.get("/api/contacts").json()
        assert data["count"] == 1
        assert data["contacts"][0]["name"] == "Ravi"

    def test_invalid_phone_returns_400(self, client: TestClient):
        response = client.post("/api/contacts", json={"name": "Ravi", "phone": "12345"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PHONE_NUMBER"

    def test_missing_channel_returns_400(self, client: TestClient):
        response = client.post("/api/contacts", json={"name": "Ravi"})

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CONTACT"

    def test_remove_and_clear(self, client: TestClient):
        add_contacts(client)

        assert client.delete("/api/contacts/0").json()["name"] == "Asha"
        assert client.delete("/api/contacts/5").status_code == 404

        assert client.delete("/api/contacts").status_code == 204
        assert client.get("/api/contacts").json()["count"] == 0


class TestMonitorEndpoints:
    """Tests for automated detection controls."""

    def test_status_when_stopped(self, client: TestClient):
        data = client.get("/api/monitor").json()

        assert data["available"] is True
        assert data["running"] is False

    def test_start_and_stop(self, client: TestClient):
        started = client.post("/api/monitor/start").json()
        assert started["running"] is True
        assert started["last_error"] is None

        stopped = client.post("/api/monitor/stop").json()
        assert stopped["running"] is False

    def test_unavailable_monitor_returns_503(self, client: TestClient):
        client.app.state.monitor = None

        assert client.get("/api/monitor").json()["available"] is False
        assert client.post("/api/monitor/start").status_code == 503
        assert client.get("/api/health").json()["status"] == "degraded"
