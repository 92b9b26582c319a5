"""Tests for app factory and role-based routing."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from zenmind.api.factory import create_app


class TestPublicRole:
    """Tests for APP_ROLE=public."""

    def test_health_available(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_worker_routes_not_mounted(self):
        client = TestClient(create_app(role="public"))
        assert client.get("/tasks/health").status_code == 404
        assert client.get("/internal/health").status_code == 404
        assert client.post("/tasks/whatsapp/handle-message", json={}).status_code == 404

    def test_webhook_mounted(self, monkeypatch):
        monkeypatch.delenv("META_VERIFY_TOKEN", raising=False)
        client = TestClient(create_app(role="public"))
        assert client.get("/webhooks/whatsapp/meta").status_code == 403


class TestWorkerRole:
    """Tests for APP_ROLE=worker."""

    def test_tasks_mounted(self):
        client = TestClient(create_app(role="worker"))
        response = client.get("/tasks/health")
        assert response.status_code == 200
        assert response.json()["subsystem"] == "tasks"

    def test_internal_mounted(self):
        client = TestClient(create_app(role="worker"))
        assert client.get("/internal/health").json()["subsystem"] == "internal"

    def test_handle_message_requires_auth(self, monkeypatch):
        monkeypatch.delenv("TASKS_OIDC_AUDIENCE", raising=False)
        client = TestClient(create_app(role="worker"))
        assert client.post("/tasks/whatsapp/handle-message", json={}).status_code == 401

    def test_handle_message_auth_mocked(self):
        client = TestClient(create_app(role="worker"))
        with patch("zenmind.api.task_auth.verify_task_auth", return_value=True):
            response = client.post("/tasks/whatsapp/handle-message", json={})
        assert response.status_code == 400


class TestRoleSelection:
    def test_role_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_ROLE", "worker")
        client = TestClient(create_app())
        assert client.get("/tasks/health").status_code == 200

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            create_app(role="admin")


class TestCorrelationId:
    def test_generated_when_absent(self):
        client = TestClient(create_app(role="public"))
        assert client.get("/health").headers["X-Correlation-ID"]

    def test_propagated(self):
        client = TestClient(create_app(role="public"))
        response = client.get("/health", headers={"X-Correlation-ID": "cid-123"})
        assert response.headers["X-Correlation-ID"] == "cid-123"
