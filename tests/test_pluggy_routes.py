"""Tests for the Pluggy HTTP routes (client injected)."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from zenmind.api.routes import pluggy
from zenmind.pluggy.client import PluggyError


@pytest.fixture
def pluggy_client():
    client = MagicMock()
    pluggy._set_client(client)
    return client


@pytest.fixture
def http():
    app = FastAPI()
    app.include_router(pluggy.router)
    return TestClient(app)


class TestConnectors:
    def test_list(self, http, pluggy_client):
        pluggy_client.get_connectors.return_value = [{"id": 1}, {"id": 2}]
        response = http.get("/pluggy/connectors")
        assert response.json() == {"success": True, "data": [{"id": 1}, {"id": 2}], "count": 2}

    def test_pluggy_failure_is_502(self, http, pluggy_client):
        pluggy_client.get_connectors.side_effect = PluggyError("upstream down", 500)
        response = http.get("/pluggy/connectors")
        assert response.status_code == 502
        assert response.json() == {"success": False, "error": "upstream down"}

    def test_unconfigured_is_503(self, http, monkeypatch):
        monkeypatch.delenv("PLUGGY_CLIENT_ID", raising=False)
        monkeypatch.delenv("PLUGGY_CLIENT_SECRET", raising=False)
        response = http.get("/pluggy/connectors")
        assert response.status_code == 503
        assert response.json()["success"] is False


class TestConnectToken:
    def test_phone_cleaned(self, http, pluggy_client):
        pluggy_client.create_connect_token.return_value = {"connectToken": "ct"}
        response = http.post("/pluggy/connect-token", json={"phoneNumber": "+55 11 99999-8888"})

        assert response.json() == {"success": True, "data": {"connectToken": "ct"}}
        pluggy_client.create_connect_token.assert_called_once_with(
            "5511999998888", webhook_url=None, include_sandbox=True
        )

    def test_empty_phone_is_400(self, http, pluggy_client):
        response = http.post("/pluggy/connect-token", json={"phoneNumber": "+"})
        assert response.status_code == 400
        pluggy_client.create_connect_token.assert_not_called()


class TestData:
    def test_transactions_query(self, http, pluggy_client):
        pluggy_client.get_transactions.return_value = {"transactions": [], "pagination": {}}
        response = http.get(
            "/pluggy/accounts/acc-1/transactions",
            params={"from": "2026-01-01", "page": 2, "pageSize": 50},
        )
        assert response.status_code == 200
        pluggy_client.get_transactions.assert_called_once_with(
            "acc-1", from_date="2026-01-01", to_date=None, page=2, page_size=50
        )

    def test_summary(self, http, pluggy_client):
        pluggy_client.get_user_financial_data.return_value = {
            "accounts": [],
            "transactions": [],
            "summary": {"totalItems": 0},
        }
        with patch.object(pluggy, "generate_financial_summary", return_value={"netFlow": 0}):
            response = http.get("/pluggy/users/551199/summary")

        data = response.json()["data"]
        assert data["clientUserId"] == "551199"
        assert data["summary"] == {"netFlow": 0}
        assert data["dataInfo"] == {"totalItems": 0}


class TestWebhookAndHealth:
    def test_webhook(self, http, pluggy_client):
        with patch.object(pluggy, "handle_webhook", return_value={"event": "item/created"}) as handle:
            response = http.post("/pluggy/webhook", json={"event": "item/created"})

        assert response.json()["success"] is True
        assert response.json()["data"] == {"event": "item/created"}
        handle.assert_called_once_with({"event": "item/created"}, pluggy_client)

    def test_webhook_failure_is_500(self, http, pluggy_client):
        with patch.object(pluggy, "handle_webhook", side_effect=RuntimeError("db down")):
            response = http.post("/pluggy/webhook", json={"event": "item/created"})
        assert response.status_code == 500

    def test_health(self, http, pluggy_client):
        pluggy_client.test_connection.return_value = {"success": False, "error": "bad creds"}
        body = http.get("/pluggy/health").json()
        assert body["status"] == "unhealthy"
        assert body["pluggyConnection"] is False
        assert body["details"] == "bad creds"
