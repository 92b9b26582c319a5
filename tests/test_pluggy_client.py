"""Tests for the Pluggy API client (HTTP session mocked)."""

from unittest.mock import MagicMock

import pytest
import requests

from zenmind.pluggy.client import PluggyClient, PluggyError, clean_client_user_id


def _response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {}
    return response


class FakeSession:
    """Routes (method, path) to queued responses and records calls."""

    def __init__(self, routes):
        self.routes = {key: list(value) for key, value in routes.items()}
        self.calls = []

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = url.replace("https://api.pluggy.ai", "")
        self.calls.append({"method": method, "path": path, "params": params, "json": json, "headers": headers})
        queued = self.routes[(method, path)]
        result = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(result, Exception):
            raise result
        return result


AUTH = {("POST", "/auth"): [_response(body={"apiKey": "key-1"})]}


def _client(routes):
    session = FakeSession({**AUTH, **routes})
    return PluggyClient("id", "secret", session=session), session


class TestConstruction:
    def test_requires_credentials(self, monkeypatch):
        monkeypatch.delenv("PLUGGY_CLIENT_ID", raising=False)
        monkeypatch.delenv("PLUGGY_CLIENT_SECRET", raising=False)
        with pytest.raises(RuntimeError):
            PluggyClient()

    def test_clean_client_user_id(self):
        assert clean_client_user_id("+55 (11) 99999-8888") == "5511999998888"
        assert clean_client_user_id("") == ""


class TestAuthenticate:
    def test_api_key_cached(self):
        client, session = _client({("GET", "/connectors"): [_response(body={"results": []})]})
        client.get_connectors()
        client.get_connectors()
        assert [c["path"] for c in session.calls].count("/auth") == 1
        assert session.calls[-1]["headers"]["X-API-KEY"] == "key-1"

    def test_invalid_credentials(self):
        session = FakeSession({("POST", "/auth"): [_response(401, {"message": "bad"})]})
        client = PluggyClient("id", "secret", session=session)
        with pytest.raises(PluggyError, match="Invalid Pluggy credentials") as exc:
            client.authenticate()
        assert exc.value.status_code == 401

    def test_network_error(self):
        session = FakeSession({("POST", "/auth"): [requests.ConnectionError("down")]})
        client = PluggyClient("id", "secret", session=session)
        with pytest.raises(PluggyError):
            client.authenticate()


class TestEndpoints:
    def test_connectors_shape(self):
        client, _ = _client({("GET", "/connectors"): [_response(body={"results": [
            {"id": 1, "name": "Nubank", "type": "PERSONAL_BANK", "country": "BR",
             "health": {"status": "ONLINE"}, "isOpenFinance": True},
        ]})]})
        [connector] = client.get_connectors()
        assert connector["name"] == "Nubank"
        assert connector["health"] == "ONLINE"
        assert connector["isOpenFinance"] is True

    def test_connect_token_uses_default_webhook(self, monkeypatch):
        monkeypatch.setenv("BASE_URL", "https://zenmind.example/")
        client, session = _client({("POST", "/connect_token"): [_response(body={"accessToken": "ct"})]})

        token = client.create_connect_token("5511999998888")

        assert token["connectToken"] == "ct"
        assert token["webhookUrl"] == "https://zenmind.example/pluggy/webhook"
        assert session.calls[-1]["json"]["clientUserId"] == "5511999998888"

    def test_connect_token_missing(self):
        client, _ = _client({("POST", "/connect_token"): [_response(body={})]})
        with pytest.raises(PluggyError):
            client.create_connect_token("551199")

    def test_transactions_pagination(self):
        client, session = _client({("GET", "/transactions"): [_response(body={
            "results": [{"id": "tx1", "amount": -10.0}],
            "page": 0,
            "totalPages": 3,
            "total": 250,
        })]})

        page = client.get_transactions("acc-1", from_date="2026-01-01")

        assert page["pagination"] == {"page": 0, "totalPages": 3, "total": 250, "hasMore": True}
        assert page["transactions"][0]["currencyCode"] == "BRL"
        assert session.calls[-1]["params"]["from"] == "2026-01-01"

    def test_error_message_from_body(self):
        client, _ = _client({("GET", "/items"): [_response(404, {"message": "Item not found"})]})
        with pytest.raises(PluggyError, match="Item not found") as exc:
            client.get_items("551199")
        assert exc.value.status_code == 404


class TestFinancialData:
    def test_only_updated_items_are_read(self):
        client, session = _client({
            ("GET", "/items"): [_response(body={"results": [
                {"id": "item-ok", "status": "UPDATED", "connector": {"name": "Nubank"}},
                {"id": "item-bad", "status": "LOGIN_ERROR", "connector": {"name": "Inter"}},
            ]})],
            ("GET", "/accounts"): [_response(body={"results": [
                {"id": "acc-1", "type": "BANK", "name": "Conta", "balance": 100.0},
            ]})],
            ("GET", "/transactions"): [_response(body={"results": [
                {"id": "tx1", "amount": -50.0, "date": "2026-05-01T00:00:00Z"},
            ]})],
        })

        data = client.get_user_financial_data("551199")

        assert data["summary"]["totalItems"] == 2
        assert data["summary"]["activeItems"] == 1
        assert data["summary"]["totalAccounts"] == 1
        assert data["transactions"][0]["accountName"] == "Conta"
        assert data["accounts"][0]["connectorName"] == "Nubank"
        account_calls = [c for c in session.calls if c["path"] == "/accounts"]
        assert [c["params"]["itemId"] for c in account_calls] == ["item-ok"]

    def test_test_connection_reports_failure(self):
        session = FakeSession({("POST", "/auth"): [_response(401)]})
        result = PluggyClient("id", "secret", session=session).test_connection()
        assert result["success"] is False
        assert "Invalid Pluggy credentials" in result["error"]
