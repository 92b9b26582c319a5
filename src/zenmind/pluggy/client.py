"""Thin wrapper around the Pluggy Open Finance REST API.

Purpose:
- Encapsulate Pluggy calls so routes never build requests themselves.
- Cache the API key (valid 2h at Pluggy, refreshed after 110 minutes).
- Never log account numbers, tax ids or transaction descriptions.

Authentication flow:
1. POST /auth with {clientId, clientSecret} -> {apiKey}
2. Every other request sends the X-API-KEY header
3. POST /connect_token -> {accessToken} for the Connect widget
"""

from __future__ import annotations

import os
import re
from datetime import datetime, timedelta
from typing import Any

import requests

from zenmind.infra.time import utc_now
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.pluggy.ai"
HTTP_TIMEOUT = 30

API_KEY_TTL = timedelta(minutes=110)
CONNECT_TOKEN_TTL = timedelta(minutes=30)
DEFAULT_HISTORY_DAYS = 90

# Only items in this status have readable accounts
ITEM_STATUS_UPDATED = "UPDATED"


class PluggyError(Exception):
    """A Pluggy API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def clean_client_user_id(phone_number: str) -> str:
    """Pluggy clientUserId for a phone number: digits only."""
    return re.sub(r"\D", "", phone_number or "")


def _results(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict):
        return list(data.get("results") or [])
    return list(data or [])


class PluggyClient:
    """Pluggy API client.

    Usage:
        client = PluggyClient()  # reads PLUGGY_CLIENT_ID / PLUGGY_CLIENT_SECRET
        token = client.create_connect_token("5511999999999")
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Raises:
            RuntimeError: If credentials are neither passed nor in the environment.
        """
        self._client_id = client_id or os.environ.get("PLUGGY_CLIENT_ID")
        self._client_secret = client_secret or os.environ.get("PLUGGY_CLIENT_SECRET")
        if not self._client_id or not self._client_secret:
            raise RuntimeError(
                "Pluggy credentials not provided. "
                "Set PLUGGY_CLIENT_ID and PLUGGY_CLIENT_SECRET."
            )
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._api_key: str | None = None
        self._api_key_expires_at: datetime | None = None

    # ── Transport ─────────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers["X-API-KEY"] = self.authenticate()

        try:
            response = self._session.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json_body,
                headers=headers,
                timeout=HTTP_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(
                "pluggy request failed",
                extra={
                    "extra_fields": safe_log_context(
                        path=path, error_type=type(e).__name__
                    )
                },
            )
            raise PluggyError(f"Pluggy request failed: {path}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(
                "pluggy request rejected",
                extra={
                    "extra_fields": safe_log_context(
                        path=path, status_code=response.status_code
                    )
                },
            )
            raise PluggyError(message, status_code=response.status_code)

        return response.json()

    # ── API ───────────────────────────────────────────────────────────────────

    def authenticate(self) -> str:
        """Return a valid API key, requesting a new one when the cached one expired."""
        now = utc_now()
        if self._api_key and self._api_key_expires_at and now < self._api_key_expires_at:
            return self._api_key

        try:
            data = self._request(
                "POST",
                "/auth",
                json_body={
                    "clientId": self._client_id,
                    "clientSecret": self._client_secret,
                },
                authenticated=False,
            )
        except PluggyError as e:
            if e.status_code == 401:
                raise PluggyError(
                    "Invalid Pluggy credentials (CLIENT_ID or CLIENT_SECRET)",
                    status_code=401,
                ) from e
            raise

        api_key = data.get("apiKey") if isinstance(data, dict) else None
        if not api_key:
            raise PluggyError("Pluggy auth response without apiKey")

        self._api_key = api_key
        self._api_key_expires_at = now + API_KEY_TTL
        logger.info("pluggy authenticated")
        return api_key

    def get_connectors(self) -> list[dict[str, Any]]:
        """Available institutions."""
        connectors = _results(self._request("GET", "/connectors"))
        return [
            {
                "id": c.get("id"),
                "name": c.get("name"),
                "type": c.get("type"),
                "country": c.get("country"),
                "imageUrl": c.get("imageUrl"),
                "primaryColor": c.get("primaryColor"),
                "health": (c.get("health") or {}).get("status", "unknown"),
                "isOpenFinance": bool(c.get("isOpenFinance", False)),
            }
            for c in connectors
        ]

    def create_connect_token(
        self,
        client_user_id: str,
        webhook_url: str | None = None,
        include_sandbox: bool = True,
    ) -> dict[str, Any]:
        """Create a Connect widget token for client_user_id (valid 30 minutes)."""
        resolved_webhook = webhook_url or _default_webhook_url()
        body: dict[str, Any] = {
            "clientUserId": client_user_id,
            "includeSandbox": include_sandbox,
        }
        if resolved_webhook:
            body["webhookUrl"] = resolved_webhook

        data = self._request("POST", "/connect_token", json_body=body)
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            raise PluggyError("Pluggy connect_token response without accessToken")

        logger.info(
            "pluggy connect token created",
            extra={"extra_fields": safe_log_context(include_sandbox=include_sandbox)},
        )
        return {
            "connectToken": token,
            "clientUserId": client_user_id,
            "expiresAt": (utc_now() + CONNECT_TOKEN_TTL).isoformat(),
            "webhookUrl": resolved_webhook,
        }

    def get_items(self, client_user_id: str) -> list[dict[str, Any]]:
        """Bank connections of a user."""
        items = _results(
            self._request("GET", "/items", params={"clientUserId": client_user_id})
        )
        return [
            {
                "id": item.get("id"),
                "connectorId": (item.get("connector") or {}).get("id"),
                "connectorName": (item.get("connector") or {}).get("name"),
                "connectorImageUrl": (item.get("connector") or {}).get("imageUrl"),
                "status": item.get("status"),
                "statusDetail": item.get("statusDetail"),
                "createdAt": item.get("createdAt"),
                "updatedAt": item.get("updatedAt"),
                "clientUserId": item.get("clientUserId"),
            }
            for item in items
        ]

    def get_accounts(self, item_id: str) -> list[dict[str, Any]]:
        """Accounts of one bank connection."""
        accounts = _results(self._request("GET", "/accounts", params={"itemId": item_id}))
        return [
            {
                "id": a.get("id"),
                "itemId": a.get("itemId"),
                "type": a.get("type"),
                "subtype": a.get("subtype"),
                "name": a.get("name"),
                "marketingName": a.get("marketingName"),
                "balance": a.get("balance"),
                "currencyCode": a.get("currencyCode") or "BRL",
                "owner": a.get("owner"),
                "number": a.get("number"),
                "taxNumber": a.get("taxNumber"),
                "creditData": a.get("creditData"),
            }
            for a in accounts
        ]

    def get_transactions(
        self,
        account_id: str,
        from_date: str | None = None,
        to_date: str | None = None,
        page: int = 0,
        page_size: int = 100,
    ) -> dict[str, Any]:
        """One page of transactions plus pagination info."""
        params: dict[str, Any] = {
            "accountId": account_id,
            "page": page,
            "pageSize": page_size,
        }
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date

        data = self._request("GET", "/transactions", params=params)
        transactions = _results(data)
        meta = data if isinstance(data, dict) else {}
        current_page = meta.get("page") or 0
        total_pages = meta.get("totalPages") or 1

        return {
            "transactions": [
                {
                    "id": tx.get("id"),
                    "accountId": tx.get("accountId"),
                    "date": tx.get("date"),
                    "description": tx.get("description"),
                    "amount": tx.get("amount"),
                    "balance": tx.get("balance"),
                    "currencyCode": tx.get("currencyCode") or "BRL",
                    "category": tx.get("category"),
                    "categoryId": tx.get("categoryId"),
                    "type": tx.get("type"),
                }
                for tx in transactions
            ],
            "pagination": {
                "page": current_page,
                "totalPages": total_pages,
                "total": meta.get("total") or len(transactions),
                "hasMore": current_page < total_pages - 1,
            },
        }

    def get_user_financial_data(
        self,
        client_user_id: str,
        from_date: str | None = None,
        page_size: int = 200,
    ) -> dict[str, Any]:
        """Accounts and recent transactions across every UPDATED item."""
        since = from_date or (utc_now() - timedelta(days=DEFAULT_HISTORY_DAYS)).isoformat()

        items = self.get_items(client_user_id)
        accounts: list[dict[str, Any]] = []
        transactions: list[dict[str, Any]] = []

        for item in items:
            if item["status"] != ITEM_STATUS_UPDATED:
                logger.info(
                    "skipping pluggy item",
                    extra={"extra_fields": safe_log_context(status=item["status"])},
                )
                continue

            for account in self.get_accounts(item["id"]):
                accounts.append({
                    **account,
                    "connectorName": item["connectorName"],
                    "connectorImageUrl": item["connectorImageUrl"],
                })
                page = self.get_transactions(
                    account["id"], from_date=since, page_size=page_size
                )
                transactions.extend(
                    {
                        **tx,
                        "accountName": account["name"],
                        "accountType": account["type"],
                        "connectorName": item["connectorName"],
                    }
                    for tx in page["transactions"]
                )

        return {
            "items": items,
            "accounts": accounts,
            "transactions": transactions,
            "summary": {
                "totalItems": len(items),
                "activeItems": sum(1 for i in items if i["status"] == ITEM_STATUS_UPDATED),
                "totalAccounts": len(accounts),
                "totalTransactions": len(transactions),
                "retrievedAt": utc_now().isoformat(),
            },
        }

    def test_connection(self) -> dict[str, Any]:
        """Check credentials and connectivity. Never raises PluggyError."""
        try:
            api_key = self.authenticate()
            connectors = self.get_connectors()
        except PluggyError as e:
            return {
                "success": False,
                "error": str(e),
                "timestamp": utc_now().isoformat(),
            }

        return {
            "success": True,
            "data": {
                "authenticated": True,
                "apiKeyLength": len(api_key),
                "totalConnectors": len(connectors),
                "sampleConnectors": [
                    {"name": c["name"], "type": c["type"], "country": c["country"]}
                    for c in connectors[:3]
                ],
            },
            "timestamp": utc_now().isoformat(),
        }


def _default_webhook_url() -> str | None:
    base_url = os.environ.get("BASE_URL", "").rstrip("/")
    return f"{base_url}/pluggy/webhook" if base_url else None


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"Pluggy API error (HTTP {response.status_code})"
