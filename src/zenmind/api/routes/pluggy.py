"""Open Finance routes backed by Pluggy (public role).

Every response uses the envelope {"success": bool, "data": ...} or
{"success": false, "error": "..."}.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from zenmind.infra.time import utc_now
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context
from zenmind.pluggy.client import PluggyClient, PluggyError, clean_client_user_id
from zenmind.pluggy.summary import generate_financial_summary
from zenmind.pluggy.webhook import handle_webhook

router = APIRouter(prefix="/pluggy", tags=["pluggy"])

logger = get_logger(__name__)

_client: PluggyClient | None = None


class ConnectTokenRequest(BaseModel):
    phoneNumber: str
    webhookUrl: str | None = None
    includeSandbox: bool = True


def _get_client() -> PluggyClient:
    """Get Pluggy client (lazy; allows override in tests)."""
    global _client
    if _client is None:
        _client = PluggyClient()
    return _client


def _set_client(client: PluggyClient | None) -> None:
    """Set Pluggy client (for tests)."""
    global _client
    _client = client


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def _call(operation: str, fn, *args: Any, **kwargs: Any) -> Any:
    """Run a client call, mapping failures to error responses."""
    try:
        return fn(*args, **kwargs)
    except RuntimeError as e:
        logger.error(
            "pluggy not configured",
            extra={"extra_fields": safe_log_context(operation=operation)},
        )
        return _error(503, str(e))
    except PluggyError as e:
        logger.warning(
            "pluggy operation failed",
            extra={
                "extra_fields": safe_log_context(
                    operation=operation, status_code=e.status_code
                )
            },
        )
        return _error(502, str(e))


def _client_or_error() -> PluggyClient | JSONResponse:
    return _call("init", _get_client)


@router.get("/connectors")
def list_connectors() -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    connectors = _call("connectors", client.get_connectors)
    if isinstance(connectors, JSONResponse):
        return connectors
    return {"success": True, "data": connectors, "count": len(connectors)}


@router.post("/connect-token")
def create_connect_token(body: ConnectTokenRequest) -> Any:
    """Connect widget token; the clientUserId is the phone number's digits."""
    client_user_id = clean_client_user_id(body.phoneNumber)
    if not client_user_id:
        return _error(400, "phoneNumber is required")

    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    token = _call(
        "connect_token",
        client.create_connect_token,
        client_user_id,
        webhook_url=body.webhookUrl,
        include_sandbox=body.includeSandbox,
    )
    if isinstance(token, JSONResponse):
        return token
    return {"success": True, "data": token}


@router.get("/users/{client_user_id}/items")
def list_items(client_user_id: str) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    items = _call("items", client.get_items, client_user_id)
    if isinstance(items, JSONResponse):
        return items
    return {"success": True, "data": items, "count": len(items)}


@router.get("/items/{item_id}/accounts")
def list_accounts(item_id: str) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    accounts = _call("accounts", client.get_accounts, item_id)
    if isinstance(accounts, JSONResponse):
        return accounts
    return {"success": True, "data": accounts, "count": len(accounts)}


@router.get("/accounts/{account_id}/transactions")
def list_transactions(
    account_id: str,
    from_date: str | None = Query(None, alias="from"),
    to_date: str | None = Query(None, alias="to"),
    page: int = Query(0, ge=0),
    page_size: int = Query(100, ge=1, le=500, alias="pageSize"),
) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    result = _call(
        "transactions",
        client.get_transactions,
        account_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    if isinstance(result, JSONResponse):
        return result
    return {"success": True, "data": result}


@router.get("/users/{client_user_id}/financial-data")
def financial_data(
    client_user_id: str,
    from_date: str | None = Query(None, alias="from"),
) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    data = _call(
        "financial_data",
        client.get_user_financial_data,
        client_user_id,
        from_date=from_date,
    )
    if isinstance(data, JSONResponse):
        return data
    return {"success": True, "data": data}


@router.get("/users/{client_user_id}/summary")
def financial_summary(client_user_id: str) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    data = _call("summary", client.get_user_financial_data, client_user_id)
    if isinstance(data, JSONResponse):
        return data
    return {
        "success": True,
        "data": {
            "clientUserId": client_user_id,
            "summary": generate_financial_summary(data),
            "dataInfo": data["summary"],
        },
    }


@router.post("/webhook")
def pluggy_webhook(payload: dict[str, Any]) -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    try:
        result = handle_webhook(payload, client)
    except Exception:
        logger.exception(
            "pluggy webhook processing failed",
            extra={"extra_fields": safe_log_context(event=payload.get("event"))},
        )
        return _error(500, "webhook processing failed")
    return {
        "success": True,
        "message": "Webhook processed successfully",
        "data": result,
    }


@router.get("/health")
def pluggy_health() -> Any:
    client = _client_or_error()
    if isinstance(client, JSONResponse):
        return client
    result = client.test_connection()
    return {
        "service": "pluggy",
        "status": "healthy" if result["success"] else "unhealthy",
        "timestamp": utc_now().isoformat(),
        "pluggyConnection": result["success"],
        "details": result.get("data") or result.get("error"),
    }
