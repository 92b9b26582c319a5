"""Pluggy webhook handling.

Item events update the stored item status; created/updated items trigger a
re-sync of the user's financial data. Sync failures are reported in the
result, not raised, so Pluggy does not retry the delivery.
"""

from __future__ import annotations

from typing import Any

from zenmind.infra.db import txn
from zenmind.infra.repositories import pluggy_items_repository
from zenmind.infra.time import utc_now
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

from .client import PluggyClient, PluggyError

logger = get_logger(__name__)

EVENT_MESSAGES = {
    "item/created": "Bank connection created successfully",
    "item/updated": "Bank connection updated with new data",
    "item/error": "Bank connection encountered an error",
    "item/waiting_user_input": "Bank connection waiting for additional user input (MFA, etc.)",
}

_SYNC_EVENTS = {"item/created", "item/updated"}

_ITEM_STATUS_BY_EVENT = {
    "item/created": "CREATED",
    "item/updated": "UPDATED",
    "item/error": "LOGIN_ERROR",
    "item/waiting_user_input": "WAITING_USER_INPUT",
}


def _record_item(
    item_id: str,
    event: str,
    client_user_id: str | None,
    error: Any = None,
    synced: bool = False,
) -> None:
    now = utc_now()
    with txn() as cur:
        pluggy_items_repository.upsert_item(
            cur,
            pluggy_item_id=item_id,
            client_user_id=client_user_id,
            status=_ITEM_STATUS_BY_EVENT[event],
            status_detail={"error": error} if error is not None else None,
            last_synced_at=now if synced else None,
        )


def handle_webhook(payload: dict[str, Any], client: PluggyClient) -> dict[str, Any]:
    """Process one Pluggy webhook delivery.

    Returns:
        Result dict with event, itemId, clientUserId, message and, for sync
        events, syncedData or syncError.
    """
    event = payload.get("event")
    item_id = payload.get("itemId")
    client_user_id = payload.get("clientUserId")
    data = payload.get("data") or {}

    result: dict[str, Any] = {
        "event": event,
        "itemId": item_id,
        "clientUserId": client_user_id,
        "processedAt": utc_now().isoformat(),
    }

    logger.info(
        "pluggy webhook received",
        extra={"extra_fields": safe_log_context(event=event, item_id=item_id)},
    )

    if event not in EVENT_MESSAGES:
        result["message"] = f"Unhandled event: {event}"
        return result

    result["message"] = EVENT_MESSAGES[event]
    synced = False

    if event in _SYNC_EVENTS and client_user_id:
        try:
            financial_data = client.get_user_financial_data(client_user_id)
            result["syncedData"] = financial_data["summary"]
            synced = True
        except PluggyError as e:
            logger.warning(
                "pluggy sync after webhook failed",
                extra={"extra_fields": safe_log_context(event=event, error=str(e))},
            )
            result["syncError"] = str(e)
    elif event == "item/error":
        result["error"] = data.get("error")

    if item_id:
        _record_item(
            item_id,
            event,
            client_user_id,
            error=result.get("error"),
            synced=synced,
        )

    return result
