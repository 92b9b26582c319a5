"""WhatsApp webhook routes - Meta Cloud API integration.

Security:
- Phone numbers and text are persisted by the messaging service only
- Task payload carries database ids, never phone or text
- Logs contain NO PII
"""

import os
from typing import Any

from fastapi import APIRouter, Header, Query, Request, Response

from zenmind.observability.correlation import get_correlation_id
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import id_prefix, safe_log_context
from zenmind.tasks.client import TasksClient
from zenmind.whatsapp.meta_adapter import (
    InvalidPayloadError,
    SignatureVerificationError,
    get_phone_number_id,
    iter_inbound_messages,
    iter_status_updates,
    verify_signature,
)
from zenmind.whatsapp.messaging import WhatsAppMessagingService

router = APIRouter(prefix="/webhooks/whatsapp", tags=["webhooks"])

logger = get_logger(__name__)

HANDLE_MESSAGE_PATH = "/tasks/whatsapp/handle-message"

_tasks_client = TasksClient()
_messaging_service: WhatsAppMessagingService | None = None


def _get_tasks_client() -> TasksClient:
    """Get tasks client instance (allows test injection)."""
    return _tasks_client


def _get_messaging_service() -> WhatsAppMessagingService:
    """Get messaging service (allows test injection)."""
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = WhatsAppMessagingService(
            os.environ.get("META_PHONE_NUMBER_ID")
        )
    return _messaging_service


def _ok() -> Response:
    return Response(status_code=200, content="ok")


@router.get("/meta")
async def meta_webhook_verify(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge"),
) -> Response:
    """Meta webhook verification endpoint.

    Returns:
        200 with hub.challenge if hub.verify_token matches META_VERIFY_TOKEN.
        403 otherwise.
    """
    expected_token = os.environ.get("META_VERIFY_TOKEN", "")

    if expected_token and hub_mode == "subscribe" and hub_verify_token == expected_token:
        logger.info(
            "meta webhook verification successful",
            extra={"extra_fields": safe_log_context(hub_mode=hub_mode)},
        )
        return Response(status_code=200, content=hub_challenge or "")

    logger.warning(
        "meta webhook verification failed",
        extra={
            "extra_fields": safe_log_context(
                hub_mode=hub_mode or "missing",
                token_configured=bool(expected_token),
            )
        },
    )
    return Response(status_code=403, content="verification failed")


@router.post("/meta")
async def meta_webhook(
    request: Request,
    x_hub_signature_256: str | None = Header(None, alias="X-Hub-Signature-256"),
) -> Response:
    """Receive Meta Cloud API webhook.

    1. Verify signature (when META_APP_SECRET is set)
    2. Record delivery statuses
    3. Store each inbound message (redeliveries are dropped here)
    4. Enqueue one handle-message task per stored message

    IMPORTANT: Always return 200 to Meta, even on errors.
    Meta retries on non-2xx responses, causing duplicate processing.
    """
    correlation_id = get_correlation_id()

    try:
        body_bytes = await request.body()
    except Exception:
        logger.warning(
            "failed to read request body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _ok()

    app_secret = os.environ.get("META_APP_SECRET", "")
    if app_secret:
        try:
            verify_signature(body_bytes, x_hub_signature_256 or "", app_secret)
        except SignatureVerificationError as e:
            logger.warning(
                "meta signature verification failed",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id, error=str(e)
                    )
                },
            )
            return _ok()

    try:
        payload: dict[str, Any] = await request.json()
    except Exception:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _ok()

    if not isinstance(payload, dict) or payload.get("object") != "whatsapp_business_account":
        logger.debug(
            "non-whatsapp webhook ignored",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return _ok()

    phone_number_id = get_phone_number_id(payload)
    service = _get_messaging_service()

    for status in iter_status_updates(payload):
        try:
            service.update_message_status(status.message_id, status.status)
        except Exception:
            logger.exception(
                "failed to record message status",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        wamid_prefix=id_prefix(status.message_id),
                    )
                },
            )

    try:
        inbound = list(iter_inbound_messages(payload))
    except InvalidPayloadError as e:
        logger.warning(
            "invalid meta message payload",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, error=str(e)
                )
            },
        )
        return _ok()

    tasks_client = _get_tasks_client()

    for msg in inbound:
        try:
            stored = service.store_incoming_message(msg, phone_number_id)
            if stored is None:
                continue

            logger.info(
                "meta webhook message received",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        wamid_prefix=id_prefix(msg.message_id),
                        kind=msg.kind,
                        provider="meta",
                    )
                },
            )

            task_id = f"whatsapp:{msg.message_id}"
            enqueued = tasks_client.enqueue_http(
                task_id=task_id,
                url_path=HANDLE_MESSAGE_PATH,
                payload={
                    "task_id": task_id,
                    "message_id": stored.message_id,
                    "user_id": stored.user_id,
                    "kind": stored.kind,
                    "received_at": msg.received_at.isoformat(),
                    # NO phone, NO text
                },
                correlation_id=correlation_id,
            )
            if not enqueued:
                logger.warning(
                    "handle-message task not enqueued",
                    extra={
                        "extra_fields": safe_log_context(
                            correlationId=correlation_id, task_id=task_id
                        )
                    },
                )
        except Exception:
            logger.exception(
                "meta webhook message processing failed",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        wamid_prefix=id_prefix(msg.message_id),
                    )
                },
            )

    return _ok()
