"""Internal conversation status endpoint (worker role)."""

from __future__ import annotations

from fastapi import APIRouter, Request

from zenmind.api.task_auth import require_task_auth
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import hash_identifier, safe_log_context
from zenmind.whatsapp.messaging import WhatsAppMessagingService

router = APIRouter(prefix="/internal/conversations", tags=["internal"])

logger = get_logger(__name__)

_messaging_service: WhatsAppMessagingService | None = None


def _get_messaging_service() -> WhatsAppMessagingService:
    """Get messaging service (allows test injection)."""
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = WhatsAppMessagingService()
    return _messaging_service


@router.get("/{phone_number}/status")
def conversation_status(phone_number: str, request: Request) -> dict:
    """24h window status for a phone number."""
    require_task_auth(request)
    window = _get_messaging_service().get_conversation_status(phone_number)
    logger.info(
        "conversation status read",
        extra={
            "extra_fields": safe_log_context(
                phone_hash=hash_identifier(phone_number), is_open=window.is_open
            )
        },
    )
    return window.to_dict()
