"""Worker routes for WhatsApp task handling.

Runs the conversation orchestrator for one stored inbound message.

Security:
- Payload contains ids only (no phone, no text)
- Logs NEVER contain phone numbers or message text
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from zenmind.ai.reply_generator import OpenAIReplyGenerator
from zenmind.api.task_auth import require_task_auth
from zenmind.conversation.orchestrator import ConversationOrchestrator
from zenmind.conversation.phases import InboundMessage
from zenmind.infra.history_store import PostgresHistoryStore
from zenmind.infra.locks import user_lock
from zenmind.infra.repositories import (
    messages_repository,
    processed_events_repository,
    users_repository,
)
from zenmind.observability.correlation import get_correlation_id
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import id_prefix, safe_log_context
from zenmind.whatsapp.messaging import WhatsAppMessagingService

router = APIRouter(prefix="/tasks/whatsapp", tags=["tasks"])

logger = get_logger(__name__)

# Source identifier for processed_events dedupe
TASK_SOURCE = "tasks.whatsapp.handle_message"

_orchestrator: ConversationOrchestrator | None = None


def _build_orchestrator() -> ConversationOrchestrator:
    store = PostgresHistoryStore()
    return ConversationOrchestrator(
        messenger=WhatsAppMessagingService(),
        store=store,
        generator=OpenAIReplyGenerator(store),
    )


def _get_orchestrator() -> ConversationOrchestrator:
    """Get orchestrator (lazy; allows override in tests)."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = _build_orchestrator()
    return _orchestrator


def _set_orchestrator(orchestrator: ConversationOrchestrator | None) -> None:
    """Set orchestrator (for tests)."""
    global _orchestrator
    _orchestrator = orchestrator


@router.post("/handle-message")
async def handle_message(request: Request) -> Response:
    """Handle one inbound WhatsApp message.

    Dedupe via processed_events: a repeated task_id returns 200 "duplicate".
    The receipt is written in the same transaction that holds the user's
    advisory lock, so messages of one user are processed strictly in turn.

    Expected payload:
    - task_id: Unique task identifier (required)
    - message_id: Stored inbound message id (required)
    - user_id: Owner of the message (required)
    """
    require_task_auth(request)
    correlation_id = get_correlation_id()

    try:
        payload: dict[str, Any] = await request.json()
    except Exception:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=400, content="invalid json")

    task_id = payload.get("task_id") or ""
    message_id = payload.get("message_id") or ""
    user_id = payload.get("user_id") or ""

    if not task_id or not message_id or not user_id:
        logger.warning(
            "missing required fields",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    has_task_id=bool(task_id),
                    has_message_id=bool(message_id),
                    has_user_id=bool(user_id),
                )
            },
        )
        return Response(status_code=400, content="missing required fields")

    logger.info(
        "handle-message task received",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                task_id_prefix=id_prefix(task_id, 24),
                message_id=message_id,
            )
        },
    )

    try:
        with user_lock(user_id) as cur:
            if not processed_events_repository.mark_processed(
                cur, source=TASK_SOURCE, external_id=task_id
            ):
                logger.info(
                    "duplicate task ignored",
                    extra={
                        "extra_fields": safe_log_context(
                            correlationId=correlation_id,
                            task_id_prefix=id_prefix(task_id, 24),
                        )
                    },
                )
                return Response(status_code=200, content="duplicate")

            stored = messages_repository.get_message(cur, message_id)
            user = users_repository.get_user(cur, user_id)
            if stored is None or user is None or stored["user_id"] != user["id"]:
                logger.warning(
                    "task message not found",
                    extra={
                        "extra_fields": safe_log_context(
                            correlationId=correlation_id,
                            message_found=stored is not None,
                            user_found=user is not None,
                        )
                    },
                )
                return JSONResponse(
                    {"processed": False, "reason": "message_not_found"}
                )

            message = InboundMessage(
                user_id=user["id"],
                phone_number=user["phone_number"],
                content=messages_repository.extract_text(stored["content"]),
                message_type=stored["message_type"],
                message_id=stored["id"],
            )
            result = _get_orchestrator().process_message(message)

    except Exception:
        # Receipt rolled back with the lock transaction; the task may be retried
        logger.exception(
            "handle-message task failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    task_id_prefix=id_prefix(task_id, 24),
                )
            },
        )
        return Response(status_code=500, content="task failed")

    logger.info(
        "handle-message task processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                processed=result.processed,
                phase=result.to_dict().get("phase"),
                action=result.action,
                transition_to=result.to_dict().get("transition_to"),
            )
        },
    )
    return JSONResponse(result.to_dict())
