"""WhatsApp messaging service - persistence plus the 24h window rule.

Meta only accepts free-form messages within 24 hours of the user's last
message. Outside that window a pre-approved template must be used.

Every message in either direction is stored, so the conversation history
used for phase detection and text generation is complete.

Security: NEVER log phone numbers or message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from zenmind.infra.db import txn
from zenmind.infra.repositories import (
    conversations_repository,
    messages_repository,
    users_repository,
)
from zenmind.infra.time import utc_now
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import (
    hash_identifier,
    id_prefix,
    safe_log_context,
)

from . import meta_sender
from .models import CLOSED_WINDOW, WINDOW_DURATION, ConversationWindow, NormalizedInbound

logger = get_logger(__name__)


class MissingTemplateError(ValueError):
    """Raised when a template send is required but no template name was given."""


@dataclass(frozen=True)
class SendResult:
    message_id: str | None
    message_type: Literal["free", "template"]
    window: ConversationWindow
    user_id: str


@dataclass(frozen=True)
class StoredInbound:
    """Ids of a freshly stored inbound message (no PII)."""

    message_id: str
    user_id: str
    conversation_id: str
    kind: str


def window_from_conversation(
    conversation: dict[str, Any] | None, now: datetime | None = None
) -> ConversationWindow:
    """Compute the service window of a stored conversation."""
    if not conversation:
        return CLOSED_WINDOW
    now = now or utc_now()
    expires_at = conversation.get("window_expires_at")
    return ConversationWindow(
        is_open=bool(expires_at and now < expires_at),
        expires_at=expires_at,
        last_user_message_at=conversation.get("last_user_message_at"),
    )


class WhatsAppMessagingService:
    """Send and store WhatsApp messages for a single business number."""

    def __init__(self, phone_number_id: str | None = None) -> None:
        self._phone_number_id = phone_number_id

    def send_message(
        self,
        phone_number: str,
        text: str,
        *,
        force_template: bool = False,
        template_name: str | None = None,
        template_language: str = "pt_BR",
        template_components: list[dict[str, Any]] | None = None,
    ) -> SendResult:
        """Send text to phone_number, falling back to a template outside the window.

        Raises:
            MissingTemplateError: Template required but template_name missing.
            RuntimeError: Meta config missing.
            urllib.error.URLError: Provider failure after retry.
        """
        with txn() as cur:
            user, _ = users_repository.find_or_create(cur, phone_number=phone_number)
            conversation, _ = conversations_repository.find_or_create(
                cur, user_id=user["id"], phone_number_id=self._phone_number_id
            )
        window = window_from_conversation(conversation)

        use_template = force_template or not window.can_send_free_message
        if use_template and not template_name:
            raise MissingTemplateError(
                "template_name is required outside the 24h window"
            )

        log_ctx = safe_log_context(
            user_id=user["id"],
            to_hash=hash_identifier(phone_number),
            window_open=window.is_open,
            message_type="template" if use_template else "free",
        )
        logger.info("sending whatsapp message", extra={"extra_fields": log_ctx})

        if use_template:
            wamid = meta_sender.send_template_via_meta(
                to_phone=phone_number,
                template_name=template_name,
                language_code=template_language,
                components=template_components,
                phone_number_id=self._phone_number_id,
            )
            content: dict[str, Any] = {
                "template": template_name,
                "language": template_language,
            }
            message_type: Literal["free", "template"] = "template"
        else:
            wamid = meta_sender.send_text_via_meta(
                to_phone=phone_number,
                text=text,
                phone_number_id=self._phone_number_id,
            )
            content = {"text": text}
            message_type = "free"

        with txn() as cur:
            messages_repository.insert_message(
                cur,
                conversation_id=conversation["id"],
                user_id=user["id"],
                direction=messages_repository.OUTBOUND,
                message_type="template" if use_template else "text",
                content=content,
                whatsapp_message_id=wamid,
                status="sent",
            )

        return SendResult(
            message_id=wamid,
            message_type=message_type,
            window=window,
            user_id=user["id"],
        )

    def store_incoming_message(
        self, message: NormalizedInbound, phone_number_id: str | None = None
    ) -> StoredInbound | None:
        """Persist an inbound message and reopen the 24h window.

        Returns:
            Ids of the stored message, or None if it was already stored.
        """
        now = utc_now()
        with txn() as cur:
            user, user_created = users_repository.find_or_create(
                cur, phone_number=message.from_phone, name=message.contact_name
            )
            conversation, _ = conversations_repository.find_or_create(
                cur,
                user_id=user["id"],
                phone_number_id=phone_number_id or self._phone_number_id,
            )

            content: dict[str, Any] = {"type": message.raw_kind or message.kind}
            if message.text is not None:
                content["text"] = message.text

            message_id = messages_repository.insert_message(
                cur,
                conversation_id=conversation["id"],
                user_id=user["id"],
                direction=messages_repository.INBOUND,
                message_type=message.kind,
                content=content,
                whatsapp_message_id=message.message_id,
                status="received",
            )
            if message_id is None:
                logger.info(
                    "duplicate inbound message ignored",
                    extra={
                        "extra_fields": safe_log_context(
                            user_id=user["id"], wamid_prefix=id_prefix(message.message_id)
                        )
                    },
                )
                return None

            conversations_repository.update_window(
                cur,
                conversation["id"],
                last_user_message_at=now,
                window_expires_at=now + WINDOW_DURATION,
            )

        logger.info(
            "inbound message stored",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user["id"],
                    message_id=message_id,
                    kind=message.kind,
                    user_created=user_created,
                )
            },
        )
        return StoredInbound(
            message_id=message_id,
            user_id=user["id"],
            conversation_id=conversation["id"],
            kind=message.kind,
        )

    def update_message_status(self, whatsapp_message_id: str, status: str) -> bool:
        """Record a delivery status. Returns False for unknown messages."""
        with txn() as cur:
            updated = messages_repository.update_status(cur, whatsapp_message_id, status)
        logger.debug(
            "message status updated",
            extra={
                "extra_fields": safe_log_context(
                    wamid_prefix=id_prefix(whatsapp_message_id), status=status, matched=updated
                )
            },
        )
        return updated

    def get_conversation_status(self, phone_number: str) -> ConversationWindow:
        """Window of the user's active conversation; closed if none exists."""
        with txn() as cur:
            user = users_repository.find_by_phone(cur, phone_number)
            if user is None:
                return CLOSED_WINDOW
            conversation = conversations_repository.find_active(cur, user["id"])
        return window_from_conversation(conversation)
