"""WhatsApp message models."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

# Free-form replies are allowed only this long after the last user message
WINDOW_DURATION = timedelta(hours=24)


@dataclass(frozen=True)
class NormalizedInbound:
    """Inbound message normalized from a Meta webhook payload.

    ATTENTION PII:
    - `from_phone` and `text` are PII
    - Persist them only through the messaging service
    - NEVER log them, NEVER pass them to a worker task
    """

    message_id: str
    provider: Literal["meta"]
    received_at: datetime
    kind: str  # normalized: text, image, document, audio, video, other
    from_phone: str
    text: str | None
    raw_kind: str = ""
    contact_name: str | None = None


@dataclass(frozen=True)
class StatusUpdate:
    """Delivery status reported by Meta for an outbound message."""

    message_id: str
    status: str  # sent, delivered, read, failed
    timestamp: datetime | None = None


@dataclass(frozen=True)
class ConversationWindow:
    """24h customer-service window of a conversation."""

    is_open: bool
    expires_at: datetime | None
    last_user_message_at: datetime | None

    @property
    def can_send_free_message(self) -> bool:
        return self.is_open

    def to_dict(self) -> dict:
        return {
            "is_open": self.is_open,
            "can_send_free_message": self.can_send_free_message,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "last_user_message_at": (
                self.last_user_message_at.isoformat()
                if self.last_user_message_at
                else None
            ),
        }


CLOSED_WINDOW = ConversationWindow(
    is_open=False, expires_at=None, last_user_message_at=None
)
