"""Conversation phases, inbound message and per-message result models.

The phase is the only conversation state the core reasons about. It is a
closed set; "error" is a per-message outcome label, never a stored phase.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal


class Phase(str, Enum):
    """Conversational stage of a user."""

    WELCOME = "welcome"
    GOAL_DISCOVERY = "goal_discovery"
    MONTHLY_EXPENSES = "monthly_expenses"
    COMPLETE = "complete"


# Forward order; transitions never move backwards
PHASE_ORDER: tuple[Phase, ...] = (
    Phase.WELCOME,
    Phase.GOAL_DISCOVERY,
    Phase.MONTHLY_EXPENSES,
    Phase.COMPLETE,
)

ERROR_PHASE = "error"

MessageType = Literal["text", "image", "document", "audio", "video", "other"]

KNOWN_MESSAGE_TYPES: frozenset[str] = frozenset(
    {"text", "image", "document", "audio", "video"}
)


def phase_index(phase: Phase) -> int:
    """Position of phase in PHASE_ORDER."""
    return PHASE_ORDER.index(phase)


@dataclass(frozen=True)
class InboundMessage:
    """One inbound user message as seen by the conversation core."""

    user_id: str
    phone_number: str
    content: str | None
    message_type: MessageType = "text"
    message_id: str | None = None

    def is_text(self) -> bool:
        """True when the message is routable text."""
        return self.message_type == "text" and bool(self.content)


@dataclass
class PhaseResult:
    """Outcome of processing one inbound message.

    Used for logging and as the worker response body. Not persisted.
    """

    processed: bool
    phase: Phase | str | None = None
    action: str | None = None
    sent_message: bool = False
    transition_to: Phase | None = None
    goal_complete: bool | None = None
    expenses_complete: bool | None = None
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting unset optional fields."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        for key in ("phase", "transition_to"):
            if isinstance(data.get(key), Phase):
                data[key] = data[key].value
        return data
