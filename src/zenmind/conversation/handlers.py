"""Phase handlers - one strategy object per conversation phase.

Each handler processes a single inbound text message for its phase and
reports whether a reply was sent and whether the conversation should move
forward. Handlers do not catch unexpected errors; the orchestrator does.

Security: NEVER log phone numbers or message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from zenmind.ai.prompts import PromptVariant
from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

from .markers import (
    GOAL_COMPLETE_MARKER,
    asks_goal_confirmation,
    marks_expenses_complete,
)
from .phases import InboundMessage, Phase, PhaseResult

logger = get_logger(__name__)

POSITIVE_MARKERS: tuple[str, ...] = (
    "sim",
    "pode",
    "vamos",
    "ok",
    "certo",
    "perfeito",
    "beleza",
    "ótimo",
    "claro",
    "com certeza",
)

NEGATIVE_MARKERS: tuple[str, ...] = ("não", "nao", "nunca", "jamais", "negativo")

WELCOME_MESSAGE = """Oi! Sou o Arnaldo, seu consultor financeiro pessoal! 👋

Vou te ajudar a organizar suas finanças e realizar seus sonhos.

Me conta: qual é seu MAIOR objetivo financeiro agora?

Pode ser qualquer coisa:
💰 Criar reserva de emergência
🏠 Comprar casa, carro, celular...
💳 Quitar dívidas
💡 Economizar mais dinheiro
🎓 Fazer curso, viagem...
🤷 Não sei bem ainda

Me fala com suas palavras!"""

GOAL_TRANSITION_MESSAGE = f"""{GOAL_COMPLETE_MARKER} para criar um plano de economia eficiente. 📊

Vamos começar: quanto você gasta por mês com moradia (aluguel, financiamento, condomínio)?"""


def is_affirmative_response(text: str) -> bool:
    """Classify free text as an affirmative answer.

    Substring match, case-insensitive, not tokenized: affirmative iff some
    positive marker is present and no negative marker is. "certo, mas não
    quero" is therefore negative.
    """
    lower = (text or "").lower()
    has_positive = any(word in lower for word in POSITIVE_MARKERS)
    has_negative = any(word in lower for word in NEGATIVE_MARKERS)
    return has_positive and not has_negative


class Messenger(Protocol):
    """Outbound messaging collaborator."""

    def send_message(self, phone_number: str, text: str, **options: Any) -> Any:
        """Send text to phone_number. Returns provider send result."""
        ...


@dataclass(frozen=True)
class GeneratedReply:
    """Model reply plus how many history turns were sent with it."""

    text: str
    history_used: int = 0


class ReplyGenerator(Protocol):
    """Text generation collaborator. Must not raise on model failure."""

    def generate_reply(
        self, user_text: str, user_id: str, variant: PromptVariant
    ) -> GeneratedReply:
        ...


class LastMessageSource(Protocol):
    """Read access to the last bot message (the state detector)."""

    def get_last_outbound_message(self, user_id: str) -> str | None:
        ...


class PhaseHandler(Protocol):
    """Handler for one conversation phase."""

    name: Phase

    def process(self, message: InboundMessage) -> PhaseResult:
        ...


class WelcomeHandler:
    """First contact: send the onboarding text and move to goal discovery."""

    name = Phase.WELCOME

    def __init__(self, messenger: Messenger) -> None:
        self._messenger = messenger

    def process(self, message: InboundMessage) -> PhaseResult:
        logger.info(
            "sending welcome message",
            extra={"extra_fields": safe_log_context(user_id=message.user_id)},
        )
        self._messenger.send_message(message.phone_number, WELCOME_MESSAGE)
        return PhaseResult(
            processed=True,
            phase=self.name,
            action="sent_welcome",
            sent_message=True,
            transition_to=Phase.GOAL_DISCOVERY,
        )


class GoalDiscoveryHandler:
    """Converge on one financial goal (what, how much, when).

    When the previous bot turn asked for confirmation and the user agrees,
    the fixed transition message is sent instead of a model reply.
    """

    name = Phase.GOAL_DISCOVERY

    def __init__(
        self,
        messenger: Messenger,
        generator: ReplyGenerator,
        last_messages: LastMessageSource,
    ) -> None:
        self._messenger = messenger
        self._generator = generator
        self._last_messages = last_messages

    def process(self, message: InboundMessage) -> PhaseResult:
        content = message.content or ""
        last_message = self._last_messages.get_last_outbound_message(message.user_id)
        asked_confirmation = asks_goal_confirmation(last_message)
        affirmative = is_affirmative_response(content)

        logger.info(
            "goal discovery turn",
            extra={
                "extra_fields": safe_log_context(
                    user_id=message.user_id,
                    asked_confirmation=asked_confirmation,
                    affirmative=affirmative,
                )
            },
        )

        if asked_confirmation and affirmative:
            self._messenger.send_message(message.phone_number, GOAL_TRANSITION_MESSAGE)
            return PhaseResult(
                processed=True,
                phase=self.name,
                action="goal_confirmed_transitioning",
                sent_message=True,
                goal_complete=True,
                transition_to=Phase.MONTHLY_EXPENSES,
            )

        reply = self._generator.generate_reply(
            content, message.user_id, PromptVariant.GOAL_DISCOVERY
        )
        self._messenger.send_message(message.phone_number, reply.text)
        return PhaseResult(
            processed=True,
            phase=self.name,
            action="sent_goal_discovery_response",
            sent_message=True,
            goal_complete=False,
        )


class MonthlyExpensesHandler:
    """Enumerate monthly spending by category until the summary is emitted."""

    name = Phase.MONTHLY_EXPENSES

    def __init__(self, messenger: Messenger, generator: ReplyGenerator) -> None:
        self._messenger = messenger
        self._generator = generator

    def process(self, message: InboundMessage) -> PhaseResult:
        reply = self._generator.generate_reply(
            message.content or "", message.user_id, PromptVariant.MONTHLY_EXPENSES
        )
        self._messenger.send_message(message.phone_number, reply.text)

        expenses_complete = marks_expenses_complete(reply.text)
        logger.info(
            "monthly expenses turn",
            extra={
                "extra_fields": safe_log_context(
                    user_id=message.user_id,
                    history_used=reply.history_used,
                    expenses_complete=expenses_complete,
                )
            },
        )

        return PhaseResult(
            processed=True,
            phase=self.name,
            action="sent_expenses_response",
            sent_message=True,
            expenses_complete=expenses_complete,
            transition_to=Phase.COMPLETE if expenses_complete else None,
        )


class CompleteHandler:
    """Terminal phase: stay silent."""

    name = Phase.COMPLETE

    def process(self, message: InboundMessage) -> PhaseResult:
        logger.info(
            "conversation complete, not responding",
            extra={"extra_fields": safe_log_context(user_id=message.user_id)},
        )
        return PhaseResult(
            processed=False,
            phase=self.name,
            sent_message=False,
            reason="conversation_complete",
        )


def build_default_handlers(
    messenger: Messenger,
    generator: ReplyGenerator,
    last_messages: LastMessageSource,
) -> dict[Phase, PhaseHandler]:
    """Registry with one handler per phase."""
    handlers: list[PhaseHandler] = [
        WelcomeHandler(messenger),
        GoalDiscoveryHandler(messenger, generator, last_messages),
        MonthlyExpensesHandler(messenger, generator),
        CompleteHandler(),
    ]
    return {handler.name: handler for handler in handlers}
