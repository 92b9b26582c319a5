"""Conversation orchestrator - routes inbound text to the active phase handler.

Flow per message:
1. Drop non-text messages (acknowledged, never routed)
2. Detect the active phase
3. Dispatch to the phase handler
4. Persist the phase when the handler signals a forward transition
5. On unexpected errors: log, apologize to the user (best effort), report "error"

Callers must serialize calls per user (see zenmind.infra.locks.user_lock).

Security: NEVER log phone numbers or message text.
"""

from __future__ import annotations

from typing import Any, Mapping

from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import hash_identifier, safe_log_context

from .detector import ConversationStateDetector, HistoryStore
from .handlers import (
    LastMessageSource,
    Messenger,
    PhaseHandler,
    ReplyGenerator,
    build_default_handlers,
)
from .phases import ERROR_PHASE, InboundMessage, Phase, PhaseResult, phase_index

logger = get_logger(__name__)

APOLOGY_MESSAGE = "Ops! Tive um probleminha técnico. Pode repetir sua mensagem? 🤔"


class ConversationOrchestrator:
    """Single entry point of the conversation core."""

    def __init__(
        self,
        messenger: Messenger,
        store: HistoryStore,
        generator: ReplyGenerator,
        *,
        detector: ConversationStateDetector | None = None,
        handlers: Mapping[Phase, PhaseHandler] | None = None,
    ) -> None:
        self._messenger = messenger
        self._store = store
        self.detector = detector or ConversationStateDetector(store)
        last_messages: LastMessageSource = self.detector
        self.handlers: dict[Phase, PhaseHandler] = dict(
            handlers or build_default_handlers(messenger, generator, last_messages)
        )

    def process_message(self, message: InboundMessage) -> PhaseResult:
        """Process one inbound message. Never raises."""
        if not message.is_text():
            logger.info(
                "ignoring non-text message",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=message.user_id,
                        message_type=message.message_type,
                    )
                },
            )
            return PhaseResult(processed=False, reason="non-text message")

        try:
            phase = self.detector.detect_phase(message.user_id)
            handler = self.handlers.get(phase)
            if handler is None:
                raise LookupError(f"Unknown phase: {phase}")

            logger.info(
                "dispatching message",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=message.user_id,
                        phase=phase.value,
                        text_len=len(message.content or ""),
                    )
                },
            )

            result = handler.process(message)

            if result.transition_to is not None:
                self._record_transition(message.user_id, phase, result.transition_to)

            return result

        except Exception as e:
            return self._handle_error(message, e)

    def get_conversation_status(self, phone_number: str) -> Any:
        """Conversation window status, as tracked by the messenger."""
        return self._messenger.get_conversation_status(phone_number)

    def _record_transition(self, user_id: str, current: Phase, target: Phase) -> None:
        """Persist a forward transition. Failures are logged only.

        If saving fails the phase is re-derived from history next time.
        """
        if phase_index(target) <= phase_index(current):
            logger.warning(
                "ignoring non-forward transition",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, current=current.value, target=target.value
                    )
                },
            )
            return

        logger.info(
            "phase transition",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user_id, from_phase=current.value, to_phase=target.value
                )
            },
        )
        try:
            self._store.save_phase(user_id, target)
        except Exception:
            logger.exception(
                "failed to persist phase transition",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, to_phase=target.value
                    )
                },
            )

    def _handle_error(self, message: InboundMessage, error: Exception) -> PhaseResult:
        logger.exception(
            "orchestration error",
            extra={
                "extra_fields": safe_log_context(
                    user_id=message.user_id,
                    message_id=message.message_id,
                    phone_hash=hash_identifier(message.phone_number or ""),
                    text_len=len(message.content or ""),
                    error_type=type(error).__name__,
                )
            },
        )

        try:
            self._messenger.send_message(message.phone_number, APOLOGY_MESSAGE)
        except Exception as send_error:
            logger.error(
                "failed to send apology message",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=message.user_id,
                        error_type=type(send_error).__name__,
                    )
                },
            )

        return PhaseResult(
            processed=False,
            phase=ERROR_PHASE,
            error=str(error),
        )
