"""Conversation phase detection.

The phase is stored per conversation and updated when a handler signals a
transition. Conversations that have no stored phase (new users, or history
predating the phase column) get it inferred from bot-authored messages:

    outbound count == 0                       -> welcome
    no goal-complete marker                   -> goal_discovery
    goal marker, no expenses-complete marker  -> monthly_expenses
    both markers                              -> complete
"""

from __future__ import annotations

from typing import Protocol

from zenmind.observability.logging import get_logger
from zenmind.observability.redaction import safe_log_context

from .markers import marks_expenses_complete, marks_goal_complete
from .phases import Phase

logger = get_logger(__name__)

# Returned when detection itself fails; never welcome, so the welcome text
# is not repeated to an existing user
FALLBACK_PHASE = Phase.GOAL_DISCOVERY


class HistoryStore(Protocol):
    """Read access to a user's message history plus the stored phase."""

    def count_outbound_messages(self, user_id: str) -> int:
        ...

    def get_outbound_messages(self, user_id: str) -> list[str]:
        ...

    def get_last_outbound_message(self, user_id: str) -> str | None:
        ...

    def get_phase(self, user_id: str) -> Phase | None:
        ...

    def save_phase(self, user_id: str, phase: Phase) -> None:
        ...


class ConversationStateDetector:
    """Resolve the active phase of a user's conversation."""

    def __init__(self, store: HistoryStore) -> None:
        self._store = store

    def detect_phase(self, user_id: str) -> Phase:
        """Return the active phase for user_id. Never raises."""
        try:
            stored = self._store.get_phase(user_id)
            if stored is not None:
                return stored

            phase = self.infer_phase_from_history(user_id)
        except Exception:
            logger.exception(
                "phase detection failed, falling back",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, fallback=FALLBACK_PHASE.value
                    )
                },
            )
            return FALLBACK_PHASE

        if phase is not Phase.WELCOME:
            self._backfill(user_id, phase)
        return phase

    def _backfill(self, user_id: str, phase: Phase) -> None:
        """Store the inferred phase so later messages skip the history scan.

        A failed write is logged only; the inferred phase still stands.
        """
        try:
            self._store.save_phase(user_id, phase)
        except Exception:
            logger.exception(
                "phase backfill failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=user_id, phase=phase.value
                    )
                },
            )
            return
        logger.info(
            "phase backfilled from history",
            extra={
                "extra_fields": safe_log_context(user_id=user_id, phase=phase.value)
            },
        )

    def infer_phase_from_history(self, user_id: str) -> Phase:
        """Derive the phase from marker phrases in outbound history."""
        if self._store.count_outbound_messages(user_id) == 0:
            return Phase.WELCOME

        outbound = self._store.get_outbound_messages(user_id)
        goal_complete = any(marks_goal_complete(text) for text in outbound)
        expenses_complete = any(marks_expenses_complete(text) for text in outbound)

        logger.debug(
            "phase markers scanned",
            extra={
                "extra_fields": safe_log_context(
                    user_id=user_id,
                    outbound_count=len(outbound),
                    goal_complete=goal_complete,
                    expenses_complete=expenses_complete,
                )
            },
        )

        if not goal_complete:
            return Phase.GOAL_DISCOVERY
        if not expenses_complete:
            return Phase.MONTHLY_EXPENSES
        return Phase.COMPLETE

    def get_last_outbound_message(self, user_id: str) -> str | None:
        """Most recent bot-authored text, or None."""
        try:
            return self._store.get_last_outbound_message(user_id)
        except Exception:
            logger.exception(
                "failed to load last outbound message",
                extra={"extra_fields": safe_log_context(user_id=user_id)},
            )
            return None
