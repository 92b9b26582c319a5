"""Postgres-backed conversation history for the conversation core.

Each call runs in its own short transaction.
"""

from __future__ import annotations

from zenmind.conversation.phases import Phase
from zenmind.infra.db import txn
from zenmind.infra.repositories import conversations_repository, messages_repository

_ROLES = {
    messages_repository.INBOUND: "user",
    messages_repository.OUTBOUND: "assistant",
}


class PostgresHistoryStore:
    """Message history and stored phase, read from the messages tables."""

    def count_outbound_messages(self, user_id: str) -> int:
        with txn() as cur:
            return messages_repository.count_outbound(cur, user_id)

    def get_outbound_messages(self, user_id: str) -> list[str]:
        with txn() as cur:
            return messages_repository.list_outbound_contents(cur, user_id)

    def get_last_outbound_message(self, user_id: str) -> str | None:
        with txn() as cur:
            return messages_repository.last_outbound_content(cur, user_id)

    def get_phase(self, user_id: str) -> Phase | None:
        with txn() as cur:
            value = conversations_repository.get_phase(cur, user_id)
        if value is None:
            return None
        return Phase(value)

    def save_phase(self, user_id: str, phase: Phase) -> None:
        with txn() as cur:
            conversations_repository.set_phase(cur, user_id, phase.value)

    def get_history(self, user_id: str) -> list[dict[str, str]]:
        """Transcript as chat turns: {"role": "user"|"assistant", "content": ...}."""
        with txn() as cur:
            rows = messages_repository.list_history(cur, user_id)
        return [
            {"role": _ROLES[direction], "content": text}
            for direction, text in rows
            if direction in _ROLES
        ]
