"""Conversations repository - 24h window tracking and the stored phase.

Uses raw SQL with psycopg2 (no ORM).

One active conversation per user. The window opens on every inbound user
message and lasts WINDOW_DURATION; free-form messages may only be sent
while it is open.
"""

from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

_CONVERSATION_COLUMNS = (
    "id, user_id, phone_number_id, status, "
    "last_user_message_at, window_expires_at, phase"
)


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "user_id": str(row[1]),
        "phone_number_id": row[2],
        "status": row[3],
        "last_user_message_at": row[4],
        "window_expires_at": row[5],
        "phase": row[6],
    }


def find_active(cur: PgCursor, user_id: str) -> dict | None:
    """Most recent active conversation of a user."""
    cur.execute(
        f"""
        SELECT {_CONVERSATION_COLUMNS}
        FROM conversations
        WHERE user_id = %s AND status = 'active'
        ORDER BY created_at DESC
        LIMIT 1
        """,
        (user_id,),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def find_or_create(
    cur: PgCursor,
    *,
    user_id: str,
    phone_number_id: str | None = None,
) -> tuple[dict, bool]:
    """Resolve the active conversation, creating one when absent.

    The partial unique index on (user_id) WHERE status = 'active' makes a
    concurrent create fall back to the existing row.

    Returns:
        Tuple of (conversation, created).
    """
    existing = find_active(cur, user_id)
    if existing:
        return existing, False

    cur.execute(
        f"""
        INSERT INTO conversations (user_id, phone_number_id, status)
        VALUES (%s, %s, 'active')
        ON CONFLICT (user_id) WHERE status = 'active' DO NOTHING
        RETURNING {_CONVERSATION_COLUMNS}
        """,
        (user_id, phone_number_id),
    )
    row = cur.fetchone()
    if row:
        return _row_to_dict(row), True

    existing = find_active(cur, user_id)
    if existing is None:
        raise RuntimeError("conversation vanished after insert conflict")
    return existing, False


def update_window(
    cur: PgCursor,
    conversation_id: str,
    *,
    last_user_message_at: datetime,
    window_expires_at: datetime,
) -> None:
    """Reopen the service window after an inbound user message."""
    cur.execute(
        """
        UPDATE conversations
        SET last_user_message_at = %s,
            window_expires_at = %s,
            updated_at = now()
        WHERE id = %s
        """,
        (last_user_message_at, window_expires_at, conversation_id),
    )


def get_phase(cur: PgCursor, user_id: str) -> str | None:
    """Stored phase of the user's active conversation, or None."""
    cur.execute(
        """
        SELECT phase
        FROM conversations
        WHERE user_id = %s AND status = 'active'
        ORDER BY created_at DESC
        LIMIT 1
        """,
        (user_id,),
    )
    row = cur.fetchone()
    return row[0] if row else None


def set_phase(cur: PgCursor, user_id: str, phase: str) -> bool:
    """Store the phase on the user's active conversation.

    Returns:
        True if a conversation was updated.
    """
    cur.execute(
        """
        UPDATE conversations
        SET phase = %s, updated_at = now()
        WHERE user_id = %s AND status = 'active'
        """,
        (phase, user_id),
    )
    return cur.rowcount > 0
