"""Messages repository - inbound and outbound WhatsApp messages.

Uses raw SQL with psycopg2 (no ORM).

`content` is JSONB. Text messages are stored as {"text": "..."}; template
sends as {"template": name, "language": code}. Rows written by older
clients may carry {"body": "..."} or a bare JSON string, so every read of
message text goes through extract_text().
"""

import json
from typing import Any

from psycopg2.extensions import cursor as PgCursor

INBOUND = "inbound"
OUTBOUND = "outbound"

_MESSAGE_COLUMNS = (
    "id, conversation_id, user_id, direction, message_type, content, "
    "whatsapp_message_id, status, created_at"
)


def extract_text(content: Any) -> str | None:
    """Unwrap message text from a stored content value."""
    if content is None:
        return None
    if isinstance(content, str):
        try:
            decoded = json.loads(content)
        except ValueError:
            return content
        if isinstance(decoded, str):
            return decoded
        content = decoded
    if isinstance(content, dict):
        for key in ("text", "body"):
            value = content.get(key)
            if isinstance(value, str):
                return value
            if isinstance(value, dict) and isinstance(value.get("body"), str):
                return value["body"]
    return None


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "conversation_id": str(row[1]),
        "user_id": str(row[2]),
        "direction": row[3],
        "message_type": row[4],
        "content": row[5],
        "whatsapp_message_id": row[6],
        "status": row[7],
        "created_at": row[8],
    }


def insert_message(
    cur: PgCursor,
    *,
    conversation_id: str,
    user_id: str,
    direction: str,
    message_type: str,
    content: dict[str, Any],
    whatsapp_message_id: str | None = None,
    status: str | None = None,
) -> str | None:
    """Insert a message.

    Returns:
        The new message id, or None when whatsapp_message_id was already
        stored (provider redelivery).
    """
    cur.execute(
        """
        INSERT INTO messages (
            conversation_id, user_id, direction, message_type,
            content, whatsapp_message_id, status
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (whatsapp_message_id) DO NOTHING
        RETURNING id
        """,
        (
            conversation_id,
            user_id,
            direction,
            message_type,
            json.dumps(content, ensure_ascii=False),
            whatsapp_message_id,
            status,
        ),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None


def update_status(cur: PgCursor, whatsapp_message_id: str, status: str) -> bool:
    """Record a delivery status reported by the provider.

    Returns:
        True if a stored message matched.
    """
    cur.execute(
        """
        UPDATE messages
        SET status = %s, updated_at = now()
        WHERE whatsapp_message_id = %s
        """,
        (status, whatsapp_message_id),
    )
    return cur.rowcount > 0


def get_message(cur: PgCursor, message_id: str) -> dict | None:
    """Load one message by id."""
    cur.execute(
        f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = %s",
        (message_id,),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def count_outbound(cur: PgCursor, user_id: str) -> int:
    """Number of bot-authored messages ever sent to the user."""
    cur.execute(
        "SELECT COUNT(*) FROM messages WHERE user_id = %s AND direction = %s",
        (user_id, OUTBOUND),
    )
    row = cur.fetchone()
    return int(row[0]) if row else 0


def list_outbound_contents(cur: PgCursor, user_id: str) -> list[str]:
    """Text of every outbound message, oldest first."""
    cur.execute(
        """
        SELECT content
        FROM messages
        WHERE user_id = %s AND direction = %s
        ORDER BY created_at ASC, id ASC
        """,
        (user_id, OUTBOUND),
    )
    texts = (extract_text(row[0]) for row in cur.fetchall())
    return [text for text in texts if text]


def last_outbound_content(cur: PgCursor, user_id: str) -> str | None:
    """Text of the most recent outbound message."""
    cur.execute(
        """
        SELECT content
        FROM messages
        WHERE user_id = %s AND direction = %s
        ORDER BY created_at DESC, id DESC
        LIMIT 1
        """,
        (user_id, OUTBOUND),
    )
    row = cur.fetchone()
    return extract_text(row[0]) if row else None


def list_history(cur: PgCursor, user_id: str) -> list[tuple[str, str]]:
    """Full text transcript as (direction, text), oldest first.

    Messages without text (media, templates) are skipped.
    """
    cur.execute(
        """
        SELECT direction, content
        FROM messages
        WHERE user_id = %s
        ORDER BY created_at ASC, id ASC
        """,
        (user_id,),
    )
    history = []
    for direction, content in cur.fetchall():
        text = extract_text(content)
        if text:
            history.append((direction, text))
    return history
