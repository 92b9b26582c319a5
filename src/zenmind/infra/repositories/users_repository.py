"""Users repository - one row per WhatsApp phone number.

Uses raw SQL with psycopg2 (no ORM).
"""

from psycopg2.extensions import cursor as PgCursor

_USER_COLUMNS = "id, phone_number, name, created_at"


def _row_to_dict(row: tuple) -> dict:
    return {
        "id": str(row[0]),
        "phone_number": row[1],
        "name": row[2],
        "created_at": row[3],
    }


def find_by_phone(cur: PgCursor, phone_number: str) -> dict | None:
    """Look up a user by phone number."""
    cur.execute(
        f"SELECT {_USER_COLUMNS} FROM users WHERE phone_number = %s",
        (phone_number,),
    )
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def get_user(cur: PgCursor, user_id: str) -> dict | None:
    """Look up a user by id."""
    cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
    row = cur.fetchone()
    return _row_to_dict(row) if row else None


def find_or_create(
    cur: PgCursor,
    *,
    phone_number: str,
    name: str | None = None,
) -> tuple[dict, bool]:
    """Resolve the user for phone_number, creating it on first contact.

    A concurrent insert for the same phone is absorbed by ON CONFLICT; the
    existing row is returned in that case.

    Returns:
        Tuple of (user, created).
    """
    cur.execute(
        f"""
        INSERT INTO users (phone_number, name)
        VALUES (%s, %s)
        ON CONFLICT (phone_number) DO NOTHING
        RETURNING {_USER_COLUMNS}
        """,
        (phone_number, name),
    )
    row = cur.fetchone()
    if row:
        return _row_to_dict(row), True

    user = find_by_phone(cur, phone_number)
    if user is None:
        raise RuntimeError("user vanished after insert conflict")

    if name and not user["name"]:
        cur.execute(
            "UPDATE users SET name = %s, updated_at = now() WHERE id = %s",
            (name, user["id"]),
        )
        user["name"] = name
    return user, False


def delete_user(cur: PgCursor, user_id: str) -> bool:
    """Delete a user. Conversations and messages cascade.

    Returns:
        True if a row was deleted.
    """
    cur.execute("DELETE FROM users WHERE id = %s", (user_id,))
    return cur.rowcount > 0
