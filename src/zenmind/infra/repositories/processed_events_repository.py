"""Processed events repository - idempotency receipts.

Uses raw SQL with psycopg2 (no ORM).
"""

from psycopg2.extensions import cursor as PgCursor


def mark_processed(cur: PgCursor, *, source: str, external_id: str) -> bool:
    """Insert a receipt for (source, external_id).

    Must run in the same transaction as the work it guards, so a rollback
    also removes the receipt.

    Returns:
        True if this is the first receipt, False for a duplicate.
    """
    cur.execute(
        """
        INSERT INTO processed_events (source, external_id)
        VALUES (%s, %s)
        ON CONFLICT (source, external_id) DO NOTHING
        """,
        (source, external_id),
    )
    return cur.rowcount > 0
