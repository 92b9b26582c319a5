"""Pluggy items repository - status of Open Finance bank connections.

Uses raw SQL with psycopg2 (no ORM).
"""

import json
from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def upsert_item(
    cur: PgCursor,
    *,
    pluggy_item_id: str,
    status: str,
    client_user_id: str | None = None,
    connector_name: str | None = None,
    status_detail: dict[str, Any] | None = None,
    last_synced_at: datetime | None = None,
) -> None:
    """Insert or update the tracked state of a Pluggy item.

    Columns passed as None keep their stored value on update.
    """
    cur.execute(
        """
        INSERT INTO pluggy_items (
            pluggy_item_id, client_user_id, connector_name,
            status, status_detail, last_synced_at
        )
        VALUES (%s, %s, %s, %s, %s, %s)
        ON CONFLICT (pluggy_item_id) DO UPDATE SET
            client_user_id = COALESCE(EXCLUDED.client_user_id, pluggy_items.client_user_id),
            connector_name = COALESCE(EXCLUDED.connector_name, pluggy_items.connector_name),
            status = EXCLUDED.status,
            status_detail = COALESCE(EXCLUDED.status_detail, pluggy_items.status_detail),
            last_synced_at = COALESCE(EXCLUDED.last_synced_at, pluggy_items.last_synced_at),
            updated_at = now()
        """,
        (
            pluggy_item_id,
            client_user_id,
            connector_name,
            status,
            json.dumps(status_detail) if status_detail is not None else None,
            last_synced_at,
        ),
    )
