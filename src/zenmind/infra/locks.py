"""Per-user advisory locks.

Inbound messages for the same user must be processed one at a time:
webhook redeliveries or two quick messages could otherwise both see the
same phase and send duplicate replies or skip a transition.
"""

import hashlib
from contextlib import contextmanager
from typing import Iterator

from psycopg2.extensions import cursor as PgCursor

from .db import txn

# Namespace prefix so conversation locks never collide with other advisory locks
_LOCK_NAMESPACE = "zenmind:conversation"


def lock_key(user_id: str) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.sha256(f"{_LOCK_NAMESPACE}:{user_id}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


@contextmanager
def user_lock(user_id: str) -> Iterator[PgCursor]:
    """Hold a transaction-scoped advisory lock for user_id.

    The lock lives on its own connection and is released when the block
    exits (commit or rollback). The yielded cursor belongs to that
    transaction, so writes made through it (e.g. dedupe receipts) commit
    or roll back together with the locked work. Other connections may be
    used freely inside the block.
    """
    with txn() as cur:
        cur.execute("SELECT pg_advisory_xact_lock(%s)", (lock_key(user_id),))
        yield cur
