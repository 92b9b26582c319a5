"""Add conversations.phase and backfill it from message history.

Revision ID: 002_conversation_phase
Revises: 001_initial_schema
Create Date: 2025-08-12
"""
from __future__ import annotations
from pathlib import Path
from alembic import op

revision = "002_conversation_phase"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "002_conversation_phase.sql"
    conn = op.get_bind()
    conn.exec_driver_sql(sql_path.read_text(encoding="utf-8"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(
        "ALTER TABLE conversations DROP CONSTRAINT IF EXISTS conversations_phase_check;"
        "ALTER TABLE conversations DROP COLUMN IF EXISTS phase;"
    )
