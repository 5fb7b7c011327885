"""create live_sessions and live_messages tables

Revision ID: 5c1d9e2a7b43
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1d9e2a7b43"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create live_sessions and live_messages tables."""
    op.create_table(
        "live_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("close_reason", sa.String(30), nullable=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("agent_id", sa.String(100), nullable=True),
        sa.Column("agent_email", sa.String(255), nullable=True),
        sa.Column("last_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("user_email", sa.String(255), nullable=False, server_default=""),
        sa.Column("user_ip", sa.String(100), nullable=False, server_default=""),
        sa.Column("user_agent", sa.String(255), nullable=False, server_default=""),
        sa.Column("page_url", sa.Text(), nullable=False),
        sa.Column("source", sa.String(60), nullable=False, server_default="widget"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rating_stars", sa.SmallInteger(), nullable=True),
        sa.Column("rating_comment", sa.Text(), nullable=True),
        sa.Column("rated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_live_sessions_agent_id"),
        "live_sessions",
        ["agent_id"],
        unique=False,
    )
    op.create_index(
        "ix_live_sessions_user_id_status",
        "live_sessions",
        ["user_id", "status"],
        unique=False,
    )
    op.create_index(
        "ix_live_sessions_status_last_activity_at",
        "live_sessions",
        ["status", "last_activity_at"],
        unique=False,
    )

    op.create_table(
        "live_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("sender", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("reply_to_id", sa.Integer(), nullable=True),
        sa.Column("attachment", sa.JSON(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["live_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", "seq", name="uq_live_messages_session_seq"),
    )
    op.create_index(
        op.f("ix_live_messages_session_id"),
        "live_messages",
        ["session_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop live_messages and live_sessions tables."""
    op.drop_index(op.f("ix_live_messages_session_id"), table_name="live_messages")
    op.drop_table("live_messages")
    op.drop_index("ix_live_sessions_status_last_activity_at", table_name="live_sessions")
    op.drop_index("ix_live_sessions_user_id_status", table_name="live_sessions")
    op.drop_index(op.f("ix_live_sessions_agent_id"), table_name="live_sessions")
    op.drop_table("live_sessions")
