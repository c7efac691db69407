"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "thread_ticket_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("thread_id", sa.String(length=64), nullable=False),
        sa.Column("ticket_key", sa.String(length=64), nullable=False),
        sa.Column("message_id", sa.String(length=64), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("thread_id"),
    )
    op.create_index("ix_thread_ticket_mappings_ticket_key", "thread_ticket_mappings", ["ticket_key"], unique=True)

    op.create_table(
        "user_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("jira_account_id", sa.String(length=128), nullable=False),
        sa.Column("jira_display_name", sa.String(length=255), nullable=False),
        sa.Column("discord_user_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("jira_account_id"),
    )
    op.create_index("ix_user_mappings_discord_user_id", "user_mappings", ["discord_user_id"], unique=False)

    op.create_table(
        "comment_message_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("discord_message_id", sa.String(length=64), nullable=False),
        sa.Column("jira_comment_id", sa.String(length=64), nullable=True),
        sa.Column("thread_id", sa.String(length=64), nullable=False),
        sa.Column("ticket_key", sa.String(length=64), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("source IN ('discord', 'jira')", name="ck_comment_message_mappings_source"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("discord_message_id"),
        sa.UniqueConstraint("jira_comment_id"),
    )
    op.create_index(
        "ix_comment_message_mappings_ticket_key",
        "comment_message_mappings",
        ["ticket_key"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_comment_message_mappings_ticket_key", table_name="comment_message_mappings")
    op.drop_table("comment_message_mappings")
    op.drop_index("ix_user_mappings_discord_user_id", table_name="user_mappings")
    op.drop_table("user_mappings")
    op.drop_index("ix_thread_ticket_mappings_ticket_key", table_name="thread_ticket_mappings")
    op.drop_table("thread_ticket_mappings")
