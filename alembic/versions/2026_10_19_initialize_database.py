"""initialize database

Revision ID: initialize_database
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "initialize_database"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: Slack clients, integrations, OAuth states, events, conversations."""
    op.create_table(
        "slack_clients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_client_id", sa.String(length=255), nullable=False),
        sa.Column("external_client_secret", sa.String(length=255), nullable=False),
        sa.Column("signing_secret", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_client_id"),
    )

    op.create_table(
        "slack_integrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("external_team_id", sa.String(length=64), nullable=False),
        sa.Column("external_team_name", sa.String(length=255), nullable=True),
        sa.Column("bot_user_id", sa.String(length=64), nullable=False),
        sa.Column("external_app_id", sa.String(length=64), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["client_id"], ["slack_clients.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_slack_integrations_account_id", "slack_integrations", ["account_id"]
    )
    op.create_index(
        "ix_slack_integrations_external_app_id",
        "slack_integrations",
        ["external_app_id"],
    )

    op.create_table(
        "slack_authorization_states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.Column("redeemed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["client_id"], ["slack_clients.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "slack_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("integration_id", sa.Integer(), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("abandoned_at", sa.DateTime(), nullable=True),
        sa.Column(
            "delivery_attempts", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["integration_id"], ["slack_integrations.id"], ondelete="SET NULL"
        ),
    )
    op.create_index(
        "ix_slack_events_pending",
        "slack_events",
        ["processed_at", "abandoned_at", "created_at"],
    )

    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("integration_id", sa.Integer(), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("thread_anchor", sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["integration_id"], ["slack_integrations.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "integration_id",
            "channel_id",
            "thread_anchor",
            name="uq_conversations_integration_channel_thread",
        ),
    )

    op.create_table(
        "conversation_turns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("content", postgresql.JSONB(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), nullable=False, server_default=sa.text("now()")
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["conversation_id"], ["conversations.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "conversation_id",
            "sequence",
            name="uq_conversation_turns_conversation_sequence",
        ),
    )


def downgrade() -> None:
    """Downgrade schema: drop all tables."""
    op.drop_table("conversation_turns")
    op.drop_table("conversations")
    op.drop_index("ix_slack_events_pending", table_name="slack_events")
    op.drop_table("slack_events")
    op.drop_table("slack_authorization_states")
    op.drop_index(
        "ix_slack_integrations_external_app_id", table_name="slack_integrations"
    )
    op.drop_index("ix_slack_integrations_account_id", table_name="slack_integrations")
    op.drop_table("slack_integrations")
    op.drop_table("slack_clients")
