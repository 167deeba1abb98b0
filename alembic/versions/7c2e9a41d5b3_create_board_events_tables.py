"""Create board, event, notification and webhook tables.

Revision ID: 7c2e9a41d5b3
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "7c2e9a41d5b3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        _timestamp("created_at"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column(
            "role",
            sa.Enum("member", "admin", "system", name="userrole"),
            nullable=True,
            server_default="member",
        ),
        sa.Column("is_active", sa.Boolean, nullable=True, server_default=sa.true()),
        _timestamp("created_at"),
    )
    op.create_index("ix_users_account_id", "users", ["account_id"])

    op.create_table(
        "boards",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("creator_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("name", sa.String(160), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_boards_account_id", "boards", ["account_id"])

    op.create_table(
        "accesses",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("board_id", sa.Uuid, sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "involvement",
            sa.Enum("access_only", "watching", name="involvement"),
            nullable=True,
            server_default="access_only",
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("board_id", "user_id", name="uq_accesses_board_user"),
    )
    op.create_index("ix_accesses_board_id", "accesses", ["board_id"])
    op.create_index("ix_accesses_user_id", "accesses", ["user_id"])

    op.create_table(
        "cards",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("board_id", sa.Uuid, sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("creator_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("number", sa.Integer, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.Enum("drafted", "published", name="cardstatus"),
            nullable=True,
            server_default="drafted",
        ),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("postponed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("account_id", "number", name="uq_cards_account_number"),
    )
    op.create_index("ix_cards_account_id", "cards", ["account_id"])
    op.create_index("ix_cards_board_id", "cards", ["board_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("card_id", sa.Uuid, sa.ForeignKey("cards.id"), nullable=False),
        sa.Column("assignee_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigner_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("card_id", "assignee_id", name="uq_assignments_card_assignee"),
    )
    op.create_index("ix_assignments_card_id", "assignments", ["card_id"])
    op.create_index("ix_assignments_assignee_id", "assignments", ["assignee_id"])

    op.create_table(
        "watches",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("card_id", sa.Uuid, sa.ForeignKey("cards.id"), nullable=False),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("watching", sa.Boolean, nullable=True, server_default=sa.true()),
        _timestamp("created_at"),
        sa.UniqueConstraint("card_id", "user_id", name="uq_watches_card_user"),
    )
    op.create_index("ix_watches_card_id", "watches", ["card_id"])
    op.create_index("ix_watches_user_id", "watches", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("card_id", sa.Uuid, sa.ForeignKey("cards.id"), nullable=False),
        sa.Column("creator_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("is_system", sa.Boolean, nullable=True, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_index("ix_comments_account_id", "comments", ["account_id"])
    op.create_index("ix_comments_card_id", "comments", ["card_id"])

    op.create_table(
        "mentions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("source_type", sa.String(60), nullable=False),
        sa.Column("source_id", sa.Uuid, nullable=False),
        sa.Column("mentioner_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("mentionee_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "source_type", "source_id", "mentionee_id", name="uq_mentions_source_user"
        ),
    )
    op.create_index("ix_mentions_source_id", "mentions", ["source_id"])

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("board_id", sa.Uuid, sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("creator_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("eventable_type", sa.String(60), nullable=False),
        sa.Column("eventable_id", sa.Uuid, nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("particulars", sa.JSON, nullable=False),
        _timestamp("created_at", nullable=False),
    )
    op.create_index("ix_events_account_id", "events", ["account_id"])
    op.create_index("ix_events_action", "events", ["action"])
    op.create_index("ix_events_board_chronological", "events", ["board_id", "created_at"])
    op.create_index("ix_events_eventable", "events", ["eventable_type", "eventable_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "event_id",
            sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("creator_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_notifications_event_user"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_event_id", "notifications", ["event_id"])

    op.create_table(
        "webhooks",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("board_id", sa.Uuid, sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("signing_secret", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean, nullable=True, server_default=sa.true()),
        sa.Column("subscribed_actions", sa.JSON, nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_webhooks_board_id", "webhooks", ["board_id"])

    op.create_table(
        "webhook_deliveries",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("account_id", sa.Uuid, sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column(
            "webhook_id",
            sa.Uuid,
            sa.ForeignKey("webhooks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "event_id",
            sa.Uuid,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "state",
            sa.Enum(
                "pending", "in_progress", "completed", "errored",
                name="webhookdeliverystate",
            ),
            nullable=True,
            server_default="pending",
        ),
        sa.Column("request", sa.JSON, nullable=True),
        sa.Column("response", sa.JSON, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint(
            "webhook_id", "event_id", name="uq_webhook_deliveries_webhook_event"
        ),
    )
    op.create_index("ix_webhook_deliveries_webhook_id", "webhook_deliveries", ["webhook_id"])
    op.create_index("ix_webhook_deliveries_event_id", "webhook_deliveries", ["event_id"])
    op.create_index("ix_webhook_deliveries_created_at", "webhook_deliveries", ["created_at"])

    op.create_table(
        "webhook_delinquency_trackers",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "webhook_id",
            sa.Uuid,
            sa.ForeignKey("webhooks.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "consecutive_failures_count", sa.Integer, nullable=True, server_default="0"
        ),
        sa.Column("first_failure_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("updated_at"),
    )


def downgrade() -> None:
    op.drop_table("webhook_delinquency_trackers")
    op.drop_index("ix_webhook_deliveries_created_at", table_name="webhook_deliveries")
    op.drop_index("ix_webhook_deliveries_event_id", table_name="webhook_deliveries")
    op.drop_index("ix_webhook_deliveries_webhook_id", table_name="webhook_deliveries")
    op.drop_table("webhook_deliveries")
    op.drop_index("ix_webhooks_board_id", table_name="webhooks")
    op.drop_table("webhooks")
    op.drop_index("ix_notifications_event_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_events_eventable", table_name="events")
    op.drop_index("ix_events_board_chronological", table_name="events")
    op.drop_index("ix_events_action", table_name="events")
    op.drop_index("ix_events_account_id", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_mentions_source_id", table_name="mentions")
    op.drop_table("mentions")
    op.drop_index("ix_comments_card_id", table_name="comments")
    op.drop_index("ix_comments_account_id", table_name="comments")
    op.drop_table("comments")
    op.drop_index("ix_watches_user_id", table_name="watches")
    op.drop_index("ix_watches_card_id", table_name="watches")
    op.drop_table("watches")
    op.drop_index("ix_assignments_assignee_id", table_name="assignments")
    op.drop_index("ix_assignments_card_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_cards_board_id", table_name="cards")
    op.drop_index("ix_cards_account_id", table_name="cards")
    op.drop_table("cards")
    op.drop_index("ix_accesses_user_id", table_name="accesses")
    op.drop_index("ix_accesses_board_id", table_name="accesses")
    op.drop_table("accesses")
    op.drop_index("ix_boards_account_id", table_name="boards")
    op.drop_table("boards")
    op.drop_index("ix_users_account_id", table_name="users")
    op.drop_table("users")
    op.drop_table("accounts")

    for enum_name in ("webhookdeliverystate", "cardstatus", "involvement", "userrole"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
