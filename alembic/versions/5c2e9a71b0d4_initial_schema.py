"""Initial schema: users, swap marketplace, challenges, volunteer events,
reward ledger, presence, notifications, announcements, settings

Revision ID: 5c2e9a71b0d4
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c2e9a71b0d4'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
    )


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="citizen"),
        _created_at(),
    )

    # --- swap marketplace ---
    op.create_table(
        "swap_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "owner_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("category", sa.String(50), nullable=False, server_default="other"),
        sa.Column("condition", sa.String(30), nullable=False, server_default="good"),
        sa.Column("estimated_value", sa.Float, server_default="0"),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("is_available", sa.Boolean, server_default=sa.true()),
        sa.Column("swapped_with", sa.String(128), nullable=True),
        sa.Column("swapped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        _created_at(),
    )
    op.create_index("ix_swap_items_owner", "swap_items", ["owner_id"])
    op.create_index(
        "ix_swap_items_available_category", "swap_items", ["is_available", "category"],
    )

    op.create_table(
        "swap_requests",
        sa.Column(
            "item_id", sa.Integer,
            sa.ForeignKey("swap_items.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "requester_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("offer_details", sa.Text, nullable=True),
        sa.Column("offer_value", sa.Float, nullable=True),
        sa.Column("offer_image", sa.String(500), nullable=True),
        sa.Column("owner_confirmed", sa.Boolean, server_default=sa.false()),
        sa.Column("requester_confirmed", sa.Boolean, server_default=sa.false()),
        sa.Column(
            "requested_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_swap_requests_requester", "swap_requests", ["requester_id"])

    op.create_table(
        "completed_swaps",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("item_id", sa.Integer, nullable=False),
        sa.Column("item_title", sa.String(200), nullable=False),
        sa.Column("item_description", sa.Text, server_default=""),
        sa.Column("item_category", sa.String(50), server_default="other"),
        sa.Column("item_image_url", sa.String(500), nullable=True),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("requester_id", sa.String(128), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="completed"),
        sa.Column("offer_details", sa.Text, nullable=True),
        sa.Column("offer_value", sa.Float, nullable=True),
        sa.Column("offer_image", sa.String(500), nullable=True),
        sa.Column(
            "completed_at", sa.DateTime(timezone=True), server_default=sa.func.now(),
        ),
    )
    # At most one successful completion per item
    op.create_index(
        "ix_completed_swaps_item_completed", "completed_swaps", ["item_id"],
        unique=True,
        postgresql_where=sa.text("status = 'completed'"),
    )
    op.create_index("ix_completed_swaps_owner", "completed_swaps", ["owner_id"])
    op.create_index("ix_completed_swaps_requester", "completed_swaps", ["requester_id"])

    # --- challenges ---
    op.create_table(
        "challenges",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_actions", sa.Integer, server_default="10"),
        sa.Column("badge_name", sa.String(100), nullable=False),
        sa.Column("badge_icon", sa.String(50), nullable=True),
        sa.Column("badge_color", sa.String(7), server_default="#4CAF50"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_by", sa.String(128), nullable=False),
        _created_at(),
    )
    op.create_index("ix_challenges_category", "challenges", ["category"])

    op.create_table(
        "challenge_participants",
        sa.Column(
            "challenge_id", sa.Integer,
            sa.ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- volunteer events ---
    op.create_table(
        "volunteer_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time", sa.String(20), nullable=True),
        sa.Column("location", sa.String(200), server_default=""),
        sa.Column("address", sa.String(300), server_default=""),
        sa.Column("duration", sa.Float, server_default="2"),
        sa.Column("difficulty", sa.String(20), server_default="easy"),
        sa.Column("max_volunteers", sa.Integer, server_default="20"),
        sa.Column("organizer_name", sa.String(100), server_default=""),
        sa.Column("organizer_email", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=False),
        _created_at(),
    )
    op.create_index("ix_volunteer_events_date", "volunteer_events", ["date"])

    op.create_table(
        "event_volunteers",
        sa.Column(
            "event_id", sa.Integer,
            sa.ForeignKey("volunteer_events.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "volunteer_profiles",
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("total_hours", sa.Float, server_default="0"),
        sa.Column("events_attended", sa.Integer, server_default="0"),
        _created_at(),
    )

    op.create_table(
        "user_badges",
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "challenge_id", sa.Integer,
            sa.ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("badge_name", sa.String(100), nullable=False),
        sa.Column("badge_icon", sa.String(50), nullable=True),
        sa.Column("badge_color", sa.String(7), server_default="#4CAF50"),
        sa.Column("earned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- reward ledger ---
    op.create_table(
        "actions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("action_type", sa.String(30), nullable=False),
        sa.Column("points", sa.Integer, server_default="0"),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("challenge_id", sa.Integer, nullable=True),
        sa.Column("event_id", sa.Integer, nullable=True),
        sa.Column("source_event_id", sa.String(200), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_actions_idempotent", "actions", ["source_event_id"],
        unique=True,
        postgresql_where=sa.text("source_event_id IS NOT NULL"),
    )
    op.create_index("ix_actions_user_time", "actions", ["user_id", "timestamp"])
    op.create_index("ix_actions_challenge_user", "actions", ["challenge_id", "user_id"])

    op.create_table(
        "user_stats",
        sa.Column(
            "user_id", sa.String(128),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("total_actions", sa.Integer, server_default="0"),
        sa.Column("total_points", sa.Integer, server_default="0"),
        sa.Column("items_swapped", sa.Integer, server_default="0"),
        sa.Column("events_joined", sa.Integer, server_default="0"),
        sa.Column("challenges_joined", sa.Integer, server_default="0"),
        sa.Column("badges_earned", sa.Integer, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- presence, notifications, announcements ---
    op.create_table(
        "user_presence",
        sa.Column("user_id", sa.String(128), primary_key=True),
        sa.Column("display_name", sa.String(100), server_default="Anonymous"),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("explicit_offline", sa.Boolean, server_default=sa.false()),
    )
    op.create_index("ix_user_presence_last_seen", "user_presence", ["last_seen"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("target_user_id", sa.String(128), nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, server_default=""),
        sa.Column("read", sa.Boolean, server_default=sa.false()),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_target", "notifications", ["target_user_id"])

    op.create_table(
        "announcements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("created_by", sa.String(128), nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- settings ---
    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text, nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("announcements")
    op.drop_table("notifications")
    op.drop_table("user_presence")
    op.drop_table("user_stats")
    op.drop_table("actions")
    op.drop_table("user_badges")
    op.drop_table("volunteer_profiles")
    op.drop_table("event_volunteers")
    op.drop_table("volunteer_events")
    op.drop_table("challenge_participants")
    op.drop_table("challenges")
    op.drop_table("completed_swaps")
    op.drop_table("swap_requests")
    op.drop_table("swap_items")
    op.drop_table("users")
