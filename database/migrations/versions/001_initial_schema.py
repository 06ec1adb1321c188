"""Initial schema: users, goals, workouts and notifications.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    # 1. Users table
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("email_notifications", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("reminder_time", sa.String(5), server_default="20:00", nullable=False),
        sa.Column("weekly_goal", sa.Integer(), server_default="3", nullable=False),
        sa.Column("current_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("longest_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_workouts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("average_workout_duration", sa.Float(), server_default="0", nullable=False),
        sa.Column("last_active", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fitness_level", sa.String(20), server_default="beginner", nullable=False),
        sa.Column("fitness_goals", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column(
            "preferred_workout_types", postgresql.JSONB(), server_default="[]", nullable=False
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(
        "idx_users_reminder",
        "users",
        ["is_active", "notifications_enabled", "reminder_time"],
    )

    # 2. Goals table
    op.create_table(
        "goals",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("goal_id", sa.String(36), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("category", sa.String(32), server_default="fitness", nullable=False),
        sa.Column("target_value", sa.Float(), server_default="1", nullable=False),
        sa.Column("current_value", sa.Float(), server_default="0", nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("status", sa.String(16), server_default="active", nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("goal_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_goals_user_id", "goals", ["user_id"])
    op.create_index("idx_goals_deadline", "goals", ["status", "completed", "deadline"])

    # 3. Workouts table
    op.create_table(
        "workouts",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("workout_id", sa.String(36), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("intensity", sa.String(16), server_default="moderate", nullable=False),
        sa.Column("completed", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workout_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_workouts_user_id", "workouts", ["user_id"])
    op.create_index("idx_workouts_user_date", "workouts", ["user_id", "date"])

    # 4. Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("notification_id", sa.String(36), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        # Content
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("category", sa.String(32), server_default="system", nullable=False),
        sa.Column("priority", sa.String(16), server_default="normal", nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        # Delivery
        sa.Column("channels", postgresql.JSONB(), server_default='["in-app"]', nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        # Metadata
        sa.Column("related_id", sa.String(64), nullable=True),
        sa.Column("related_model", sa.String(32), nullable=True),
        sa.Column("action_url", sa.String(200), nullable=True),
        sa.Column("action_label", sa.String(50), nullable=True),
        sa.Column("image_url", sa.String(200), nullable=True),
        sa.Column("custom_data", postgresql.JSONB(), server_default="{}", nullable=False),
        sa.Column("tags", postgresql.JSONB(), server_default="[]", nullable=False),
        # Delivery bookkeeping
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_attempt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_errors", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("delivery_status", postgresql.JSONB(), server_default="{}", nullable=False),
        # Analytics
        sa.Column("opened", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("clicked", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("clicked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("action_taken", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("action_taken_at", sa.DateTime(timezone=True), nullable=True),
        # Recurrence
        sa.Column("is_recurring", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("recurrence_frequency", sa.String(16), nullable=True),
        sa.Column("recurrence_interval", sa.Integer(), server_default="1", nullable=False),
        sa.Column(
            "recurrence_days_of_week", postgresql.JSONB(), server_default="[]", nullable=False
        ),
        sa.Column("recurrence_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_scheduled", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("notification_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("idx_notifications_user_status", "notifications", ["user_id", "status"])
    op.create_index("idx_notifications_pending", "notifications", ["status", "scheduled_for"])
    op.create_index("idx_notifications_expires_at", "notifications", ["expires_at"])
    op.create_index(
        "idx_notifications_user_type_created",
        "notifications",
        ["user_id", "type", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("workouts")
    op.drop_table("goals")
    op.drop_table("users")
