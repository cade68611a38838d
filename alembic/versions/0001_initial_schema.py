"""Initial schema: users, challenges, actions, claps, achievements

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, **kw) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), **kw)


def upgrade() -> None:
    """Create the engagement tables.  The achievement catalog is seeded at startup."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("avatar_seed", sa.String(100), nullable=False, server_default=""),
        sa.Column("total_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("claps_received", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("last_seen_at"),
        sa.CheckConstraint("total_actions >= 0", name="ck_users_total_actions_nonneg"),
        sa.CheckConstraint("current_streak >= 0", name="ck_users_current_streak_nonneg"),
        sa.CheckConstraint("claps_received >= 0", name="ck_users_claps_received_nonneg"),
        sa.CheckConstraint(
            "longest_streak >= current_streak", name="ck_users_longest_ge_current"
        ),
    )
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "challenges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("difficulty", sa.String(10), nullable=False, server_default="EASY"),
        sa.Column("times_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        _timestamp("created_at"),
        sa.CheckConstraint("times_used >= 0", name="ck_challenges_times_used_nonneg"),
    )
    op.create_index("ix_challenges_category", "challenges", ["category"])

    op.create_table(
        "actions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "challenge_id", sa.String(36),
            sa.ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("custom_text", sa.Text(), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("claps_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("claps_count >= 0", name="ck_actions_claps_count_nonneg"),
    )
    op.create_index("ix_actions_user_completed", "actions", ["user_id", "completed_at"])
    op.create_index("ix_actions_completed_at", "actions", ["completed_at"])
    op.create_index("ix_actions_category", "actions", ["category"])

    op.create_table(
        "claps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "action_id", sa.String(36),
            sa.ForeignKey("actions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        _timestamp("created_at"),
        sa.UniqueConstraint("action_id", "user_id", name="uq_claps_action_user"),
    )
    op.create_index("ix_claps_user_id", "claps", ["user_id"])

    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("badge_icon", sa.String(50), nullable=False, server_default=""),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("requirement", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("requirement >= 1", name="ck_achievements_requirement_positive"),
    )

    op.create_table(
        "user_achievements",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "achievement_id", sa.Integer(),
            sa.ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True,
        ),
        _timestamp("earned_at"),
    )
    op.create_index("ix_user_achievements_earned_at", "user_achievements", ["earned_at"])


def downgrade() -> None:
    """Drop every table created above, children first."""
    op.drop_index("ix_user_achievements_earned_at", table_name="user_achievements")
    op.drop_table("user_achievements")
    op.drop_table("achievements")
    op.drop_index("ix_claps_user_id", table_name="claps")
    op.drop_table("claps")
    op.drop_index("ix_actions_category", table_name="actions")
    op.drop_index("ix_actions_completed_at", table_name="actions")
    op.drop_index("ix_actions_user_completed", table_name="actions")
    op.drop_table("actions")
    op.drop_index("ix_challenges_category", table_name="challenges")
    op.drop_table("challenges")
    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_table("users")
