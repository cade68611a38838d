"""
helped.database.models — SQLAlchemy 2.0 Data Models
====================================================

Tables:
- users              — Member profiles with denormalized engagement counters
- challenges         — Suggested acts of kindness (usage counted)
- actions            — Append-only completed-action journal
- claps              — Applause, at most one per (action, user)
- achievements       — Static achievement catalog (seeded)
- user_achievements  — Earned achievements, at most one per (user, achievement)

Counters on ``users``, ``actions`` and ``challenges`` are derived from the
event tables and only ever changed by the pipeline services.  CHECK
constraints keep them non-negative and keep ``longest_streak >=
current_streak`` even if a caller bypasses the services.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Category(enum.StrEnum):
    """What kind of kindness an action was."""
    PEOPLE = "PEOPLE"
    ANIMALS = "ANIMALS"
    ENVIRONMENT = "ENVIRONMENT"
    COMMUNITY = "COMMUNITY"


class Difficulty(enum.StrEnum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"


class AchievementCategory(enum.StrEnum):
    """Groups achievements for display and decides which stat they read."""
    STARTER = "STARTER"
    STREAK = "STREAK"
    IMPACT = "IMPACT"
    CATEGORY = "CATEGORY"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    avatar_seed: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    total_actions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    claps_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    actions: Mapped[list[Action]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    achievements: Mapped[list[UserAchievement]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("total_actions >= 0", name="ck_users_total_actions_nonneg"),
        CheckConstraint("current_streak >= 0", name="ck_users_current_streak_nonneg"),
        CheckConstraint("claps_received >= 0", name="ck_users_claps_received_nonneg"),
        CheckConstraint(
            "longest_streak >= current_streak", name="ck_users_longest_ge_current"
        ),
        Index("ix_users_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.username!r} actions={self.total_actions}>"


# ---------------------------------------------------------------------------
# Challenges — suggested actions
# ---------------------------------------------------------------------------
class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    difficulty: Mapped[str] = mapped_column(
        String(10), nullable=False, default=Difficulty.EASY.value
    )
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("times_used >= 0", name="ck_challenges_times_used_nonneg"),
        Index("ix_challenges_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Challenge id={self.id} category={self.category} used={self.times_used}>"


# ---------------------------------------------------------------------------
# Actions — append-only completed-action journal
# ---------------------------------------------------------------------------
class Action(Base):
    __tablename__ = "actions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("challenges.id", ondelete="SET NULL"), nullable=True
    )
    custom_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    claps_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="actions")
    challenge: Mapped[Challenge | None] = relationship()
    claps: Mapped[list[Clap]] = relationship(
        back_populates="action", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("claps_count >= 0", name="ck_actions_claps_count_nonneg"),
        Index("ix_actions_user_completed", "user_id", "completed_at"),
        Index("ix_actions_completed_at", "completed_at"),
        Index("ix_actions_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Action id={self.id} user={self.user_id} category={self.category}>"


# ---------------------------------------------------------------------------
# Claps — applause, unique per (action, user)
# ---------------------------------------------------------------------------
class Clap(Base):
    __tablename__ = "claps"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    action_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("actions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    action: Mapped[Action] = relationship(back_populates="claps")

    __table_args__ = (
        # Duplicate applause is rejected here, not in application code
        UniqueConstraint("action_id", "user_id", name="uq_claps_action_user"),
        Index("ix_claps_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Clap action={self.action_id} user={self.user_id}>"


# ---------------------------------------------------------------------------
# Achievements — static catalog
# ---------------------------------------------------------------------------
class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    badge_icon: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    requirement: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    earned_by: Mapped[list[UserAchievement]] = relationship(back_populates="achievement")

    __table_args__ = (
        CheckConstraint("requirement >= 1", name="ck_achievements_requirement_positive"),
    )

    def __repr__(self) -> str:
        return f"<Achievement id={self.id} key={self.key!r}>"


# ---------------------------------------------------------------------------
# UserAchievement — earned badges (monotonic, never revoked)
# ---------------------------------------------------------------------------
class UserAchievement(Base):
    __tablename__ = "user_achievements"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), primary_key=True,
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    user: Mapped[User] = relationship(back_populates="achievements")
    achievement: Mapped[Achievement] = relationship(back_populates="earned_by")

    __table_args__ = (
        Index("ix_user_achievements_earned_at", "earned_at"),
    )

    def __repr__(self) -> str:
        return f"<UserAchievement user={self.user_id} achievement={self.achievement_id}>"
