"""
helped.services.stats_service — User Statistics Snapshot
=========================================================

Builds the :class:`UserStatsSnapshot` the achievement rules run on from
the user row plus a per-category count of their actions.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from helped.database.models import Action, Category, User
from helped.engine.achievements import UserStatsSnapshot
from helped.engine.clock import Clock
from helped.errors import EntityNotFound

logger = logging.getLogger(__name__)


def get_category_breakdown(session: Session, user_id: str) -> dict[Category, int]:
    """Map each category to the user's action count (zeros included)."""
    rows = session.execute(
        select(Action.category, func.count().label("cnt"))
        .where(Action.user_id == user_id)
        .group_by(Action.category)
    ).all()

    breakdown = {c: 0 for c in Category}
    for row in rows:
        try:
            breakdown[Category(row.category)] = row.cnt
        except ValueError:
            logger.warning("Ignoring unknown action category %r for %s", row.category, user_id)
    return breakdown


def build_user_stats(session: Session, user_id: str, clock: Clock) -> UserStatsSnapshot:
    user = session.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if user is None:
        raise EntityNotFound("User", user_id)

    breakdown = get_category_breakdown(session, user_id)
    return UserStatsSnapshot(
        total_actions=user.total_actions,
        current_streak=user.current_streak,
        longest_streak=user.longest_streak,
        category_breakdown=breakdown,
        unique_categories_used=sum(1 for n in breakdown.values() if n > 0),
        days_since_joined=clock.days_between(user.created_at, clock.now()),
    )
