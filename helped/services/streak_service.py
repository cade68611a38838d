"""
helped.services.streak_service — Persisted Streak Updates
==========================================================

Loads the user row ``FOR UPDATE`` (a no-op on SQLite), reads the two most
recent completion days and stores the result of
:func:`helped.engine.streaks.next_streak` in the same transaction as the
action that triggered it.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from helped.database.models import Action, User
from helped.engine.clock import Clock, as_utc
from helped.engine.streaks import StreakTransition, StreakUpdate, next_streak
from helped.errors import EntityNotFound

logger = logging.getLogger(__name__)


def lock_user(session: Session, user_id: str) -> User:
    """Load *user_id* with a row lock, refreshing any stale in-session copy."""
    user = session.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if user is None:
        raise EntityNotFound("User", user_id)
    return user


def update_streak(
    session: Session,
    user_id: str,
    clock: Clock,
    completed_at: datetime | None = None,
) -> StreakUpdate:
    """Recompute and persist the streak after an action was recorded.

    *completed_at* is the timestamp of the action just recorded.  When it
    is older than the user's latest action the streak is left as is.
    """
    user = lock_user(session, user_id)
    recent = session.scalars(
        select(Action.completed_at)
        .where(Action.user_id == user_id)
        .order_by(Action.completed_at.desc())
        .limit(2)
    ).all()

    if completed_at is not None and recent and as_utc(completed_at) < as_utc(recent[0]):
        logger.debug("Backdated action for %s leaves streak at %d", user_id, user.current_streak)
        return StreakUpdate(
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            transition=StreakTransition.UNCHANGED,
        )

    result = next_streak(
        user.current_streak,
        user.longest_streak,
        [clock.day_of(ts) for ts in recent],
    )
    user.current_streak = result.current_streak
    user.longest_streak = result.longest_streak
    session.flush()

    logger.debug(
        "Streak for %s: %s → current=%d longest=%d",
        user_id, result.transition, result.current_streak, result.longest_streak,
    )
    return result
