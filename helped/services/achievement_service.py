"""
helped.services.achievement_service — Awarding & Reading Achievements
======================================================================

:func:`award_new` diffs the rule engine's output against what the user
already holds and inserts only the difference.  Inserts ignore conflicts
on ``(user_id, achievement_id)``, so two transactions that race to award
the same badge both succeed and exactly one row exists afterwards.

* PostgreSQL / SQLite: one ``INSERT ... ON CONFLICT DO NOTHING RETURNING``.
* Other dialects: one SAVEPOINT per row, ``IntegrityError`` swallowed.

Earned achievements are never revoked.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from helped.database.models import Achievement, AchievementCategory, User, UserAchievement
from helped.engine.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    DEFINITIONS_BY_KEY,
    UserStatsSnapshot,
    evaluate,
)
from helped.engine.progress import AchievementProgress, achievement_progress
from helped.errors import EntityNotFound
from helped.services.stats_service import build_user_stats

if TYPE_CHECKING:
    from helped.engine.clock import Clock

logger = logging.getLogger(__name__)

_ON_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class AwardedAchievement:
    key: str
    name: str
    description: str
    badge_icon: str
    category: AchievementCategory
    order: int


@dataclass(frozen=True, slots=True)
class EarnedAchievement:
    key: str
    name: str
    description: str
    badge_icon: str
    category: str
    earned_at: datetime


def get_earned_keys(session: Session, user_id: str) -> set[str]:
    """Keys of every achievement *user_id* already holds."""
    rows = session.scalars(
        select(Achievement.key)
        .join(UserAchievement, UserAchievement.achievement_id == Achievement.id)
        .where(UserAchievement.user_id == user_id)
    ).all()
    return set(rows)


# ---------------------------------------------------------------------------
# Conflict-ignoring inserts
# ---------------------------------------------------------------------------
def _insert_on_conflict(
    session: Session, user_id: str, achievement_ids: Collection[int], earned_at: datetime,
) -> set[int]:
    insert = _ON_CONFLICT_INSERTS[session.get_bind().dialect.name]
    table = UserAchievement.__table__
    stmt = (
        insert(table)
        .values([
            {"user_id": user_id, "achievement_id": aid, "earned_at": earned_at}
            for aid in achievement_ids
        ])
        .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        .returning(table.c.achievement_id)
    )
    return set(session.scalars(stmt).all())


def _insert_with_savepoints(
    session: Session, user_id: str, achievement_ids: Collection[int], earned_at: datetime,
) -> set[int]:
    inserted: set[int] = set()
    for aid in achievement_ids:
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(UserAchievement(
                    user_id=user_id, achievement_id=aid, earned_at=earned_at,
                ))
                session.flush()
        except IntegrityError:
            # Awarded concurrently by another transaction
            logger.debug("Achievement %d already held by %s", aid, user_id)
            continue
        inserted.add(aid)
    return inserted


def insert_user_achievements(
    session: Session, user_id: str, achievement_ids: Collection[int], earned_at: datetime,
) -> set[int]:
    """Insert award rows, ignoring ones that already exist.

    Returns the ids that were actually inserted by this call.
    """
    if not achievement_ids:
        return set()
    if session.get_bind().dialect.name in _ON_CONFLICT_INSERTS:
        return _insert_on_conflict(session, user_id, achievement_ids, earned_at)
    return _insert_with_savepoints(session, user_id, achievement_ids, earned_at)


# ---------------------------------------------------------------------------
# Awarding
# ---------------------------------------------------------------------------
def award_new(
    session: Session,
    user_id: str,
    stats: UserStatsSnapshot,
    earned_at: datetime,
) -> list[AwardedAchievement]:
    """Persist achievements *stats* qualifies for that *user_id* lacks.

    Returns what this call actually inserted, in catalog order.  An
    achievement another transaction awarded first is silently skipped.
    """
    to_award = evaluate(stats) - get_earned_keys(session, user_id)
    if not to_award:
        return []

    ids_by_key = {
        row.key: row.id
        for row in session.execute(
            select(Achievement.key, Achievement.id).where(Achievement.key.in_(to_award))
        )
    }
    missing = to_award - ids_by_key.keys()
    if missing:
        logger.warning("Achievements not seeded, skipping: %s", ", ".join(sorted(missing)))

    inserted_ids = insert_user_achievements(session, user_id, ids_by_key.values(), earned_at)

    awarded = sorted(
        (DEFINITIONS_BY_KEY[key] for key, aid in ids_by_key.items() if aid in inserted_ids),
        key=lambda d: d.order,
    )
    if awarded:
        logger.info(
            "User %s earned %s", user_id, ", ".join(d.key for d in awarded),
        )
    return [
        AwardedAchievement(
            key=d.key,
            name=d.name,
            description=d.description,
            badge_icon=d.badge_icon,
            category=d.category,
            order=d.order,
        )
        for d in awarded
    ]


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------
def get_user_achievements(session: Session, user_id: str) -> list[EarnedAchievement]:
    """Everything *user_id* has earned, most recent first."""
    if session.get(User, user_id) is None:
        raise EntityNotFound("User", user_id)
    rows = session.execute(
        select(Achievement, UserAchievement.earned_at)
        .join(UserAchievement, UserAchievement.achievement_id == Achievement.id)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.earned_at.desc(), Achievement.sort_order)
    ).all()
    return [
        EarnedAchievement(
            key=a.key,
            name=a.name,
            description=a.description,
            badge_icon=a.badge_icon,
            category=a.category,
            earned_at=earned_at,
        )
        for a, earned_at in rows
    ]


def get_achievement_progress(
    session: Session, user_id: str, clock: Clock,
) -> list[AchievementProgress]:
    stats = build_user_stats(session, user_id, clock)
    earned = get_earned_keys(session, user_id)
    return achievement_progress(stats, earned, ACHIEVEMENT_DEFINITIONS)
