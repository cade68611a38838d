"""
helped.services.pipeline — Action-Completion Pipeline Entry Points
===================================================================

The only place mutating operations are started from.  Each entry point:

    1. Checks the rate limiter (raises :class:`RateLimitExceeded` when denied).
    2. Opens exactly one database transaction.
    3. Writes the event row and moves counters (:mod:`counter_service`).
    4. For a recorded action only: updates the streak, rebuilds the stats
       snapshot and awards newly qualified achievements.
    5. Commits, or rolls back everything and raises.

Any SQLAlchemy error escaping the transaction is logged with its
traceback and surfaced as :class:`StorageFailure`; typed errors from the
services (``DuplicateApplause``, ``EntityNotFound`` …) pass through
unchanged after the rollback.

Usage::

    pipeline = EngagementPipeline(engine, RateLimiter(SystemClock()))
    result = pipeline.record_action(ActionPayload(user_id=uid, category="PEOPLE"))
    for badge in result.new_achievements:
        ...
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from helped.constants import RateLimitAction
from helped.database.engine import get_session
from helped.engine.clock import Clock, as_utc
from helped.engine.progress import AchievementProgress
from helped.engine.rate_limit import RateLimiter, RateLimitResult
from helped.errors import RateLimitExceeded, SelfApplause, StorageFailure
from helped.services import (
    achievement_service,
    counter_service,
    stats_service,
    streak_service,
    user_service,
)
from helped.services.achievement_service import AwardedAchievement, EarnedAchievement
from helped.services.counter_service import ActionPayload

logger = logging.getLogger(__name__)

_UNKNOWN_SOURCE = "unknown"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RecordActionResult:
    action_id: str
    user_id: str
    category: str
    completed_at: datetime
    total_actions: int
    current_streak: int
    longest_streak: int
    new_achievements: tuple[AwardedAchievement, ...] = ()


@dataclass(frozen=True, slots=True)
class ApplauseResult:
    action_id: str
    user_id: str
    claps_count: int
    applauded: bool


@dataclass(frozen=True, slots=True)
class AccountResult:
    user_id: str
    username: str
    avatar_seed: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
class EngagementPipeline:
    """Rate-limited, transactional entry points over one engine."""

    def __init__(
        self,
        engine: Engine,
        limiter: RateLimiter,
        clock: Clock | None = None,
    ) -> None:
        self.engine = engine
        self.limiter = limiter
        self.clock = clock or limiter.clock

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _enforce(self, identity: str, action: RateLimitAction) -> RateLimitResult:
        result = self.limiter.check_preset(identity, action)
        if not result.allowed:
            raise RateLimitExceeded(action.value, result.retry_after or 1, result.reset_at)
        return result

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        try:
            with get_session(self.engine) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.exception("%s failed, transaction rolled back", operation)
            raise StorageFailure(f"{operation} could not be completed") from exc

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def record_action(
        self, payload: ActionPayload, identity: str | None = None,
    ) -> RecordActionResult:
        """Record a completed action, update the streak, award achievements.

        *identity* is what the RECORD_ACTION limit is counted against and
        defaults to the acting user.

        Raises
        ------
        ValueError
            If ``payload.completed_at`` lies in the future.
        """
        self._enforce(identity or payload.user_id, RateLimitAction.RECORD_ACTION)
        now = self.clock.now()
        if payload.completed_at is None:
            payload = dataclasses.replace(payload, completed_at=now)
        elif as_utc(payload.completed_at) > now:
            raise ValueError("completed_at cannot be in the future")

        with self._transaction("RecordAction") as session:
            action = counter_service.record_action(session, payload)
            streak = streak_service.update_streak(
                session, payload.user_id, self.clock, payload.completed_at,
            )
            stats = stats_service.build_user_stats(session, payload.user_id, self.clock)
            awarded = achievement_service.award_new(
                session, payload.user_id, stats, earned_at=self.clock.now(),
            )
            result = RecordActionResult(
                action_id=action.id,
                user_id=payload.user_id,
                category=action.category,
                completed_at=payload.completed_at,
                total_actions=stats.total_actions,
                current_streak=streak.current_streak,
                longest_streak=streak.longest_streak,
                new_achievements=tuple(awarded),
            )

        logger.info(
            "Recorded action %s for %s (total=%d, streak=%d)",
            result.action_id, result.user_id, result.total_actions, result.current_streak,
        )
        return result

    def add_applause(
        self, action_id: str, user_id: str, identity: str | None = None,
    ) -> ApplauseResult:
        """Applaud *action_id* as *user_id*.

        Raises :class:`SelfApplause` for the action's own author and
        :class:`DuplicateApplause` if *user_id* already applauded it.
        """
        self._enforce(identity or user_id, RateLimitAction.APPLAUSE)

        with self._transaction("AddApplause") as session:
            if counter_service.get_action_owner(session, action_id) == user_id:
                raise SelfApplause(action_id)
            claps = counter_service.add_applause(session, action_id, user_id)

        return ApplauseResult(
            action_id=action_id, user_id=user_id, claps_count=claps, applauded=True,
        )

    def remove_applause(
        self, action_id: str, user_id: str, identity: str | None = None,
    ) -> ApplauseResult:
        self._enforce(identity or user_id, RateLimitAction.APPLAUSE)

        with self._transaction("RemoveApplause") as session:
            claps = counter_service.remove_applause(session, action_id, user_id)

        return ApplauseResult(
            action_id=action_id, user_id=user_id, claps_count=claps, applauded=False,
        )

    def create_account(
        self, username: str, avatar_seed: str = "", source_address: str | None = None,
    ) -> AccountResult:
        """Create a user; limited per *source_address* with CREATE_ACCOUNT."""
        self._enforce(source_address or _UNKNOWN_SOURCE, RateLimitAction.CREATE_ACCOUNT)

        with self._transaction("CreateAccount") as session:
            user = user_service.create_user(session, username, avatar_seed, self.clock.now())
            result = AccountResult(
                user_id=user.id,
                username=user.username,
                avatar_seed=user.avatar_seed,
                created_at=user.created_at,
            )
        return result

    # -------------------------------------------------------------------
    # Reads (not rate limited)
    # -------------------------------------------------------------------
    def has_applauded(self, action_id: str, user_id: str) -> bool:
        with self._transaction("HasApplauded") as session:
            return user_service.has_user_applauded(session, action_id, user_id)

    def user_achievements(self, user_id: str) -> list[EarnedAchievement]:
        with self._transaction("UserAchievements") as session:
            return achievement_service.get_user_achievements(session, user_id)

    def achievement_progress(self, user_id: str) -> list[AchievementProgress]:
        with self._transaction("AchievementProgress") as session:
            return achievement_service.get_achievement_progress(session, user_id, self.clock)
