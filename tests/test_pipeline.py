"""
tests/test_pipeline.py — Action-Completion Pipeline End to End
===============================================================

Runs the entry points against in-memory SQLite on a frozen clock and
checks the cross-table facts they must keep in step: counters, streaks,
achievements, rate limits and all-or-nothing transactions.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from helped.constants import RateLimitAction, RateLimitPreset
from helped.database.engine import get_session
from helped.database.models import Achievement, Action, Clap, User, UserAchievement
from helped.engine.achievements import UserStatsSnapshot
from helped.engine.rate_limit import RateLimiter
from helped.errors import (
    ApplauseNotFound,
    DuplicateApplause,
    EntityConflict,
    EntityNotFound,
    RateLimitExceeded,
    SelfApplause,
    StorageFailure,
)
from helped.services import achievement_service
from helped.services.counter_service import ActionPayload
from helped.services.pipeline import EngagementPipeline

from conftest import START, make_user


def _payload(user_id: str, category: str = "PEOPLE", **kwargs) -> ActionPayload:
    return ActionPayload(user_id=user_id, category=category, **kwargs)


def _user(engine, user_id) -> User:
    with Session(engine) as session:
        return session.get(User, user_id)


def _count(engine, model, *where) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(model).where(*where))


@pytest.fixture
def roomy_pipeline(db_engine, clock) -> EngagementPipeline:
    """A pipeline whose RECORD_ACTION limit won't get in the way."""
    limiter = RateLimiter(
        clock, presets={
            RateLimitAction.RECORD_ACTION: RateLimitPreset(1000, 86400),
            RateLimitAction.APPLAUSE: RateLimitPreset(1000, 3600),
        },
    )
    return EngagementPipeline(db_engine, limiter, clock)


# ===========================================================================
# RecordAction
# ===========================================================================
class TestRecordAction:
    def test_first_action(self, db_engine, pipeline):
        uid = make_user(db_engine)
        result = pipeline.record_action(_payload(uid))

        assert result.total_actions == 1
        assert (result.current_streak, result.longest_streak) == (1, 1)
        assert [a.key for a in result.new_achievements] == ["FIRST_ACTION"]
        assert result.completed_at == START

    def test_total_actions_matches_rows(self, db_engine, pipeline):
        uid = make_user(db_engine)
        for cat in ("PEOPLE", "ANIMALS", "PEOPLE"):
            pipeline.record_action(_payload(uid, cat))
        assert _user(db_engine, uid).total_actions == 3
        assert _count(db_engine, Action, Action.user_id == uid) == 3

    def test_ten_actions_earn_first_action_and_helper(self, db_engine, pipeline):
        uid = make_user(db_engine)
        earned = []
        for i in range(10):
            result = pipeline.record_action(_payload(uid, "PEOPLE" if i % 2 else "ANIMALS"))
            earned.extend(a.key for a in result.new_achievements)

        assert earned == ["FIRST_ACTION", "HELPER"]
        assert achievement_keys(db_engine, uid) == {"FIRST_ACTION", "HELPER"}

    def test_eleventh_action_in_a_day_is_rate_limited(self, db_engine, pipeline):
        uid = make_user(db_engine)
        for _ in range(10):
            pipeline.record_action(_payload(uid))

        with pytest.raises(RateLimitExceeded) as exc:
            pipeline.record_action(_payload(uid))
        assert exc.value.retry_after > 0
        assert _user(db_engine, uid).total_actions == 10

    def test_streak_scenario(self, db_engine, roomy_pipeline, clock):
        uid = make_user(db_engine)
        assert roomy_pipeline.record_action(_payload(uid)).current_streak == 1

        r = roomy_pipeline.record_action(_payload(uid))
        assert (r.current_streak, r.longest_streak) == (1, 1)

        clock.advance(days=1)
        r = roomy_pipeline.record_action(_payload(uid))
        assert (r.current_streak, r.longest_streak) == (2, 2)

        clock.advance(days=3)
        r = roomy_pipeline.record_action(_payload(uid))
        assert (r.current_streak, r.longest_streak) == (1, 2)

    def test_streak_achievement_survives_a_break(self, db_engine, roomy_pipeline, clock):
        uid = make_user(db_engine)
        for _ in range(3):
            roomy_pipeline.record_action(_payload(uid))
            clock.advance(days=1)
        assert "STREAK_3" in achievement_keys(db_engine, uid)

        clock.advance(days=5)
        r = roomy_pipeline.record_action(_payload(uid))
        assert r.current_streak == 1
        assert "STREAK_3" in achievement_keys(db_engine, uid)

    def test_first_week(self, db_engine, pipeline, clock):
        uid = make_user(db_engine)
        clock.advance(days=7)
        result = pipeline.record_action(_payload(uid))
        assert {a.key for a in result.new_achievements} == {"FIRST_ACTION", "FIRST_WEEK"}

    def test_category_explorer(self, db_engine, pipeline):
        uid = make_user(db_engine)
        keys = []
        for cat in ("PEOPLE", "ANIMALS", "ENVIRONMENT", "COMMUNITY"):
            keys += [a.key for a in pipeline.record_action(_payload(uid, cat)).new_achievements]
        assert keys == ["FIRST_ACTION", "CATEGORY_EXPLORER"]

    def test_explicit_completed_at(self, db_engine, pipeline):
        uid = make_user(db_engine)
        when = START - timedelta(hours=3)
        assert pipeline.record_action(_payload(uid, completed_at=when)).completed_at == when

    def test_backdated_actions_do_not_extend_streak(self, db_engine, roomy_pipeline, clock):
        uid = make_user(db_engine)
        roomy_pipeline.record_action(_payload(uid))
        clock.advance(days=1)
        assert roomy_pipeline.record_action(_payload(uid)).current_streak == 2

        old = START - timedelta(days=30)
        for _ in range(8):
            r = roomy_pipeline.record_action(_payload(uid, completed_at=old))
            assert (r.current_streak, r.longest_streak) == (2, 2)

        user = _user(db_engine, uid)
        assert (user.current_streak, user.longest_streak) == (2, 2)
        assert user.total_actions == 10
        assert "STREAK_3" not in achievement_keys(db_engine, uid)

    def test_future_completed_at_rejected(self, db_engine, roomy_pipeline):
        uid = make_user(db_engine)
        for days in range(1, 4):
            with pytest.raises(ValueError, match="future"):
                roomy_pipeline.record_action(
                    _payload(uid, completed_at=START + timedelta(days=days)),
                )

        user = _user(db_engine, uid)
        assert (user.total_actions, user.current_streak) == (0, 0)
        assert _count(db_engine, Action) == 0
        assert _count(db_engine, UserAchievement) == 0

    def test_completed_at_now_is_accepted(self, db_engine, pipeline):
        uid = make_user(db_engine)
        assert pipeline.record_action(_payload(uid, completed_at=START)).current_streak == 1

    def test_unknown_user(self, pipeline):
        with pytest.raises(EntityNotFound):
            pipeline.record_action(_payload("ghost"))

    def test_storage_failure_rolls_back_everything(self, db_engine, pipeline, caplog):
        uid = make_user(db_engine)
        boom = OperationalError("UPDATE users", {}, Exception("disk I/O error"))
        with patch("helped.services.streak_service.update_streak", side_effect=boom):
            with caplog.at_level("ERROR", logger="helped.services.pipeline"):
                with pytest.raises(StorageFailure):
                    pipeline.record_action(_payload(uid))

        assert "RecordAction failed" in caplog.text
        assert _user(db_engine, uid).total_actions == 0
        assert _count(db_engine, Action) == 0
        assert _count(db_engine, UserAchievement) == 0


def achievement_keys(engine, user_id) -> set[str]:
    with Session(engine) as session:
        return achievement_service.get_earned_keys(session, user_id)


# ===========================================================================
# Applause
# ===========================================================================
class TestApplause:
    @pytest.fixture
    def action(self, db_engine, pipeline):
        owner = make_user(db_engine, "owner")
        fan = make_user(db_engine, "fan")
        aid = pipeline.record_action(_payload(owner)).action_id
        return owner, fan, aid

    def test_add(self, db_engine, pipeline, action):
        owner, fan, aid = action
        result = pipeline.add_applause(aid, fan)
        assert result.claps_count == 1
        assert result.applauded
        assert _user(db_engine, owner).claps_received == 1
        assert pipeline.has_applauded(aid, fan)

    def test_self_applause_rejected(self, db_engine, pipeline, action):
        owner, _, aid = action
        with pytest.raises(SelfApplause):
            pipeline.add_applause(aid, owner)
        assert _count(db_engine, Clap) == 0

    def test_duplicate(self, db_engine, pipeline, action):
        owner, fan, aid = action
        pipeline.add_applause(aid, fan)
        with pytest.raises(DuplicateApplause):
            pipeline.add_applause(aid, fan)

        assert _count(db_engine, Clap) == 1
        assert _user(db_engine, owner).claps_received == 1

    def test_remove_then_add_restores_counters(self, db_engine, pipeline, action):
        owner, fan, aid = action
        pipeline.add_applause(aid, fan)
        assert pipeline.remove_applause(aid, fan).claps_count == 0
        assert not pipeline.has_applauded(aid, fan)
        assert pipeline.add_applause(aid, fan).claps_count == 1
        assert _user(db_engine, owner).claps_received == 1

    def test_remove_missing(self, pipeline, action):
        _, fan, aid = action
        with pytest.raises(ApplauseNotFound):
            pipeline.remove_applause(aid, fan)

    def test_unknown_action(self, pipeline, action):
        _, fan, _ = action
        with pytest.raises(EntityNotFound):
            pipeline.add_applause("nope", fan)

    def test_claps_received_sums_over_actions(self, db_engine, roomy_pipeline):
        owner = make_user(db_engine, "owner")
        fans = [make_user(db_engine, f"fan{i}") for i in range(3)]
        a1 = roomy_pipeline.record_action(_payload(owner)).action_id
        a2 = roomy_pipeline.record_action(_payload(owner)).action_id
        for fan in fans:
            roomy_pipeline.add_applause(a1, fan)
        roomy_pipeline.add_applause(a2, fans[0])

        assert _user(db_engine, owner).claps_received == 4
        assert _count(db_engine, Clap) == 4

    def test_applause_rate_limit(self, db_engine, clock, action):
        _, fan, aid = action
        limiter = RateLimiter(
            clock, presets={RateLimitAction.APPLAUSE: RateLimitPreset(2, 3600)},
        )
        pipeline = EngagementPipeline(db_engine, limiter, clock)
        pipeline.add_applause(aid, fan)
        pipeline.remove_applause(aid, fan)
        with pytest.raises(RateLimitExceeded):
            pipeline.add_applause(aid, fan)
        assert _count(db_engine, Clap) == 0


# ===========================================================================
# Awarding
# ===========================================================================
class TestAwarding:
    def test_concurrent_award_is_a_noop(self, db_engine, pipeline):
        """Another transaction awarded FIRST_ACTION after we read earned keys."""
        uid = make_user(db_engine)
        pipeline.record_action(_payload(uid))

        with patch.object(achievement_service, "get_earned_keys", return_value=set()):
            with get_session(db_engine) as s:
                awarded = achievement_service.award_new(
                    s, uid, UserStatsSnapshot(total_actions=1), earned_at=START,
                )

        assert awarded == []
        assert _count(db_engine, UserAchievement, UserAchievement.user_id == uid) == 1

    def test_nothing_new_returns_early(self, db_engine, pipeline):
        uid = make_user(db_engine)
        pipeline.record_action(_payload(uid))
        with get_session(db_engine) as s:
            assert achievement_service.award_new(
                s, uid, UserStatsSnapshot(total_actions=1), earned_at=START,
            ) == []

    def test_savepoint_fallback_skips_held(self, db_engine, pipeline):
        uid = make_user(db_engine)
        pipeline.record_action(_payload(uid))
        with get_session(db_engine) as s:
            ids = dict(s.execute(select(Achievement.key, Achievement.id)).all())
            inserted = achievement_service._insert_with_savepoints(
                s, uid, [ids["FIRST_ACTION"], ids["HELPER"]], START,
            )
        assert inserted == {ids["HELPER"]}
        assert achievement_keys(db_engine, uid) == {"FIRST_ACTION", "HELPER"}

    def test_results_in_catalog_order(self, db_engine):
        uid = make_user(db_engine)
        stats = UserStatsSnapshot(total_actions=25, longest_streak=3, days_since_joined=7)
        with get_session(db_engine) as s:
            awarded = achievement_service.award_new(s, uid, stats, earned_at=START)
        assert [a.key for a in awarded] == [
            "FIRST_ACTION", "FIRST_WEEK", "STREAK_3", "HELPER", "CHAMPION",
        ]

    def test_user_achievements_most_recent_first(self, db_engine, pipeline, clock):
        uid = make_user(db_engine)
        pipeline.record_action(_payload(uid))
        clock.advance(days=7)
        pipeline.record_action(_payload(uid))

        earned = pipeline.user_achievements(uid)
        assert [e.key for e in earned] == ["FIRST_WEEK", "FIRST_ACTION"]

    def test_progress(self, db_engine, pipeline):
        uid = make_user(db_engine)
        for _ in range(5):
            pipeline.record_action(_payload(uid))
        rows = {p.key: p for p in pipeline.achievement_progress(uid)}
        assert rows["FIRST_ACTION"].is_earned
        assert rows["HELPER"].current_progress == 5
        assert rows["HELPER"].progress_percentage == 50.0
        assert not rows["HELPER"].is_earned

    def test_reads_for_unknown_user(self, pipeline):
        with pytest.raises(EntityNotFound):
            pipeline.user_achievements("ghost")
        with pytest.raises(EntityNotFound):
            pipeline.achievement_progress("ghost")

    @pytest.mark.parametrize("read,target,operation", [
        ("user_achievements", "get_user_achievements", "UserAchievements"),
        ("achievement_progress", "get_achievement_progress", "AchievementProgress"),
    ])
    def test_read_storage_failure(self, db_engine, pipeline, caplog, read, target, operation):
        uid = make_user(db_engine)
        boom = OperationalError("SELECT", {}, Exception("connection reset"))
        with patch.object(achievement_service, target, side_effect=boom):
            with caplog.at_level("ERROR", logger="helped.services.pipeline"):
                with pytest.raises(StorageFailure):
                    getattr(pipeline, read)(uid)
        assert f"{operation} failed" in caplog.text


# ===========================================================================
# Accounts
# ===========================================================================
class TestCreateAccount:
    def test_create(self, pipeline):
        result = pipeline.create_account("kind_soul", source_address="10.0.0.1")
        assert result.username == "kind_soul"
        assert result.avatar_seed == "kind_soul"

    def test_duplicate_username(self, pipeline):
        pipeline.create_account("kind_soul", source_address="10.0.0.1")
        with pytest.raises(EntityConflict):
            pipeline.create_account("kind_soul", source_address="10.0.0.2")

    def test_empty_username(self, pipeline):
        with pytest.raises(ValueError):
            pipeline.create_account("<b></b>", source_address="10.0.0.1")

    def test_rate_limited_per_address(self, pipeline):
        for i in range(5):
            pipeline.create_account(f"user{i}", source_address="10.0.0.1")
        with pytest.raises(RateLimitExceeded):
            pipeline.create_account("user5", source_address="10.0.0.1")
        pipeline.create_account("user5", source_address="10.0.0.2")
