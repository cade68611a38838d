"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from helped.database.engine import enable_sqlite_savepoints, get_session
from helped.database.models import Base, Challenge
from helped.database.seed import seed_achievements
from helped.engine.clock import FrozenClock
from helped.engine.rate_limit import RateLimiter
from helped.services.pipeline import EngagementPipeline
from helped.services.user_service import create_user

# Monday, midday UTC
START = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with every table and the seeded catalog.

    Uses StaticPool so all threads share the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    seed_achievements(engine)
    return engine


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def limiter(clock) -> RateLimiter:
    """A limiter on the frozen clock.  The sweeper thread is not started."""
    return RateLimiter(clock)


@pytest.fixture
def pipeline(db_engine, limiter, clock) -> EngagementPipeline:
    return EngagementPipeline(db_engine, limiter, clock)


def make_user(engine: Engine, username: str = "alice", created_at: datetime = START) -> str:
    """Insert a user directly and return its id."""
    with get_session(engine) as session:
        return create_user(session, username, "", created_at).id


def make_challenge(engine: Engine, category: str = "PEOPLE") -> str:
    with get_session(engine) as session:
        challenge = Challenge(text="Hold the door for someone", category=category)
        session.add(challenge)
        session.flush()
        return challenge.id
