"""
helped.services.counter_service — Event Rows & Denormalized Counters
=====================================================================

Writes the append-only event rows (actions, claps) and moves the counters
derived from them.  Every counter change is a single SQL ``UPDATE ... SET
n = n ± 1`` so concurrent writers never lose an increment to a
read-modify-write race.

All functions take the caller's :class:`Session` and never commit: the
pipeline runs each entry point in one transaction so event rows and
counters land or roll back together.

Duplicate applause is detected by the ``uq_claps_action_user`` constraint,
not by looking first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from helped.constants import ACTION_TEXT_MAX_LENGTH, LOCATION_MAX_LENGTH
from helped.database.models import Action, Category, Challenge, Clap, User
from helped.engine.clock import as_utc
from helped.engine.sanitize import sanitize_plain_text
from helped.errors import (
    ApplauseNotFound,
    DuplicateApplause,
    EntityNotFound,
    StorageFailure,
)

logger = logging.getLogger(__name__)

# Counter UPDATEs don't touch in-session objects; readers reload with
# populate_existing instead.
_NO_SYNC = {"synchronize_session": False}


@dataclass(frozen=True, slots=True)
class ActionPayload:
    """Everything needed to record one completed action."""

    user_id: str
    category: Category | str
    completed_at: datetime | None = None
    challenge_id: str | None = None
    custom_text: str | None = None
    location: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------
def record_action(session: Session, payload: ActionPayload) -> Action:
    """Insert an action and bump ``total_actions`` (and challenge usage).

    Raises
    ------
    EntityNotFound
        If the user or the referenced challenge does not exist.
    ValueError
        If ``payload.category`` is not a known :class:`Category` or
        ``completed_at`` is missing.
    """
    category = Category(payload.category)
    if payload.completed_at is None:
        raise ValueError("completed_at is required")

    bumped = session.execute(
        update(User)
        .where(User.id == payload.user_id)
        .values(total_actions=User.total_actions + 1),
        execution_options=_NO_SYNC,
    )
    if bumped.rowcount == 0:
        raise EntityNotFound("User", payload.user_id)

    if payload.challenge_id is not None:
        used = session.execute(
            update(Challenge)
            .where(Challenge.id == payload.challenge_id)
            .values(times_used=Challenge.times_used + 1),
            execution_options=_NO_SYNC,
        )
        if used.rowcount == 0:
            raise EntityNotFound("Challenge", payload.challenge_id)

    action = Action(
        user_id=payload.user_id,
        challenge_id=payload.challenge_id,
        custom_text=sanitize_plain_text(payload.custom_text, ACTION_TEXT_MAX_LENGTH),
        location=sanitize_plain_text(payload.location, LOCATION_MAX_LENGTH),
        category=category.value,
        ip_address=payload.ip_address,
        user_agent=payload.user_agent,
        completed_at=as_utc(payload.completed_at),
    )
    session.add(action)
    session.flush()
    return action


# ---------------------------------------------------------------------------
# Applause
# ---------------------------------------------------------------------------
def get_action_owner(session: Session, action_id: str) -> str:
    """Return the user id that recorded *action_id*."""
    owner_id = session.scalar(select(Action.user_id).where(Action.id == action_id))
    if owner_id is None:
        raise EntityNotFound("Action", action_id)
    return owner_id


def get_claps_count(session: Session, action_id: str) -> int:
    return session.scalar(select(Action.claps_count).where(Action.id == action_id)) or 0


def clap_exists(session: Session, action_id: str, user_id: str) -> bool:
    return bool(session.scalar(
        select(exists().where(Clap.action_id == action_id, Clap.user_id == user_id))
    ))


def add_applause(session: Session, action_id: str, user_id: str) -> int:
    """Insert a clap and bump the action's and owner's counters.

    Returns the action's new ``claps_count``.

    Raises
    ------
    EntityNotFound
        If the action or the applauding user does not exist.
    DuplicateApplause
        If *user_id* already applauded *action_id*.  Nothing is changed.
    """
    owner_id = get_action_owner(session, action_id)
    if session.get(User, user_id) is None:
        raise EntityNotFound("User", user_id)

    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(Clap(action_id=action_id, user_id=user_id))
            session.flush()
    except IntegrityError as exc:
        # The SAVEPOINT was rolled back; the outer transaction is still alive.
        if clap_exists(session, action_id, user_id):
            raise DuplicateApplause(action_id, user_id) from exc
        raise StorageFailure("Could not record applause") from exc

    session.execute(
        update(Action)
        .where(Action.id == action_id)
        .values(claps_count=Action.claps_count + 1),
        execution_options=_NO_SYNC,
    )
    session.execute(
        update(User)
        .where(User.id == owner_id)
        .values(claps_received=User.claps_received + 1),
        execution_options=_NO_SYNC,
    )
    return get_claps_count(session, action_id)


def remove_applause(session: Session, action_id: str, user_id: str) -> int:
    """Delete a clap and decrement the counters it contributed to.

    Decrements are guarded with ``> 0`` so a counter can never go negative.
    Returns the action's new ``claps_count``.

    Raises
    ------
    ApplauseNotFound
        If there is no clap by *user_id* on *action_id*.
    """
    deleted = session.execute(
        delete(Clap).where(Clap.action_id == action_id, Clap.user_id == user_id),
        execution_options=_NO_SYNC,
    )
    if deleted.rowcount == 0:
        raise ApplauseNotFound(action_id, user_id)

    owner_id = get_action_owner(session, action_id)
    session.execute(
        update(Action)
        .where(Action.id == action_id, Action.claps_count > 0)
        .values(claps_count=Action.claps_count - 1),
        execution_options=_NO_SYNC,
    )
    session.execute(
        update(User)
        .where(User.id == owner_id, User.claps_received > 0)
        .values(claps_received=User.claps_received - 1),
        execution_options=_NO_SYNC,
    )
    return get_claps_count(session, action_id)
