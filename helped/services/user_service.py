"""
helped.services.user_service — Accounts & Small Read Helpers
=============================================================
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from helped.constants import USERNAME_MAX_LENGTH
from helped.database.models import User
from helped.engine.sanitize import sanitize_plain_text
from helped.errors import EntityConflict
from helped.services.counter_service import clap_exists

logger = logging.getLogger(__name__)


def create_user(
    session: Session, username: str, avatar_seed: str, created_at: datetime,
) -> User:
    """Insert a new account.

    Raises
    ------
    ValueError
        If *username* is empty once sanitized.
    EntityConflict
        If the username is already taken.
    """
    name = sanitize_plain_text(username, USERNAME_MAX_LENGTH)
    if not name:
        raise ValueError("Username must not be empty")

    user = User(
        username=name,
        avatar_seed=avatar_seed or name,
        created_at=created_at,
        last_seen_at=created_at,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(user)
            session.flush()
    except IntegrityError as exc:
        raise EntityConflict(f"Username already taken: {name}") from exc

    logger.info("Created user %s (%s)", user.id, name)
    return user


def has_user_applauded(session: Session, action_id: str, user_id: str) -> bool:
    return clap_exists(session, action_id, user_id)
