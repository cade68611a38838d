"""
helped.errors — Typed Pipeline Errors
======================================

Every failure a pipeline entry point can report to its caller.  The HTTP
adapter maps each class to a status code in :mod:`helped.api.main`.
"""

from __future__ import annotations

from datetime import datetime


class HelpedError(Exception):
    """Base class for all pipeline errors."""


class RateLimitExceeded(HelpedError):
    """The identity used up its window; retry after ``retry_after`` seconds."""

    def __init__(self, action: str, retry_after: int, reset_at: datetime) -> None:
        super().__init__(
            f"Rate limit exceeded for {action}. Try again in {retry_after} seconds."
        )
        self.action = action
        self.retry_after = retry_after
        self.reset_at = reset_at


class DuplicateApplause(HelpedError):
    """The user already applauded this action.  Not a failure."""

    def __init__(self, action_id: str, user_id: str) -> None:
        super().__init__("Already applauded")
        self.action_id = action_id
        self.user_id = user_id


class ApplauseNotFound(HelpedError):
    def __init__(self, action_id: str, user_id: str) -> None:
        super().__init__("Applause not found")
        self.action_id = action_id
        self.user_id = user_id


class SelfApplause(HelpedError):
    """Users may not applaud their own actions."""

    def __init__(self, action_id: str) -> None:
        super().__init__("You can't applaud your own action")
        self.action_id = action_id


class EntityNotFound(HelpedError):
    """A referenced user, action or challenge does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class EntityConflict(HelpedError):
    """A uniqueness rule outside applause was violated (e.g. username taken)."""


class StorageFailure(HelpedError):
    """The transaction could not commit and was rolled back in full."""
