"""
helped.constants — Shared Constants
=====================================

Single source of truth for rate-limit presets and input limits.  Import
from here instead of duplicating in services and the HTTP layer.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
class RateLimitAction(enum.StrEnum):
    """Mutating operations guarded by the rate limiter."""
    APPLAUSE = "APPLAUSE"
    RECORD_ACTION = "RECORD_ACTION"
    CREATE_ACCOUNT = "CREATE_ACCOUNT"
    RECOVER_ACCOUNT = "RECOVER_ACCOUNT"


@dataclass(frozen=True, slots=True)
class RateLimitPreset:
    limit: int
    window_seconds: int


DEFAULT_RATE_LIMITS: dict[RateLimitAction, RateLimitPreset] = {
    # Per user identity
    RateLimitAction.APPLAUSE: RateLimitPreset(limit=100, window_seconds=60 * 60),
    RateLimitAction.RECORD_ACTION: RateLimitPreset(limit=10, window_seconds=24 * 60 * 60),
    # Per source address
    RateLimitAction.CREATE_ACCOUNT: RateLimitPreset(limit=5, window_seconds=60 * 60),
    RateLimitAction.RECOVER_ACCOUNT: RateLimitPreset(limit=5, window_seconds=15 * 60),
}

# Expired windows are swept this often (seconds)
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


# ---------------------------------------------------------------------------
# Input limits
# ---------------------------------------------------------------------------
ACTION_TEXT_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 100
USERNAME_MAX_LENGTH = 50
