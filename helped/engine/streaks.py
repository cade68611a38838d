"""
helped.engine.streaks — Consecutive-Day Streak State Machine
=============================================================

A streak is the number of consecutive calendar days with at least one
completed action.  It is evaluated lazily whenever a new action lands,
from the two most recent completion days, never by a clock-driven job:
a user who stops acting keeps their last computed streak until their next
action shows the gap.

Transitions on each new action::

    no history   (one action ever)  → current = 1
    continuing   (day diff == 1)    → current + 1
    same day     (day diff == 0)    → max(1, current)
    broken       (day diff  > 1)    → 1

``longest`` is then raised to ``current`` if needed, so ``longest >=
current`` always holds.

An action completed before the user's latest one is back-filled history:
it leaves both values untouched (``UNCHANGED``).

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date


class StreakTransition(enum.StrEnum):
    FIRST = "first"
    CONTINUED = "continued"
    SAME_DAY = "same_day"
    BROKEN = "broken"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    transition: StreakTransition


def next_streak(
    current: int,
    longest: int,
    recent_days: Sequence[date],
) -> StreakUpdate:
    """Compute the streak after a new action.

    Parameters
    ----------
    current, longest : The user's stored streak values before this action.
    recent_days : Calendar days of the user's most recent actions, newest
        first.  Only the first two are used; must not be empty.
    """
    if not recent_days:
        raise ValueError("next_streak needs at least the action just recorded")

    if len(recent_days) == 1:
        new_current = 1
        transition = StreakTransition.FIRST
    else:
        day_diff = (recent_days[0] - recent_days[1]).days
        if day_diff == 1:
            new_current = current + 1
            transition = StreakTransition.CONTINUED
        elif day_diff == 0:
            new_current = max(1, current)
            transition = StreakTransition.SAME_DAY
        else:
            new_current = 1
            transition = StreakTransition.BROKEN

    return StreakUpdate(
        current_streak=new_current,
        longest_streak=max(longest, new_current),
        transition=transition,
    )
