"""
helped.engine.achievements — Achievement Catalog & Rule Evaluation
===================================================================

Declarative achievement table plus a pure evaluator.  Every definition
names one scalar dimension of :class:`UserStatsSnapshot` and a threshold;
definitions are evaluated independently (no combinators).

STREAK tiers read ``longest_streak`` rather than ``current_streak`` so a
streak achievement, once earned, is never contradicted by a later break.

:func:`evaluate` returns the **full** set of keys that should currently be
earned, not a delta.  Working out what is new is the awarder's job
(:mod:`helped.services.achievement_service`).

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from helped.database.models import AchievementCategory, Category


# ---------------------------------------------------------------------------
# Stats snapshot — the evaluator's only input
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class UserStatsSnapshot:
    """Point-in-time view of the stats achievements are judged on.

    Parameters
    ----------
    total_actions : Number of completed actions.
    current_streak : Consecutive days up to the latest action.
    longest_streak : Best streak ever reached.
    category_breakdown : Action count per :class:`Category`; missing
        categories count as zero.
    unique_categories_used : Categories with at least one action.
    days_since_joined : Whole days since the account was created.
    """

    total_actions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    category_breakdown: Mapping[Category, int] = field(default_factory=dict)
    unique_categories_used: int = 0
    days_since_joined: int = 0

    def category_count(self, category: Category) -> int:
        return self.category_breakdown.get(category, 0)


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------
class StatDimension(enum.StrEnum):
    """Which snapshot value a definition compares against its requirement."""
    TOTAL_ACTIONS = "total_actions"
    LONGEST_STREAK = "longest_streak"
    UNIQUE_CATEGORIES = "unique_categories"
    DAYS_SINCE_JOINED = "days_since_joined"
    CATEGORY_COUNT = "category_count"


@dataclass(frozen=True, slots=True)
class AchievementDefinition:
    key: str
    name: str
    description: str
    badge_icon: str
    category: AchievementCategory
    requirement: int
    order: int
    dimension: StatDimension
    # Only for CATEGORY_COUNT
    action_category: Category | None = None


ACHIEVEMENT_DEFINITIONS: tuple[AchievementDefinition, ...] = (
    # STARTER — first steps
    AchievementDefinition(
        "FIRST_ACTION", "First Helper", "Complete your very first act of kindness",
        "Sparkles", AchievementCategory.STARTER, 1, 1, StatDimension.TOTAL_ACTIONS,
    ),
    AchievementDefinition(
        "FIRST_WEEK", "Week One", "Been helping for a full week",
        "Calendar", AchievementCategory.STARTER, 7, 2, StatDimension.DAYS_SINCE_JOINED,
    ),
    AchievementDefinition(
        "CATEGORY_EXPLORER", "Category Explorer", "Complete actions in all four categories",
        "Compass", AchievementCategory.STARTER, 4, 3, StatDimension.UNIQUE_CATEGORIES,
    ),
    # STREAK — consecutive days
    AchievementDefinition(
        "STREAK_3", "3-Day Streak", "Help others for 3 consecutive days",
        "Flame", AchievementCategory.STREAK, 3, 10, StatDimension.LONGEST_STREAK,
    ),
    AchievementDefinition(
        "STREAK_7", "7-Day Streak", "Help others for 7 consecutive days",
        "Zap", AchievementCategory.STREAK, 7, 11, StatDimension.LONGEST_STREAK,
    ),
    AchievementDefinition(
        "STREAK_30", "30-Day Streak", "Help others for 30 consecutive days",
        "Crown", AchievementCategory.STREAK, 30, 12, StatDimension.LONGEST_STREAK,
    ),
    # IMPACT — total actions
    AchievementDefinition(
        "HELPER", "Helper", "Complete 10 acts of kindness",
        "Heart", AchievementCategory.IMPACT, 10, 20, StatDimension.TOTAL_ACTIONS,
    ),
    AchievementDefinition(
        "CHAMPION", "Champion", "Complete 25 acts of kindness",
        "Award", AchievementCategory.IMPACT, 25, 21, StatDimension.TOTAL_ACTIONS,
    ),
    AchievementDefinition(
        "HERO", "Hero", "Complete 50 acts of kindness",
        "Trophy", AchievementCategory.IMPACT, 50, 22, StatDimension.TOTAL_ACTIONS,
    ),
    AchievementDefinition(
        "LEGEND", "Legend", "Complete 100 acts of kindness",
        "Star", AchievementCategory.IMPACT, 100, 23, StatDimension.TOTAL_ACTIONS,
    ),
    # CATEGORY — per-category counts
    AchievementDefinition(
        "PEOPLE_HELPER", "People Helper", "Complete 10 actions helping people",
        "Users", AchievementCategory.CATEGORY, 10, 30, StatDimension.CATEGORY_COUNT,
        Category.PEOPLE,
    ),
    AchievementDefinition(
        "ANIMAL_FRIEND", "Animal Friend", "Complete 10 actions helping animals",
        "Dog", AchievementCategory.CATEGORY, 10, 31, StatDimension.CATEGORY_COUNT,
        Category.ANIMALS,
    ),
    AchievementDefinition(
        "ECO_WARRIOR", "Eco Warrior", "Complete 10 environmental actions",
        "Leaf", AchievementCategory.CATEGORY, 10, 32, StatDimension.CATEGORY_COUNT,
        Category.ENVIRONMENT,
    ),
    AchievementDefinition(
        "COMMUNITY_BUILDER", "Community Builder", "Complete 10 community actions",
        "Building", AchievementCategory.CATEGORY, 10, 33, StatDimension.CATEGORY_COUNT,
        Category.COMMUNITY,
    ),
)

DEFINITIONS_BY_KEY: dict[str, AchievementDefinition] = {
    d.key: d for d in ACHIEVEMENT_DEFINITIONS
}


# ---------------------------------------------------------------------------
# Metric readers — pure functions (definition, stats) → int
# ---------------------------------------------------------------------------
def _read_category_count(d: AchievementDefinition, s: UserStatsSnapshot) -> int:
    if d.action_category is None:
        return 0
    return s.category_count(d.action_category)


METRIC_READERS: dict[StatDimension, Callable[[AchievementDefinition, UserStatsSnapshot], int]] = {
    StatDimension.TOTAL_ACTIONS: lambda d, s: s.total_actions,
    StatDimension.LONGEST_STREAK: lambda d, s: s.longest_streak,
    StatDimension.UNIQUE_CATEGORIES: lambda d, s: s.unique_categories_used,
    StatDimension.DAYS_SINCE_JOINED: lambda d, s: s.days_since_joined,
    StatDimension.CATEGORY_COUNT: _read_category_count,
}


def metric_value(definition: AchievementDefinition, stats: UserStatsSnapshot) -> int:
    """The stat *definition* is measured on, read from *stats*."""
    reader = METRIC_READERS.get(definition.dimension)
    if reader is None:
        return 0
    return reader(definition, stats)


def is_earned(definition: AchievementDefinition, stats: UserStatsSnapshot) -> bool:
    return metric_value(definition, stats) >= definition.requirement


# ---------------------------------------------------------------------------
# Main evaluation
# ---------------------------------------------------------------------------
def evaluate(
    stats: UserStatsSnapshot,
    definitions: Iterable[AchievementDefinition] = ACHIEVEMENT_DEFINITIONS,
) -> frozenset[str]:
    """Return every achievement key *stats* qualifies for.

    Deterministic and side-effect free: the same snapshot always yields
    the same set, regardless of what the user has already been awarded.
    """
    return frozenset(d.key for d in definitions if is_earned(d, stats))
