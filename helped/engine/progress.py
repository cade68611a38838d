"""
helped.engine.progress — Achievement Progress for Display
==========================================================

Presentation helper kept apart from rule evaluation: it reads the same
metric the rules use but adds the display-only concerns (percentages
capped at 100, category/order sorting).
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass

from helped.database.models import AchievementCategory
from helped.engine.achievements import (
    ACHIEVEMENT_DEFINITIONS,
    AchievementDefinition,
    UserStatsSnapshot,
    metric_value,
)

_CATEGORY_ORDER = {c: i for i, c in enumerate(AchievementCategory)}


@dataclass(frozen=True, slots=True)
class AchievementProgress:
    key: str
    name: str
    description: str
    category: AchievementCategory
    requirement: int
    current_progress: int
    progress_percentage: float
    is_earned: bool


def progress_percentage(current: int, requirement: int) -> float:
    if requirement <= 0:
        return 100.0
    return round(min(100.0, max(0, current) / requirement * 100), 1)


def achievement_progress(
    stats: UserStatsSnapshot,
    earned_keys: Collection[str],
    definitions: Iterable[AchievementDefinition] = ACHIEVEMENT_DEFINITIONS,
) -> list[AchievementProgress]:
    """Progress rows for every definition, ordered by category then order.

    ``is_earned`` reflects what has actually been awarded (*earned_keys*),
    not what the stats would qualify for.
    """
    ordered = sorted(definitions, key=lambda d: (_CATEGORY_ORDER[d.category], d.order))
    rows = []
    for d in ordered:
        current = metric_value(d, stats)
        rows.append(AchievementProgress(
            key=d.key,
            name=d.name,
            description=d.description,
            category=d.category,
            requirement=d.requirement,
            current_progress=current,
            progress_percentage=progress_percentage(current, d.requirement),
            is_earned=d.key in earned_keys,
        ))
    return rows
