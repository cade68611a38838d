"""
helped.api.routes.achievements — Achievement catalog
=====================================================
"""

from __future__ import annotations

from fastapi import APIRouter

from helped.engine.achievements import ACHIEVEMENT_DEFINITIONS

router = APIRouter(tags=["achievements"])


@router.get("/achievements")
def list_achievements():
    """Every achievement that can be earned, in display order."""
    return [
        {
            "key": d.key,
            "name": d.name,
            "description": d.description,
            "badge_icon": d.badge_icon,
            "category": d.category.value,
            "requirement": d.requirement,
            "order": d.order,
        }
        for d in sorted(ACHIEVEMENT_DEFINITIONS, key=lambda d: d.order)
    ]
