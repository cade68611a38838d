"""
helped.api.routes.users — Accounts and per-user achievements
=============================================================
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from helped.api.deps import get_pipeline, get_source_address
from helped.constants import USERNAME_MAX_LENGTH
from helped.services.pipeline import EngagementPipeline

router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=USERNAME_MAX_LENGTH)
    avatar_seed: str = Field(default="", max_length=100)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    source: str = Depends(get_source_address),
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    result = pipeline.create_account(body.username, body.avatar_seed, source_address=source)
    return asdict(result)


@router.get("/{user_id}/achievements")
def list_user_achievements(
    user_id: str,
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    """Earned achievements, most recent first."""
    return [asdict(a) for a in pipeline.user_achievements(user_id)]


@router.get("/{user_id}/achievements/progress")
def achievement_progress(
    user_id: str,
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    """Progress toward every achievement, earned or not."""
    return [asdict(p) for p in pipeline.achievement_progress(user_id)]
