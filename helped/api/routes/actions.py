"""
helped.api.routes.actions — Record actions & applause
======================================================
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from helped.api.deps import get_identity, get_pipeline
from helped.database.models import Category
from helped.services.counter_service import ActionPayload
from helped.services.pipeline import EngagementPipeline

router = APIRouter(prefix="/actions", tags=["actions"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ActionCreate(BaseModel):
    category: Category
    challenge_id: str | None = None
    custom_text: str | None = None
    location: str | None = None
    completed_at: datetime | None = None


# ---------------------------------------------------------------------------
# POST /actions
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED)
def record_action(
    body: ActionCreate,
    request: Request,
    user_id: str = Depends(get_identity),
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    """Record a completed act of kindness for the calling user."""
    result = pipeline.record_action(ActionPayload(
        user_id=user_id,
        category=body.category,
        completed_at=body.completed_at,
        challenge_id=body.challenge_id,
        custom_text=body.custom_text,
        location=body.location,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    ))
    return asdict(result)


# ---------------------------------------------------------------------------
# Applause
# ---------------------------------------------------------------------------
@router.get("/{action_id}/applause")
def get_applause(
    action_id: str,
    user_id: str = Depends(get_identity),
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    return {"action_id": action_id, "applauded": pipeline.has_applauded(action_id, user_id)}


@router.post("/{action_id}/applause", status_code=status.HTTP_201_CREATED)
def add_applause(
    action_id: str,
    user_id: str = Depends(get_identity),
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    return asdict(pipeline.add_applause(action_id, user_id))


@router.delete("/{action_id}/applause")
def remove_applause(
    action_id: str,
    user_id: str = Depends(get_identity),
    pipeline: EngagementPipeline = Depends(get_pipeline),
):
    return asdict(pipeline.remove_applause(action_id, user_id))
