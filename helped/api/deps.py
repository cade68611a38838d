"""
helped.api.deps — FastAPI dependency injection
================================================

Process-wide components are built once and cached.  Tests swap them out
with ``app.dependency_overrides[get_pipeline] = ...``.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Header, HTTPException, Request, status
from sqlalchemy import Engine

from helped.config import HelpedConfig, load_config
from helped.database.engine import create_db_engine
from helped.engine.clock import Clock, SystemClock
from helped.engine.rate_limit import RateLimiter
from helped.services.pipeline import EngagementPipeline

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_config() -> HelpedConfig:
    path = Path(os.getenv("HELPED_CONFIG", "config.yaml"))
    if not path.exists():
        logger.warning("No config file at %s, using defaults", path)
        return HelpedConfig()
    return load_config(path)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return SystemClock(get_config().timezone)


@lru_cache(maxsize=1)
def get_limiter() -> RateLimiter:
    cfg = get_config()
    return RateLimiter(
        get_clock(),
        sweep_interval=cfg.rate_limit_sweep_seconds,
        presets=cfg.rate_limits,
    )


@lru_cache(maxsize=1)
def get_pipeline() -> EngagementPipeline:
    return EngagementPipeline(get_engine(), get_limiter(), get_clock())


def get_identity(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """The caller's opaque user id, taken from ``X-User-Id``."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing X-User-Id header")
    return x_user_id.strip()


def get_source_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"
