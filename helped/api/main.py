"""
helped.api.main — FastAPI application entry point
===================================================

Run with::

    python -m helped.api
    # or
    uvicorn helped.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from helped.api.deps import get_engine, get_limiter  # noqa: E402
from helped.api.routes.achievements import router as achievements_router  # noqa: E402
from helped.api.routes.actions import router as actions_router  # noqa: E402
from helped.api.routes.users import router as users_router  # noqa: E402
from helped.database.engine import init_db  # noqa: E402
from helped.errors import (  # noqa: E402
    ApplauseNotFound,
    DuplicateApplause,
    EntityConflict,
    EntityNotFound,
    HelpedError,
    RateLimitExceeded,
    SelfApplause,
    StorageFailure,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — schema, catalog and limiter sweeper."""
    engine = get_engine()
    init_db(engine)
    limiter = get_limiter()
    limiter.start()
    logger.info("Helped API started — engine ready (%s)", engine.url.database)
    yield
    limiter.close()
    logger.info("Helped API shutting down")


app = FastAPI(
    title="Today I Helped API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
# Most specific first; the first isinstance match wins
_ERROR_RESPONSES: list[tuple[type[HelpedError], int, str]] = [
    (RateLimitExceeded, status.HTTP_429_TOO_MANY_REQUESTS, "rate_limit_exceeded"),
    (DuplicateApplause, status.HTTP_409_CONFLICT, "already_applauded"),
    (ApplauseNotFound, status.HTTP_404_NOT_FOUND, "applause_not_found"),
    (EntityNotFound, status.HTTP_404_NOT_FOUND, "not_found"),
    (SelfApplause, status.HTTP_400_BAD_REQUEST, "self_applause"),
    (EntityConflict, status.HTTP_409_CONFLICT, "conflict"),
    (StorageFailure, status.HTTP_503_SERVICE_UNAVAILABLE, "storage_failure"),
]


@app.exception_handler(HelpedError)
async def helped_error_handler(request: Request, exc: HelpedError) -> JSONResponse:
    for cls, status_code, code in _ERROR_RESPONSES:
        if isinstance(exc, cls):
            break
    else:
        status_code, code = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"

    content: dict = {"error": code, "message": str(exc)}
    headers = None
    if isinstance(exc, RateLimitExceeded):
        content["retry_after"] = exc.retry_after
        headers = {"Retry-After": str(exc.retry_after)}
    elif isinstance(exc, StorageFailure):
        # Details are in the server log, not the response
        content["message"] = "Something went wrong. Please try again."

    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_input", "message": str(exc)},
    )


# Mount routers
app.include_router(users_router, prefix="/api")
app.include_router(actions_router, prefix="/api")
app.include_router(achievements_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
