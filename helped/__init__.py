"""
Helped — Engagement Pipeline for a Kindness-Logging Platform
=============================================================
Records completed acts of kindness and applause, keeps the denormalized
counters, consecutive-day streaks and unlockable achievements consistent
under concurrent writes, and guards every mutation with a rate limiter.

Package layout::

    helped/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Rate-limit presets, input limits
    ├── errors.py          # Typed pipeline errors
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   ├── models.py      # ORM models (users, actions, claps, achievements)
    │   └── seed.py        # Achievement catalog seeder
    ├── engine/
    │   ├── clock.py       # Injected "now" + calendar-day truncation
    │   ├── rate_limit.py  # Fixed-window rate limiter with sweeper thread
    │   ├── streaks.py     # Consecutive-day streak state machine
    │   ├── achievements.py # Achievement catalog + pure rule evaluation
    │   ├── progress.py    # Presentation-only progress percentages
    │   └── sanitize.py    # Plain-text input cleaning
    ├── services/
    │   ├── counter_service.py     # Event rows + counter deltas
    │   ├── streak_service.py      # Streak persistence
    │   ├── stats_service.py       # UserStatsSnapshot builder
    │   ├── achievement_service.py # Idempotent awarding + progress reads
    │   ├── user_service.py        # Account creation + small reads
    │   └── pipeline.py            # RecordAction / AddApplause / RemoveApplause
    └── api/
        ├── main.py        # FastAPI app
        ├── __main__.py    # python -m helped.api (uvicorn)
        ├── deps.py        # Dependency providers
        └── routes/        # HTTP adapter over the pipeline
"""

__version__ = "0.1.0"
