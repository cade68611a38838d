"""
helped.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for tuning that operators may change without a
deploy: the reference timezone used for streak days, the rate-limit
sweep interval, and per-preset rate-limit overrides.  The database
connection string is a secret and comes from ``DATABASE_URL`` instead.

Usage::

    from helped.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.timezone)              # "UTC"
    print(cfg.rate_limits["APPLAUSE"].limit)   # 100
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from helped.constants import (
    DEFAULT_RATE_LIMITS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    RateLimitAction,
    RateLimitPreset,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class HelpedConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # IANA timezone name used to truncate completion timestamps to days
    timezone: str = "UTC"

    # Rate limiting
    rate_limit_sweep_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS
    rate_limits: dict[RateLimitAction, RateLimitPreset] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )

    # HTTP adapter
    api_port: int = 8000


def _parse_rate_limits(raw: dict | None) -> dict[RateLimitAction, RateLimitPreset]:
    presets = dict(DEFAULT_RATE_LIMITS)
    for name, values in (raw or {}).items():
        try:
            action = RateLimitAction(str(name).upper())
        except ValueError:
            raise ValueError(f"Unknown rate limit preset in config: {name!r}") from None

        base = presets[action]
        limit = int(values.get("limit", base.limit))
        window = int(values.get("window_seconds", base.window_seconds))
        if limit < 1 or window < 1:
            raise ValueError(
                f"Rate limit preset {action.value} needs positive limit and window "
                f"(got limit={limit}, window_seconds={window})"
            )
        presets[action] = RateLimitPreset(limit=limit, window_seconds=window)
    return presets


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> HelpedConfig:
    """Read *path* and return a :class:`HelpedConfig` instance.

    Every key is optional; missing keys fall back to the defaults above.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a rate-limit override names an unknown preset or is not positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    sweep = int(raw.get("rate_limit_sweep_seconds", DEFAULT_SWEEP_INTERVAL_SECONDS))
    if sweep < 1:
        raise ValueError("rate_limit_sweep_seconds must be at least 1")

    return HelpedConfig(
        timezone=str(raw.get("timezone", "UTC")),
        rate_limit_sweep_seconds=sweep,
        rate_limits=_parse_rate_limits(raw.get("rate_limits")),
        api_port=int(raw.get("api_port", 8000)),
    )
