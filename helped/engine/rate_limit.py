"""
helped.engine.rate_limit — Fixed-Window Request Rate Limiter
=============================================================

Bounds how often an identity may invoke a mutating operation.  Windows
are keyed ``identity:action``; the first hit opens a window of
``window_seconds`` with count 1, later hits increment it until the limit
is reached, after which calls are denied until the window expires.

A fixed window (not a sliding log) lets a client burst up to twice the
nominal rate across a window boundary.  Good enough for abuse deterrence,
not for hard quotas.

The limiter is an explicit component rather than process-wide state::

    limiter = RateLimiter(clock=SystemClock(), sweep_interval=300)
    limiter.start()          # background sweeper thread
    result = limiter.check_preset(user_id, RateLimitAction.APPLAUSE)
    ...
    limiter.close()

If the window store itself faults the limiter **fails open**: the call is
allowed and the fault is logged.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from helped.constants import (
    DEFAULT_RATE_LIMITS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    RateLimitAction,
    RateLimitPreset,
)
from helped.engine.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RateWindow:
    count: int
    reset_at: datetime


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after: int | None = None


class RateLimiter:
    """Thread-safe fixed-window limiter with a periodic expiry sweep."""

    def __init__(
        self,
        clock: Clock | None = None,
        *,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        presets: Mapping[RateLimitAction, RateLimitPreset] | None = None,
        store: MutableMapping[str, RateWindow] | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.sweep_interval = sweep_interval
        self.presets = dict(presets or DEFAULT_RATE_LIMITS)
        self._windows: MutableMapping[str, RateWindow] = {} if store is None else store
        self._lock = threading.Lock()
        self._shutdown = threading.Event()
        self._sweeper: threading.Thread | None = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def start(self) -> None:
        """Start the background sweeper thread (idempotent)."""
        if self._sweeper is not None:
            return
        self._shutdown.clear()

        def _sweep_loop() -> None:
            while not self._shutdown.wait(self.sweep_interval):
                try:
                    self.sweep()
                except Exception:
                    logger.exception("Rate limit sweep failed")

        self._sweeper = threading.Thread(
            target=_sweep_loop, name="rate-limit-sweeper", daemon=True,
        )
        self._sweeper.start()

    def close(self) -> None:
        """Stop the sweeper and wait for it to exit."""
        self._shutdown.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def __enter__(self) -> RateLimiter:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------
    @staticmethod
    def _key(identity: str, action: str) -> str:
        return f"{identity}:{action}"

    @staticmethod
    def _retry_after(reset_at: datetime, now: datetime) -> int:
        return max(1, math.ceil((reset_at - now).total_seconds()))

    def check(
        self, identity: str, action: str, limit: int, window_seconds: int,
    ) -> RateLimitResult:
        """Consume one hit for ``identity:action`` and report the outcome."""
        now = self.clock.now()
        try:
            with self._lock:
                key = self._key(identity, action)
                window = self._windows.get(key)

                if window is None or now > window.reset_at:
                    reset_at = now + timedelta(seconds=window_seconds)
                    self._windows[key] = RateWindow(count=1, reset_at=reset_at)
                    return RateLimitResult(
                        allowed=True, limit=limit, remaining=limit - 1, reset_at=reset_at,
                    )

                if window.count < limit:
                    window.count += 1
                    return RateLimitResult(
                        allowed=True, limit=limit, remaining=limit - window.count,
                        reset_at=window.reset_at,
                    )
                count, reset_at = window.count, window.reset_at
        except Exception:
            logger.exception(
                "Rate limit check failed for %s:%s — allowing request", identity, action,
            )
            return RateLimitResult(
                allowed=True, limit=limit, remaining=limit,
                reset_at=now + timedelta(seconds=window_seconds),
            )

        retry_after = self._retry_after(reset_at, now)
        logger.warning(
            "Rate limit exceeded for %s:%s (%d/%d, retry in %ds)",
            identity, action, count, limit, retry_after,
        )
        return RateLimitResult(
            allowed=False, limit=limit, remaining=0,
            reset_at=reset_at, retry_after=retry_after,
        )

    def check_preset(self, identity: str, action: RateLimitAction) -> RateLimitResult:
        preset = self.presets[action]
        return self.check(identity, action.value, preset.limit, preset.window_seconds)

    def status(
        self, identity: str, action: str, limit: int, window_seconds: int,
    ) -> RateLimitResult:
        """Report the current window for ``identity:action`` without consuming."""
        now = self.clock.now()
        with self._lock:
            window = self._windows.get(self._key(identity, action))
            if window is None or now > window.reset_at:
                return RateLimitResult(
                    allowed=True, limit=limit, remaining=limit,
                    reset_at=now + timedelta(seconds=window_seconds),
                )
            count, reset_at = window.count, window.reset_at

        allowed = count < limit
        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=reset_at,
            retry_after=None if allowed else self._retry_after(reset_at, now),
        )

    # -------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------
    def reset(self, identity: str | None = None, action: str | None = None) -> None:
        """Clear rate-limit state.

        ``reset()`` clears everything, ``reset(identity)`` every action for
        that identity, ``reset(identity, action)`` a single window.
        """
        with self._lock:
            if identity is None:
                self._windows.clear()
            elif action is None:
                prefix = f"{identity}:"
                for key in [k for k in self._windows if k.startswith(prefix)]:
                    del self._windows[key]
            else:
                self._windows.pop(self._key(identity, action), None)
        logger.info("Rate limit reset for %s:%s", identity or "*", action or "*")

    def sweep(self) -> int:
        """Drop windows whose reset time has passed.  Returns how many."""
        now = self.clock.now()
        with self._lock:
            expired = [k for k, w in self._windows.items() if now > w.reset_at]

        removed = 0
        for key in expired:
            # Re-check per key: the window may have been reopened meanwhile
            with self._lock:
                window = self._windows.get(key)
                if window is not None and now > window.reset_at:
                    del self._windows[key]
                    removed += 1

        if removed:
            logger.debug("Rate limit sweep removed %d windows (%d remain)", removed, len(self))
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
