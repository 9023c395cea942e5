"""Guard layer — Per-operation sliding window rate limiting.

Budgets are keyed by operation pattern; each matching pattern keeps its own
counter per operation name.  A call is recorded against every matching budget
or none of them.  Timestamps older than one hour are pruned on every check.

Usage::

    guard = RateLimitGuard(per_minute={"db:*": 30}, per_hour={"email:send": 20})
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, Mapping

from toolcall_guard.exceptions import RateLimitExceededError
from toolcall_guard.guards.base import Guard
from toolcall_guard.logging import get_logger
from toolcall_guard.models import Call, Decision
from toolcall_guard.patterns import match_pattern

log = get_logger(__name__)

_PRUNE_WINDOW = 3600.0
_WINDOWS = {"minute": 60.0, "hour": 3600.0}


class SlidingWindowLimiter:
    """Thread-safe sliding-window call counter."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._timestamps: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def check_or_raise(
        self,
        key: str,
        *,
        calls_per_minute: int | None = None,
        calls_per_hour: int | None = None,
    ) -> None:
        """Record one call for *key*; raise if that would exceed a budget."""
        self.check_all_or_raise([(key, calls_per_minute, calls_per_hour)])

    def check_all_or_raise(
        self, budgets: Iterable[tuple[str, int | None, int | None]]
    ) -> None:
        """Check every ``(key, per_minute, per_hour)`` budget, then record them all.

        Nothing is recorded unless every budget has room, so a call denied by
        one key does not consume the budget of another.
        """
        budgets = list(budgets)
        with self._lock:
            now = self._clock()
            for key, per_minute, per_hour in budgets:
                self._prune(key, now)
                timestamps = self._timestamps.get(key, [])
                for window, limit in (("minute", per_minute), ("hour", per_hour)):
                    if limit is None:
                        continue
                    cutoff = now - _WINDOWS[window]
                    if sum(1 for t in timestamps if t > cutoff) >= limit:
                        raise RateLimitExceededError(key, limit=limit, window=window)
            for key, _, _ in budgets:
                self._timestamps.setdefault(key, []).append(now)

    def get_counts(self, key: str) -> dict[str, int]:
        with self._lock:
            now = self._clock()
            self._prune(key, now)
            timestamps = self._timestamps.get(key, [])
            return {
                window: sum(1 for t in timestamps if t > now - span)
                for window, span in _WINDOWS.items()
            }

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._timestamps.clear()
            else:
                self._timestamps.pop(key, None)

    def _prune(self, key: str, now: float) -> None:
        if key in self._timestamps:
            cutoff = now - _PRUNE_WINDOW
            kept = [t for t in self._timestamps[key] if t > cutoff]
            if kept:
                self._timestamps[key] = kept
            else:
                del self._timestamps[key]


class RateLimitGuard(Guard):
    name = "rate_limit"

    def __init__(
        self,
        per_minute: Mapping[str, int] | None = None,
        per_hour: Mapping[str, int] | None = None,
        *,
        limiter: SlidingWindowLimiter | None = None,
    ) -> None:
        self._per_minute = dict(per_minute or {})
        self._per_hour = dict(per_hour or {})
        self._limiter = limiter or SlidingWindowLimiter()

    @property
    def limiter(self) -> SlidingWindowLimiter:
        return self._limiter

    async def evaluate(self, call: Call) -> Decision:
        patterns = [p for p in {**self._per_minute, **self._per_hour} if match_pattern(p, call.operation)]
        try:
            self._limiter.check_all_or_raise(
                (f"{pattern}|{call.operation}", self._per_minute.get(pattern), self._per_hour.get(pattern))
                for pattern in patterns
            )
        except RateLimitExceededError as exc:
            log.warning("rate_limit_exceeded", operation=call.operation, limit=exc.limit, window=exc.window)
            return Decision.deny(
                f"Rate limit exceeded for '{call.operation}': max {exc.limit} per {exc.window}",
                guard=self.name,
            )
        return Decision.allow(guard=self.name)
