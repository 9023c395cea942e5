"""Unit tests — sliding-window rate limiting."""

from __future__ import annotations

from typing import Callable

import pytest

from toolcall_guard.exceptions import RateLimitExceededError
from toolcall_guard.guards.rate_limit import RateLimitGuard, SlidingWindowLimiter
from toolcall_guard.models import Call

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowLimiter:
    def test_under_limit_records(self) -> None:
        limiter = SlidingWindowLimiter(clock=FakeClock())
        limiter.check_or_raise("k", calls_per_minute=2)
        limiter.check_or_raise("k", calls_per_minute=2)
        assert limiter.get_counts("k") == {"minute": 2, "hour": 2}

    def test_exceeding_minute_budget_raises(self) -> None:
        limiter = SlidingWindowLimiter(clock=FakeClock())
        limiter.check_or_raise("k", calls_per_minute=1)
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check_or_raise("k", calls_per_minute=1)
        assert exc_info.value.limit == 1
        assert exc_info.value.window == "minute"

    def test_window_slides(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowLimiter(clock=clock)
        limiter.check_or_raise("k", calls_per_minute=1)
        clock.now += 61
        limiter.check_or_raise("k", calls_per_minute=1)

    def test_hour_budget(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowLimiter(clock=clock)
        limiter.check_or_raise("k", calls_per_hour=2)
        clock.now += 120
        limiter.check_or_raise("k", calls_per_hour=2)
        clock.now += 120
        with pytest.raises(RateLimitExceededError):
            limiter.check_or_raise("k", calls_per_hour=2)

    def test_rejected_call_is_not_recorded(self) -> None:
        limiter = SlidingWindowLimiter(clock=FakeClock())
        limiter.check_or_raise("k", calls_per_minute=1)
        with pytest.raises(RateLimitExceededError):
            limiter.check_or_raise("k", calls_per_minute=1)
        assert limiter.get_counts("k")["minute"] == 1

    def test_reset(self) -> None:
        limiter = SlidingWindowLimiter(clock=FakeClock())
        limiter.check_or_raise("a")
        limiter.check_or_raise("b")
        limiter.reset("a")
        assert limiter.get_counts("a")["hour"] == 0
        assert limiter.get_counts("b")["hour"] == 1
        limiter.reset()
        assert limiter.get_counts("b")["hour"] == 0

    def test_expired_keys_are_dropped(self) -> None:
        clock = FakeClock()
        limiter = SlidingWindowLimiter(clock=clock)
        limiter.check_or_raise("k", calls_per_minute=5)
        clock.now += 3601
        assert limiter.get_counts("k") == {"minute": 0, "hour": 0}
        assert "k" not in limiter._timestamps

    def test_check_all_records_nothing_when_one_budget_is_full(self) -> None:
        limiter = SlidingWindowLimiter(clock=FakeClock())
        limiter.check_or_raise("narrow", calls_per_minute=1)
        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.check_all_or_raise([("wide", 10, None), ("narrow", 1, None)])
        assert exc_info.value.operation == "narrow"
        assert limiter.get_counts("wide")["minute"] == 0
        assert limiter.get_counts("narrow")["minute"] == 1


class TestRateLimitGuard:
    @pytest.mark.asyncio
    async def test_denies_after_budget(self, make_call: Callable[..., Call]) -> None:
        guard = RateLimitGuard(per_minute={"db:*": 2})
        assert (await guard.evaluate(make_call("db:query"))).allowed
        assert (await guard.evaluate(make_call("db:query"))).allowed
        decision = await guard.evaluate(make_call("db:query"))
        assert not decision.allowed
        assert decision.reason == "Rate limit exceeded for 'db:query': max 2 per minute"

    @pytest.mark.asyncio
    async def test_budgets_are_per_operation(self, make_call: Callable[..., Call]) -> None:
        guard = RateLimitGuard(per_minute={"db:*": 1})
        assert (await guard.evaluate(make_call("db:query"))).allowed
        assert (await guard.evaluate(make_call("db:insert"))).allowed

    @pytest.mark.asyncio
    async def test_unmatched_operations_unlimited(self, make_call: Callable[..., Call]) -> None:
        guard = RateLimitGuard(per_minute={"db:*": 1})
        for _ in range(5):
            assert (await guard.evaluate(make_call("fs:read"))).allowed

    @pytest.mark.asyncio
    async def test_denied_call_does_not_consume_overlapping_budget(
        self, make_call: Callable[..., Call]
    ) -> None:
        guard = RateLimitGuard(per_minute={"db:*": 100, "db:query": 1})
        assert (await guard.evaluate(make_call("db:query"))).allowed
        for _ in range(3):
            assert not (await guard.evaluate(make_call("db:query"))).allowed
        assert guard.limiter.get_counts("db:*|db:query")["minute"] == 1
        assert guard.limiter.get_counts("db:query|db:query")["minute"] == 1
