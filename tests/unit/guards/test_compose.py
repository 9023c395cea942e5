"""Unit tests — guard composition helpers."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

import pytest

from toolcall_guard.guards.base import Guard
from toolcall_guard.guards.compose import ALLOW_ALL, deny_all, pipe, safe, unless, when, with_call
from toolcall_guard.models import Call, Decision
from toolcall_guard.pipeline import Pipeline


class Failing(Guard):
    name = "failing"

    async def evaluate(self, call: Call) -> Decision:
        raise ValueError("backend down")


@pytest.mark.unit
class TestCompose:
    @pytest.mark.asyncio
    async def test_pipe_builds_pipeline(self, make_call: Callable[..., Call], recording_guard: Any) -> None:
        guard = pipe(ALLOW_ALL, recording_guard())
        assert isinstance(guard, Pipeline)
        assert (await guard.evaluate(make_call())).allowed

    @pytest.mark.asyncio
    async def test_when(self, make_call: Callable[..., Call]) -> None:
        guard = when(lambda c: c.operation.startswith("db:"), deny_all("no db"))
        assert (await guard.evaluate(make_call("fs:read"))).allowed
        assert (await guard.evaluate(make_call("db:query"))).reason == "no db"

    @pytest.mark.asyncio
    async def test_unless(self, make_call: Callable[..., Call]) -> None:
        guard = unless(lambda c: c.operation == "status:ping", deny_all("locked"))
        assert (await guard.evaluate(make_call("status:ping"))).allowed
        assert not (await guard.evaluate(make_call("fs:read"))).allowed

    @pytest.mark.asyncio
    async def test_with_call(self, make_call: Callable[..., Call], recording_guard: Any) -> None:
        inner = recording_guard()
        guard = with_call(lambda c: replace(c, operation=c.operation.lower()), inner)
        await guard.evaluate(make_call("FS:READ"))
        assert inner.seen[0].operation == "fs:read"

    @pytest.mark.asyncio
    async def test_deny_all(self, make_call: Callable[..., Call]) -> None:
        decision = await deny_all("maintenance window").evaluate(make_call())
        assert not decision.allowed
        assert decision.reason == "maintenance window"

    @pytest.mark.asyncio
    async def test_safe_converts_exceptions(self, make_call: Callable[..., Call]) -> None:
        decision = await safe(Failing(), "Policy service unavailable").evaluate(make_call())
        assert not decision.allowed
        assert decision.reason == "Policy service unavailable: backend down"

    @pytest.mark.asyncio
    async def test_safe_default_reason(self, make_call: Callable[..., Call]) -> None:
        decision = await safe(Failing()).evaluate(make_call())
        assert decision.reason == "Guard error: backend down"

    @pytest.mark.asyncio
    async def test_safe_passes_through_decisions(self, make_call: Callable[..., Call]) -> None:
        assert (await safe(ALLOW_ALL).evaluate(make_call())).allowed
