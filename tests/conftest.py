"""Shared pytest fixtures for the toolcall-guard test suite."""

from __future__ import annotations

import os
from typing import Any, Callable

import pytest
from pydantic import BaseModel, Field

from toolcall_guard.config import GuardSettings
from toolcall_guard.models import Call, Decision
from toolcall_guard.guards.base import Guard


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


@pytest.fixture
def make_call() -> Callable[..., Call]:
    def _make(
        operation: str = "fs:readFile",
        arguments: dict[str, Any] | None = None,
        originating_request: str | None = None,
        **metadata: Any,
    ) -> Call:
        return Call(
            operation=operation,
            arguments=arguments if arguments is not None else {},
            originating_request=originating_request,
            metadata=metadata,
        )

    return _make


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def empty_settings(monkeypatch: pytest.MonkeyPatch) -> GuardSettings:
    for name in list(os.environ):
        if name.upper().startswith("TOOLGUARD_"):
            monkeypatch.delenv(name)
    return GuardSettings()


@pytest.fixture
def fs_settings(empty_settings: GuardSettings) -> GuardSettings:
    return GuardSettings(
        namespace={
            "default_action": "deny",
            "rules": [
                {"pattern": "fs:read*", "action": "allow"},
                {"pattern": "fs:*", "action": "deny"},
            ],
        }
    )


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ReadFileArgs(BaseModel):
    path: str = Field(max_length=1000)
    limit: int = 100


class CountArgs(BaseModel):
    a: int


@pytest.fixture
def read_file_schema() -> type[BaseModel]:
    return ReadFileArgs


@pytest.fixture
def count_schema() -> type[BaseModel]:
    return CountArgs


# ---------------------------------------------------------------------------
# Recording guard
# ---------------------------------------------------------------------------


class RecordingGuard(Guard):
    """Returns a fixed decision and remembers every call it saw."""

    def __init__(self, decision: Decision | None = None, name: str = "recording") -> None:
        self.decision = decision or Decision.allow()
        self.name = name
        self.seen: list[Call] = []

    async def evaluate(self, call: Call) -> Decision:
        self.seen.append(call)
        return self.decision


@pytest.fixture
def recording_guard() -> type[RecordingGuard]:
    return RecordingGuard
