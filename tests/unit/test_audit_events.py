"""Unit tests — audit logger and event buses."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from toolcall_guard.audit import AuditEvent, AuditLogger
from toolcall_guard.events import (
    TOPIC_APPROVALS,
    TOPIC_CALLS,
    EventBus,
    FanoutEventBus,
    LogEventBus,
    NullEventBus,
)

pytestmark = pytest.mark.unit


class MemoryBus(EventBus):
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        self.events.append((topic, self._stamp(topic, event)))


class BrokenBus(EventBus):
    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        raise RuntimeError("backend offline")


def _read_ndjson(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestLogEventBus:
    @pytest.mark.asyncio
    async def test_appends_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "audit.ndjson"
        bus = LogEventBus(path)
        await bus.emit(TOPIC_CALLS, {"event": "call_allowed"})
        await bus.emit(TOPIC_CALLS, {"event": "call_denied"})

        records = _read_ndjson(path)
        assert [r["event"] for r in records] == ["call_allowed", "call_denied"]
        assert records[0]["_topic"] == TOPIC_CALLS
        assert "_timestamp" in records[0]

    @pytest.mark.asyncio
    async def test_write_failure_does_not_raise(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        bus = LogEventBus(blocker / "audit.ndjson")
        await bus.emit(TOPIC_CALLS, {"event": "call_allowed"})


class TestFanoutEventBus:
    @pytest.mark.asyncio
    async def test_broadcasts_and_isolates_failures(self) -> None:
        first, second = MemoryBus(), MemoryBus()
        bus = FanoutEventBus([first, BrokenBus(), second])
        await bus.emit(TOPIC_APPROVALS, {"event": "approval_requested"})
        assert len(first.events) == 1
        assert len(second.events) == 1
        assert first.events[0][1] is not second.events[0][1]


class TestAuditLogger:
    @pytest.mark.asyncio
    async def test_default_discards(self) -> None:
        audit = AuditLogger()
        assert isinstance(audit.bus, NullEventBus)
        await audit.log(AuditEvent.CALL_ALLOWED, call_id="c1", operation="fs:read")

    @pytest.mark.asyncio
    async def test_file_backend(self, tmp_path: Path) -> None:
        path = tmp_path / "audit.ndjson"
        audit = AuditLogger(audit_file=path)
        await audit.log(AuditEvent.CALL_DENIED, call_id="c1", operation="fs:delete", reason="no")

        (record,) = _read_ndjson(path)
        assert record["event"] == "call_denied"
        assert record["call_id"] == "c1"
        assert record["operation"] == "fs:delete"
        assert record["reason"] == "no"

    @pytest.mark.asyncio
    async def test_topics(self) -> None:
        bus = MemoryBus()
        audit = AuditLogger(bus=bus, audit_file=Path("/unused"))
        await audit.log(AuditEvent.CALL_ALLOWED)
        await audit.log(AuditEvent.APPROVAL_GRANTED)
        assert [topic for topic, _ in bus.events] == [TOPIC_CALLS, TOPIC_APPROVALS]
