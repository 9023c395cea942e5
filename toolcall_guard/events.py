"""Event streaming — EventBus protocol and implementations.

Guard outcomes are published as plain dicts on a topic so that consumers
(audit file, dashboards, alerting) can be swapped without touching the
evaluator:

  - NullEventBus   → default, discards everything
  - LogEventBus    → NDJSON append-only file
  - FanoutEventBus → broadcasts to several backends

Standard topics:
  TOPIC_CALLS     = "toolguard.calls"     — final allow/deny decisions
  TOPIC_APPROVALS = "toolguard.approvals" — approval requests and answers
"""

from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from toolcall_guard.logging import get_logger

log = get_logger(__name__)

TOPIC_CALLS = "toolguard.calls"
TOPIC_APPROVALS = "toolguard.approvals"


class EventBus(ABC):
    """Abstract event bus; safe for concurrent async use."""

    @abstractmethod
    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        """Publish *event* to *topic*.

        Must not raise: a backend outage never reaches the evaluation path.
        """

    def _stamp(self, topic: str, event: dict[str, Any]) -> dict[str, Any]:
        event.setdefault("_topic", topic)
        event.setdefault("_timestamp", time.time())
        return event


class NullEventBus(EventBus):
    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        pass


class LogEventBus(EventBus):
    """Appends events as NDJSON, one line per event.

    Usage::

        bus = LogEventBus(Path("~/.toolcall-guard/audit.ndjson"))
        await bus.emit(TOPIC_CALLS, {"event": "call_denied", "operation": "fs:delete"})
    """

    def __init__(self, log_file: Path) -> None:
        self._file = log_file.expanduser()
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._file

    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        self._stamp(topic, event)
        line = json.dumps(event, default=str) + "\n"
        async with self._lock:
            try:
                self._file.parent.mkdir(parents=True, exist_ok=True)
                with self._file.open("a", encoding="utf-8") as f:
                    f.write(line)
            except OSError as exc:
                log.error("event_bus_write_failed", topic=topic, error=str(exc))


class FanoutEventBus(EventBus):
    def __init__(self, backends: list[EventBus]) -> None:
        self._backends = backends

    async def emit(self, topic: str, event: dict[str, Any]) -> None:
        self._stamp(topic, event)
        results = await asyncio.gather(
            *(b.emit(topic, dict(event)) for b in self._backends),
            return_exceptions=True,
        )
        for backend, result in zip(self._backends, results):
            if isinstance(result, Exception):
                log.error(
                    "event_bus_backend_failed",
                    backend=type(backend).__name__,
                    topic=topic,
                    error=str(result),
                )
