"""Audit trail — typed events on top of the EventBus.

The evaluator records every final decision and every approval exchange::

    audit = AuditLogger(audit_file=Path("~/.toolcall-guard/audit.ndjson"))
    await audit.log(AuditEvent.CALL_DENIED, call_id="c1", operation="fs:delete", reason="...")

If both ``audit_file`` and ``bus`` are given, ``bus`` wins.  With neither,
events are discarded.
"""

from __future__ import annotations

import time
from enum import Enum
from pathlib import Path
from typing import Any

from toolcall_guard.events import (
    TOPIC_APPROVALS,
    TOPIC_CALLS,
    EventBus,
    LogEventBus,
    NullEventBus,
)
from toolcall_guard.logging import get_logger

log = get_logger(__name__)


class AuditEvent(str, Enum):
    CALL_ALLOWED = "call_allowed"
    CALL_DENIED = "call_denied"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_GRANTED = "approval_granted"
    APPROVAL_REJECTED = "approval_rejected"


_EVENT_TOPIC: dict[AuditEvent, str] = {
    AuditEvent.CALL_ALLOWED: TOPIC_CALLS,
    AuditEvent.CALL_DENIED: TOPIC_CALLS,
    AuditEvent.APPROVAL_REQUESTED: TOPIC_APPROVALS,
    AuditEvent.APPROVAL_GRANTED: TOPIC_APPROVALS,
    AuditEvent.APPROVAL_REJECTED: TOPIC_APPROVALS,
}


class AuditLogger:
    def __init__(
        self,
        audit_file: Path | None = None,
        bus: EventBus | None = None,
    ) -> None:
        if bus is not None:
            self._bus: EventBus = bus
        elif audit_file is not None:
            self._bus = LogEventBus(audit_file)
        else:
            self._bus = NullEventBus()

    @property
    def bus(self) -> EventBus:
        return self._bus

    async def log(
        self,
        event: AuditEvent,
        call_id: str | None = None,
        operation: str | None = None,
        **data: Any,
    ) -> None:
        record: dict[str, Any] = {"event": event.value, "timestamp": time.time()}
        if call_id is not None:
            record["call_id"] = call_id
        if operation is not None:
            record["operation"] = operation
        record.update(data)
        log.debug("audit_event", audit_event=event.value, call_id=call_id)
        await self._bus.emit(_EVENT_TOPIC[event], record)
