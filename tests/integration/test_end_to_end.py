"""Integration tests — full evaluator stack driven from a YAML policy."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
import yaml
from pydantic import BaseModel, Field

from toolcall_guard import Call, Evaluator
from toolcall_guard.approvers import ApprovalGate
from toolcall_guard.audit import AuditLogger
from toolcall_guard.config import GuardSettings

pytestmark = pytest.mark.integration


class ReadArgs(BaseModel):
    path: str


class TransferArgs(BaseModel):
    account: str = Field(pattern=r"^[A-Z]{2}\d{6}$")
    amount: float = Field(gt=0, le=10_000)


class QueryArgs(BaseModel):
    sql: str = Field(max_length=500)
    limit: int = 50


POLICY: dict[str, Any] = {
    "namespace": {
        "default_action": "deny",
        "rules": [
            {"pattern": "fs:read*", "action": "allow"},
            {"pattern": "fs:*", "action": "deny", "description": "Filesystem writes are disabled"},
            {"pattern": "db:query", "action": "allow"},
            {"pattern": "payments:*", "action": "allow"},
        ],
    },
    "parameters": {"strict_mode": True},
    "intent": {"enabled": True, "inspect_patterns": ["payments:*"]},
    "approval": {"critical_patterns": ["payments:*"], "timeout_seconds": 1},
}


@pytest.fixture
def policy_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, empty_settings: GuardSettings) -> Path:
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    path = tmp_path / "guard.yaml"
    path.write_text(yaml.safe_dump(POLICY))
    return path


async def keyword_verifier(prompt: str) -> bool:
    """Treats a transfer as aligned only when the user mentioned paying."""
    request = prompt.split("User request:")[1].split("Operation:")[0]
    return "pay" in request.lower()


@pytest.mark.asyncio
async def test_filesystem_rules(fs_settings: GuardSettings) -> None:
    evaluator = Evaluator(fs_settings)
    assert (await evaluator.evaluate(Call("fs:readFile", {"path": "a.txt"}))).allowed
    assert not (await evaluator.evaluate(Call("fs:deleteFile", {"path": "a.txt"}))).allowed
    assert not (await evaluator.evaluate(Call("db:query", {"sql": "select 1"}))).allowed


@pytest.mark.asyncio
async def test_empty_configuration_allows_everything(empty_settings: GuardSettings) -> None:
    evaluator = Evaluator(empty_settings)
    for operation in ("fs:deleteFile", "db:drop", "anything"):
        decision = await evaluator.evaluate(Call(operation, {"x": "$(whoami)"}))
        assert decision.allowed
        assert decision.sanitized_arguments is None


@pytest.mark.asyncio
async def test_full_stack(policy_file: Path, tmp_path: Path) -> None:
    gate = ApprovalGate()
    audit_file = tmp_path / "audit.ndjson"
    evaluator = Evaluator(
        GuardSettings.load(policy_file),
        schemas={
            "fs:readFile": ReadArgs,
            "db:query": QueryArgs,
            "payments:transfer": TransferArgs,
        },
        verifier=keyword_verifier,
        approver=gate,
        audit=AuditLogger(audit_file=audit_file),
    )

    # Namespace: explicit deny rule carries its description.
    denied = await evaluator.evaluate(Call("fs:writeFile", {"path": "a"}))
    assert denied.reason == "Filesystem writes are disabled"

    # Parameters: coercion and unknown-key stripping.
    query = await evaluator.evaluate(Call("db:query", {"sql": "select 1", "limit": "5", "x": 1}))
    assert query.allowed
    assert query.sanitized_arguments == {"sql": "select 1", "limit": 5}

    # Parameters: injection scan runs before the schema.
    injected = await evaluator.evaluate(Call("db:query", {"sql": "select 1; drop table users"}))
    assert injected.guard == "parameters"

    # Intent: only payments are inspected; a mismatched request is denied.
    misaligned = await evaluator.evaluate(
        Call(
            "payments:transfer",
            {"account": "GB123456", "amount": 10},
            originating_request="summarise my emails",
        )
    )
    assert misaligned.guard == "intent"
    assert gate.pending_count == 0

    # Approval: a human answers through the gate while evaluation waits.
    transfer = Call(
        "payments:transfer",
        {"account": "GB123456", "amount": "250"},
        originating_request="pay my landlord 250",
    )
    evaluation = asyncio.ensure_future(evaluator.evaluate(transfer))
    for _ in range(50):
        if gate.pending_count:
            break
        await asyncio.sleep(0.01)
    (pending,) = gate.get_pending()
    assert pending.arguments == {"account": "GB123456", "amount": 250.0}
    gate.submit_decision(pending.call_id, approved=True)

    decision = await evaluation
    assert decision.allowed
    assert decision.sanitized_arguments == {"account": "GB123456", "amount": 250.0}

    events = [json.loads(line)["event"] for line in audit_file.read_text().splitlines()]
    assert events[-3:] == ["approval_requested", "approval_granted", "call_allowed"]

