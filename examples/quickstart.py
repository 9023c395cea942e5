#!/usr/bin/env python3
"""toolcall-guard — Quickstart example.

Builds an evaluator in code and runs a handful of agent tool calls through it:

  1. Namespace rules: reads allowed, writes denied
  2. Parameter validation: coercion, unknown keys stripped, injection blocked
  3. Human approval for payments, answered through an ApprovalGate

No LLM is needed: intent verification is left disabled.

Usage:
  python examples/quickstart.py
  python examples/quickstart.py --approve
"""

from __future__ import annotations

import argparse
import asyncio

from pydantic import BaseModel, Field

from toolcall_guard import Call, Evaluator
from toolcall_guard.approvers import ApprovalGate
from toolcall_guard.config import GuardSettings
from toolcall_guard.logging import configure_logging


class ReadFileArgs(BaseModel):
    path: str = Field(max_length=1000)
    limit: int = 100


class TransferArgs(BaseModel):
    account: str
    amount: float = Field(gt=0)


def show(call: Call, decision) -> None:
    if decision.allowed:
        print(f"  ALLOWED {call.operation}")
        if decision.sanitized_arguments is not None:
            print(f"    arguments -> {dict(decision.sanitized_arguments)}")
    else:
        print(f"  DENIED  {call.operation} by {decision.guard}: {decision.reason}")


async def run(approve: bool) -> None:
    settings = GuardSettings(
        namespace={
            "default_action": "deny",
            "rules": [
                {"pattern": "fs:read*", "action": "allow"},
                {"pattern": "fs:*", "action": "deny", "description": "Filesystem is read-only"},
                {"pattern": "payments:*", "action": "allow"},
            ],
        },
        approval={"critical_patterns": ["payments:*"], "timeout_seconds": 5},
    )
    gate = ApprovalGate()
    evaluator = Evaluator(
        settings,
        schemas={"fs:readFile": ReadFileArgs, "payments:transfer": TransferArgs},
        approver=gate,
    )

    # -----------------------------------------------------------------------
    # Step 1: Namespace rules
    # -----------------------------------------------------------------------
    print("Namespace rules:")
    for call in (Call("fs:readFile", {"path": "notes.txt"}), Call("fs:deleteFile", {"path": "/"})):
        show(call, await evaluator.evaluate(call))
    print()

    # -----------------------------------------------------------------------
    # Step 2: Parameter validation
    # -----------------------------------------------------------------------
    print("Parameter validation:")
    for call in (
        Call("fs:readFile", {"path": "notes.txt", "limit": "10", "debug": True}),
        Call("fs:readFile", {"path": "../../etc/passwd"}),
    ):
        show(call, await evaluator.evaluate(call))
    print()

    # -----------------------------------------------------------------------
    # Step 3: Human approval
    # -----------------------------------------------------------------------
    print("Human approval:")
    call = Call("payments:transfer", {"account": "GB123456", "amount": "42"})
    evaluation = asyncio.ensure_future(evaluator.evaluate(call))
    while not gate.pending_count:
        await asyncio.sleep(0.01)
    for pending in gate.get_pending():
        print(f"  operator sees {pending.operation} {dict(pending.arguments)}")
        gate.submit_decision(pending.call_id, approved=approve)
    show(call, await evaluation)


def main() -> None:
    parser = argparse.ArgumentParser(description="toolcall-guard quickstart")
    parser.add_argument("--approve", action="store_true", help="Approve the payment")
    parser.add_argument("--log-level", default="error", help="Guard log level (default: error)")
    args = parser.parse_args()

    configure_logging(level=args.log_level)
    asyncio.run(run(args.approve))


if __name__ == "__main__":
    main()
