#!/usr/bin/env python3
"""toolcall-guard — Intent verification against a local Ollama model.

Sends the same tool call twice, once with a user request that explains it and
once with one that does not, and prints the verdicts.

Prerequisites:
  - A running Ollama daemon with a chat model pulled: ``ollama pull llama3.2``

Usage:
  python examples/intent_check.py
  python examples/intent_check.py --model qwen2.5 --base-url http://10.0.0.5:11434
"""

from __future__ import annotations

import argparse
import asyncio

from toolcall_guard import Call, Evaluator
from toolcall_guard.config import GuardSettings
from toolcall_guard.logging import configure_logging

REQUESTS = [
    "Email Alice the quarterly report she asked for.",
    "Summarise the three most recent messages in my inbox.",
]


async def run(model: str, base_url: str) -> None:
    settings = GuardSettings(
        intent={
            "enabled": True,
            "provider": "ollama",
            "model": model,
            "api_base_url": base_url,
            "allow_without_context": False,
        }
    )
    evaluator = Evaluator(settings)
    try:
        for request in REQUESTS:
            call = Call(
                "mail:send",
                {"to": "alice@example.com", "attachment": "q3-report.pdf"},
                originating_request=request,
            )
            decision = await evaluator.evaluate(call)
            verdict = "ALLOWED" if decision.allowed else f"DENIED ({decision.reason})"
            print(f"{request!r}\n  -> {verdict}\n")
    finally:
        await evaluator.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="toolcall-guard intent verification demo")
    parser.add_argument("--model", default="llama3.2", help="Ollama model (default: llama3.2)")
    parser.add_argument(
        "--base-url",
        default="http://localhost:11434",
        help="Ollama URL (default: http://localhost:11434)",
    )
    args = parser.parse_args()

    configure_logging(level="warning")
    asyncio.run(run(args.model, args.base_url))


if __name__ == "__main__":
    main()
