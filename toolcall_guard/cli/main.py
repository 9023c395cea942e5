"""toolcall-guard CLI — Entry point.

Usage:
    toolcall-guard check fs:readFile --args '{"path": "a.txt"}' --config guard.yaml
    toolcall-guard match 'fs:*' fs:read myfs:read
    toolcall-guard config show --config guard.yaml
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from toolcall_guard.approvers import ConsoleApprover, format_approval_request
from toolcall_guard.cli.commands import config as config_commands
from toolcall_guard.config import GuardSettings
from toolcall_guard.evaluator import Evaluator
from toolcall_guard.exceptions import ConfigurationError
from toolcall_guard.logging import configure_logging
from toolcall_guard.models import Call, Decision
from toolcall_guard.patterns import match_pattern

app = typer.Typer(
    name="toolcall-guard",
    help="toolcall-guard — Authorize agent tool calls against a layered policy.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

console = Console()

app.add_typer(config_commands.app, name="config")

EXIT_DENIED = 1
EXIT_BAD_INPUT = 2


def _terminal_approver(call: Call) -> bool:
    console.print(format_approval_request(call), markup=False, highlight=False)
    return typer.confirm("Approve?", default=False)


async def _evaluate(evaluator: Evaluator, call: Call) -> Decision:
    try:
        return await evaluator.evaluate(call)
    finally:
        await evaluator.close()


@app.command("check")
def check(
    operation: str = typer.Argument(..., help="Operation name, e.g. fs:readFile."),
    args: str = typer.Option("{}", "--args", "-a", help="Call arguments as a JSON object."),
    request: Optional[str] = typer.Option(
        None, "--request", "-r", help="The end user's originating request."
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="Policy YAML file."
    ),
    interactive: bool = typer.Option(
        False, "--interactive/--no-interactive", help="Prompt for approval of critical calls."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show guard logs on stderr."),
) -> None:
    """Evaluate a single call and print the decision."""
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid --args JSON:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_BAD_INPUT)
    if not isinstance(arguments, dict):
        console.print("[red]--args must be a JSON object[/red]")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    try:
        settings = GuardSettings.load(config)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red]\n{escape(str(exc))}")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    configure_logging(
        level=settings.logging.level if verbose else "error",
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    approver = _terminal_approver if interactive else ConsoleApprover()
    try:
        evaluator = Evaluator(settings, approver=approver)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(exc.message)}")
        raise typer.Exit(code=EXIT_BAD_INPUT)

    call = Call(operation=operation, arguments=arguments, originating_request=request)
    decision = asyncio.run(_evaluate(evaluator, call))

    if decision.allowed:
        console.print(f"[green]ALLOWED[/green] {escape(operation)}")
        if decision.sanitized_arguments is not None:
            console.print("Sanitized arguments:")
            console.print_json(json.dumps(dict(decision.sanitized_arguments), default=str))
        return

    guard = f" by {decision.guard}" if decision.guard else ""
    console.print(f"[red]DENIED[/red]{escape(guard)}: {escape(decision.reason or '')}")
    raise typer.Exit(code=EXIT_DENIED)


@app.command("match")
def match(
    pattern: str = typer.Argument(..., help="Glob pattern; '*' is the only wildcard."),
    operations: List[str] = typer.Argument(..., help="Operation names to test."),
) -> None:
    """Show which operations a rule pattern matches."""
    for operation in operations:
        if match_pattern(pattern, operation):
            console.print(f"[green]match[/green]    {escape(operation)}")
        else:
            console.print(f"[dim]no match[/dim] {escape(operation)}")


@app.callback()
def main_callback() -> None:
    pass


if __name__ == "__main__":
    app()
