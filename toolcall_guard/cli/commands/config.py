"""CLI — Configuration inspection commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from toolcall_guard.config import GuardSettings

app = typer.Typer(help="Inspect the effective guard configuration.")
console = Console()


@app.command("show")
def show(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="Policy YAML file."
    ),
) -> None:
    """Print the effective settings (files + environment) as JSON."""
    try:
        settings = GuardSettings.load(config)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration:[/red]\n{escape(str(exc))}")
        raise typer.Exit(code=2)

    data = settings.model_dump(mode="json")
    if data["intent"].get("api_key"):
        data["intent"]["api_key"] = "***"
    data["approval"]["effective_critical_patterns"] = settings.critical_patterns()
    console.print(Syntax(json.dumps(data, indent=2), "json"))
