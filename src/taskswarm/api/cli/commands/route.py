"""Route command - show which agents the triggers table suggests."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from taskswarm.api.cli.commands.plan import settings_from
from taskswarm.application.factory import SwarmFactory
from taskswarm.core.routing.router import RouteResult, Router

app = typer.Typer(help="Route text or file paths to candidate agents")
console = Console()


def _router(ctx: typer.Context, triggers: Optional[Path]) -> Router:
    settings = settings_from(ctx, triggers_path=str(triggers) if triggers else None)
    try:
        router = SwarmFactory(settings).router()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if router is None:
        console.print("[red]No triggers file configured[/red]")
        raise typer.Exit(1)
    return router


def _print(result: RouteResult) -> None:
    console.print_json(json.dumps(result.to_dict()))


@app.command("text")
def route_text(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Task text"),
    triggers: Optional[Path] = typer.Option(None, "--triggers", help="Triggers file (JSON or YAML)"),
):
    """Route free text (keywords first, then regex)."""
    _print(_router(ctx, triggers).route_task(text))


@app.command("files")
def route_files(
    ctx: typer.Context,
    paths: List[str] = typer.Argument(..., help="File paths"),
    triggers: Optional[Path] = typer.Option(None, "--triggers", help="Triggers file (JSON or YAML)"),
):
    """Route file paths through the glob patterns."""
    _print(_router(ctx, triggers).route_files(paths))
