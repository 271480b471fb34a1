"""Cleanup command - prune run directories and the event log."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from taskswarm.api.cli.commands.plan import settings_from
from taskswarm.infrastructure.persistence.event_log import EventLog
from taskswarm.infrastructure.persistence.workspace import RunWorkspace

console = Console()


def cleanup(
    ctx: typer.Context,
    runs_max_per_alias: Optional[int] = typer.Option(None, "--runs-max-per-alias", help="Run dirs kept per alias"),
    logs_max_bytes: Optional[int] = typer.Option(None, "--logs-max-bytes", help="Event log size cap"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Only report what would be removed"),
):
    """Prune old run directories and truncate the event log."""
    settings = settings_from(ctx, runs_max_per_alias=runs_max_per_alias, logs_max_bytes=logs_max_bytes)
    prefix = "[dim]\\[dry][/dim] " if dry_run else ""

    workspace = RunWorkspace(settings.runs_dir)
    removed = asyncio.run(workspace.prune_all(keep=settings.runs_max_per_alias, dry_run=dry_run))
    for path in removed:
        console.print(f"{prefix}remove {path}")

    trimmed = EventLog(settings.events_path).prune(settings.logs_max_bytes, dry_run=dry_run)
    if trimmed:
        console.print(f"{prefix}truncate {settings.events_path} by {trimmed} bytes")
    if not removed and not trimmed:
        console.print("[green]Nothing to clean up[/green]")
