"""Plan command - select, decompose and compose without executing."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from taskswarm.application.factory import SwarmFactory
from taskswarm.application.planner import PlanningRun
from taskswarm.config import SwarmSettings
from taskswarm.core.planning.dag import remediation_hint, topological_order

console = Console()


def settings_from(ctx: typer.Context, **updates) -> SwarmSettings:
    """Settings from the root callback with non-None command options applied."""
    settings: SwarmSettings = (ctx.obj or {}).get("settings") or SwarmSettings()
    changes = {k: v for k, v in updates.items() if v is not None}
    return settings.model_copy(update=changes) if changes else settings


def print_planning_run(run: PlanningRun) -> None:
    scenario = run.scenario
    console.print(f"\n[bold]Scenario:[/bold] {scenario.title}")

    why = Table(title="Why each agent")
    why.add_column("Agent", style="cyan")
    why.add_column("Order", style="magenta")
    why.add_column("Reason", style="white")
    for agent in run.artifact.agents:
        why.add_row(agent.id, agent.order_id or "-", agent.reason)
    console.print(why)

    if run.validation.ok:
        console.print("[green]DAG: OK[/green]")
        console.print(f"[bold]Task order:[/bold] {' -> '.join(topological_order(run.artifact.plan))}")
    else:
        console.print(f"[red]DAG: INVALID ({run.validation.error})[/red]")
        console.print(f"[yellow]Remediation:[/yellow] {remediation_hint(run.validation.error)}")

    for index, phase in enumerate(scenario.phases, start=1):
        mode = "parallel" if phase.parallel else "sequential"
        console.print(f"\n[bold]{index}. {phase.name}[/bold] [dim]({mode})[/dim]")
        for alias, tasks in phase.tasks.items():
            for task in tasks:
                console.print(f"  - [cyan]{alias}[/cyan]: {task}")


def plan_goal(
    ctx: typer.Context,
    goal: str = typer.Argument(..., help="Natural-language goal"),
    selector: Optional[str] = typer.Option(None, "--selector", help="heuristic | rule_based | delegated"),
    decomposer: Optional[str] = typer.Option(None, "--decomposer", help="heuristic | rule_based | delegated"),
    use_router: Optional[bool] = typer.Option(None, "--router/--no-router", help="Narrow the catalog via triggers"),
    as_json: bool = typer.Option(False, "--json", help="Print the planning run as JSON"),
):
    """Plan a goal and print the resulting scenario."""
    settings = settings_from(ctx, selector_mode=selector, decomposer_mode=decomposer, use_router=use_router)
    try:
        service = SwarmFactory(settings).planning_service()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    run = asyncio.run(service.plan(goal))
    if as_json:
        console.print_json(json.dumps(run.to_dict(), default=str))
    else:
        print_planning_run(run)
