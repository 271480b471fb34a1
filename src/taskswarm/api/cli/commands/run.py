"""Run command - plan a goal and execute its scenario."""

import asyncio
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from taskswarm.api.cli.commands.plan import print_planning_run, settings_from
from taskswarm.application.factory import SwarmFactory
from taskswarm.application.runner import PhaseSummary

console = Console()


def print_phase_summary(summary: PhaseSummary) -> None:
    table = Table(title=f"{summary.phase} ({summary.elapsed_ms}ms)")
    table.add_column("Alias", style="cyan")
    table.add_column("Agent", style="white")
    table.add_column("Tasks", justify="right")
    table.add_column("OK", justify="right", style="green")
    table.add_column("Avg ms", justify="right")
    for alias, group in summary.by_alias.items():
        data = group.to_dict()
        table.add_row(alias, group.agent_id, str(data["count"]), str(data["ok"]), str(data["avgMs"]))
    for alias, error in summary.errors.items():
        table.add_row(alias, f"[red]{error}[/red]", "-", "-", "-")
    console.print(table)


async def _plan_and_run(factory: SwarmFactory, goal: str, force: bool, as_json: bool) -> int:
    planning = await factory.planning_service().plan(goal)
    if not as_json:
        print_planning_run(planning)
    if not planning.validation.ok and not force:
        console.print("[red]Refusing to execute an invalid plan (use --force to override)[/red]")
        return 1

    runner = await factory.scenario_runner()
    try:
        summaries = await runner.run(planning.scenario)
    finally:
        await runner.adapter.memory.close()

    if as_json:
        console.print_json(
            json.dumps({"planning": planning.to_dict(), "phases": [s.to_dict() for s in summaries]}, default=str)
        )
    else:
        for summary in summaries:
            print_phase_summary(summary)
    return 0


def run_goal(
    ctx: typer.Context,
    goal: str = typer.Argument(..., help="Natural-language goal"),
    selector: Optional[str] = typer.Option(None, "--selector", help="heuristic | rule_based | delegated"),
    decomposer: Optional[str] = typer.Option(None, "--decomposer", help="heuristic | rule_based | delegated"),
    runtime: Optional[str] = typer.Option(None, "--runtime", help="stub | remote"),
    strict_tools: Optional[bool] = typer.Option(None, "--strict-tools/--no-strict-tools", help="Reject disallowed tools"),
    retries: Optional[int] = typer.Option(None, "--retries", help="Retries per failed task"),
    force: bool = typer.Option(False, "--force", help="Execute even when the plan is invalid"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
):
    """Plan a goal, then execute the scenario phase by phase."""
    settings = settings_from(
        ctx,
        selector_mode=selector,
        decomposer_mode=decomposer,
        runtime=runtime,
        strict_tools=strict_tools,
        retries=retries,
    )
    try:
        factory = SwarmFactory(settings)
        code = asyncio.run(_plan_and_run(factory, goal, force, as_json))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if code:
        raise typer.Exit(code)
