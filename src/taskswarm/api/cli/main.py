"""taskswarm CLI entry point."""

import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console

from taskswarm.api.cli.commands import cleanup, plan, route, run
from taskswarm.config import SwarmSettings

app = typer.Typer(
    name="taskswarm",
    help="taskswarm - plan goals across a pool of agents and execute them",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("plan")(plan.plan_goal)
app.command("run")(run.run_goal)
app.command("cleanup")(cleanup.cleanup)
app.add_typer(route.app, name="route", help="Route text or file paths to candidate agents")


def setup_logging(debug: bool = False) -> None:
    """Configure structlog for console or JSON output."""
    level = logging.DEBUG if debug else logging.WARN
    logging.basicConfig(level=level, format="%(message)s")

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML settings file"),
    agents_dir: Optional[Path] = typer.Option(None, "--agents-dir", help="Agent registry directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose task progress"),
    debug: bool = typer.Option(False, "--debug", help="Debug logging"),
):
    """taskswarm CLI."""
    overrides = {}
    if agents_dir is not None:
        overrides["agents_dir"] = str(agents_dir)
    if verbose:
        overrides["verbose"] = True
    if debug:
        overrides["debug_mode"] = True

    settings = SwarmSettings.load_from_file(config, **overrides) if config else SwarmSettings(**overrides)
    setup_logging(settings.debug_mode)
    ctx.obj = {"settings": settings}


@app.command()
def version():
    """Show taskswarm version."""
    from taskswarm import __version__

    console.print(f"[bold blue]taskswarm[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
