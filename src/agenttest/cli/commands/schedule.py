"""
Schedule CLI commands.

Usage:
    # Show schedules declared in a definitions file
    python -m src.agenttest.cli.main schedule list tests.yaml

    # Start the scheduler
    python -m src.agenttest.cli.main schedule start tests.yaml --endpoint http://localhost:8080

    # Fire whatever is due once and exit (cron-friendly)
    python -m src.agenttest.cli.main schedule start tests.yaml --once
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from src.agenttest.cli.runtime import build_service
from src.agenttest.config import HarnessSettings
from src.agenttest.contracts import ScheduledTest, ScheduleStatus
from src.agenttest.exceptions import HarnessError
from src.agenttest.loader import install_definitions, load_definitions
from src.agenttest.scheduling import SchedulerConfig

logger = logging.getLogger(__name__)

console = Console()

schedule_app = typer.Typer(
    name="schedule",
    help="Scheduled test commands",
    no_args_is_help=True,
)

_STATUS_STYLE = {
    ScheduleStatus.SCHEDULED: "[cyan]scheduled[/cyan]",
    ScheduleStatus.COMPLETED: "[green]completed[/green]",
    ScheduleStatus.FAILED: "[red]failed[/red]",
}


def _schedules_table(schedules: list[ScheduledTest], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Agent")
    table.add_column("Target")
    table.add_column("Frequency")
    table.add_column("Next Run")
    table.add_column("Status")
    table.add_column("Last Outcome")

    for schedule in schedules:
        table.add_row(
            schedule.id[:8],
            schedule.agent_id,
            f"{schedule.type.value}:{schedule.item_id}",
            schedule.frequency.value,
            schedule.next_run_date.strftime("%Y-%m-%d %H:%M UTC"),
            _STATUS_STYLE[schedule.status],
            schedule.last_outcome.value if schedule.last_outcome else "-",
        )
    return table


@schedule_app.command("list")
def schedule_list(
    definitions_file: Annotated[Path, typer.Argument(help="Path to the YAML definitions file")],
) -> None:
    """List schedules declared in a definitions file."""
    if not definitions_file.exists():
        console.print(f"[red]Error:[/red] File not found: {definitions_file}")
        raise typer.Exit(1)

    try:
        definitions = load_definitions(definitions_file)
    except HarnessError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not definitions.schedules:
        console.print("[yellow]No schedules defined[/yellow]")
        return

    schedules = sorted(definitions.schedules, key=lambda s: s.next_run_date)
    console.print(_schedules_table(schedules, "Scheduled Tests"))


@schedule_app.command("start")
def schedule_start(
    definitions_file: Annotated[Path, typer.Argument(help="Path to the YAML definitions file")],
    endpoint: Annotated[
        str | None,
        typer.Option("--endpoint", "-e", help="Agent HTTP base URL"),
    ] = None,
    echo: Annotated[
        bool,
        typer.Option("--echo", help="Use the echo agent instead of a real endpoint"),
    ] = False,
    poll_seconds: Annotated[
        float | None,
        typer.Option("--poll", "-p", help="Polling interval in seconds"),
    ] = None,
    once: Annotated[
        bool,
        typer.Option("--once", help="Fire due schedules once and exit"),
    ] = False,
) -> None:
    """
    Start the test scheduler.

    Loads test cases, suites and schedules from the definitions file and fires
    schedules as they come due.
    """
    if not definitions_file.exists():
        console.print(f"[red]Error:[/red] File not found: {definitions_file}")
        raise typer.Exit(1)

    asyncio.run(_schedule_start_async(definitions_file, endpoint, echo, poll_seconds, once))


async def _schedule_start_async(
    definitions_file: Path,
    endpoint: str | None,
    echo: bool,
    poll_seconds: float | None,
    once: bool,
) -> None:
    """Async implementation of schedule start command."""
    settings = HarnessSettings()
    try:
        definitions = load_definitions(definitions_file)
        service = build_service(endpoint, echo, settings)
        await install_definitions(service, definitions)
    except HarnessError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    config = settings.scheduler_config()
    if poll_seconds is not None:
        try:
            config = SchedulerConfig.model_validate(
                {**config.model_dump(), "poll_interval_seconds": poll_seconds}
            )
        except ValidationError:
            console.print(f"[red]Error:[/red] --poll must be positive, got {poll_seconds}")
            raise typer.Exit(2)
    scheduler = service.create_scheduler(config)

    if once:
        fired = await scheduler.tick()
        await scheduler.drain()
        await scheduler.close()
        console.print(f"Fired {len(fired)} schedule(s)")
        console.print(_schedules_table(await service.get_scheduled_tests(), "Scheduled Tests"))
        return

    console.print("\n[bold]Test Scheduler[/bold]")
    console.print(f"  Loaded {len(definitions.schedules)} schedules from {definitions_file}")
    console.print(f"  Poll interval: {config.poll_interval_seconds}s")
    console.print("[green]Starting scheduler...[/green]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    try:
        await scheduler.start()
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping scheduler...[/yellow]")
        scheduler.stop()
