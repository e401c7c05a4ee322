"""
Run command - Execute a test case or suite from a definitions file.

Usage:
    # Single test case against an HTTP agent
    python -m src.agenttest.cli.main run tests.yaml --agent support-bot --test-case greets-user \
        --endpoint http://localhost:8080

    # Whole suite against the echo agent (dry run)
    python -m src.agenttest.cli.main run tests.yaml --agent support-bot --suite smoke --echo
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from src.agenttest.cli.runtime import build_service
from src.agenttest.contracts import TestResult, TestResultStatus, TestRun
from src.agenttest.exceptions import HarnessError
from src.agenttest.execution import ExecutionOptions
from src.agenttest.loader import install_definitions, load_definitions

logger = logging.getLogger(__name__)

console = Console()

_STATUS_STYLE = {
    TestResultStatus.PASSED: "[green]passed[/green]",
    TestResultStatus.FAILED: "[red]failed[/red]",
    TestResultStatus.ERROR: "[red]error[/red]",
    TestResultStatus.SKIPPED: "[yellow]skipped[/yellow]",
}


def run_command(
    definitions_file: Path = typer.Argument(
        ...,
        help="Path to the YAML definitions file",
    ),
    agent_id: str = typer.Option(
        ...,
        "--agent",
        "-a",
        help="Agent to test",
    ),
    test_case_id: str | None = typer.Option(
        None,
        "--test-case",
        "-t",
        help="Test case id to run",
    ),
    suite_id: str | None = typer.Option(
        None,
        "--suite",
        "-s",
        help="Test suite id to run",
    ),
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        "-e",
        help="Agent HTTP base URL (defaults to AGENTTEST_AGENT_BASE_URL)",
    ),
    echo: bool = typer.Option(
        False,
        "--echo",
        help="Use the echo agent instead of a real endpoint",
    ),
    timeout_ms: int | None = typer.Option(
        None,
        "--timeout-ms",
        help="Override the test case timeout (single test case only)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show validation details and agent outputs",
    ),
) -> None:
    """
    Run a test case or a suite against an agent.

    Exits with status 1 when any test fails or errors.
    """
    if (test_case_id is None) == (suite_id is None):
        console.print("[red]Error:[/red] Provide exactly one of --test-case or --suite")
        raise typer.Exit(2)

    if not definitions_file.exists():
        console.print(f"[red]Error:[/red] File not found: {definitions_file}")
        raise typer.Exit(2)

    ok = asyncio.run(
        _run_async(
            definitions_file, agent_id, test_case_id, suite_id, endpoint, echo, timeout_ms, verbose
        )
    )
    if not ok:
        raise typer.Exit(1)


async def _run_async(
    definitions_file: Path,
    agent_id: str,
    test_case_id: str | None,
    suite_id: str | None,
    endpoint: str | None,
    echo: bool,
    timeout_ms: int | None,
    verbose: bool,
) -> bool:
    """Async implementation of run command. Returns True when nothing failed."""
    try:
        definitions = load_definitions(definitions_file)
        service = build_service(endpoint, echo)
        await install_definitions(service, definitions)

        if test_case_id is not None:
            options = ExecutionOptions(timeout_ms=timeout_ms) if timeout_ms else None
            result = await service.execute_test(agent_id, test_case_id, options, notify=False)
            _display_results([result], verbose)
            return result.status == TestResultStatus.PASSED

        if suite_id is None:
            console.print("[red]Error:[/red] Specify a test case or a suite to run")
            raise typer.Exit(2)

        with console.status(f"Running suite {suite_id}..."):
            run = await service.execute_test_suite(agent_id, suite_id, notify=False)
        _display_run(run, verbose)
        return run.summary.failed == 0 and run.summary.error == 0

    except HarnessError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)


def _display_run(run: TestRun, verbose: bool) -> None:
    summary = run.summary
    console.print(f"\n[bold]Run {run.id}[/bold] ({run.status.value})")
    _display_results(list(run.executions), verbose)
    console.print(
        f"\n[bold]Summary:[/bold] {summary.passed}/{summary.total} passed "
        f"({summary.success_rate:.1f}%), {summary.failed} failed, "
        f"{summary.error} errors, {summary.skipped} skipped"
    )
    if summary.avg_response_time_ms is not None:
        console.print(f"  Avg response time: {summary.avg_response_time_ms:.0f}ms")
    if summary.total_cost_usd is not None:
        console.print(f"  Total cost: ${summary.total_cost_usd:.4f}")


def _display_results(results: list[TestResult], verbose: bool) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Test Case")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Details")

    for result in results:
        failures = [o.message or "" for o in result.validation_results if not o.passed]
        details = result.error or "; ".join(failures)
        table.add_row(
            result.test_case_name or result.test_case_id,
            _STATUS_STYLE[result.status],
            f"{result.duration_ms:.0f}ms",
            str(result.attempts),
            details,
        )
    console.print(table)

    for result in results:
        for warning in result.metadata.get("warnings", []):
            console.print(f"[yellow]Warning ({result.test_case_id}):[/yellow] {warning}")

    if verbose:
        for result in results:
            console.print(f"\n[bold]{result.test_case_name or result.test_case_id}[/bold]")
            for outcome in result.validation_results:
                mark = "[green]✓[/green]" if outcome.passed else "[red]✗[/red]"
                console.print(
                    f"  {mark} {outcome.rule.type.value} {outcome.rule.target}: "
                    f"{outcome.message or 'ok'}"
                )
            console.print(f"  Outputs: {result.actual_outputs}")
