"""
Agent Test Harness CLI

Entry point for the agenttest command-line interface.

Usage:
    python -m src.agenttest.cli.main run tests.yaml --agent support-bot --suite smoke
    python -m src.agenttest.cli.main templates list
    python -m src.agenttest.cli.main schedule start tests.yaml
    python -m src.agenttest.cli.main --help
"""

import atexit

import typer

from src.agenttest.cli.commands.run import run_command
from src.agenttest.cli.commands.schedule import schedule_app
from src.agenttest.cli.commands.templates import templates_app
from src.agenttest.common.logging import configure_sanitized_logging
from src.agenttest.common.telemetry import TelemetryConfig, init_telemetry, shutdown_telemetry
from src.agenttest.config import HarnessSettings

# Initialize OpenTelemetry at CLI startup
init_telemetry(TelemetryConfig(service_name="agenttest-cli"))
atexit.register(shutdown_telemetry)

app = typer.Typer(
    name="agenttest",
    help="Agent test harness - run, schedule and analyse tests against AI agents",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: str = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (defaults to AGENTTEST_LOG_LEVEL)",
    ),
) -> None:
    configure_sanitized_logging(log_level or HarnessSettings().log_level)


# Register commands
app.command(name="run", help="Run a test case or suite from a definitions file")(run_command)

# Register subcommand groups
app.add_typer(templates_app, name="templates", help="Built-in test templates")
app.add_typer(schedule_app, name="schedule", help="Scheduled test commands")


@app.command()
def version() -> None:
    """Show version information."""
    from src import __version__

    typer.echo(f"agenttest version {__version__}")


if __name__ == "__main__":
    app()
