"""
Template CLI commands.

Usage:
    python -m src.agenttest.cli.main templates list
    python -m src.agenttest.cli.main templates list --category security
    python -m src.agenttest.cli.main templates show "Prompt Injection Test"
"""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.agenttest.templates import (
    TemplateCategory,
    get_template_by_id,
    get_template_by_name,
    get_templates_by_category,
)

console = Console()

templates_app = typer.Typer(
    name="templates",
    help="Built-in test templates",
    no_args_is_help=True,
)


@templates_app.command("list")
def templates_list(
    category: TemplateCategory | None = typer.Option(
        None,
        "--category",
        "-c",
        help="Only show templates in this category",
    ),
) -> None:
    """List built-in templates."""
    templates = get_templates_by_category(category)
    if not templates:
        console.print("[yellow]No templates found[/yellow]")
        return

    table = Table(title="Test Templates", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Priority")
    table.add_column("Tags", style="dim")

    for template in templates:
        table.add_row(
            template.id,
            template.name,
            template.type.value,
            template.priority.value,
            ", ".join(template.tags),
        )
    console.print(table)


@templates_app.command("show")
def templates_show(
    template: str = typer.Argument(..., help="Template id or name"),
) -> None:
    """Show a template's inputs and validation rules."""
    found = get_template_by_id(template) or get_template_by_name(template)
    if found is None:
        console.print(f"[red]Error:[/red] Template not found: {template}")
        raise typer.Exit(1)

    rules = "\n".join(
        f"  • {rule.type.value} on {rule.target}" + (f": {rule.message}" if rule.message else "")
        for rule in found.validation_rules
    )
    console.print(
        Panel(
            f"{found.description or ''}\n\n"
            f"[bold]Inputs:[/bold]\n{json.dumps(found.inputs, indent=2)}\n\n"
            f"[bold]Validation rules:[/bold]\n{rules}\n\n"
            f"Timeout: {found.timeout_ms}ms, retries: {found.retry_count}",
            title=found.name,
        )
    )
