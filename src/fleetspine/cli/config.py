"""
CLI: ``fleetspine config`` — configuration inspection.
"""

from __future__ import annotations

import typer
from rich.table import Table

from fleetspine.cli.utils import console, exit_on_error

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show current configuration."""
    from fleetspine.core.settings import get_settings

    with exit_on_error():
        settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"FLEETSPINE_{key.upper()}={value}")
        return

    table = Table(title="fleet-spine settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, str(value))
    console.print(table)
