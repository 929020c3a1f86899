"""
Root Typer application for the fleet-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="fleetspine",
    help="fleet-spine — readiness-gated remote command orchestration.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from fleetspine import __version__

        typer.echo(f"fleet-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """fleet-spine CLI — dispatch commands to a fleet and track them."""
    from fleetspine.cli.utils import exit_on_error
    from fleetspine.core.logging import configure_logging
    from fleetspine.core.settings import get_settings

    with exit_on_error():
        settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_format == "json",
    )


from fleetspine.cli.command import app as command_app  # noqa: E402
from fleetspine.cli.config import app as config_app  # noqa: E402

app.add_typer(command_app, name="command", help="Run and manage remote commands.")
app.add_typer(config_app, name="config", help="Configuration inspection.")
