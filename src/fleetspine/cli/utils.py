"""
CLI utility helpers — consoles, option parsing and error rendering.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from fleetspine.core.errors import FleetSpineError, categorize_error

console = Console()
err_console = Console(stderr=True)


def _split_option(item: str, option: str, usage: str) -> tuple[str, str]:
    key, sep, raw = item.partition("=")
    if not sep or not key.strip():
        raise typer.BadParameter(f"expected {usage}, got {item!r}", param_hint=option)
    return key.strip(), raw


def parse_pairs(items: list[str], option: str) -> list[tuple[str, list[str]]]:
    """Parse repeated ``KEY=V1,V2`` options into ordered ``(key, values)`` pairs."""
    pairs: list[tuple[str, list[str]]] = []
    for item in items:
        key, raw = _split_option(item, option, "KEY=VALUE[,VALUE...]")
        values = [v.strip() for v in raw.split(",") if v.strip()]
        pairs.append((key, values))
    return pairs


def parse_params(items: list[str], option: str) -> list[tuple[str, list[str]]]:
    """Parse repeated ``NAME=VALUE`` options, one value per occurrence.

    Values are kept verbatim (commas included) and accumulate per name in
    the order given::

        -p commands='echo "a, b"' -p commands=uptime
        -> [("commands", ['echo "a, b"', "uptime"])]
    """
    params: dict[str, list[str]] = {}
    for item in items:
        name, value = _split_option(item, option, "NAME=VALUE")
        values = params.setdefault(name, [])
        if value:
            values.append(value)
    return list(params.items())


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _print_error(category: str, message: str) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({category}): {escape(message)}")


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Render errors in red and exit with status 1.

    fleet-spine errors carry their own category; local I/O and value errors
    are classified with :func:`categorize_error`.
    """
    try:
        yield
    except FleetSpineError as e:
        _print_error(e.category.value, e.message)
        raise typer.Exit(code=1) from e
    except (OSError, ValueError) as e:
        _print_error(categorize_error(e).value, str(e))
        raise typer.Exit(code=1) from e
