"""
CLI: ``fleetspine command`` — run and manage remote command resources.

Usage::

    fleetspine command run -d AWS-RunShellScript \\
        -t tag:Role=web -p commands="uptime" --bucket my-logs --prefix runs
    fleetspine command import <command-id> -d AWS-RunShellScript -t tag:Role=web
    fleetspine command show <command-id> --refresh
    fleetspine command list
    fleetspine command destroy <command-id>

``--target`` takes comma-separated values (``-t InstanceIds=i-1,i-2``).
``--param`` takes one value per occurrence, commas included; repeat it to
pass several values (``-p commands='echo a, b' -p commands=uptime``).
"""

from __future__ import annotations

import typer
from rich.table import Table

from fleetspine.cli.utils import console, exit_on_error, parse_pairs, parse_params, print_json
from fleetspine.command.lifecycle import (
    CommandResource,
    CommandSpec,
    DestroySpec,
    OutputLocationSpec,
    ParameterSpec,
    ResourceState,
    StateStore,
    TargetSpec,
)
from fleetspine.core.settings import FleetSettings, get_settings

app = typer.Typer(no_args_is_help=True)


def build_resource(settings: FleetSettings) -> CommandResource:
    """Wire the AWS-backed orchestrator and the local state store."""
    from fleetspine.aws.clients import AwsClients
    from fleetspine.command.orchestrator import CommandOrchestrator

    orchestrator = CommandOrchestrator(AwsClients.from_settings(settings), settings)
    return CommandResource(orchestrator, StateStore(settings.state_dir))


def _build_spec(
    document: str,
    target: list[str],
    param: list[str],
    timeout: int,
    comment: str,
    bucket: str | None,
    prefix: str,
    destroy_document: str | None,
    destroy_param: list[str],
) -> CommandSpec:
    destroy = None
    if destroy_document:
        destroy = DestroySpec(
            document_name=destroy_document,
            parameters=[
                ParameterSpec(name=n, values=v) for n, v in parse_params(destroy_param, "--destroy-param")
            ],
        )

    return CommandSpec(
        document_name=document,
        parameters=[ParameterSpec(name=n, values=v) for n, v in parse_params(param, "--param")],
        targets=[TargetSpec(key=k, values=v) for k, v in parse_pairs(target, "--target")],
        execution_timeout=timeout,
        comment=comment,
        output_location=OutputLocationSpec(s3_bucket_name=bucket, s3_key_prefix=prefix) if bucket else None,
        destroy=destroy,
    )


def _print_state(state: ResourceState) -> None:
    table = Table(title=f"command {state.id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("status", state.status)
    table.add_row("requested_time", state.requested_time)
    table.add_row("document_name", state.spec.document_name)
    table.add_row("targets", "; ".join(f"{t.key}={','.join(t.values)}" for t in state.spec.targets))
    table.add_row("execution_timeout", str(state.spec.execution_timeout))
    if state.spec.destroy is not None:
        table.add_row("destroy", state.spec.destroy.document_name)
    console.print(table)


def _emit(state: ResourceState, json_out: bool) -> None:
    if json_out:
        print_json(state.model_dump(mode="json"))
    else:
        _print_state(state)


# ── run / import ─────────────────────────────────────────────────────────


@app.command("run")
def run_command(
    document: str = typer.Option(..., "--document", "-d", help="Command document name."),
    target: list[str] = typer.Option(
        ..., "--target", "-t", help="Target selector KEY=V1,V2. Repeatable.",
    ),
    param: list[str] = typer.Option(
        [], "--param", "-p", help="Parameter NAME=VALUE, one value each. Repeatable.",
    ),
    timeout: int = typer.Option(3600, "--timeout", help="Execution timeout in seconds."),
    comment: str = typer.Option("", "--comment", "-c", help="Free-text comment."),
    bucket: str | None = typer.Option(None, "--bucket", help="Output bucket name."),
    prefix: str = typer.Option("", "--prefix", help="Output key prefix."),
    destroy_document: str | None = typer.Option(
        None, "--destroy-document", help="Document run when the resource is destroyed.",
    ),
    destroy_param: list[str] = typer.Option(
        [], "--destroy-param", help="Destroy parameter NAME=VALUE. Repeatable.",
    ),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Wait for the fleet, dispatch a command, and record the result."""
    spec = _build_spec(
        document, target, param, timeout, comment, bucket, prefix, destroy_document, destroy_param
    )

    with exit_on_error():
        state = build_resource(get_settings()).create(spec)

    _emit(state, json_out)


@app.command("import")
def import_command(
    command_id: str = typer.Argument(..., help="Existing command (dispatch) id."),
    document: str = typer.Option(..., "--document", "-d", help="Command document name."),
    target: list[str] = typer.Option(
        ..., "--target", "-t", help="Target selector KEY=V1,V2. Repeatable.",
    ),
    param: list[str] = typer.Option(
        [], "--param", "-p", help="Parameter NAME=VALUE, one value each. Repeatable.",
    ),
    timeout: int = typer.Option(3600, "--timeout", help="Execution timeout in seconds."),
    comment: str = typer.Option("", "--comment", "-c", help="Free-text comment."),
    bucket: str | None = typer.Option(None, "--bucket", help="Output bucket name."),
    prefix: str = typer.Option("", "--prefix", help="Output key prefix."),
    destroy_document: str | None = typer.Option(
        None, "--destroy-document", help="Document run when the resource is destroyed.",
    ),
    destroy_param: list[str] = typer.Option(
        [], "--destroy-param", help="Destroy parameter NAME=VALUE. Repeatable.",
    ),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Adopt an existing dispatch by id without running anything."""
    spec = _build_spec(
        document, target, param, timeout, comment, bucket, prefix, destroy_document, destroy_param
    )

    with exit_on_error():
        state = build_resource(get_settings()).import_(command_id, spec)

    _emit(state, json_out)


# ── show / list ──────────────────────────────────────────────────────────


@app.command("show")
def show_command(
    command_id: str = typer.Argument(..., help="Command (dispatch) id."),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Refresh status from the service."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Show a recorded command resource."""
    with exit_on_error():
        settings = get_settings()
        if refresh:
            state = build_resource(settings).read(command_id)
        else:
            state = StateStore(settings.state_dir).load(command_id)

    _emit(state, json_out)


@app.command("list")
def list_commands() -> None:
    """List recorded command resources."""
    with exit_on_error():
        store = StateStore(get_settings().state_dir)
        states = [store.load(command_id) for command_id in store.list_ids()]

    if not states:
        console.print("[dim]No recorded commands.[/dim]")
        return

    table = Table(title="commands")
    table.add_column("Id")
    table.add_column("Status")
    table.add_column("Requested")
    table.add_column("Document")
    for state in states:
        table.add_row(state.id, state.status, state.requested_time, state.spec.document_name)
    console.print(table)


# ── destroy ──────────────────────────────────────────────────────────────


@app.command("destroy")
def destroy_command(
    command_id: str = typer.Argument(..., help="Command (dispatch) id."),
) -> None:
    """Run the destroy command, if any, and forget the resource."""
    with exit_on_error():
        record = build_resource(get_settings()).delete(command_id)

    if record is None:
        console.print(f"[green]✓[/green] forgot {command_id} (no destroy command)")
    else:
        console.print(f"[green]✓[/green] destroyed {command_id} via {record.dispatch_id} ({record.status})")
