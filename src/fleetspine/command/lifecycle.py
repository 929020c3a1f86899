"""Declarative lifecycle for a remote command resource.

Exposes the orchestrator as create/read/update/delete operations over a
locally persisted state file, the shape infrastructure-as-code tooling
expects from a "command" resource:

    create  -> run the primary command, store id/status/requested_time
    read    -> refresh status/requested_time from the command service
    update  -> same as create; the new dispatch replaces the stored state
    delete  -> run the optional destroy command, then forget the state
    import  -> adopt an existing dispatch by id and store its state

Key Concepts:
    CommandSpec: The resource attributes. Mirrors the resource schema:
        ``parameters`` and ``targets`` are lists of ``{name|key, values}``
        blocks, ``output_location`` holds ``s3_bucket_name`` /
        ``s3_key_prefix``. Defaults: execution_timeout 3600, comment "".
    ResourceState: What is persisted after create/update/read.
    StateStore: One JSON file per resource id under ``state_dir``.
    CommandResource: The four lifecycle operations.

Tags:
    lifecycle, resource, crud, state
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from fleetspine.command.models import (
    DispatchRecord,
    DispatchRequest,
    OutputLocation,
    Target,
)
from fleetspine.command.orchestrator import CommandOrchestrator
from fleetspine.core.errors import RequestValidationError, StateCorruptError, StateNotFoundError
from fleetspine.core.logging import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Resource attributes
# ---------------------------------------------------------------------------


class ParameterSpec(BaseModel):
    name: str
    values: list[str]


class TargetSpec(BaseModel):
    key: str
    values: list[str]


class OutputLocationSpec(BaseModel):
    s3_bucket_name: str
    s3_key_prefix: str = ""


class DestroySpec(BaseModel):
    """Command run on delete against the same targets."""

    document_name: str
    parameters: list[ParameterSpec] = Field(default_factory=list)


class CommandSpec(BaseModel):
    """Attributes of a command resource."""

    document_name: str
    parameters: list[ParameterSpec] = Field(default_factory=list)
    targets: list[TargetSpec]
    execution_timeout: int = 3600
    comment: str = ""
    output_location: OutputLocationSpec | None = None
    destroy: DestroySpec | None = None

    def to_request(self) -> DispatchRequest:
        """Build the primary dispatch request."""
        return self._request(self.document_name, self.parameters)

    def to_destroy_request(self) -> DispatchRequest | None:
        """Build the destroy request, or None when no destroy command is set."""
        if self.destroy is None:
            return None
        return self._request(self.destroy.document_name, self.destroy.parameters)

    def _request(self, document_name: str, parameters: list[ParameterSpec]) -> DispatchRequest:
        location = None
        if self.output_location is not None and self.output_location.s3_bucket_name:
            location = OutputLocation(
                bucket=self.output_location.s3_bucket_name,
                key_prefix=self.output_location.s3_key_prefix,
            )
        try:
            return DispatchRequest(
                document_name=document_name,
                parameters={p.name: list(p.values) for p in parameters},
                targets=[Target(key=t.key, values=list(t.values)) for t in self.targets],
                execution_timeout=self.execution_timeout,
                comment=self.comment,
                output_location=location,
            )
        except ValidationError as exc:
            raise RequestValidationError(
                f"validation: invalid command resource: {exc}", cause=exc
            ).with_context(document_name=document_name) from exc


class ResourceState(BaseModel):
    """Persisted state of one command resource."""

    id: str
    status: str
    requested_time: str
    spec: CommandSpec


# ---------------------------------------------------------------------------
# State persistence
# ---------------------------------------------------------------------------


class StateStore:
    """JSON-file state store, one file per resource id.

    Resource ids become file names, so an id must be a single path
    component (no separators, not ``.`` or ``..``).
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = Path(state_dir)

    def _path(self, resource_id: str) -> Path:
        if (
            not resource_id
            or resource_id in (".", "..")
            or "/" in resource_id
            or "\\" in resource_id
        ):
            raise RequestValidationError(
                f"validation: invalid resource id {resource_id!r}"
            ).with_context(resource_id=resource_id)
        return self.state_dir / f"{resource_id}.json"

    def save(self, state: ResourceState) -> Path:
        path = self._path(state.id)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
        return path

    def load(self, resource_id: str) -> ResourceState:
        path = self._path(resource_id)
        if not path.exists():
            raise StateNotFoundError(resource_id)
        try:
            return ResourceState.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as exc:
            raise StateCorruptError(resource_id, str(exc), cause=exc) from exc

    def delete(self, resource_id: str) -> bool:
        path = self._path(resource_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_ids(self) -> list[str]:
        if not self.state_dir.exists():
            return []
        return sorted(p.stem for p in self.state_dir.glob("*.json"))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class CommandResource:
    """Create/read/update/delete for a remote command resource.

    Parameters
    ----------
    orchestrator
        Runs commands and looks up dispatch status.
    store
        Persists resource state between invocations.
    """

    def __init__(self, orchestrator: CommandOrchestrator, store: StateStore) -> None:
        self.orchestrator = orchestrator
        self.store = store

    def create(self, spec: CommandSpec) -> ResourceState:
        record = self.orchestrator.run(spec.to_request())
        state = self._state(record, spec)
        self.store.save(state)
        logger.info("resource.created", id=state.id, status=state.status)
        return state

    def read(self, resource_id: str) -> ResourceState:
        state = self.store.load(resource_id)
        record = self.orchestrator.get_dispatch(resource_id)
        refreshed = state.model_copy(
            update={"status": record.status, "requested_time": record.requested_time}
        )
        self.store.save(refreshed)
        return refreshed

    def import_(self, resource_id: str, spec: CommandSpec) -> ResourceState:
        """Adopt an existing dispatch by id; nothing is run.

        The id is looked up first so an unknown dispatch is never recorded.
        """
        spec.to_request()  # rejects invalid attributes before any lookup
        record = self.orchestrator.get_dispatch(resource_id)
        state = self._state(record, spec)
        self.store.save(state)
        logger.info("resource.imported", id=state.id, status=state.status)
        return state

    def update(self, resource_id: str, spec: CommandSpec) -> ResourceState:
        state = self.create(spec)
        if state.id != resource_id:
            self.store.delete(resource_id)
        return state

    def delete(self, resource_id: str) -> DispatchRecord | None:
        """Run the destroy command if configured, then forget the resource.

        Returns the destroy dispatch record, or None when there was none.
        """
        state = self.store.load(resource_id)
        record = None

        destroy = state.spec.to_destroy_request()
        if destroy is not None:
            logger.info("resource.destroying", id=resource_id, document_name=destroy.document_name)
            record = self.orchestrator.run(destroy)

        self.store.delete(resource_id)
        logger.info("resource.deleted", id=resource_id)
        return record

    @staticmethod
    def _state(record: DispatchRecord, spec: CommandSpec) -> ResourceState:
        return ResourceState(
            id=record.dispatch_id,
            status=record.status,
            requested_time=record.requested_time,
            spec=spec,
        )


__all__ = [
    "ParameterSpec",
    "TargetSpec",
    "OutputLocationSpec",
    "DestroySpec",
    "CommandSpec",
    "ResourceState",
    "StateStore",
    "CommandResource",
]
