"""
Collaborator protocols for fleet-spine.

The orchestrator never talks to a concrete service. It is handed objects
that satisfy these structural contracts, which keeps the readiness and
polling state machines testable with in-memory fakes and lets the AWS
adapters in :mod:`fleetspine.aws.clients` be swapped for any other fleet
directory or command service.

Architecture:
    ::

        fleetspine.core.protocols
        ├── ProvisioningRegistry  — authoritative member count for a filter set
        ├── HeartbeatRegistry     — (member_id, ping_status) for a filter set
        ├── CommandService        — submit / list_invocations / get_dispatch
        └── ObjectStore           — bucket region, region pinning, list, get

Guardrails:
    Implementations raise the typed errors from :mod:`fleetspine.core.errors`
    (``RegistryQueryError``, ``DispatchSubmissionError``, ...) rather than
    leaking transport exceptions.

Tags:
    protocols, interfaces, structural-typing
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from fleetspine.command.models import (
        DispatchRecord,
        DispatchRequest,
        Filter,
        InvocationRecord,
    )


@runtime_checkable
class ProvisioningRegistry(Protocol):
    """Authoritative list of fleet members."""

    def describe(self, filters: Sequence[Filter]) -> int:
        """Return the number of members matching every filter."""
        ...


@runtime_checkable
class HeartbeatRegistry(Protocol):
    """Agents currently reporting liveness."""

    def describe(self, filters: Sequence[Filter]) -> list[tuple[str, str]]:
        """Return ``(member_id, ping_status)`` for each matching agent."""
        ...


@runtime_checkable
class CommandService(Protocol):
    """Remote command dispatch and invocation status."""

    def submit(self, request: DispatchRequest, delivery_timeout: int) -> str:
        """Submit the request and return its dispatch identifier."""
        ...

    def list_invocations(self, dispatch_id: str) -> list[InvocationRecord]:
        """Return the current per-target invocation records."""
        ...

    def get_dispatch(self, dispatch_id: str) -> DispatchRecord:
        """Return the dispatch's overall status and requested time."""
        ...


@runtime_checkable
class ObjectStore(Protocol):
    """Blob store holding captured command output."""

    def get_bucket_region(self, bucket: str) -> str:
        ...

    def for_region(self, region: str) -> ObjectStore:
        """Return a store client pinned to ``region``."""
        ...

    def list_keys(self, bucket: str, prefix: str, max_keys: int) -> list[str]:
        ...

    def get_object(self, bucket: str, key: str) -> bytes:
        ...


__all__ = [
    "ProvisioningRegistry",
    "HeartbeatRegistry",
    "CommandService",
    "ObjectStore",
]
