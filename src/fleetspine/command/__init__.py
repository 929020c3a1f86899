"""Command dispatch -- readiness gating, dispatch, polling, output, lifecycle.

Key Concepts:
    CommandOrchestrator: ``run(request) -> DispatchRecord``.
    ReadinessWaiter: Provisioned vs. Online convergence loop.
    InvocationPoller: First-failure-wins invocation loop.
    OutputRetriever: Lazy ``CommandOutput`` sequence from the object store.
    CommandResource: create/read/update/delete over local state.

Example::

    from fleetspine.aws.clients import AwsClients
    from fleetspine.command import CommandOrchestrator, DispatchRequest, Target

    settings = get_settings()
    orchestrator = CommandOrchestrator(AwsClients.from_settings(settings), settings)
    record = orchestrator.run(
        DispatchRequest(
            document_name="AWS-RunShellScript",
            parameters={"commands": ["uptime"]},
            targets=[Target(key="tag:Role", values=["web"])],
        )
    )
"""

from fleetspine.command.lifecycle import CommandResource, CommandSpec, ResourceState, StateStore
from fleetspine.command.models import (
    CommandOutput,
    CommandStatus,
    DispatchRecord,
    DispatchRequest,
    FleetSnapshot,
    InvocationRecord,
    OutputLocation,
    PollOutcome,
    PollState,
    Target,
)
from fleetspine.command.orchestrator import CommandOrchestrator, FleetClients
from fleetspine.command.output import OutputRetriever
from fleetspine.command.poller import InvocationPoller
from fleetspine.command.readiness import ReadinessWaiter

__all__ = [
    "CommandOrchestrator",
    "FleetClients",
    "ReadinessWaiter",
    "InvocationPoller",
    "OutputRetriever",
    "CommandResource",
    "CommandSpec",
    "ResourceState",
    "StateStore",
    "CommandOutput",
    "CommandStatus",
    "DispatchRecord",
    "DispatchRequest",
    "FleetSnapshot",
    "InvocationRecord",
    "OutputLocation",
    "PollOutcome",
    "PollState",
    "Target",
]
