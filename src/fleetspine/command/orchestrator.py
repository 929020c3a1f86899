"""Readiness-gated command orchestration.

:class:`CommandOrchestrator` runs one remote command against one target
selector from start to finish and returns a :class:`DispatchRecord` or
raises a typed error naming the stage that failed.

Sequence::

    ┌────────────────────┐
    │ 1. build filters   │  member-id alias → provisioning id filter,
    │                    │  + lifecycle state ∈ {pending, running}
    ├────────────────────┤
    │ 2. readiness wait  │  settings.readiness_timeout_seconds
    │                    │  ReadinessTimeoutError is fatal (configurable)
    ├────────────────────┤
    │ 3. submit          │  DispatchSubmissionError → no invocation exists
    ├────────────────────┤
    │ 4. poll            │  request.execution_timeout
    ├────────────────────┤
    │ 5. output          │  always attempted; failures only logged
    ├────────────────────┤
    │ 6. classify poll   │  InvocationFailedError / PollTimeoutError
    ├────────────────────┤
    │ 7. status lookup   │  → DispatchRecord
    └────────────────────┘

Wall-clock bound: readiness timeout + execution timeout + output
retrieval. Callers with an outer deadline should size it as
``execution_timeout`` plus a grace margin covering the readiness budget.

Concurrency:
    Each ``run()`` is a single blocking thread of control. Orchestrators
    hold no mutable state between runs, so one instance (and its client
    handles) may serve several runs in parallel threads.

Related Modules:
    - :mod:`fleetspine.command.readiness` — step 2
    - :mod:`fleetspine.command.poller` — step 4
    - :mod:`fleetspine.command.output` — step 5
    - :mod:`fleetspine.command.lifecycle` — create/read/update/delete on top

Tags:
    orchestrator, dispatch, readiness, polling, remote-command
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from fleetspine.command.filters import heartbeat_filters, provisioning_filters
from fleetspine.command.models import (
    CommandOutput,
    DispatchRecord,
    DispatchRequest,
    FleetSnapshot,
    OutputLocation,
    PollState,
)
from fleetspine.command.output import OutputRetriever
from fleetspine.command.poller import InvocationPoller
from fleetspine.command.readiness import ReadinessWaiter
from fleetspine.core.errors import (
    DispatchSubmissionError,
    ErrorCategory,
    FleetSpineError,
    InvocationFailedError,
    OutputRetrievalError,
    PollTimeoutError,
    ReadinessTimeoutError,
)
from fleetspine.core.logging import LogContext, bind_context, get_logger, unbind_context
from fleetspine.core.protocols import (
    CommandService,
    HeartbeatRegistry,
    ObjectStore,
    ProvisioningRegistry,
)
from fleetspine.core.settings import FleetSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class FleetClients:
    """The four stateless collaborator handles one orchestrator needs."""

    provisioning: ProvisioningRegistry
    heartbeat: HeartbeatRegistry
    commands: CommandService
    store: ObjectStore


class CommandOrchestrator:
    """Runs a remote command once the fleet is ready.

    Parameters
    ----------
    clients
        Registry, command and object store handles.
    settings
        Timing constants and policies. Defaults to ``FleetSettings()``.
    sleep
        Sleep function shared by both polling loops.
    output_sink
        Receives each captured output object. Defaults to logging it.

    Example::

        orchestrator = CommandOrchestrator(AwsClients.from_settings(settings), settings)
        record = orchestrator.run(request)
        print(record.dispatch_id, record.status)
    """

    def __init__(
        self,
        clients: FleetClients,
        settings: FleetSettings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        output_sink: Callable[[CommandOutput], None] | None = None,
    ) -> None:
        self.clients = clients
        self.settings = settings or FleetSettings()
        self.readiness = ReadinessWaiter(
            clients.provisioning,
            clients.heartbeat,
            poll_interval=self.settings.poll_interval_seconds,
            sleep=sleep,
        )
        self.poller = InvocationPoller(
            clients.commands,
            poll_interval=self.settings.poll_interval_seconds,
            sleep=sleep,
        )
        self.output = OutputRetriever(clients.store, max_keys=self.settings.output_max_keys)
        self.output_sink = output_sink or _log_output

    def run(self, request: DispatchRequest) -> DispatchRecord:
        """Wait for the fleet, dispatch, poll, collect output, return the final record."""
        with LogContext(document_name=request.document_name):
            snapshot = self._await_fleet(request)
            dispatch_id = self._submit(request)

            bind_context(dispatch_id=dispatch_id)
            try:
                return self._complete(request, dispatch_id, snapshot)
            finally:
                unbind_context("dispatch_id")

    def get_dispatch(self, dispatch_id: str) -> DispatchRecord:
        """Look up a dispatch's current status and requested time."""
        try:
            return self.clients.commands.get_dispatch(dispatch_id)
        except FleetSpineError:
            raise
        except Exception as e:
            logger.error("command.status.failed", dispatch_id=dispatch_id, error=str(e))
            raise FleetSpineError(
                f"status: looking up command {dispatch_id} failed: {e}",
                category=ErrorCategory.DISPATCH,
                cause=e,
            ).with_context(stage="status", dispatch_id=dispatch_id) from e

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _await_fleet(self, request: DispatchRequest) -> FleetSnapshot | None:
        try:
            return self.readiness.wait(
                provisioning_filters(request.targets),
                heartbeat_filters(request.targets),
                self.settings.readiness_timeout_seconds,
            )
        except ReadinessTimeoutError as e:
            if self.settings.fail_on_readiness_timeout:
                logger.error("command.readiness.failed", error=str(e))
                raise
            logger.warning("command.readiness.ignored", error=str(e))
            return None

    def _submit(self, request: DispatchRequest) -> str:
        try:
            dispatch_id = self.clients.commands.submit(
                request, self.settings.delivery_timeout_seconds
            )
        except DispatchSubmissionError as e:
            logger.error("command.dispatch.failed", error=str(e))
            raise
        except Exception as e:
            logger.error("command.dispatch.failed", error=str(e))
            raise DispatchSubmissionError(
                f"dispatch: sending command {request.document_name} failed: {e}", cause=e
            ).with_context(document_name=request.document_name) from e

        logger.info("command.dispatched", dispatch_id=dispatch_id)
        return dispatch_id

    def _complete(
        self,
        request: DispatchRequest,
        dispatch_id: str,
        snapshot: FleetSnapshot | None,
    ) -> DispatchRecord:
        expect_invocations = not (
            self.settings.allow_empty_targets
            and snapshot is not None
            and snapshot.provisioned_count == 0
        )

        try:
            outcome = self.poller.poll(
                dispatch_id,
                request.execution_timeout,
                expect_invocations=expect_invocations,
            )
        finally:
            self._collect_output(request.output_location, dispatch_id)

        if outcome.state is PollState.FAILED:
            error = InvocationFailedError(
                outcome.target_id or "unknown",
                outcome.status or "Failed",
                dispatch_id=dispatch_id,
            )
            logger.error("command.failed", **error.to_dict())
            raise error

        if outcome.state is PollState.TIMED_OUT:
            error = PollTimeoutError(request.execution_timeout, dispatch_id=dispatch_id)
            logger.error("command.failed", **error.to_dict())
            raise error

        record = self.get_dispatch(dispatch_id)
        logger.info("command.completed", status=record.status, requested_time=record.requested_time)
        return record

    def _collect_output(self, location: OutputLocation | None, dispatch_id: str) -> None:
        try:
            for item in self.output.collect(location, dispatch_id):
                self.output_sink(item)
        except OutputRetrievalError as e:
            logger.error("command.output.failed", **e.to_dict())
        except Exception as e:
            # a failing sink must not change the run's outcome either
            logger.error("command.output.failed", error=str(e))


def _log_output(item: CommandOutput) -> None:
    logger.info("command.output", key=item.key, output=f"\n*** {item.key} ***\n{item.text}")


__all__ = ["CommandOrchestrator", "FleetClients"]
