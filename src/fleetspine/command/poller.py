"""Invocation polling.

Tracks one dispatch until every target's invocation is terminal. The first
target observed in a hard-failure state ends the poll: a single failed
target usually invalidates the command's purpose, so waiting for the rest
only adds latency.

Classification per record:
    Pending, InProgress          -> still running
    Cancelled, TimedOut, Failed  -> hard failure (stop now)
    anything else                -> terminal success for that target

An empty invocation list means the service has not materialised the
invocations yet; the poller sleeps and retries rather than calling that
success, unless the caller says no invocations are expected.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from fleetspine.command.models import PollOutcome, PollState, is_failure, is_pending
from fleetspine.command.readiness import iteration_budget
from fleetspine.core.errors import FleetSpineError, InvocationQueryError
from fleetspine.core.logging import get_logger
from fleetspine.core.protocols import CommandService

logger = get_logger(__name__)


class InvocationPoller:
    """Polls a dispatch's invocations until they are all terminal.

    Parameters
    ----------
    commands
        Command service used for ``list_invocations``.
    poll_interval
        Seconds between polls.
    sleep
        Sleep function (``time.sleep`` by default).
    """

    def __init__(
        self,
        commands: CommandService,
        poll_interval: float = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.commands = commands
        self.poll_interval = poll_interval
        self._sleep = sleep

    def poll(
        self,
        dispatch_id: str,
        timeout_seconds: float,
        *,
        expect_invocations: bool = True,
    ) -> PollOutcome:
        """Poll until success, first hard failure, or the iteration budget runs out.

        Raises
        ------
        InvocationQueryError
            Listing invocations failed.
        """
        iterations = iteration_budget(timeout_seconds, self.poll_interval)

        for i in range(1, iterations + 1):
            records = self._list(dispatch_id)

            if not records:
                if not expect_invocations:
                    logger.info("command.poll.no_targets", iteration=i)
                    return PollOutcome(state=PollState.SUCCEEDED, iterations=i)
                logger.debug("command.poll.not_materialized", iteration=i)
            else:
                pending = 0
                for record in records:
                    if is_pending(record.status):
                        pending += 1
                    elif is_failure(record.status):
                        logger.info(
                            "command.invocation.failed",
                            target_id=record.target_id,
                            status=record.status,
                            message=f"Command {dispatch_id} invocation {record.status} "
                            f"on instance {record.target_id}.",
                        )
                        return PollOutcome(
                            state=PollState.FAILED,
                            iterations=i,
                            status=record.status,
                            target_id=record.target_id,
                        )

                logger.info(
                    "command.poll.tick",
                    pending=pending,
                    total=len(records),
                    iteration=i,
                )
                if pending == 0:
                    return PollOutcome(state=PollState.SUCCEEDED, iterations=i)

            if i < iterations:
                self._sleep(self.poll_interval)

        logger.error("command.poll.timeout", timeout_seconds=timeout_seconds, iterations=iterations)
        return PollOutcome(state=PollState.TIMED_OUT, iterations=iterations)

    def _list(self, dispatch_id: str):
        try:
            return self.commands.list_invocations(dispatch_id)
        except FleetSpineError:
            raise
        except Exception as e:
            logger.error("command.poll.query_failed", error=str(e))
            raise InvocationQueryError(
                f"poll: listing invocations of {dispatch_id} failed: {e}", cause=e
            ).with_context(dispatch_id=dispatch_id) from e


__all__ = ["InvocationPoller"]
