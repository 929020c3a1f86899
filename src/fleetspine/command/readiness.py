"""Fleet readiness gating.

Polls two independently maintained views of the fleet until they agree:
the provisioning registry (how many members exist and are pending or
running) and the heartbeat registry (how many agents report Online).
Dispatching before they agree would send the command to a subset of the
fleet, and the command service silently skips members whose agent has not
registered yet.

Key Concepts:
    ReadinessWaiter: ``wait()`` returns the converged FleetSnapshot or
        raises ReadinessTimeoutError after the iteration budget.
    Iteration budget: ``ceil(timeout_seconds / poll_interval)``, at least one.

Architecture Decisions:
    - Fixed-interval sleep, not backoff: ticks line up with the registries'
      own refresh cadence.
    - Registry errors are not retried: the loop only retries "not yet
      converged", never a failed query.
    - Zero provisioned and zero live members converges immediately: a
      selector that matched nothing is ready by definition.
    - ``sleep`` is injected so tests run without blocking.

Related Modules:
    - :mod:`fleetspine.command.filters` — builds the two filter sets
    - :mod:`fleetspine.command.orchestrator` — decides whether a timeout is fatal

Tags:
    readiness, polling, heartbeat, provisioning, convergence
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Sequence

from fleetspine.command.models import Filter, FleetSnapshot, PingStatus
from fleetspine.core.errors import FleetSpineError, ReadinessTimeoutError, RegistryQueryError
from fleetspine.core.logging import get_logger
from fleetspine.core.protocols import HeartbeatRegistry, ProvisioningRegistry

logger = get_logger(__name__)


def iteration_budget(timeout_seconds: float, poll_interval: float) -> int:
    """Number of ticks a loop may run within ``timeout_seconds``."""
    return max(1, math.ceil(timeout_seconds / poll_interval))


class ReadinessWaiter:
    """Waits until every provisioned fleet member reports Online.

    Parameters
    ----------
    provisioning
        Registry returning the number of provisioned members.
    heartbeat
        Registry returning ``(member_id, ping_status)`` pairs.
    poll_interval
        Seconds between ticks.
    sleep
        Sleep function (``time.sleep`` by default).
    """

    def __init__(
        self,
        provisioning: ProvisioningRegistry,
        heartbeat: HeartbeatRegistry,
        poll_interval: float = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.provisioning = provisioning
        self.heartbeat = heartbeat
        self.poll_interval = poll_interval
        self._sleep = sleep

    def wait(
        self,
        provisioning_filters: Sequence[Filter],
        heartbeat_filters: Sequence[Filter],
        timeout_seconds: float,
    ) -> FleetSnapshot:
        """Block until the fleet converges.

        Returns
        -------
        FleetSnapshot
            The snapshot observed on the converging tick.

        Raises
        ------
        RegistryQueryError
            A registry query failed (not retried).
        ReadinessTimeoutError
            The fleet did not converge within the budget.
        """
        iterations = iteration_budget(timeout_seconds, self.poll_interval)
        snapshot: FleetSnapshot | None = None

        for i in range(1, iterations + 1):
            snapshot = self._tick(provisioning_filters, heartbeat_filters)

            if snapshot is not None and snapshot.converged:
                logger.info(
                    "fleet.readiness.converged",
                    online=snapshot.live_count,
                    provisioned=snapshot.provisioned_count,
                    iteration=i,
                )
                return snapshot

            if i < iterations:
                self._sleep(self.poll_interval)

        logger.error(
            "fleet.readiness.timeout",
            timeout_seconds=timeout_seconds,
            iterations=iterations,
        )
        raise ReadinessTimeoutError(timeout_seconds, iterations, snapshot)

    def _tick(
        self,
        provisioning_filters: Sequence[Filter],
        heartbeat_filters: Sequence[Filter],
    ) -> FleetSnapshot | None:
        """Query both registries once.

        Returns None while the heartbeat registry has nothing to report for
        a non-empty fleet, since there is nothing to compare yet.
        """
        provisioned = self._query("provisioning", self.provisioning.describe, provisioning_filters)
        agents = self._query("heartbeat", self.heartbeat.describe, heartbeat_filters)

        if not agents and provisioned > 0:
            logger.info("fleet.readiness.no_heartbeats", provisioned=provisioned)
            return None

        online = sum(1 for _, ping in agents if ping == PingStatus.ONLINE.value)
        snapshot = FleetSnapshot(provisioned_count=provisioned, live_count=online)
        logger.info(
            "fleet.readiness.tick",
            online=online,
            provisioned=provisioned,
            message=f"{online} of {provisioned} target instances are online.",
        )
        return snapshot

    @staticmethod
    def _query(registry: str, describe: Callable, filters: Sequence[Filter]):
        try:
            return describe(filters)
        except FleetSpineError as e:
            logger.error("fleet.registry.failed", registry=registry, error=str(e))
            raise
        except Exception as e:
            logger.error("fleet.registry.failed", registry=registry, error=str(e))
            raise RegistryQueryError(
                f"readiness: {registry} registry query failed: {e}", cause=e
            ).with_context(registry=registry) from e


__all__ = ["ReadinessWaiter", "iteration_budget"]
