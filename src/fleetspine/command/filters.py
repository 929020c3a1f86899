"""Target selector translation.

A selector is expressed once, in the command service's vocabulary. The
provisioning registry needs its own filter names for two things only: the
reserved member-id alias and the implicit lifecycle-state restriction.
Every other key passes through unchanged to both registries.
"""

from __future__ import annotations

from collections.abc import Sequence

from fleetspine.command.models import Filter, Target

PROVISIONING_ID_FILTER = "instance-id"
LIFECYCLE_STATE_FILTER = "instance-state-name"
ACTIVE_LIFECYCLE_STATES = ("pending", "running")


def provisioning_filters(targets: Sequence[Target]) -> list[Filter]:
    """Filters for the provisioning registry, restricted to pending/running members."""
    filters = [
        Filter(
            name=PROVISIONING_ID_FILTER if target.is_member_id else target.key,
            values=list(target.values),
        )
        for target in targets
    ]
    filters.append(Filter(name=LIFECYCLE_STATE_FILTER, values=list(ACTIVE_LIFECYCLE_STATES)))
    return filters


def heartbeat_filters(targets: Sequence[Target]) -> list[Filter]:
    """Filters for the heartbeat registry; keys are used as given."""
    return [Filter(name=target.key, values=list(target.values)) for target in targets]


__all__ = [
    "PROVISIONING_ID_FILTER",
    "LIFECYCLE_STATE_FILTER",
    "ACTIVE_LIFECYCLE_STATES",
    "provisioning_filters",
    "heartbeat_filters",
]
