"""Data models for command dispatch.

Pydantic v2 models for the request a caller submits, the record the
orchestrator hands back, and the ephemeral values the two polling loops
compute on every tick.

Key Concepts:
    DispatchRequest: Document, parameters, target selector, execution
        timeout, comment and optional output location.
    DispatchRecord: Dispatch id, overall status, requested timestamp.
        Frozen; handed to the lifecycle adapter for persistence.
    InvocationRecord: One target's status within a dispatch. Re-fetched
        on every poll, never persisted.
    FleetSnapshot: Provisioned vs. live member counts at one instant.
    PollOutcome: What the invocation poller concluded. ``timed_out`` is a
        poller state, distinct from an invocation's ``TimedOut`` status.

Architecture Decisions:
    - Status fields keep the raw string reported by the command service.
      ``CommandStatus`` is a str enum, so comparisons against members work,
      and unknown values still classify (anything not pending and not a
      failure counts as terminal success).
    - ``InstanceIds`` is the reserved member-id selector key, matched
      case-insensitively.

Tags:
    models, pydantic, dispatch, invocation, fleet
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Status vocabulary
# ---------------------------------------------------------------------------


class CommandStatus(str, Enum):
    """Status of a dispatch or of one target's invocation."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    CANCELLED = "Cancelled"
    TIMED_OUT = "TimedOut"
    FAILED = "Failed"


PENDING_STATUSES = frozenset({CommandStatus.PENDING.value, CommandStatus.IN_PROGRESS.value})
FAILURE_STATUSES = frozenset(
    {CommandStatus.CANCELLED.value, CommandStatus.TIMED_OUT.value, CommandStatus.FAILED.value}
)


def _status_value(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


def is_pending(status: str) -> bool:
    """Non-terminal: the target has not finished yet."""
    return _status_value(status) in PENDING_STATUSES


def is_failure(status: str) -> bool:
    """Hard terminal failure for the target."""
    return _status_value(status) in FAILURE_STATUSES


class PingStatus(str, Enum):
    """Agent connectivity as reported by the heartbeat registry."""

    ONLINE = "Online"
    CONNECTION_LOST = "ConnectionLost"
    INACTIVE = "Inactive"


# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------

MEMBER_ID_SELECTOR_KEY = "InstanceIds"


class Target(BaseModel):
    """One ``(key, values)`` entry of a target selector."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    values: list[str] = Field(default_factory=list)

    @property
    def is_member_id(self) -> bool:
        return self.key.lower() == MEMBER_ID_SELECTOR_KEY.lower()


class OutputLocation(BaseModel):
    """Where the command service writes captured output."""

    model_config = ConfigDict(frozen=True)

    bucket: str = Field(min_length=1)
    key_prefix: str = ""


class DispatchRequest(BaseModel):
    """A single remote command dispatch against one target selector.

    Example::

        request = DispatchRequest(
            document_name="AWS-RunShellScript",
            parameters={"commands": ["uptime"]},
            targets=[Target(key="tag:Role", values=["web"])],
            execution_timeout=300,
        )
    """

    model_config = ConfigDict(frozen=True)

    document_name: str = Field(min_length=1)
    parameters: dict[str, list[str]] = Field(default_factory=dict)
    targets: list[Target] = Field(min_length=1)
    execution_timeout: int = Field(default=3600, gt=0)
    comment: str = ""
    output_location: OutputLocation | None = None

    @field_validator("output_location", mode="before")
    @classmethod
    def _drop_empty_location(cls, value: object) -> object:
        # An empty bucket name means "no output location", not an invalid one
        if isinstance(value, dict) and not value.get("bucket"):
            return None
        return value


# ---------------------------------------------------------------------------
# Result side
# ---------------------------------------------------------------------------


class DispatchRecord(BaseModel):
    """Outcome of one dispatch as reported by the command service."""

    model_config = ConfigDict(frozen=True)

    dispatch_id: str
    status: str
    requested_at: datetime

    @property
    def requested_time(self) -> str:
        """RFC3339 UTC timestamp, second precision."""
        ts = self.requested_at
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return ts.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class InvocationRecord(BaseModel):
    """One target's invocation within a dispatch."""

    model_config = ConfigDict(frozen=True)

    target_id: str
    status: str


class FleetSnapshot(BaseModel):
    """Provisioned vs. live member counts at one readiness tick."""

    model_config = ConfigDict(frozen=True)

    provisioned_count: int = 0
    live_count: int = 0

    @property
    def converged(self) -> bool:
        return self.live_count == self.provisioned_count


class PollState(str, Enum):
    """Conclusion reached by the invocation poller."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class PollOutcome(BaseModel):
    """Result of polling a dispatch to completion.

    ``status`` and ``target_id`` are set for ``FAILED`` outcomes and name
    the first target observed in a hard-failure state.
    """

    model_config = ConfigDict(frozen=True)

    state: PollState
    iterations: int
    status: str | None = None
    target_id: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is PollState.SUCCEEDED


class Filter(BaseModel):
    """Registry-neutral ``(name, values)`` filter."""

    model_config = ConfigDict(frozen=True)

    name: str
    values: list[str] = Field(default_factory=list)


class CommandOutput(BaseModel):
    """One captured output object."""

    model_config = ConfigDict(frozen=True)

    key: str
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


__all__ = [
    "CommandStatus",
    "PingStatus",
    "PENDING_STATUSES",
    "FAILURE_STATUSES",
    "is_pending",
    "is_failure",
    "MEMBER_ID_SELECTOR_KEY",
    "Target",
    "OutputLocation",
    "DispatchRequest",
    "DispatchRecord",
    "InvocationRecord",
    "FleetSnapshot",
    "PollState",
    "PollOutcome",
    "Filter",
    "CommandOutput",
]
