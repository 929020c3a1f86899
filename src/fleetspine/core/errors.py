"""
Structured error types for fleet-spine.

Every failure the orchestrator can surface is a typed error carrying a
category, a retryable flag, structured context and the chained cause. The
final message always names the stage that failed, so a CLI user or an
upstream lifecycle adapter can report it without inspecting the type.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────────┐
        │                       FleetSpineError                          │
        │  (category, retryable, context, cause)                         │
        ├───────────────────────────────────────────────────────────────┤
        │                                                                │
        │  RegistryQueryError        ReadinessTimeoutError               │
        │  (REGISTRY)                (ORCHESTRATION)                     │
        │                                                                │
        │  DispatchSubmissionError   DispatchNotFoundError               │
        │  (DISPATCH)                (DISPATCH)                          │
        │                                                                │
        │  InvocationFailedError     PollTimeoutError                    │
        │  InvocationQueryError      (INVOCATION)                        │
        │                                                                │
        │  OutputRetrievalError      StateNotFoundError                  │
        │  (STORAGE, never escalated) (STORAGE)                          │
        │                                                                │
        │  RequestValidationError    ConfigError                         │
        │  (VALIDATION)              (CONFIG)                            │
        └───────────────────────────────────────────────────────────────┘

Propagation:
    Registry, readiness, submission, invocation and poll-timeout errors are
    fatal to a run and reach the caller. ``OutputRetrievalError`` is always
    recovered inside the orchestrator and only logged.

Examples:
    >>> error = InvocationFailedError("i-0abc", "Failed", dispatch_id="cmd-1")
    >>> error.target_id
    'i-0abc'
    >>> error.to_dict()["category"]
    'INVOCATION'

Tags:
    error-handling, exception-hierarchy, error-context, fleet-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fleetspine.command.models import FleetSnapshot


class ErrorCategory(str, Enum):
    """Error categories used for classification and reporting."""

    REGISTRY = "REGISTRY"  # Provisioning / heartbeat registry queries
    DISPATCH = "DISPATCH"  # Command submission and lookup
    INVOCATION = "INVOCATION"  # Per-target invocation outcomes
    STORAGE = "STORAGE"  # Output store, local state files
    ORCHESTRATION = "ORCHESTRATION"  # Readiness gating
    VALIDATION = "VALIDATION"  # Request attribute validation
    CONFIG = "CONFIG"  # Missing or invalid settings
    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        stage: Orchestrator stage that failed (readiness, dispatch, poll, ...)
        dispatch_id: Dispatch identifier, once one has been assigned
        document_name: Remote command document
        target_id: Fleet member the failure is attributed to
        metadata: Any additional key/value pairs
    """

    stage: str | None = None
    dispatch_id: str | None = None
    document_name: str | None = None
    target_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["stage", "dispatch_id", "document_name", "target_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FleetSpineError(Exception):
    """
    Base exception for all fleet-spine errors.

    Subclasses set ``default_category``, ``default_retryable`` and
    ``stage``; callers may override category/retryable per instance and
    attach a cause for chaining.

    Examples:
        >>> error = FleetSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(dispatch_id="cmd-1").context.dispatch_id
        'cmd-1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    stage: str | None = None

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext(stage=self.stage)
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FleetSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RegistryQueryError("describe failed").with_context(
                registry="provisioning",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# FLEET DIRECTORY ERRORS
# =============================================================================


class RegistryQueryError(FleetSpineError):
    """A provisioning or heartbeat registry query failed.

    Hard error: the readiness waiter never retries it.
    """

    default_category = ErrorCategory.REGISTRY
    stage = "readiness"


class ReadinessTimeoutError(FleetSpineError):
    """The fleet did not converge within the readiness budget."""

    default_category = ErrorCategory.ORCHESTRATION
    stage = "readiness"

    def __init__(
        self,
        timeout_seconds: float,
        iterations: int,
        snapshot: FleetSnapshot | None = None,
        **kwargs: Any,
    ):
        self.timeout_seconds = timeout_seconds
        self.iterations = iterations
        self.snapshot = snapshot
        detail = ""
        if snapshot is not None:
            detail = (
                f" ({snapshot.live_count} of {snapshot.provisioned_count}"
                " target instances online)"
            )
        super().__init__(
            f"readiness: target instances are not online after {timeout_seconds}s{detail}",
            **kwargs,
        )


# =============================================================================
# DISPATCH ERRORS
# =============================================================================


class DispatchSubmissionError(FleetSpineError):
    """The command could not be submitted; no invocation exists."""

    default_category = ErrorCategory.DISPATCH
    stage = "dispatch"


class DispatchNotFoundError(FleetSpineError):
    """The command service has no record of a dispatch identifier."""

    default_category = ErrorCategory.DISPATCH
    stage = "status"

    def __init__(self, dispatch_id: str, **kwargs: Any):
        self.dispatch_id = dispatch_id
        super().__init__(f"status: command {dispatch_id} not found", **kwargs)
        self.context.dispatch_id = dispatch_id


# =============================================================================
# INVOCATION ERRORS
# =============================================================================


class InvocationQueryError(FleetSpineError):
    """Listing the invocations of a dispatch failed."""

    default_category = ErrorCategory.INVOCATION
    stage = "poll"


class InvocationFailedError(FleetSpineError):
    """At least one target's invocation reached Cancelled, TimedOut or Failed."""

    default_category = ErrorCategory.INVOCATION
    stage = "poll"

    def __init__(self, target_id: str, status: str, *, dispatch_id: str | None = None, **kwargs: Any):
        self.target_id = target_id
        self.status = status
        super().__init__(
            f"poll: command invocation {status.lower()} on {target_id} instance",
            **kwargs,
        )
        self.context.target_id = target_id
        self.context.dispatch_id = dispatch_id


class PollTimeoutError(FleetSpineError):
    """Invocations did not all reach a terminal state within the execution timeout."""

    default_category = ErrorCategory.INVOCATION
    stage = "poll"

    def __init__(self, timeout_seconds: float, *, dispatch_id: str | None = None, **kwargs: Any):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"poll: command invocations timed out after {timeout_seconds}s",
            **kwargs,
        )
        self.context.dispatch_id = dispatch_id


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class OutputRetrievalError(FleetSpineError):
    """Command output could not be listed or fetched. Logged, never raised to callers."""

    default_category = ErrorCategory.STORAGE
    stage = "output"


class StateNotFoundError(FleetSpineError):
    """No local lifecycle state exists for a resource identifier."""

    default_category = ErrorCategory.STORAGE
    stage = "state"

    def __init__(self, resource_id: str, **kwargs: Any):
        self.resource_id = resource_id
        super().__init__(f"state: no stored state for {resource_id}", **kwargs)


class StateCorruptError(FleetSpineError):
    """A stored lifecycle state file cannot be parsed."""

    default_category = ErrorCategory.STORAGE
    stage = "state"

    def __init__(self, resource_id: str, reason: str, **kwargs: Any):
        self.resource_id = resource_id
        super().__init__(f"state: stored state for {resource_id} is unreadable: {reason}", **kwargs)


# =============================================================================
# VALIDATION / CONFIG ERRORS
# =============================================================================


class RequestValidationError(FleetSpineError):
    """A dispatch request or resource attribute set is invalid."""

    default_category = ErrorCategory.VALIDATION
    stage = "validation"


class ConfigError(FleetSpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    stage = "config"


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, FleetSpineError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FleetSpineError",
    "RegistryQueryError",
    "ReadinessTimeoutError",
    "DispatchSubmissionError",
    "DispatchNotFoundError",
    "InvocationQueryError",
    "InvocationFailedError",
    "PollTimeoutError",
    "OutputRetrievalError",
    "StateNotFoundError",
    "StateCorruptError",
    "RequestValidationError",
    "ConfigError",
    "categorize_error",
]
