"""Tests for fleetspine.core.errors."""

from __future__ import annotations

import pytest

from fleetspine.command.models import FleetSnapshot
from fleetspine.core.errors import (
    ConfigError,
    DispatchNotFoundError,
    DispatchSubmissionError,
    ErrorCategory,
    FleetSpineError,
    InvocationFailedError,
    OutputRetrievalError,
    PollTimeoutError,
    ReadinessTimeoutError,
    RegistryQueryError,
    StateCorruptError,
    StateNotFoundError,
    categorize_error,
)


class TestFleetSpineError:
    def test_defaults(self):
        error = FleetSpineError("boom")

        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_cause_chained(self):
        cause = RuntimeError("throttled")
        error = RegistryQueryError("readiness: failed", cause=cause)

        assert error.__cause__ is cause
        assert error.to_dict()["cause"] == "throttled"

    def test_with_context_sets_known_fields_and_metadata(self):
        error = DispatchSubmissionError("dispatch: failed").with_context(
            document_name="Doc", region="eu-west-1"
        )

        assert error.context.document_name == "Doc"
        assert error.context.metadata == {"region": "eu-west-1"}
        assert error.to_dict()["context"] == {
            "stage": "dispatch",
            "document_name": "Doc",
            "region": "eu-west-1",
        }

    def test_repr(self):
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestStageMessages:
    @pytest.mark.parametrize(
        ("error", "prefix"),
        [
            (ReadinessTimeoutError(600, 60), "readiness:"),
            (DispatchNotFoundError("cmd-1"), "status:"),
            (InvocationFailedError("i-1", "TimedOut"), "poll:"),
            (PollTimeoutError(30), "poll:"),
            (StateNotFoundError("cmd-1"), "state:"),
            (StateCorruptError("cmd-1", "invalid JSON"), "state:"),
        ],
    )
    def test_message_names_stage(self, error, prefix):
        assert str(error).startswith(prefix)
        assert error.context.stage == prefix.rstrip(":")

    def test_readiness_timeout_reports_counts(self):
        error = ReadinessTimeoutError(
            20, 2, FleetSnapshot(provisioned_count=2, live_count=1)
        )

        assert str(error) == (
            "readiness: target instances are not online after 20s (1 of 2 target instances online)"
        )
        assert error.category == ErrorCategory.ORCHESTRATION

    def test_invocation_failure_names_target_and_status(self):
        error = InvocationFailedError("i-0abc", "Cancelled", dispatch_id="cmd-1")

        assert str(error) == "poll: command invocation cancelled on i-0abc instance"
        assert error.context.target_id == "i-0abc"
        assert error.context.dispatch_id == "cmd-1"

    def test_poll_timeout_not_an_invocation_failure(self):
        assert not issubclass(PollTimeoutError, InvocationFailedError)


class TestCategorize:
    def test_fleet_error(self):
        assert categorize_error(OutputRetrievalError("output: x")) == ErrorCategory.STORAGE

    def test_value_error(self):
        assert categorize_error(ValueError("x")) == ErrorCategory.VALIDATION

    def test_os_error(self):
        assert categorize_error(PermissionError("state dir")) == ErrorCategory.STORAGE

    def test_other(self):
        assert categorize_error(KeyError("x")) == ErrorCategory.INTERNAL
