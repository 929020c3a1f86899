"""Tests for fleetspine.command.readiness.

Drives ReadinessWaiter through scripted provisioning/heartbeat sequences.
Sleeps are recorded, never taken.
"""

from __future__ import annotations

import pytest

from fleetspine.command.models import Filter
from fleetspine.command.readiness import ReadinessWaiter, iteration_budget
from fleetspine.core.errors import ReadinessTimeoutError, RegistryQueryError
from tests._support.fakes import FakeHeartbeat, FakeProvisioning, online

PROV_FILTERS = [Filter(name="tag:Role", values=["web"])]
HB_FILTERS = [Filter(name="tag:Role", values=["web"])]


def _waiter(provisioning, heartbeat, sleeps):
    return ReadinessWaiter(provisioning, heartbeat, poll_interval=10, sleep=sleeps.append)


class TestIterationBudget:
    def test_exact_division(self):
        assert iteration_budget(600, 10) == 60

    def test_rounds_up(self):
        assert iteration_budget(25, 10) == 3

    def test_at_least_one(self):
        assert iteration_budget(0, 10) == 1


class TestConvergence:
    def test_empty_selector_succeeds_first_iteration(self, sleeps):
        prov = FakeProvisioning([0])
        hb = FakeHeartbeat([[]])

        snapshot = _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert snapshot.provisioned_count == 0
        assert snapshot.live_count == 0
        assert len(prov.calls) == 1
        assert sleeps == []

    def test_all_online_immediately(self, sleeps):
        prov = FakeProvisioning([3])
        hb = FakeHeartbeat([online("i-1", "i-2", "i-3")])

        snapshot = _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert snapshot.converged
        assert snapshot.live_count == 3
        assert len(hb.calls) == 1

    def test_converges_on_second_iteration(self, sleeps):
        prov = FakeProvisioning([3])
        hb = FakeHeartbeat([
            online("i-1") + [("i-2", "ConnectionLost")],
            online("i-1", "i-2", "i-3"),
        ])

        snapshot = _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert snapshot.live_count == 3
        assert len(prov.calls) == 2
        assert sleeps == [10]

    def test_no_heartbeats_for_non_empty_fleet_keeps_waiting(self, sleeps):
        prov = FakeProvisioning([2])
        hb = FakeHeartbeat([[], online("i-1", "i-2")])

        snapshot = _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert snapshot.converged
        assert len(hb.calls) == 2

    def test_only_online_agents_count(self, sleeps):
        prov = FakeProvisioning([2])
        hb = FakeHeartbeat([[("i-1", "Online"), ("i-2", "Inactive")]])

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 20)

        assert exc_info.value.snapshot.live_count == 1
        assert exc_info.value.snapshot.provisioned_count == 2

    def test_filters_passed_through(self, sleeps):
        prov = FakeProvisioning([0])
        hb = FakeHeartbeat([[]])

        _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert prov.calls[0] == PROV_FILTERS
        assert hb.calls[0] == HB_FILTERS


class TestTimeout:
    def test_times_out_after_ceil_iterations(self, sleeps):
        prov = FakeProvisioning([2])
        hb = FakeHeartbeat([online("i-1")])

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 25)

        assert len(prov.calls) == 3
        assert exc_info.value.iterations == 3
        # no sleep after the final iteration
        assert sleeps == [10, 10]

    def test_timeout_message_names_stage(self, sleeps):
        prov = FakeProvisioning([2])
        hb = FakeHeartbeat([online("i-1")])

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 20)

        assert str(exc_info.value).startswith("readiness:")
        assert "1 of 2" in str(exc_info.value)


class TestRegistryErrors:
    def test_provisioning_error_propagates_without_retry(self, sleeps):
        prov = FakeProvisioning([RuntimeError("throttled")])
        hb = FakeHeartbeat([[]])

        with pytest.raises(RegistryQueryError) as exc_info:
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert len(prov.calls) == 1
        assert hb.calls == []
        assert sleeps == []
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.context.metadata["registry"] == "provisioning"

    def test_heartbeat_error_propagates(self, sleeps):
        prov = FakeProvisioning([1])
        hb = FakeHeartbeat([ConnectionError("reset")])

        with pytest.raises(RegistryQueryError):
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

    def test_typed_registry_error_not_rewrapped(self, sleeps):
        original = RegistryQueryError("readiness: ec2 failed")
        prov = FakeProvisioning([original])
        hb = FakeHeartbeat([[]])

        with pytest.raises(RegistryQueryError) as exc_info:
            _waiter(prov, hb, sleeps).wait(PROV_FILTERS, HB_FILTERS, 600)

        assert exc_info.value is original
