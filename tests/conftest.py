"""
Shared pytest fixtures for fleet-spine tests.

This module provides:
- Settings isolation (no FLEETSPINE_* env leakage, fresh settings cache)
- Small-timeout settings and a sleep recorder so polling loops never block
- Request and client factories built on the scripted fakes in
  ``tests/_support/fakes.py``
"""

from __future__ import annotations

import os
from typing import Any

import pytest

from fleetspine.command.models import DispatchRequest, OutputLocation, Target
from fleetspine.command.orchestrator import FleetClients
from fleetspine.core.settings import FleetSettings, clear_settings_cache
from tests._support.fakes import (
    FakeCommandService,
    FakeHeartbeat,
    FakeObjectStore,
    FakeProvisioning,
)


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Keep FLEETSPINE_* env vars and cached settings out of every test."""
    for key in list(os.environ):
        if key.startswith("FLEETSPINE_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("FLEETSPINE_STATE_DIR", str(tmp_path / "state"))
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings(tmp_path) -> FleetSettings:
    """Readiness budget of 3 ticks at the default 10s interval."""
    return FleetSettings(
        readiness_timeout_seconds=30,
        poll_interval_seconds=10,
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Records every sleep instead of blocking; pass ``sleeps.append`` as ``sleep``."""
    return []


@pytest.fixture
def request_factory():
    def _make(**overrides: Any) -> DispatchRequest:
        values: dict[str, Any] = {
            "document_name": "AWS-RunShellScript",
            "parameters": {"commands": ["uptime"]},
            "targets": [Target(key="tag:Role", values=["web"])],
            "execution_timeout": 30,
            "comment": "nightly",
        }
        values.update(overrides)
        return DispatchRequest(**values)

    return _make


@pytest.fixture
def output_location() -> OutputLocation:
    return OutputLocation(bucket="fleet-logs", key_prefix="runs")


@pytest.fixture
def make_clients():
    def _make(
        provisioning: FakeProvisioning | None = None,
        heartbeat: FakeHeartbeat | None = None,
        commands: FakeCommandService | None = None,
        store: FakeObjectStore | None = None,
    ) -> FleetClients:
        return FleetClients(
            provisioning=provisioning or FakeProvisioning([0]),
            heartbeat=heartbeat or FakeHeartbeat([[]]),
            commands=commands or FakeCommandService(),
            store=store or FakeObjectStore(),
        )

    return _make
