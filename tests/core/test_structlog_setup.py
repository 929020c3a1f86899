"""Tests for fleetspine.core.logging."""

from __future__ import annotations

import json

import pytest
import structlog

from fleetspine import __version__
from fleetspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    clear_context()
    structlog.reset_defaults()


def _last_json_line(capsys) -> dict:
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestJsonOutput:
    def test_ecs_field_names(self, capsys):
        configure_logging(level="INFO", json_format=True)

        get_logger("test").info("fleet.readiness.tick", online=2, provisioned=3)

        entry = _last_json_line(capsys)
        assert entry["event"] == "fleet.readiness.tick"
        assert entry["online"] == 2
        assert entry["log.level"] == "info"
        assert entry["service.name"] == "fleet-spine"
        assert entry["service.version"] == __version__
        assert "@timestamp" in entry

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_format=True)

        get_logger("test").info("quiet")

        assert capsys.readouterr().out == ""

    def test_bound_context_merged(self, capsys):
        configure_logging(level="INFO", json_format=True)
        bind_context(dispatch_id="cmd-1")

        get_logger("test").info("command.poll.tick")

        entry = _last_json_line(capsys)
        assert entry["command.id"] == "cmd-1"
        assert "dispatch_id" not in entry

    def test_run_fields_renamed(self, capsys):
        configure_logging(level="INFO", json_format=True)

        with LogContext(document_name="AWS-RunShellScript"):
            get_logger("test").error("command.invocation.failed", target_id="i-2", status="Failed")

        entry = _last_json_line(capsys)
        assert entry["command.document"] == "AWS-RunShellScript"
        assert entry["host.id"] == "i-2"
        assert entry["status"] == "Failed"
        assert "target_id" not in entry


class TestConsoleOutput:
    def test_short_names_kept(self, capsys):
        configure_logging(level="INFO", json_format=False)
        bind_context(dispatch_id="cmd-1")

        get_logger("test").info("command.poll.tick")

        out = capsys.readouterr().out
        assert "command.poll.tick" in out
        assert "dispatch_id" in out
        assert "command.id" not in out


class TestContext:
    def test_log_context_scoped(self):
        with LogContext(document_name="Doc"):
            assert structlog.contextvars.get_contextvars()["document_name"] == "Doc"

        assert "document_name" not in structlog.contextvars.get_contextvars()

    def test_unbind(self):
        bind_context(dispatch_id="cmd-1", document_name="Doc")
        unbind_context("dispatch_id")

        assert structlog.contextvars.get_contextvars() == {"document_name": "Doc"}
