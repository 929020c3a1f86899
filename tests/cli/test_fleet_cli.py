"""Tests for the fleetspine CLI (command and config sub-apps)."""

from __future__ import annotations

from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from fleetspine.cli.app import app
from fleetspine.cli.utils import parse_pairs, parse_params
from fleetspine.command.lifecycle import CommandResource, StateStore
from fleetspine.command.orchestrator import CommandOrchestrator
from fleetspine.core.errors import DispatchNotFoundError
from fleetspine.core.settings import get_settings
from tests._support.fakes import FakeCommandService, invocations

runner = CliRunner()

RUN_ARGS = [
    "command", "run",
    "-d", "AWS-RunShellScript",
    "-t", "tag:Role=web",
    "-p", "commands=uptime",
    "--timeout", "30",
]


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("fleetspine.core.logging.configure_logging"):
        yield


@pytest.fixture
def commands() -> FakeCommandService:
    return FakeCommandService([invocations(("i-1", "Success"))], dispatch_id="cmd-77")


@pytest.fixture
def fake_resource(make_clients, commands):
    def _build(settings):
        orchestrator = CommandOrchestrator(
            make_clients(commands=commands), settings, sleep=lambda seconds: None
        )
        return CommandResource(orchestrator, StateStore(settings.state_dir))

    with patch("fleetspine.cli.command.build_resource", side_effect=_build) as build:
        yield build


class TestParsePairs:
    def test_multiple_values(self):
        assert parse_pairs(["tag:Role=web,api", "InstanceIds=i-1"], "--target") == [
            ("tag:Role", ["web", "api"]),
            ("InstanceIds", ["i-1"]),
        ]

    def test_empty_value_list(self):
        assert parse_pairs(["InstanceIds="], "--target") == [("InstanceIds", [])]

    @pytest.mark.parametrize("item", ["no-equals", "=value"])
    def test_malformed(self, item):
        with pytest.raises(typer.BadParameter):
            parse_pairs([item], "--target")


class TestParseParams:
    def test_commas_kept_verbatim(self):
        assert parse_params(['commands=echo "a, b"'], "--param") == [
            ("commands", ['echo "a, b"']),
        ]

    def test_repeated_name_accumulates(self):
        items = ["commands=cd /opt", "workingDirectory=/tmp", "commands=ls -l"]

        assert parse_params(items, "--param") == [
            ("commands", ["cd /opt", "ls -l"]),
            ("workingDirectory", ["/tmp"]),
        ]

    def test_value_may_contain_equals(self):
        assert parse_params(["commands=export A=1"], "--param") == [("commands", ["export A=1"])]

    def test_empty_value(self):
        assert parse_params(["commands="], "--param") == [("commands", [])]

    @pytest.mark.parametrize("item", ["no-equals", "=value"])
    def test_malformed(self, item):
        with pytest.raises(typer.BadParameter):
            parse_params([item], "--param")


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "fleet-spine 0.1.0" in result.output


class TestRun:
    def test_run_records_state(self, fake_resource, commands):
        result = runner.invoke(app, [*RUN_ARGS, "--json"])

        assert result.exit_code == 0, result.output
        assert "cmd-77" in result.output
        assert StateStore(get_settings().state_dir).list_ids() == ["cmd-77"]
        request, _ = commands.submitted[0]
        assert request.parameters == {"commands": ["uptime"]}
        assert request.execution_timeout == 30
        assert request.output_location is None

    def test_run_with_output_location_and_destroy(self, fake_resource, commands):
        result = runner.invoke(
            app,
            [*RUN_ARGS, "--bucket", "fleet-logs", "--prefix", "runs",
             "--destroy-document", "Teardown", "--destroy-param", "commands=stop"],
        )

        assert result.exit_code == 0, result.output
        state = StateStore(get_settings().state_dir).load("cmd-77")
        assert state.spec.output_location.s3_bucket_name == "fleet-logs"
        assert state.spec.destroy.document_name == "Teardown"

    def test_run_failure_exits_nonzero(self, fake_resource, commands):
        commands.invocations = [invocations(("i-1", "Failed"))]

        result = runner.invoke(app, RUN_ARGS)

        assert result.exit_code == 1
        assert "INVOCATION" in result.output
        assert StateStore(get_settings().state_dir).list_ids() == []

    def test_param_value_with_comma(self, fake_resource, commands):
        result = runner.invoke(
            app,
            ["command", "run", "-d", "AWS-RunShellScript", "-t", "InstanceIds=i-1,i-2",
             "-p", 'commands=echo "a, b"', "-p", "commands=uptime"],
        )

        assert result.exit_code == 0, result.output
        request, _ = commands.submitted[0]
        assert request.parameters == {"commands": ['echo "a, b"', "uptime"]}
        assert request.targets[0].values == ["i-1", "i-2"]

    def test_malformed_target_is_usage_error(self, fake_resource):
        result = runner.invoke(app, ["command", "run", "-d", "Doc", "-t", "tag:Role"])

        assert result.exit_code == 2
        fake_resource.assert_not_called()


class TestImport:
    def test_import_records_existing_dispatch(self, fake_resource, commands):
        commands.status = "InProgress"

        result = runner.invoke(
            app,
            ["command", "import", "cmd-ext", "-d", "AWS-RunShellScript", "-t", "tag:Role=web", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert commands.submitted == []
        state = StateStore(get_settings().state_dir).load("cmd-ext")
        assert state.status == "InProgress"
        assert state.spec.document_name == "AWS-RunShellScript"

    def test_import_unknown_dispatch(self, fake_resource, commands):
        commands.status_error = DispatchNotFoundError("cmd-ext")

        result = runner.invoke(
            app, ["command", "import", "cmd-ext", "-d", "AWS-RunShellScript", "-t", "tag:Role=web"]
        )

        assert result.exit_code == 1
        assert "DISPATCH" in result.output
        assert StateStore(get_settings().state_dir).list_ids() == []


class TestShowListDestroy:
    def test_show_stored_state(self, fake_resource):
        runner.invoke(app, RUN_ARGS)

        result = runner.invoke(app, ["command", "show", "cmd-77", "--json"])

        assert result.exit_code == 0
        assert "AWS-RunShellScript" in result.output

    def test_show_refresh_reads_service(self, fake_resource, commands):
        runner.invoke(app, RUN_ARGS)
        commands.status = "Cancelled"

        result = runner.invoke(app, ["command", "show", "cmd-77", "--refresh", "--json"])

        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_show_unknown_id(self):
        result = runner.invoke(app, ["command", "show", "cmd-missing"])

        assert result.exit_code == 1
        assert "STORAGE" in result.output

    def test_show_rejects_path_like_id(self):
        result = runner.invoke(app, ["command", "show", "../secrets"])

        assert result.exit_code == 1
        assert "VALIDATION" in result.output

    def test_list_empty(self):
        result = runner.invoke(app, ["command", "list"])

        assert result.exit_code == 0
        assert "No recorded commands" in result.output

    def test_list_after_run(self, fake_resource):
        runner.invoke(app, RUN_ARGS)

        result = runner.invoke(app, ["command", "list"])

        assert result.exit_code == 0
        assert "cmd-77" in result.output

    def test_list_corrupt_state_file(self):
        state_dir = get_settings().state_dir
        state_dir.mkdir(parents=True)
        (state_dir / "cmd-bad.json").write_text("not json", encoding="utf-8")

        result = runner.invoke(app, ["command", "list"])

        assert result.exit_code == 1
        assert "STORAGE" in result.output
        assert "cmd-bad" in result.output

    def test_destroy_without_destroy_command(self, fake_resource):
        runner.invoke(app, RUN_ARGS)

        result = runner.invoke(app, ["command", "destroy", "cmd-77"])

        assert result.exit_code == 0
        assert "forgot cmd-77" in result.output
        assert StateStore(get_settings().state_dir).list_ids() == []


class TestConfigShow:
    def test_env_format(self):
        result = runner.invoke(app, ["config", "show", "--format", "env"])

        assert result.exit_code == 0
        assert "FLEETSPINE_READINESS_TIMEOUT_SECONDS=600" in result.output

    def test_table_format(self):
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "fleet-spine settings" in result.output

    def test_invalid_env_exits_with_config_error(self, monkeypatch):
        monkeypatch.setenv("FLEETSPINE_POLL_INTERVAL_SECONDS", "0")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "CONFIG" in result.output
