"""Tests for the delayed-notifier CLI."""

from __future__ import annotations

from click.testing import CliRunner
import pytest

from delayed_notifier.cli.main import cli
from delayed_notifier.core.exceptions import StoreError
from delayed_notifier.features.notifications.models import status_key


@pytest.fixture
def cli_store(store, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr("delayed_notifier.cli.commands.notifications.RedisStore", lambda: store)
    return store


@pytest.mark.unit
class TestNotifyCommands:
    def test_schedule_prints_id(self, cli_store):
        result = CliRunner().invoke(cli, ["notify", "schedule", "hello", "--delay", "60", "--email", "a@b.com"])

        assert result.exit_code == 0, result.output
        notification_id = result.output.strip().splitlines()[-1]
        assert cli_store.values[status_key(notification_id)] == "scheduled"
        assert not cli_store.connected

    def test_schedule_rejects_zero_delay(self, cli_store):
        result = CliRunner().invoke(cli, ["notify", "schedule", "hello", "--delay", "0"])
        assert result.exit_code == 2

    def test_status(self, cli_store):
        cli_store.values[status_key("n1")] = "sent"

        result = CliRunner().invoke(cli, ["notify", "status", "n1"])

        assert result.exit_code == 0
        assert "n1: sent" in result.output

    def test_status_of_unknown_id_fails(self, cli_store):
        result = CliRunner().invoke(cli, ["notify", "status", "missing"])
        assert result.exit_code == 1

    def test_cancel_dispatched_notification_fails(self, cli_store):
        cli_store.values[status_key("n1")] = "sending"

        result = CliRunner().invoke(cli, ["notify", "cancel", "n1"])

        assert result.exit_code == 1
        assert cli_store.values[status_key("n1")] == "sending"

    def test_unreachable_store_exits_with_error(self, cli_store):
        cli_store.fail["connect"] = StoreError("refused")

        result = CliRunner().invoke(cli, ["notify", "status", "n1"])

        assert result.exit_code == 1


@pytest.mark.unit
def test_help_lists_command_groups():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "server" in result.output
    assert "notify" in result.output
