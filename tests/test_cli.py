"""Smoke tests for the TradeBook CLI.

**Feature: tradebook**
"""

import json
from pathlib import Path

import pytest
import toml
from click.testing import CliRunner

from tradebook.cli.common import signed
from tradebook.cli.main import LAZY_SUBCOMMANDS, cli
from tradebook.config import CONFIG_ENV, DEFAULTS, get_store, load_config
from tradebook.db.memory import MemoryStore
from tradebook.errors import ValidationError


@pytest.fixture
def runner(tmp_path: Path, monkeypatch) -> CliRunner:
    """CliRunner with a config pointing at a temporary database."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(toml.dumps({
        "user": {"id": "tester"},
        "storage": {"backend": "sqlite", "path": str(tmp_path / "tradebook.db")},
        "market": {"seed": 3},
    }))
    monkeypatch.setenv(CONFIG_ENV, str(config_path))
    return CliRunner()


class TestConfig:
    """Configuration falls back to defaults and selects the backend."""

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        config = load_config(tmp_path / "absent.toml")
        assert config == DEFAULTS

    def test_file_overrides_defaults(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text('[user]\nid = "alice"\n\n[storage]\nbackend = "memory"\n')
        config = load_config(path)
        assert config["user"]["id"] == "alice"
        assert config["market"] == DEFAULTS["market"]
        assert isinstance(get_store(config), MemoryStore)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            get_store({"storage": {"backend": "postgres"}})


class TestSignedFormatting:
    """P&L values carry their sign ahead of the currency symbol."""

    def test_negative_sign_precedes_currency(self):
        assert signed("-100.00") == "[red]-₹100.00[/red]"

    def test_positive_value(self):
        assert signed("250.50") == "[green]+₹250.50[/green]"

    def test_percentage_without_prefix(self):
        assert signed("-5.00", "%", prefix="") == "[red]-5.00%[/red]"

    def test_missing_value(self):
        assert signed(None) == "[dim]-[/dim]"


class TestCommands:
    """End-to-end runs of each command group."""

    def test_help_lists_groups(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in LAZY_SUBCOMMANDS:
            assert name in result.output

    def test_holdings_flow(self, runner: CliRunner):
        result = runner.invoke(cli, ["holdings", "add", "INFY", "10", "100", "120"])
        assert result.exit_code == 0, result.output
        assert "Added INFY" in result.output

        result = runner.invoke(cli, ["holdings", "list"])
        assert result.exit_code == 0, result.output
        assert "INFY" in result.output
        assert "200.00" in result.output

        result = runner.invoke(cli, ["holdings", "add", "INFY", "1", "100", "120"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_bulk_update_from_stdin(self, runner: CliRunner):
        runner.invoke(cli, ["positions", "add", "INFY", "MIS", "10", "100", "100"])
        runner.invoke(cli, ["positions", "add", "TCS", "MIS", "10", "100", "100"])
        updates = [{"id": 1, "price": 101}, {"id": 99, "price": 5}, {"id": 2, "price": 99}]

        result = runner.invoke(cli, ["positions", "bulk-update"], input=json.dumps(updates))

        assert result.exit_code == 0, result.output
        assert "Updated 2 positions" in result.output
        assert "Position not found: 99" in result.output

    def test_bulk_update_rejects_non_list(self, runner: CliRunner):
        result = runner.invoke(cli, ["holdings", "bulk-update"], input='{"id": 1}')
        assert result.exit_code == 1

    def test_order_flow(self, runner: CliRunner):
        result = runner.invoke(cli, ["orders", "place", "INFY", "BUY", "5", "-t", "LIMIT"])
        assert result.exit_code == 1

        result = runner.invoke(
            cli, ["orders", "place", "INFY", "BUY", "5", "-t", "LIMIT", "-p", "1500"]
        )
        assert result.exit_code == 0, result.output
        assert "PENDING" in result.output

        assert runner.invoke(cli, ["orders", "execute", "1"]).exit_code == 0
        result = runner.invoke(cli, ["orders", "cancel", "1"])
        assert result.exit_code == 1
        assert "EXECUTED" in result.output

        result = runner.invoke(cli, ["orders", "list"])
        assert result.exit_code == 0, result.output
        assert "1 orders" in result.output

    def test_watchlist_flow(self, runner: CliRunner):
        assert runner.invoke(cli, ["watch", "init"]).exit_code == 0
        assert runner.invoke(cli, ["watch", "init"]).exit_code == 1

        result = runner.invoke(cli, ["watch", "add", "INFY"])
        assert result.exit_code == 1

        assert runner.invoke(cli, ["watch", "create", "tech"]).exit_code == 0
        assert runner.invoke(cli, ["watch", "add", "TCS", "--list", "tech"]).exit_code == 0
        assert runner.invoke(cli, ["watch", "add", "INFY", "--list", "tech"]).exit_code == 0

        result = runner.invoke(cli, ["watch", "reorder", "tech", "INFY"])
        assert result.exit_code == 1

        result = runner.invoke(cli, ["watch", "reorder", "tech", "INFY", "TCS:NSE"])
        assert result.exit_code == 0, result.output

        assert runner.invoke(cli, ["watch", "default", "tech"]).exit_code == 0
        result = runner.invoke(cli, ["watch", "list"])
        assert result.exit_code == 0, result.output
        assert "tech" in result.output

    def test_market_commands(self, runner: CliRunner):
        result = runner.invoke(cli, ["market", "quote", "INFY", "TCS"])
        assert result.exit_code == 0, result.output
        assert "INFY" in result.output

        assert runner.invoke(cli, ["market", "indices"]).exit_code == 0

        result = runner.invoke(cli, ["market", "search", "tata"])
        assert result.exit_code == 0, result.output
        assert "TCS" in result.output
