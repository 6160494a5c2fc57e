"""Tests for the command-line interface."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from openledger.cli import app, parse_item
from openledger.db import Database

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Config pointing at a database under tmp_path."""
    config = tmp_path / "config.yaml"
    config.write_text(
        f"""
database:
  path: {tmp_path / "data" / "ledger.db"}
logging:
  level: ERROR
billing:
  invoice_prefix: "ACME-"
  starting_sequence: 7
scheduler:
  evaluate_on_load: false
"""
    )
    return config


def invoke(config_file: Path, *args: str):
    return runner.invoke(app, [*args, "--config", str(config_file)])


class TestParseItem:
    """Tests for parse_item function."""

    def test_parse(self):
        assert parse_item("Setup: fixed:1:50") == {
            "description": "Setup: fixed",
            "quantity": "1",
            "unit_price": "50",
        }

    def test_malformed(self):
        import typer

        with pytest.raises(typer.BadParameter):
            parse_item("Setup-50")


class TestCommands:
    """End-to-end command tests."""

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "openledger version" in result.stdout

    def test_init(self, config_file, tmp_path):
        result = invoke(config_file, "init")

        assert result.exit_code == 0
        assert "ACME-7" in result.stdout
        assert (tmp_path / "data" / "ledger.db").exists()

    def test_log_and_invoice(self, config_file, tmp_path):
        logged = invoke(
            config_file,
            *["time", "log", "2", "Design", "--client", "acme"],
            *["--date", "2024-03-05", "--rate", "80"],
        )
        assert logged.exit_code == 0

        result = invoke(
            config_file,
            *["invoices", "create", "--client", "acme", "--item", "Setup:1:50"],
            *["--all-unbilled", "--issue-date", "2024-03-31"],
        )

        assert result.exit_code == 0, result.stdout
        assert "ACME-7" in result.stdout
        db = Database(tmp_path / "data" / "ledger.db")
        invoice = db.list_invoices()[0]
        assert invoice.total_amount == 210.0
        assert db.list_time_entries()[0].status == "billed"
        db.close()

    def test_all_unbilled_includes_untagged(self, config_file, tmp_path):
        for args in (
            ["1", "Triage", "--rate", "40"],
            ["3", "Other work", "--client", "globex", "--rate", "40"],
        ):
            assert invoke(config_file, "time", "log", *args, "--date", "2024-03-05").exit_code == 0

        result = invoke(
            config_file,
            *["invoices", "create", "--client", "acme", "--all-unbilled"],
            *["--issue-date", "2024-03-31"],
        )

        assert result.exit_code == 0, result.stdout
        db = Database(tmp_path / "data" / "ledger.db")
        assert db.list_invoices()[0].total_amount == 40.0
        statuses = {e.description: e.status for e in db.list_time_entries()}
        assert statuses == {"Triage": "billed", "Other work": "unbilled"}
        db.close()

    def test_ledger_error_exits_nonzero(self, config_file):
        result = invoke(config_file, "time", "delete", "404")
        assert result.exit_code == 1

    def test_invoice_without_lines(self, config_file):
        result = invoke(config_file, "invoices", "create", "--client", "acme")
        assert result.exit_code == 1

    def test_evaluate(self, config_file):
        assert invoke(config_file, "rules", "add", "20", "Hosting", "--day", "1").exit_code == 0

        result = invoke(config_file, "evaluate", "--as-of", "2024-03-02")

        assert result.exit_code == 0
        assert "$20.00" in result.stdout

    def test_advance_sequence_backwards(self, config_file):
        assert invoke(config_file, "settings", "advance-sequence", "100").exit_code == 0
        assert invoke(config_file, "settings", "advance-sequence", "50").exit_code == 1
