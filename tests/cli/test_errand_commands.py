"""Tests for errand CLI commands."""

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from errandforge import __version__
from errandforge.cli.main import cli

INSURANCE_URL = "https://insurance.example.com/renew"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def status_snapshot() -> dict[str, Any]:
    """System status as returned by ErrandSystem.get_system_status."""
    return {
        "agents": [
            {"agent_id": "bill-agent", "agent_type": "bill", "categories": ["bill_payment", "bill_scan"]}
        ],
        "memory": {"total_memories": 3, "by_type": {"bill": 3}},
        "sessions": {},
    }


class TestMainGroup:
    """Tests for the top-level command group."""

    def test_version(self, cli_runner: CliRunner) -> None:
        """Test the version option."""
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert f"errandforge, version {__version__}" in result.output

    def test_help_lists_commands(self, cli_runner: CliRunner) -> None:
        """Test that every command is registered."""
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("daily-scan", "weekly", "status", "pay", "renew", "query"):
            assert command in result.output

    def test_invalid_log_level(self, cli_runner: CliRunner) -> None:
        """Test that unknown log levels are rejected."""
        result = cli_runner.invoke(cli, ["--log-level", "LOUD", "status", "--no-scan"])

        assert result.exit_code == 2


class TestScanCommands:
    """Tests for the daily-scan and weekly commands."""

    def test_daily_scan_table(self, cli_runner: CliRunner) -> None:
        """Test the daily scan in table format."""
        result = cli_runner.invoke(cli, ["daily-scan"])

        assert result.exit_code == 0
        assert "Daily scan" in result.output
        assert "Deadlines tracked" in result.output

    def test_daily_scan_json(self, cli_runner: CliRunner) -> None:
        """Test the daily scan in JSON format."""
        result = cli_runner.invoke(cli, ["daily-scan", "--format", "json"])

        assert result.exit_code == 0
        assert '"total_deadlines": 7' in result.output

    def test_daily_scan_traces(self, cli_runner: CliRunner) -> None:
        """Test printing trace diagrams."""
        result = cli_runner.invoke(cli, ["daily-scan", "--traces"])

        assert result.exit_code == 0
        assert "dispatch:bill_scan" in result.output

    def test_weekly(self, cli_runner: CliRunner) -> None:
        """Test the weekly tasks command."""
        result = cli_runner.invoke(cli, ["weekly", "--format", "json"])

        assert result.exit_code == 0
        assert '"category": "document_scan"' in result.output


class TestStatusCommand:
    """Tests for the status command."""

    @patch("errandforge.cli.errands.ErrandSystem")
    def test_status_without_scan(
        self,
        mock_system_class: MagicMock,
        cli_runner: CliRunner,
        status_snapshot: dict[str, Any],
    ) -> None:
        """Test that --no-scan only reads the status."""
        mock_system = MagicMock()
        mock_system.get_system_status = AsyncMock(return_value=status_snapshot)
        mock_system.run_daily_scan = AsyncMock()
        mock_system_class.return_value = mock_system

        result = cli_runner.invoke(cli, ["status", "--no-scan"])

        assert result.exit_code == 0
        assert "bill-agent" in result.output
        assert "Memories: 3" in result.output
        mock_system.run_daily_scan.assert_not_called()

    def test_status_after_scan_json(self, cli_runner: CliRunner) -> None:
        """Test status after a real daily scan."""
        result = cli_runner.invoke(cli, ["status", "--format", "json"])

        assert result.exit_code == 0
        assert '"agent_id": "deadline-agent"' in result.output
        assert '"bill": 3' in result.output


class TestPayCommand:
    """Tests for the pay command."""

    def test_pay(self, cli_runner: CliRunner) -> None:
        """Test a successful dry-run payment."""
        result = cli_runner.invoke(cli, ["pay", "bill-electric", "--amount", "125.50"])

        assert result.exit_code == 0
        assert "Done." in result.output
        assert "DRY-RUN-" in result.output

    def test_pay_unsupported_method(self, cli_runner: CliRunner) -> None:
        """Test that a failed payment exits with an error code."""
        result = cli_runner.invoke(
            cli, ["pay", "bill-electric", "--amount", "125.50", "--method", "cheque"]
        )

        assert result.exit_code == 1
        assert "Failed" in result.output

    def test_pay_requires_amount(self, cli_runner: CliRunner) -> None:
        """Test that the amount is required."""
        result = cli_runner.invoke(cli, ["pay", "bill-electric"])

        assert result.exit_code == 2


class TestRenewCommand:
    """Tests for the renew command."""

    def test_renew_needs_more_information(self, cli_runner: CliRunner) -> None:
        """Test a renewal missing form fields."""
        result = cli_runner.invoke(cli, ["renew", "doc-2", "--url", INSURANCE_URL])

        assert result.exit_code == 0
        assert "More information needed" in result.output
        assert "coverage_level" in result.output

    def test_renew_with_values(self, cli_runner: CliRunner) -> None:
        """Test a renewal with every field supplied."""
        result = cli_runner.invoke(
            cli, ["renew", "doc-2", "--url", INSURANCE_URL, "--set", "coverage_level=Premium"]
        )

        assert result.exit_code == 0
        assert "Done." in result.output

    def test_renew_rejects_malformed_values(self, cli_runner: CliRunner) -> None:
        """Test that --set values must be FIELD=VALUE."""
        result = cli_runner.invoke(
            cli, ["renew", "doc-2", "--url", INSURANCE_URL, "--set", "coverage_level"]
        )

        assert result.exit_code == 2
        assert "FIELD=VALUE" in result.output


class TestQueryCommand:
    """Tests for the query command."""

    def test_query_json(self, cli_runner: CliRunner) -> None:
        """Test querying memory in JSON format."""
        result = cli_runner.invoke(
            cli, ["query", "Electric Company bill", "--limit", "5", "--format", "json"]
        )

        assert result.exit_code == 0
        assert '"bill-electric"' in result.output
        assert '"embedding"' not in result.output
