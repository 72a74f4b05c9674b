"""
Tests for the CLI interface.
"""
import json
import os
import tempfile
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from usage_economics.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from usage_economics.core.economics import SpendPeriod
from usage_economics.core.errors import PipelineStageError
from usage_economics.core.periods import Granularity
from usage_economics.storage.repository import SavingsRepository

runner = CliRunner()


@pytest.fixture
def config_path():
    """Write a config pointing at a temporary database."""
    with tempfile.TemporaryDirectory() as temp_dir:
        path = os.path.join(temp_dir, "config.yaml")
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump({
                "database": {"path": os.path.join(temp_dir, "savings.db")},
                "spend": {"command": ["ccusage"], "timeout_seconds": 5}
            }, f)
        yield path


@pytest.fixture
def mock_spend():
    """Mock the ccusage-backed spend fetch."""
    with patch('usage_economics.cli.main.CcusageClient.fetch_spend') as mock:
        yield mock


def db_path_of(config_path: str) -> str:
    return os.path.join(os.path.dirname(config_path), "savings.db")


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_hint(self):
        """Test the bare invocation."""
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Usage Economics" in result.output

    def test_init_creates_database(self, config_path):
        """Test init creates the schema."""
        result = runner.invoke(app, ["init", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized successfully" in result.output
        assert SavingsRepository(db_path_of(config_path)).count_records() == 0

    def test_status_without_database(self, config_path):
        """Test status reports a missing database."""
        result = runner.invoke(app, ["status", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Database not found" in result.output

    def test_record_then_status(self, config_path):
        """Test recording a command and reading the count back."""
        result = runner.invoke(app, [
            "record", "cargo test",
            "--input-tokens", "1000",
            "--output-tokens", "150",
            "--config", config_path
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "850 tokens saved" in result.output

        result = runner.invoke(app, ["status", "--config", config_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "1 command record(s)" in result.output

    def test_record_never_saves_negative_tokens(self, config_path):
        """Test output larger than input counts as zero saved."""
        result = runner.invoke(app, [
            "record", "ls",
            "--input-tokens", "10",
            "--output-tokens", "40",
            "--config", config_path
        ])

        assert result.exit_code == EXIT_CODE_PASS
        assert "0 tokens saved" in result.output

    def test_missing_config_file_fails(self):
        """Test a bad config path exits with failure."""
        result = runner.invoke(app, ["report", "--config", "/nonexistent/config.yaml"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Configuration error" in result.output

    def test_invalid_format_fails(self, config_path):
        """Test an unknown output format is rejected."""
        result = runner.invoke(app, ["report", "--format", "xml", "--config", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "--format must be one of" in result.output


class TestReportCommand:
    """Test the report command end to end with a mocked spend source."""

    def record(self, config_path: str, command: str = "git status") -> None:
        result = runner.invoke(app, [
            "record", command,
            "--input-tokens", "300",
            "--output-tokens", "100",
            "--config", config_path
        ])
        assert result.exit_code == EXIT_CODE_PASS

    def test_json_report_without_spend(self, config_path, mock_spend):
        """Test spend unavailability yields savings-only JSON with nulls."""
        mock_spend.return_value = None
        self.record(config_path)

        result = runner.invoke(app, ["report", "--monthly", "--format", "json", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        payload = json.loads(result.output)
        monthly = payload["month"]
        assert monthly["spend_available"] is False
        assert len(monthly["periods"]) == 1
        assert monthly["periods"][0]["cost"] is None
        assert monthly["periods"][0]["saved_tokens"] == 200

    def test_json_report_with_spend(self, config_path, mock_spend):
        """Test spend and savings join on the current month."""
        self.record(config_path)
        month = SavingsRepository(db_path_of(config_path)).fetch_savings(Granularity.MONTH)[0].period
        mock_spend.return_value = [SpendPeriod(
            period=month,
            total_cost=100.0,
            input_tokens=500,
            output_tokens=500,
            cache_creation_tokens=0,
            cache_read_tokens=0,
            total_tokens=1000
        )]

        result = runner.invoke(app, ["report", "--format", "json", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        period = json.loads(result.output)["month"]["periods"][0]
        assert period["period"] == month
        assert period["estimated_savings_active"] == pytest.approx(20.0)

    def test_all_granularities_csv(self, config_path, mock_spend):
        """Test --all produces rows for every granularity."""
        mock_spend.return_value = None
        self.record(config_path)

        result = runner.invoke(app, ["report", "--all", "--format", "csv", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("granularity,period,cost")
        assert {line.split(",")[0] for line in lines[1:]} == {"day", "week", "month"}

    def test_text_report(self, config_path, mock_spend):
        """Test the default text report shows the unavailable notice."""
        mock_spend.return_value = None
        self.record(config_path)

        result = runner.invoke(app, ["report", "--config", config_path])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Spend data unavailable" in result.output
        assert "Tokens saved: 200" in result.output

    def test_stage_failure_exits_with_error(self, config_path):
        """Test a pipeline stage failure is reported and fails the command."""
        with patch('usage_economics.cli.main.build_reports') as mock_build:
            mock_build.side_effect = PipelineStageError("fetch_savings", RuntimeError("disk gone"))
            result = runner.invoke(app, ["report", "--config", config_path])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "fetch_savings" in result.output
