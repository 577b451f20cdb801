"""Tests for the CLI module."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from jobquote.cli import main

# Paths relative to repo root
EXAMPLE_CONFIG = str(Path(__file__).parent.parent / "config" / "config.example.yaml")
SAMPLE_WORKBOOK = str(Path(__file__).parent.parent / "examples" / "sample_workbook.yaml")


@pytest.fixture
def runner():
    """Create Click test runner."""
    return CliRunner()


@pytest.fixture
def minimal_workbook(tmp_path):
    """Create a minimal workbook without an estimate."""
    content = """settings:
  technician_wages:
    - {name: Alex, hourly_rate: 30}
job_types:
  - {id: svc, name: Service, is_default: true, gross_margin_percent: 50}
"""
    path = tmp_path / "minimal.yaml"
    path.write_text(content)
    return path


class TestCLIHelp:
    """Test CLI help output."""

    def test_main_help(self, runner):
        """Test main command help."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Job Quote" in result.output

    def test_quote_help(self, runner):
        """Test quote subcommand help."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", "--help"])
        assert result.exit_code == 0
        assert "WORKBOOK_FILE" in result.output

    def test_version(self, runner):
        """Test version option."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestQuoteCommand:
    """Test the quote command."""

    def test_quote_table(self, runner):
        """Test pricing the sample estimate as a table."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", SAMPLE_WORKBOOK])
        assert result.exit_code == 0
        assert "Kitchen GFCI and circuit" in result.output
        assert "Total: USD" in result.output

    def test_quote_json_output(self, runner, tmp_path):
        """Test JSON output detected from the file extension."""
        output = tmp_path / "quote.json"
        result = runner.invoke(main, [
            "--config", EXAMPLE_CONFIG,
            "quote", SAMPLE_WORKBOOK,
            "--output", str(output),
        ])
        assert result.exit_code == 0
        assert "JSON report saved" in result.output
        report = json.loads(output.read_text())
        assert report["metadata"]["job_type"]["id"] == "service"
        assert report["summary"]["processing_fee"] > 0

    def test_quote_markdown_output(self, runner, tmp_path):
        """Test Markdown output."""
        output = tmp_path / "quote.md"
        result = runner.invoke(main, [
            "--config", EXAMPLE_CONFIG,
            "quote", SAMPLE_WORKBOOK,
            "--format", "markdown",
            "--output", str(output),
        ])
        assert result.exit_code == 0
        assert output.read_text().startswith("# Kitchen GFCI and circuit")

    def test_apply_discount_lowers_total(self, runner, tmp_path):
        """Test the discount toggle override."""
        quoted = tmp_path / "quoted.json"
        discounted = tmp_path / "discounted.json"
        for path, flag in ((quoted, "--no-apply-discount"), (discounted, "--apply-discount")):
            result = runner.invoke(main, [
                "--config", EXAMPLE_CONFIG, "quote", SAMPLE_WORKBOOK, flag, "--output", str(path),
            ])
            assert result.exit_code == 0

        quoted_report = json.loads(quoted.read_text())
        discounted_report = json.loads(discounted.read_text())
        assert discounted_report["summary"]["total"] < quoted_report["summary"]["total"]
        assert discounted_report["subtotals"]["discount_amount"] > 0

    def test_quote_option(self, runner):
        """Test pricing a named option."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", SAMPLE_WORKBOOK, "--option", "gold"])
        assert result.exit_code == 0
        assert "(gold)" in result.output

    def test_quote_unknown_option(self, runner):
        """Test an unknown option is a usage error."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", SAMPLE_WORKBOOK, "--option", "platinum"])
        assert result.exit_code != 0
        assert "platinum" in result.output

    def test_quote_assembly(self, runner, tmp_path):
        """Test pricing a catalog assembly on its own."""
        output = tmp_path / "panel.json"
        result = runner.invoke(main, [
            "--config", EXAMPLE_CONFIG,
            "quote", SAMPLE_WORKBOOK,
            "--assembly", "panel-upgrade",
            "--output", str(output),
        ])
        assert result.exit_code == 0
        report = json.loads(output.read_text())
        assert report["metadata"]["title"] == "Panel Upgrade"
        assert report["metadata"]["job_type"]["id"] == "install"

    def test_quote_missing_assembly(self, runner):
        """Test an unknown assembly id fails."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", SAMPLE_WORKBOOK, "--assembly", "nope"])
        assert result.exit_code == 1

    def test_quote_without_estimate(self, runner, minimal_workbook):
        """Test a workbook without an estimate fails."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", str(minimal_workbook)])
        assert result.exit_code == 1
        assert "no estimate" in result.output

    def test_quote_missing_file(self, runner):
        """Test a missing workbook is rejected."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "quote", "does_not_exist.yaml"])
        assert result.exit_code != 0


class TestOtherCommands:
    """Test tech-cost, options, job-cost and validate-config."""

    def test_tech_cost_table(self, runner, minimal_workbook):
        """Test the tech cost card."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "tech-cost", str(minimal_workbook)])
        assert result.exit_code == 0
        assert "Service" in result.output
        assert "$60.00/hr" in result.output

    def test_tech_cost_json(self, runner):
        """Test the tech cost card as JSON."""
        result = runner.invoke(main, [
            "--config", EXAMPLE_CONFIG, "tech-cost", SAMPLE_WORKBOOK, "--job-type", "install", "--format", "json",
        ])
        assert result.exit_code == 0
        assert '"required_revenue_per_billable_hour"' in result.output

    def test_options(self, runner):
        """Test comparing estimate options."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "options", SAMPLE_WORKBOOK])
        assert result.exit_code == 0
        assert "Priced 3 options" in result.output
        assert "Bronze" in result.output
        assert "Gold" in result.output

    def test_job_cost(self, runner):
        """Test comparing actuals against the estimate."""
        result = runner.invoke(main, [
            "--config", EXAMPLE_CONFIG,
            "job-cost", SAMPLE_WORKBOOK,
            "--revenue", "400",
            "--material-cost", "90",
            "--labor-hours", "2",
        ])
        assert result.exit_code == 0
        assert "Gross profit variance" in result.output

    def test_validate_config(self, runner):
        """Test validating the example config."""
        result = runner.invoke(main, ["--config", EXAMPLE_CONFIG, "validate-config"])
        assert result.exit_code == 0
        assert "Configuration is valid!" in result.output
        assert "Currency: USD" in result.output

    def test_validate_missing_config(self, runner, tmp_path):
        """Test a missing config is reported."""
        result = runner.invoke(main, ["--config", str(tmp_path / "missing.yaml"), "validate-config"])
        assert result.exit_code == 1

    def test_invalid_config(self, runner, tmp_path):
        """Test an invalid config aborts."""
        bad = tmp_path / "bad.yaml"
        bad.write_text("logging:\n  level: LOUD\n")
        result = runner.invoke(main, ["--config", str(bad), "validate-config"])
        assert result.exit_code == 1
