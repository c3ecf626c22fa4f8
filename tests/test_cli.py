"""Tests for CLI."""

import json
import subprocess
import sys
from pathlib import Path

import pandas as pd


def run_cli(*args):
    """Run CLI and return output."""
    result = subprocess.run(
        [sys.executable, "-m", "taxmatrix.cli", *args],
        capture_output=True,
        text=True,
        env={"PYTHONPATH": "src"},
        cwd=Path(__file__).parent.parent,
    )
    return result


class TestCLI:
    """Tests for command-line interface."""

    def test_help(self):
        """--help shows usage."""
        result = run_cli("--help")
        assert result.returncode == 0
        assert "taxmatrix" in result.stdout
        assert "race" in result.stdout

    def test_version(self):
        """--version shows version."""
        result = run_cli("--version")
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_no_command_shows_help(self):
        """No command shows help and exits 1."""
        result = run_cli()
        assert result.returncode == 1

    def test_plan(self):
        """plan prints the compiled layout."""
        result = run_cli("plan")
        assert result.returncode == 0
        assert "Policies      : 18" in result.stdout
        assert "CA, FL, IL" in result.stdout
        assert "11,926" in result.stdout

    def test_plan_from_policy_file(self, tmp_path):
        """plan reads a JSON policy file."""
        policy_file = tmp_path / "policies.json"
        policy_file.write_text(json.dumps({
            "federal": {"bounds": [0, 1000], "rates": [0.1, 0.2]},
            "payroll": [],
        }))
        result = run_cli("plan", "--policy-file", str(policy_file))
        # An empty payroll list cannot fill the result fields
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_missing_policy_file(self, tmp_path):
        """Missing policy file is reported, not raised."""
        result = run_cli("plan", "--policy-file", str(tmp_path / "missing.json"))
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_calculate_to_stdout(self):
        """calculate prints a sample table."""
        result = run_cli("calculate", "--count", "25", "--sample", "5")
        assert result.returncode == 0
        assert "federal_tax" in result.stdout

    def test_calculate_to_file(self, tmp_path):
        """calculate can write CSV."""
        output_file = tmp_path / "results.csv"
        result = run_cli("calculate", "--count", "40", "-o", str(output_file))
        assert result.returncode == 0
        df = pd.read_csv(output_file)
        assert len(df) == 40
        assert "state_unemployment_employer" in df.columns

    def test_race(self):
        """race prints a benchmark report."""
        result = run_cli("race", "--count", "200", "--block-width", "8")
        assert result.returncode == 0
        assert "Speedup" in result.stdout

    def test_validate(self, tmp_path):
        """validate compares both calculators and saves a report."""
        result = run_cli("validate", "--count", "100", "--quiet", "--output-dir", str(tmp_path))
        assert result.returncode == 0
        assert (tmp_path / "validation_report.txt").exists()

    def test_negative_count(self):
        """Negative counts are rejected by argparse."""
        result = run_cli("calculate", "--count", "-1")
        assert result.returncode == 2

    def test_bad_block_width(self):
        result = run_cli("race", "--count", "10", "--block-width", "0")
        assert result.returncode == 2
