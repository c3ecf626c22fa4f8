"""Tests for validation modules: comparator and race."""

import numpy as np
import pandas as pd
import pytest

from taxmatrix.calculators import calculate_taxes
from taxmatrix.matrix import MatrixCalculator, PolicyPlan
from taxmatrix.population import generate_records
from taxmatrix.records import TaxResult


# ============================================================
# validation/__init__.py
# ============================================================


class TestValidationInit:
    """Test that validation __init__ exports are accessible."""

    def test_exports(self):
        from taxmatrix.validation import (
            Comparator,
            ComparisonConfig,
            ComparisonResults,
            RaceResult,
            compute_max_delta,
            merge_results,
            race,
            results_to_frame,
        )

        assert Comparator is not None
        assert ComparisonConfig is not None
        assert ComparisonResults is not None
        assert RaceResult is not None
        assert callable(compute_max_delta)
        assert callable(merge_results)
        assert callable(race)
        assert callable(results_to_frame)


# ============================================================
# validation/comparator.py
# ============================================================


@pytest.fixture
def paired(policy_set):
    records = generate_records(50, seed=11)
    reference = calculate_taxes(records, policy_set)
    matrix = MatrixCalculator(PolicyPlan.from_policy_set(policy_set)).calculate(records)
    return reference, matrix


class TestComparisonConfig:
    """Test ComparisonConfig defaults and tolerance lookup."""

    def test_default_config(self):
        from taxmatrix.validation import ComparisonConfig

        config = ComparisonConfig()
        assert config.tax_tolerance == 1e-6
        assert config.relative_tolerance == 1e-9
        assert config.id_col == "record_id"

    def test_tolerance_for(self):
        from taxmatrix.validation import ComparisonConfig

        config = ComparisonConfig(tax_tolerance=1.0, payroll_tolerance=2.0, posting_tolerance=3.0)
        assert config.tolerance_for("federal_tax") == 1.0
        assert config.tolerance_for("medicare_employee") == 2.0
        assert config.tolerance_for("gl_0") == 3.0


class TestResultsFrame:
    """Tests for flattening results into DataFrames."""

    def test_columns(self, paired):
        from taxmatrix.validation import results_to_frame

        reference, _ = paired
        df = results_to_frame(reference)
        assert len(df) == 50
        assert {"record_id", "jurisdiction", "income", "federal_tax", "gl_3"} <= set(df.columns)
        assert "gl_4" not in df.columns

    def test_prefix(self, paired):
        from taxmatrix.validation import results_to_frame

        df = results_to_frame(paired[0], prefix="ref_")
        assert "ref_federal_tax" in df.columns
        assert "ref_record_id" not in df.columns

    def test_merge(self, paired):
        from taxmatrix.validation import merge_results

        df = merge_results(*paired)
        assert "ref_medicare_employer" in df.columns
        assert "mat_medicare_employer" in df.columns
        assert len(df) == 50

    def test_merge_count_mismatch(self, paired):
        from taxmatrix.validation import merge_results

        reference, matrix = paired
        with pytest.raises(ValueError, match="Result counts differ"):
            merge_results(reference, matrix[:-1])


class TestComparator:
    """Test Comparator on matching and drifted results."""

    def test_all_match(self, paired):
        from taxmatrix.validation import Comparator, merge_results

        results = Comparator().compare(merge_results(*paired))
        assert results.all_match
        assert results.total_records == 50
        assert "federal_tax" in results.variables_compared
        assert "gl_0" in results.variables_compared
        assert results.match_rates["federal_tax"] == 100.0
        assert results.max_abs_delta < 1e-6

    def test_detects_drift(self, paired):
        from taxmatrix.validation import Comparator, merge_results

        reference, matrix = paired
        matrix[3].federal_tax += 5.0
        results = Comparator().compare(merge_results(reference, matrix))

        assert not results.all_match
        assert len(results.mismatches["federal_tax"]) == 1
        mismatch = results.mismatches["federal_tax"][0]
        assert mismatch.record_id == matrix[3].record.id
        assert mismatch.difference == pytest.approx(5.0)
        assert results.max_abs_delta == pytest.approx(5.0)
        assert "Worst mismatches" in results.detailed_report()

    def test_summary(self, paired):
        from taxmatrix.validation import Comparator, merge_results

        summary = Comparator().compare(merge_results(*paired)).summary()
        assert summary["total_records"] == 50
        assert summary["variables"]["federal_tax"]["mismatches"] == 0

    def test_missing_postings_count_as_mismatch(self, paired):
        from taxmatrix.validation import Comparator, merge_results

        reference, matrix = paired
        matrix[0].general_ledger_postings = None
        results = Comparator().compare(merge_results(reference, matrix))
        assert len(results.mismatches["gl_0"]) == 1
        assert results.max_abs_delta == float("inf")

    def test_empty_frame(self):
        from taxmatrix.validation import Comparator

        df = pd.DataFrame({"record_id": [], "ref_federal_tax": [], "mat_federal_tax": []})
        results = Comparator().compare(df)
        assert results.matches["federal_tax"] == 0
        assert results.match_rates["federal_tax"] == 0

    def test_save_report(self, paired, tmp_path):
        from taxmatrix.validation import Comparator, merge_results

        reference, matrix = paired
        matrix[0].medicare_employee += 1.0
        results = Comparator().compare(merge_results(reference, matrix))
        results.save_report(tmp_path / "out")

        assert (tmp_path / "out" / "validation_report.txt").exists()
        assert (tmp_path / "out" / "validation_data.csv").exists()
        mismatches = pd.read_csv(tmp_path / "out" / "medicare_employee_mismatches.csv")
        assert len(mismatches) == 1


class TestValidatePipeline:
    """Test the validate() pipeline end to end."""

    def test_validate(self, tmp_path, capsys):
        from taxmatrix.validation.comparator import validate

        results = validate(count=200, seed=4, output_dir=str(tmp_path), show_progress=False)
        assert results.all_match
        assert (tmp_path / "validation_report.txt").exists()
        assert "Matrix vs Reference Validation Report" in capsys.readouterr().out


# ============================================================
# validation/race.py
# ============================================================


class TestRace:
    """Tests for the race harness."""

    def test_race(self, policy_set):
        from taxmatrix.validation import race

        records = generate_records(500, seed=8)
        result = race(records, policy_set, warmup_count=50, spot_check_count=100)

        assert len(result.reference_results) == 500
        assert len(result.matrix_results) == 500
        assert result.delta_check_count == 100
        assert result.max_abs_delta < 1e-6
        assert result.reference_seconds >= 0.0
        assert result.matrix_seconds >= 0.0

    def test_report(self, policy_set):
        from taxmatrix.validation import race

        result = race(generate_records(30, seed=8), policy_set, warmup_count=10)
        report = result.report(sample_rows=5)
        assert "Speedup" in report
        assert "Sample Tax Results" in report
        assert "social_security_employee" in report
        assert "gl_3" in report

    def test_empty_population(self, policy_set):
        from taxmatrix.validation import race

        result = race([], policy_set)
        assert result.matrix_results == []
        assert result.max_abs_delta == 0.0
        assert "Sample Tax Results" not in result.report()

    def test_speedup_zero_time(self):
        from taxmatrix.validation import RaceResult

        assert RaceResult([], [], 1.0, 0.0, 0.0, 0).speedup == float("inf")
        assert RaceResult([], [], 2.0, 0.5, 0.0, 0).speedup == pytest.approx(4.0)


class TestComputeMaxDelta:
    """Tests for spot-check delta computation."""

    def test_measures_largest_field_delta(self, paired):
        from taxmatrix.validation import compute_max_delta

        reference, matrix = paired
        matrix[2].state_unemployment_employer += 0.25
        matrix[4].general_ledger_postings[1] += 0.5
        assert compute_max_delta(reference, matrix, 10) == pytest.approx(0.5)

    def test_only_first_rows_checked(self, paired):
        from taxmatrix.validation import compute_max_delta

        reference, matrix = paired
        matrix[20].federal_tax += 100.0
        assert compute_max_delta(reference, matrix, 10) < 1e-6

    def test_misaligned_records(self, paired):
        from taxmatrix.validation import compute_max_delta

        reference, matrix = paired
        with pytest.raises(ValueError, match="different records"):
            compute_max_delta(reference, list(reversed(matrix)), 10)

    def test_posting_presence_mismatch(self, paired):
        from taxmatrix.validation import compute_max_delta

        reference, matrix = paired
        matrix[0].general_ledger_postings = None
        with pytest.raises(ValueError, match="presence"):
            compute_max_delta(reference, matrix, 10)

    def test_posting_length_mismatch(self, paired):
        from taxmatrix.validation import compute_max_delta

        reference, matrix = paired
        matrix[1].general_ledger_postings = np.zeros(2)
        with pytest.raises(ValueError, match="length"):
            compute_max_delta(reference, matrix, 10)

    def test_both_without_postings(self, make_record):
        from taxmatrix.validation import compute_max_delta

        record = make_record(1.0)
        a = TaxResult(record=record, federal_tax=1.0)
        b = TaxResult(record=record, federal_tax=1.5)
        assert compute_max_delta([a], [b], 5) == pytest.approx(0.5)
