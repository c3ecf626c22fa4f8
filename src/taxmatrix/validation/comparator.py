"""
Comparator: compare matrix-path results against the reference calculator.

Generates detailed comparison reports with tolerance-based matching.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..policies import PAYROLL_FIELD_NAMES
from ..records import TaxResult

TAX_VARIABLES = ("federal_tax", "jurisdiction_tax")
PAYROLL_VARIABLES = PAYROLL_FIELD_NAMES
POSTING_PREFIX = "gl_"


@dataclass
class ComparisonConfig:
    """Configuration for validation comparison."""

    # Absolute tolerances, in dollars
    tax_tolerance: float = 1e-6
    payroll_tolerance: float = 1e-6
    posting_tolerance: float = 1e-6

    # Relative tolerance applied on top of the absolute one
    relative_tolerance: float = 1e-9

    id_col: str = "record_id"

    def tolerance_for(self, variable: str) -> float:
        if variable in TAX_VARIABLES:
            return self.tax_tolerance
        if variable.startswith(POSTING_PREFIX):
            return self.posting_tolerance
        return self.payroll_tolerance


@dataclass
class MismatchRecord:
    """Record of a calculation mismatch."""

    record_id: int
    variable: str
    reference_value: float
    matrix_value: float
    difference: float
    pct_difference: Optional[float] = None
    jurisdiction: Optional[str] = None
    income: Optional[float] = None


@dataclass
class ComparisonResults:
    """Results from comparing the matrix path against the reference path."""

    total_records: int
    variables_compared: List[str]
    matches: Dict[str, int]
    mismatches: Dict[str, List[MismatchRecord]]
    match_rates: Dict[str, float]
    max_abs_delta: float
    config: ComparisonConfig
    full_data: Optional[pd.DataFrame] = None

    @property
    def all_match(self) -> bool:
        return all(len(m) == 0 for m in self.mismatches.values())

    def summary(self) -> Dict[str, Any]:
        """Generate summary statistics."""
        return {
            "total_records": self.total_records,
            "max_abs_delta": self.max_abs_delta,
            "variables": {
                var: {
                    "matches": self.matches[var],
                    "mismatches": len(self.mismatches[var]),
                    "match_rate": self.match_rates[var],
                    "tolerance": self.config.tolerance_for(var),
                }
                for var in self.variables_compared
            },
        }

    def detailed_report(self) -> str:
        """Generate detailed text report."""
        lines = [
            "=" * 70,
            "Matrix vs Reference Validation Report",
            "=" * 70,
            f"Total Records: {self.total_records:,}",
            f"Max |delta|:   {self.max_abs_delta:.3e}",
            "",
        ]

        for var in self.variables_compared:
            tol = self.config.tolerance_for(var)
            lines.extend([
                f"{var}:",
                "-" * 40,
                f"  Matches:     {self.matches[var]:,} ({self.match_rates[var]:.2f}%)",
                f"  Mismatches:  {len(self.mismatches[var]):,}",
                f"  Tolerance:   ±{tol:.1e}",
            ])

            if self.mismatches[var]:
                worst = sorted(self.mismatches[var], key=lambda m: abs(m.difference), reverse=True)[:5]
                lines.append("  Worst mismatches:")
                for m in worst:
                    lines.append(
                        f"    #{m.record_id}: ref={m.reference_value:.6f}, "
                        f"matrix={m.matrix_value:.6f}, diff={m.difference:.3e}"
                    )
            lines.append("")

        lines.append("=" * 70)
        return "\n".join(lines)

    def save_report(self, output_dir: Path):
        """Save comparison results to files."""
        output_dir = Path(output_dir)
        output_dir.mkdir(exist_ok=True, parents=True)

        report_path = output_dir / "validation_report.txt"
        report_path.write_text(self.detailed_report())
        print(f"Saved report to: {report_path}")

        if self.full_data is not None:
            data_path = output_dir / "validation_data.csv"
            self.full_data.to_csv(data_path, index=False)
            print(f"Saved full data to: {data_path}")

        for var in self.variables_compared:
            if self.mismatches[var]:
                mismatch_df = pd.DataFrame([
                    {
                        "record_id": m.record_id,
                        "reference_value": m.reference_value,
                        "matrix_value": m.matrix_value,
                        "difference": m.difference,
                        "pct_difference": m.pct_difference,
                        "jurisdiction": m.jurisdiction,
                        "income": m.income,
                    }
                    for m in self.mismatches[var]
                ])
                mismatch_path = output_dir / f"{var}_mismatches.csv"
                mismatch_df.to_csv(mismatch_path, index=False)
                print(f"Saved {var} mismatches to: {mismatch_path}")


def results_to_frame(results: Sequence[TaxResult], prefix: str = "") -> pd.DataFrame:
    """
    Flatten TaxResult objects into one row per record.

    Args:
        results: Results in record order
        prefix: Prefix for every value column (not for id/jurisdiction/income)

    Returns:
        DataFrame with record_id, jurisdiction, income and one column per
        tax, payroll field and posting bucket
    """
    data: Dict[str, list] = {
        "record_id": [r.record.id for r in results],
        "jurisdiction": [r.record.jurisdiction.value for r in results],
        "income": [float(r.record.income) for r in results],
    }
    for var in TAX_VARIABLES + PAYROLL_VARIABLES:
        data[f"{prefix}{var}"] = [getattr(r, var) for r in results]

    bucket_count = max(
        (len(r.general_ledger_postings) for r in results if r.general_ledger_postings is not None),
        default=0,
    )
    for b in range(bucket_count):
        data[f"{prefix}{POSTING_PREFIX}{b}"] = [
            float(r.general_ledger_postings[b]) if r.general_ledger_postings is not None else np.nan
            for r in results
        ]

    return pd.DataFrame(data)


def merge_results(
    reference: Sequence[TaxResult],
    matrix: Sequence[TaxResult],
) -> pd.DataFrame:
    """Side-by-side frame with ref_* and mat_* columns per variable."""
    if len(reference) != len(matrix):
        raise ValueError(
            f"Result counts differ: {len(reference)} reference vs {len(matrix)} matrix"
        )
    ref_df = results_to_frame(reference, prefix="ref_")
    mat_df = results_to_frame(matrix, prefix="mat_")
    return ref_df.merge(
        mat_df.drop(columns=["jurisdiction", "income"]),
        on="record_id",
    )


class Comparator:
    """Compare reference vs matrix results."""

    def __init__(self, config: Optional[ComparisonConfig] = None):
        self.config = config or ComparisonConfig()

    def variables(self, df: pd.DataFrame) -> List[Tuple[str, str, str]]:
        """(variable, reference column, matrix column) for every shared variable."""
        found = []
        for col in df.columns:
            if not col.startswith("ref_"):
                continue
            var = col[len("ref_"):]
            if f"mat_{var}" in df.columns:
                found.append((var, col, f"mat_{var}"))
        return found

    def compare(self, df: pd.DataFrame) -> ComparisonResults:
        """
        Compare reference and matrix results.

        Args:
            df: DataFrame from merge_results

        Returns:
            ComparisonResults with match statistics and mismatches
        """
        matches = {}
        mismatches = {}
        match_rates = {}
        max_abs_delta = 0.0

        for var_name, ref_col, mat_col in self.variables(df):
            tolerance = self.config.tolerance_for(var_name)
            var_matches, var_mismatches, var_delta = self._compare_variable(
                df, var_name, ref_col, mat_col, tolerance
            )
            matches[var_name] = var_matches
            mismatches[var_name] = var_mismatches
            valid_count = var_matches + len(var_mismatches)
            match_rates[var_name] = (var_matches / valid_count * 100) if valid_count > 0 else 0
            max_abs_delta = max(max_abs_delta, var_delta)

        return ComparisonResults(
            total_records=len(df),
            variables_compared=list(matches.keys()),
            matches=matches,
            mismatches=mismatches,
            match_rates=match_rates,
            max_abs_delta=max_abs_delta,
            config=self.config,
            full_data=df,
        )

    def _compare_variable(
        self,
        df: pd.DataFrame,
        var_name: str,
        ref_col: str,
        mat_col: str,
        tolerance: float,
    ) -> tuple:
        """Compare a single variable."""
        mismatches = []

        # Posting columns are NaN where a result had no posting array
        valid_mask = ~(df[ref_col].isna() & df[mat_col].isna())
        df_valid = df[valid_mask]

        if len(df_valid) == 0:
            return 0, [], 0.0

        ref_values = df_valid[ref_col].to_numpy(dtype=float)
        mat_values = df_valid[mat_col].to_numpy(dtype=float)

        is_match = np.isclose(
            mat_values,
            ref_values,
            rtol=self.config.relative_tolerance,
            atol=tolerance,
            equal_nan=False,
        )
        # A value present on one side only counts as an unbounded delta
        deltas = np.abs(mat_values - ref_values)
        max_delta = float(deltas.max()) if np.isfinite(deltas).all() else float("inf")

        match_count = int(is_match.sum())

        mismatch_rows = df_valid[~is_match]
        for _, row in mismatch_rows.iterrows():
            ref_val = row[ref_col]
            mat_val = row[mat_col]
            diff = mat_val - ref_val

            pct_diff = None
            if ref_val != 0 and not np.isnan(ref_val):
                pct_diff = (diff / ref_val) * 100

            mismatches.append(MismatchRecord(
                record_id=int(row[self.config.id_col]),
                variable=var_name,
                reference_value=ref_val,
                matrix_value=mat_val,
                difference=diff,
                pct_difference=pct_diff,
                jurisdiction=row.get("jurisdiction"),
                income=row.get("income"),
            ))

        return match_count, mismatches, max_delta


def validate(
    count: int = 10_000,
    seed: int = 1234,
    policy_set=None,
    block_width: Optional[int] = None,
    output_dir: Optional[str] = None,
    config: Optional[ComparisonConfig] = None,
    show_progress: bool = True,
) -> ComparisonResults:
    """
    Run the validation pipeline on a synthetic population.

    Args:
        count: Number of records to generate
        seed: Random seed for the population
        policy_set: Policy data (default: tax year 2025 tables)
        block_width: Matrix engine block width (default: engine maximum)
        output_dir: Directory to save results
        config: Comparison configuration
        show_progress: Show a progress bar for the reference path

    Returns:
        ComparisonResults
    """
    from ..calculators import calculate_taxes
    from ..matrix import MAX_POLICY_BLOCK_WIDTH, MatrixCalculator, PolicyPlan
    from ..policy_data import default_policy_set
    from ..population import generate_records

    policy_set = policy_set or default_policy_set()

    print(f"Generating {count:,} records (seed={seed})...")
    records = generate_records(count, seed=seed)

    print("Building policy plan...")
    plan = PolicyPlan.from_policy_set(policy_set)
    calculator = MatrixCalculator(plan, block_width=block_width or MAX_POLICY_BLOCK_WIDTH)

    print("\nRunning calculators...")
    reference = calculate_taxes(records, policy_set, show_progress=show_progress)
    matrix = calculator.calculate(records)

    print("\nComparing results...")
    comparator = Comparator(config)
    results = comparator.compare(merge_results(reference, matrix))

    print("\n" + results.detailed_report())

    if output_dir:
        results.save_report(Path(output_dir))

    return results
