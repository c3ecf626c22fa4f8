"""
Race: time the reference and matrix calculators on the same population and
spot-check that they agree.
"""

import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..calculators import calculate_taxes_into
from ..matrix import MAX_POLICY_BLOCK_WIDTH, MatrixCalculator, PolicyPlan
from ..policies import PAYROLL_FIELD_NAMES, PolicySet
from ..records import Record, TaxResult, preallocate_results

# Scalar fields compared by the spot check
COMPARED_FIELDS = ("federal_tax", "jurisdiction_tax", "total_income_tax") + PAYROLL_FIELD_NAMES


@dataclass
class RaceResult:
    """Timings and spot-check delta from one race."""

    reference_results: List[TaxResult]
    matrix_results: List[TaxResult]
    reference_seconds: float
    matrix_seconds: float
    max_abs_delta: float
    delta_check_count: int

    @property
    def speedup(self) -> float:
        if self.matrix_seconds <= 0.0:
            return float("inf")
        return self.reference_seconds / self.matrix_seconds

    def report(self, sample_rows: int = 20) -> str:
        """Human-readable summary with a sample of matrix results."""
        lines = [
            "=== Tax Calculator Benchmark Results ===",
            "",
            f"Reference Time : {self.reference_seconds * 1000:,.0f} ms",
            f"Matrix Time    : {self.matrix_seconds * 1000:,.0f} ms",
            f"Speedup        : {self.speedup:,.2f}x",
            f"Max Δ Checked  : {self.max_abs_delta:.3e} (over {self.delta_check_count:,} rows)",
            "",
        ]

        rows = self.matrix_results[:sample_rows]
        if rows:
            lines.extend([
                "Sample Tax Results",
                "-" * 74,
                f"{'ID':>5}  {'Jurisdiction':<14} {'Income':>12} {'Federal':>12} {'State':>12} {'Total':>12}",
                "-" * 74,
            ])
            for r in rows:
                lines.append(
                    f"{r.record.id:>5}  {r.record.jurisdiction.value:<14} "
                    f"{_money(r.record.income):>12} {_money(r.federal_tax):>12} "
                    f"{_money(r.jurisdiction_tax):>12} {_money(r.total_income_tax):>12}"
                )

            first = rows[0]
            lines.extend(["", "Detailed Output Fields (Row 0)", "-" * 30])
            for name in PAYROLL_FIELD_NAMES:
                lines.append(f"{name:<30}: {_money(getattr(first, name))}")
            if first.general_ledger_postings is not None:
                for b, value in enumerate(first.general_ledger_postings):
                    lines.append(f"{'gl_' + str(b):<30}: {_money(value)}")

        return "\n".join(lines)


def _money(value: float) -> str:
    return f"${value:,.0f}"


def race(
    records: Sequence[Record],
    policy_set: PolicySet,
    plan: Optional[PolicyPlan] = None,
    block_width: int = MAX_POLICY_BLOCK_WIDTH,
    warmup_count: int = 10_000,
    spot_check_count: int = 1_000,
) -> RaceResult:
    """
    Time both calculators and measure the max delta on the first rows.

    Result objects are pre-allocated outside the timed regions. Packing the
    matrix results is not timed.

    Args:
        records: Population to tax
        policy_set: Policy data for the reference path
        plan: Compiled plan (built from policy_set if omitted)
        block_width: Matrix engine block width
        warmup_count: Records used to warm the matrix path
        spot_check_count: Rows compared field by field

    Returns:
        RaceResult
    """
    plan = plan or PolicyPlan.from_policy_set(policy_set)
    calculator = MatrixCalculator(plan, block_width=block_width)

    if len(records) == 0:
        return RaceResult([], [], 0.0, 0.0, 0.0, 0)

    warm = records[:warmup_count]
    calculator.run(calculator.prepare(warm))

    workspace = calculator.prepare(records)
    reference_results = preallocate_results(records, plan.bucket_count)
    matrix_results = preallocate_results(records, plan.bucket_count)

    start = time.perf_counter()
    calculate_taxes_into(records, policy_set, reference_results)
    reference_seconds = time.perf_counter() - start

    start = time.perf_counter()
    calculator.run(workspace)
    matrix_seconds = time.perf_counter() - start

    calculator.pack_into(workspace, matrix_results)

    max_delta = compute_max_delta(reference_results, matrix_results, spot_check_count)

    return RaceResult(
        reference_results=reference_results,
        matrix_results=matrix_results,
        reference_seconds=reference_seconds,
        matrix_seconds=matrix_seconds,
        max_abs_delta=max_delta,
        delta_check_count=min(spot_check_count, len(reference_results), len(matrix_results)),
    )


def compute_max_delta(
    reference: Sequence[TaxResult],
    matrix: Sequence[TaxResult],
    spot_check_count: int,
) -> float:
    """
    Max absolute delta across every output field on the first N rows.

    Raises:
        ValueError: rows refer to different records, or posting arrays differ
            in presence or length
    """
    count = min(spot_check_count, len(reference), len(matrix))
    max_delta = 0.0

    for i in range(count):
        a = reference[i]
        b = matrix[i]

        if a.record is not b.record:
            raise ValueError(f"Result row {i} refers to different records")

        for name in COMPARED_FIELDS:
            max_delta = max(max_delta, abs(getattr(a, name) - getattr(b, name)))

        gl_a = a.general_ledger_postings
        gl_b = b.general_ledger_postings
        if gl_a is None or gl_b is None:
            if (gl_a is None) != (gl_b is None):
                raise ValueError(f"General ledger postings presence differs on row {i}")
            continue
        if len(gl_a) != len(gl_b):
            raise ValueError(f"General ledger postings length differs on row {i}")
        if len(gl_a):
            max_delta = max(max_delta, float(np.max(np.abs(gl_a - gl_b))))

    return max_delta
