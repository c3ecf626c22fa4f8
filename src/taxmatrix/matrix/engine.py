"""
Blocked matrix execution engine.

Multiplies the record feature matrix by column blocks of the plan's transform
matrix and scatters each block's columns into the typed output arrays:

- federal (column 0) -> federal_taxes
- each jurisdiction column -> jurisdiction_taxes, only for that
  jurisdiction's records
- each payroll column -> that policy's payroll array

General ledger postings are one outer product of the income column with the
posting rates; they do not depend on the threshold basis and need no blocks.
"""

from typing import Dict, Optional

import numpy as np

from ..errors import ContractViolationError
from ..policies import Jurisdiction
from .buffers import COLUMN_MAJOR, MatrixBuffer, OutputBuffers
from .plan import FEDERAL_COLUMN, PolicyLayout, PolicyPlan

# Maximum number of policy columns multiplied per block. Keep it a power of
# two; it trades block scratch size against per-multiply overhead.
MAX_POLICY_BLOCK_WIDTH = 64

# Narrowest multiply window. One-column blocks are widened so every column
# goes through the same matrix-matrix kernel as wider blocks.
MIN_MULTIPLY_WIDTH = 2


def scratch_width(block_width: int, policy_count: int) -> int:
    """Columns a block scratch buffer needs for this block width."""
    return min(max(block_width, MIN_MULTIPLY_WIDTH), policy_count)


def execute(
    feature_matrix: np.ndarray,
    plan: PolicyPlan,
    indices_by_jurisdiction: Dict[Jurisdiction, np.ndarray],
    outputs: OutputBuffers,
    block_width: int = MAX_POLICY_BLOCK_WIDTH,
    scratch: Optional[MatrixBuffer] = None,
) -> None:
    """
    Apply every policy in the plan to every record.

    Args:
        feature_matrix: [N, 1 + T] record-by-feature matrix
        plan: Compiled policy plan
        indices_by_jurisdiction: Record indices grouped by jurisdiction
        outputs: Buffers to overwrite with results
        block_width: Maximum policy columns per multiply
        scratch: Optional reusable column-major block buffer of at least
            [N, scratch_width(block_width, policy_count)]

    Raises:
        ContractViolationError: any buffer disagrees with the batch size.
            Checked before anything is written.
    """
    record_count = validate_execution_inputs(
        feature_matrix, plan, indices_by_jurisdiction, outputs, block_width
    )

    policy_count = plan.policy_count
    width = min(block_width, policy_count)
    needed = scratch_width(block_width, policy_count)

    if scratch is None:
        scratch = MatrixBuffer.zeros(record_count, needed)
    elif scratch.rows != record_count or scratch.cols < needed or scratch.layout != COLUMN_MAJOR:
        raise ContractViolationError(
            f"Scratch buffer is {scratch.rows} x {scratch.cols}, "
            f"need column-major {record_count} x {needed}"
        )

    # Records outside every configured jurisdiction keep zero
    outputs.jurisdiction_taxes.fill(0.0)

    transform = plan.transform
    for block_start in range(0, policy_count, width):
        block_count = min(width, policy_count - block_start)

        multiply_count = min(max(block_count, MIN_MULTIPLY_WIDTH), policy_count)
        multiply_start = min(block_start, policy_count - multiply_count)

        window = scratch.as_matrix(cols=multiply_count)
        np.matmul(
            feature_matrix,
            transform[:, multiply_start:multiply_start + multiply_count],
            out=window,
        )
        skip = block_start - multiply_start
        block_out = window[:, skip:skip + block_count]

        _extract_federal(block_start, block_count, block_out, outputs.federal_taxes)
        _extract_jurisdictions(
            block_start,
            block_count,
            block_out,
            plan.layout,
            indices_by_jurisdiction,
            outputs.jurisdiction_taxes,
        )
        _extract_payroll(block_start, block_count, block_out, plan.layout, outputs.payroll_taxes)

    compute_postings(feature_matrix[:, 0], plan.posting_rates, outputs.postings)


def compute_postings(incomes: np.ndarray, rates: np.ndarray, postings: MatrixBuffer) -> None:
    """
    General ledger postings as [N x 1] @ [1 x B] -> [N x B].

    Overwrites the postings buffer.
    """
    if len(rates) == 0:
        return

    np.matmul(
        incomes.reshape(-1, 1),
        rates.reshape(1, -1),
        out=postings.as_matrix(),
    )


def validate_execution_inputs(
    feature_matrix: np.ndarray,
    plan: PolicyPlan,
    indices_by_jurisdiction: Dict[Jurisdiction, np.ndarray],
    outputs: OutputBuffers,
    block_width: int,
) -> int:
    """Check every shape up front; returns the record count."""
    if feature_matrix is None:
        raise ContractViolationError("feature_matrix is required")
    if outputs is None:
        raise ContractViolationError("outputs are required")
    if indices_by_jurisdiction is None:
        raise ContractViolationError("indices_by_jurisdiction is required")
    if block_width < 1:
        raise ContractViolationError(f"block_width must be positive, got {block_width}")

    if feature_matrix.ndim != 2:
        raise ContractViolationError("feature_matrix must be two-dimensional")

    record_count, feature_count = feature_matrix.shape
    if feature_count != plan.feature_count:
        raise ContractViolationError(
            f"Feature matrix has {feature_count} columns, plan expects {plan.feature_count}"
        )

    _require_length("federal_taxes", outputs.federal_taxes, record_count)
    _require_length("jurisdiction_taxes", outputs.jurisdiction_taxes, record_count)

    if len(outputs.payroll_taxes) != plan.payroll_policy_count:
        raise ContractViolationError(
            f"Got {len(outputs.payroll_taxes)} payroll buffers for "
            f"{plan.payroll_policy_count} payroll policies"
        )
    for index, buffer in enumerate(outputs.payroll_taxes):
        _require_length(f"payroll_taxes[{index}]", buffer, record_count)

    if plan.bucket_count > 0:
        postings = outputs.postings
        if postings is None:
            raise ContractViolationError("postings buffer is required when buckets are configured")
        if postings.rows != record_count or postings.cols != plan.bucket_count:
            raise ContractViolationError(
                f"Postings buffer is {postings.rows} x {postings.cols}, "
                f"need {record_count} x {plan.bucket_count}"
            )
        if postings.layout != COLUMN_MAJOR:
            raise ContractViolationError("Postings buffer must be column-major")

    for jurisdiction, indices in indices_by_jurisdiction.items():
        if len(indices) and (indices.min() < 0 or indices.max() >= record_count):
            raise ContractViolationError(
                f"Record indices for {jurisdiction.value} fall outside 0..{record_count - 1}"
            )

    return record_count


def _require_length(name: str, buffer: np.ndarray, record_count: int) -> None:
    if buffer is None:
        raise ContractViolationError(f"{name} is required")
    if len(buffer) != record_count:
        raise ContractViolationError(
            f"{name} has length {len(buffer)}, batch has {record_count} records"
        )


def _in_block(global_column: int, block_start: int, block_count: int) -> bool:
    return block_start <= global_column < block_start + block_count


def _extract_federal(
    block_start: int,
    block_count: int,
    block_out: np.ndarray,
    federal_taxes: np.ndarray,
) -> None:
    if not _in_block(FEDERAL_COLUMN, block_start, block_count):
        return
    federal_taxes[:] = block_out[:, FEDERAL_COLUMN - block_start]


def _extract_jurisdictions(
    block_start: int,
    block_count: int,
    block_out: np.ndarray,
    layout: PolicyLayout,
    indices_by_jurisdiction: Dict[Jurisdiction, np.ndarray],
    jurisdiction_taxes: np.ndarray,
) -> None:
    for jurisdiction, indices in indices_by_jurisdiction.items():
        if jurisdiction not in layout.jurisdictions_in_order:
            continue

        global_column = layout.jurisdiction_column(jurisdiction)
        if not _in_block(global_column, block_start, block_count):
            continue

        jurisdiction_taxes[indices] = block_out[indices, global_column - block_start]


def _extract_payroll(
    block_start: int,
    block_count: int,
    block_out: np.ndarray,
    layout: PolicyLayout,
    payroll_taxes,
) -> None:
    for payroll_index, buffer in enumerate(payroll_taxes):
        global_column = layout.payroll_column(payroll_index)
        if not _in_block(global_column, block_start, block_count):
            continue
        buffer[:] = block_out[:, global_column - block_start]
