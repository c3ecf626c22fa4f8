"""
Matrix-based tax calculator.

Ties the pieces together: batch inputs and feature matrix, blocked execution
against a caller-owned PolicyPlan, then packing into TaxResult objects.

Usage:
    plan = PolicyPlan.from_policy_set(default_policy_set())
    calculator = MatrixCalculator(plan)
    results = calculator.calculate(records)
"""

from dataclasses import dataclass
from typing import List, Sequence

from ..errors import ContractViolationError
from ..records import Record, TaxResult
from .buffers import MatrixBuffer, OutputBuffers
from .engine import MAX_POLICY_BLOCK_WIDTH, execute, scratch_width
from .features import BatchInputs
from .packer import pack, pack_into
from .plan import PolicyPlan


@dataclass
class BatchWorkspace:
    """
    Inputs and buffers owned by one batch.

    Built outside any timed region and reused by repeated runs of the same
    batch. Concurrent batches each need their own workspace.
    """

    records: Sequence[Record]
    inputs: BatchInputs
    outputs: OutputBuffers
    scratch: MatrixBuffer

    @property
    def record_count(self) -> int:
        return len(self.records)


class MatrixCalculator:
    """Computes taxes for batches of records with one shared plan."""

    def __init__(self, plan: PolicyPlan, block_width: int = MAX_POLICY_BLOCK_WIDTH):
        if block_width < 1:
            raise ValueError(f"block_width must be positive, got {block_width}")
        self.plan = plan
        self.block_width = block_width

    def prepare(self, records: Sequence[Record]) -> BatchWorkspace:
        """Extract inputs and allocate every buffer the batch needs."""
        plan = self.plan
        record_count = len(records)

        inputs = BatchInputs.build(records, plan.shared_thresholds)
        outputs = OutputBuffers.allocate(
            record_count, plan.payroll_policy_count, plan.bucket_count
        )
        scratch = MatrixBuffer.zeros(record_count, scratch_width(self.block_width, plan.policy_count))

        return BatchWorkspace(records=records, inputs=inputs, outputs=outputs, scratch=scratch)

    def run(self, workspace: BatchWorkspace) -> None:
        """Execute the plan into the workspace's output buffers."""
        if workspace.inputs.record_count != workspace.record_count:
            raise ContractViolationError(
                f"Workspace inputs cover {workspace.inputs.record_count} records, "
                f"batch has {workspace.record_count}"
            )
        execute(
            workspace.inputs.feature_matrix,
            self.plan,
            workspace.inputs.indices_by_jurisdiction,
            workspace.outputs,
            block_width=self.block_width,
            scratch=workspace.scratch,
        )

    def pack(self, workspace: BatchWorkspace) -> List[TaxResult]:
        return pack(workspace.records, workspace.outputs, self.plan)

    def pack_into(self, workspace: BatchWorkspace, results: Sequence[TaxResult]) -> None:
        pack_into(workspace.records, workspace.outputs, self.plan, results)

    def calculate(self, records: Sequence[Record]) -> List[TaxResult]:
        """
        Calculate taxes for a batch.

        Args:
            records: Records in output order (read, never mutated)

        Returns:
            One TaxResult per record, aligned to the input ordering
        """
        workspace = self.prepare(records)
        self.run(workspace)
        return self.pack(workspace)

    def calculate_into(self, records: Sequence[Record], results: Sequence[TaxResult]) -> None:
        """Calculate a batch into pre-allocated results."""
        workspace = self.prepare(records)
        self.run(workspace)
        self.pack_into(workspace, results)
