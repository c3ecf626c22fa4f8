"""
Output buffers for the matrix execution engine.

MatrixBuffer describes a flat backing array together with its logical shape
and memory layout, so the engine can keep postings and block scratch in
column-major storage without callers having to know the stride arithmetic.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..errors import ContractViolationError

COLUMN_MAJOR = "F"
ROW_MAJOR = "C"


@dataclass
class MatrixBuffer:
    """A flat float64 buffer viewed as a rows x cols matrix."""

    values: np.ndarray
    rows: int
    cols: int
    layout: str = COLUMN_MAJOR

    def __post_init__(self):
        if self.layout not in (COLUMN_MAJOR, ROW_MAJOR):
            raise ValueError(f"Unknown layout {self.layout!r}")
        if self.values.ndim != 1:
            raise ContractViolationError("MatrixBuffer values must be one-dimensional")
        if len(self.values) < self.rows * self.cols:
            raise ContractViolationError(
                f"Buffer of length {len(self.values)} cannot hold "
                f"{self.rows} x {self.cols} values"
            )

    @classmethod
    def zeros(cls, rows: int, cols: int, layout: str = COLUMN_MAJOR) -> "MatrixBuffer":
        return cls(np.zeros(rows * cols), rows, cols, layout)

    def as_matrix(self, cols: Optional[int] = None) -> np.ndarray:
        """
        A writable 2-D view over the buffer.

        Args:
            cols: Leading column count to expose (column-major only when
                smaller than the full width)
        """
        cols = self.cols if cols is None else cols
        if cols != self.cols and self.layout != COLUMN_MAJOR:
            raise ValueError("Partial-width views need a column-major buffer")
        size = self.rows * cols
        return self.values[:size].reshape((self.rows, cols), order=self.layout)


@dataclass
class OutputBuffers:
    """
    Per-batch output arrays written by the engine and read by the packer.

    One set per batch; never share a set between concurrent batches.
    """

    federal_taxes: np.ndarray
    jurisdiction_taxes: np.ndarray
    payroll_taxes: List[np.ndarray]
    postings: MatrixBuffer

    @property
    def record_count(self) -> int:
        return len(self.federal_taxes)

    @classmethod
    def allocate(cls, record_count: int, payroll_policy_count: int, bucket_count: int) -> "OutputBuffers":
        return cls(
            federal_taxes=np.zeros(record_count),
            jurisdiction_taxes=np.zeros(record_count),
            payroll_taxes=[np.zeros(record_count) for _ in range(payroll_policy_count)],
            postings=MatrixBuffer.zeros(record_count, bucket_count),
        )
