"""
Feature matrix construction for the matrix tax path.

The basis is [income, max(0, income - t1), max(0, income - t2), ...] over the
plan's shared thresholds. The matrix is column-major so column 0 is a
contiguous income vector.
"""

from dataclasses import dataclass
from typing import Dict, Sequence

import numpy as np

from ..errors import ContractViolationError
from ..policies import Jurisdiction
from ..records import Record


def build_feature_matrix(incomes: np.ndarray, shared_thresholds: np.ndarray) -> np.ndarray:
    """
    Build a new record-by-feature matrix.

    Args:
        incomes: Per-record incomes
        shared_thresholds: Sorted shared thresholds defining columns 1..T

    Returns:
        Column-major float64 array of shape [N, 1 + T]
    """
    incomes = np.asarray(incomes, dtype=np.float64)
    matrix = np.zeros((len(incomes), 1 + len(shared_thresholds)), order="F")

    fill_income_column(incomes, matrix)
    fill_threshold_columns(matrix[:, 0], shared_thresholds, matrix)

    return matrix


def fill_income_column(incomes: np.ndarray, matrix: np.ndarray) -> None:
    """Copy incomes into column 0 of an existing feature matrix."""
    if matrix.shape[0] != len(incomes):
        raise ContractViolationError(
            f"Feature matrix has {matrix.shape[0]} rows for {len(incomes)} incomes"
        )
    matrix[:, 0] = incomes


def fill_threshold_columns(
    incomes: np.ndarray,
    shared_thresholds: np.ndarray,
    matrix: np.ndarray,
) -> None:
    """
    Fill columns 1..T with hinge features, overwriting whatever was there.

    ``incomes`` may be a view of column 0 of ``matrix``.
    """
    if matrix.shape != (len(incomes), 1 + len(shared_thresholds)):
        raise ContractViolationError(
            f"Feature matrix shape {matrix.shape} does not match "
            f"({len(incomes)}, {1 + len(shared_thresholds)})"
        )

    for i, threshold in enumerate(shared_thresholds):
        column = matrix[:, 1 + i]
        np.subtract(incomes, threshold, out=column)
        np.maximum(column, 0.0, out=column)


@dataclass
class BatchInputs:
    """
    Primitive per-record inputs for one batch.

    Lets the hot path work on arrays and pre-grouped indices instead of
    Record objects. ``incomes`` is column 0 of ``feature_matrix``.
    """

    feature_matrix: np.ndarray
    indices_by_jurisdiction: Dict[Jurisdiction, np.ndarray]

    @property
    def incomes(self) -> np.ndarray:
        return self.feature_matrix[:, 0]

    @property
    def record_count(self) -> int:
        return self.feature_matrix.shape[0]

    @classmethod
    def build(cls, records: Sequence[Record], shared_thresholds: np.ndarray) -> "BatchInputs":
        """
        Extract incomes and jurisdiction groupings in one pass, then fill the
        threshold columns from the income column.
        """
        record_count = len(records)
        matrix = np.zeros((record_count, 1 + len(shared_thresholds)), order="F")
        incomes = matrix[:, 0]

        grouped: Dict[Jurisdiction, list] = {}
        for index, record in enumerate(records):
            if not np.isfinite(record.income) or record.income < 0:
                raise ContractViolationError(
                    f"Record {record.id} has invalid income {record.income}; "
                    "incomes must be finite and non-negative"
                )
            incomes[index] = record.income
            grouped.setdefault(record.jurisdiction, []).append(index)

        fill_threshold_columns(incomes, shared_thresholds, matrix)

        indices_by_jurisdiction = {
            jurisdiction: np.asarray(indices, dtype=np.intp)
            for jurisdiction, indices in grouped.items()
        }
        return cls(feature_matrix=matrix, indices_by_jurisdiction=indices_by_jurisdiction)
