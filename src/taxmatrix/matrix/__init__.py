"""
Matrix tax path: compile policies into one transform matrix, then apply it to
whole batches with blocked matrix multiplies.
"""

from .buffers import MatrixBuffer, OutputBuffers
from .calculator import BatchWorkspace, MatrixCalculator
from .engine import MAX_POLICY_BLOCK_WIDTH, compute_postings, execute, scratch_width
from .features import BatchInputs, build_feature_matrix, fill_income_column, fill_threshold_columns
from .packer import pack, pack_into
from .plan import (
    PolicyLayout,
    PolicyPlan,
    build_shared_thresholds,
    build_transform_matrix,
    resolve_payroll_fields,
)

__all__ = [
    "PolicyLayout",
    "PolicyPlan",
    "build_shared_thresholds",
    "build_transform_matrix",
    "resolve_payroll_fields",
    "BatchInputs",
    "build_feature_matrix",
    "fill_income_column",
    "fill_threshold_columns",
    "MatrixBuffer",
    "OutputBuffers",
    "MAX_POLICY_BLOCK_WIDTH",
    "execute",
    "compute_postings",
    "scratch_width",
    "pack",
    "pack_into",
    "BatchWorkspace",
    "MatrixCalculator",
]
