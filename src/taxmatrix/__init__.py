"""
taxmatrix: batch tax, payroll and general ledger posting calculations.

Progressive brackets and payroll rules are compiled into one transform matrix
over a shared hinge-feature basis, so a whole population is taxed with a few
dense matrix multiplies. A per-record reference calculator is kept alongside
as the correctness oracle.
"""

__version__ = "0.1.0"

from .calculators import calculate_taxes
from .errors import ConfigurationError, ContractViolationError, TaxMatrixError
from .matrix import MatrixCalculator, PolicyPlan
from .policies import (
    Jurisdiction,
    PayrollPolicy,
    PayrollRule,
    PayrollSide,
    PayrollTax,
    PolicySet,
    PostingPolicy,
    ProgressiveTable,
    load_policy_set,
)
from .policy_data import default_policy_set
from .population import generate_records
from .records import Record, TaxResult

__all__ = [
    "ConfigurationError",
    "ContractViolationError",
    "TaxMatrixError",
    "Jurisdiction",
    "PayrollPolicy",
    "PayrollRule",
    "PayrollSide",
    "PayrollTax",
    "PolicySet",
    "PostingPolicy",
    "ProgressiveTable",
    "load_policy_set",
    "default_policy_set",
    "generate_records",
    "Record",
    "TaxResult",
    "PolicyPlan",
    "MatrixCalculator",
    "calculate_taxes",
]
