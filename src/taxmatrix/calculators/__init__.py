"""
Python reference implementations of the tax calculations.

These serve as the ground truth for validating the matrix path in
taxmatrix.matrix.
"""

from .reference import (
    calculate_jurisdiction_tax,
    calculate_progressive_tax,
    calculate_record_taxes,
    calculate_taxes,
    calculate_taxes_into,
    evaluate_payroll_policy,
    payroll_field_for,
)

__all__ = [
    "calculate_progressive_tax",
    "calculate_jurisdiction_tax",
    "evaluate_payroll_policy",
    "payroll_field_for",
    "calculate_record_taxes",
    "calculate_taxes",
    "calculate_taxes_into",
]
