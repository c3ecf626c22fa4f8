"""
Per-person records and per-person tax results.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .policies import Jurisdiction


@dataclass(frozen=True)
class Record:
    """One person in a batch."""

    id: int
    name: str
    jurisdiction: Jurisdiction
    income: float


@dataclass
class TaxResult:
    """Tax, payroll and general ledger amounts for one record."""

    record: Record

    federal_tax: float = 0.0
    jurisdiction_tax: float = 0.0

    # Employee-side payroll
    social_security_employee: float = 0.0
    medicare_employee: float = 0.0
    additional_medicare_employee: float = 0.0

    # Employer-side payroll
    social_security_employer: float = 0.0
    medicare_employer: float = 0.0
    federal_unemployment_employer: float = 0.0
    state_unemployment_employer: float = 0.0

    # One value per posting bucket, None when no buckets are configured
    general_ledger_postings: Optional[np.ndarray] = None

    @property
    def employee_payroll_total(self) -> float:
        return (
            self.social_security_employee
            + self.medicare_employee
            + self.additional_medicare_employee
        )

    @property
    def employer_payroll_total(self) -> float:
        return (
            self.social_security_employer
            + self.medicare_employer
            + self.federal_unemployment_employer
            + self.state_unemployment_employer
        )

    @property
    def total_income_tax(self) -> float:
        return self.federal_tax + self.jurisdiction_tax


def preallocate_results(records, bucket_count: int) -> list:
    """
    Create result objects (with posting arrays sized to bucket_count) for
    repeated runs that pack in place.
    """
    return [
        TaxResult(
            record=record,
            general_ledger_postings=np.zeros(bucket_count) if bucket_count else None,
        )
        for record in records
    ]
