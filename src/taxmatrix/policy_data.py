"""
Default policy data for tax year 2025.

Federal single-filer withholding brackets, ten state tables, payroll
policies and general ledger posting buckets. Consumed read-only.
"""

from .policies import (
    Jurisdiction,
    PayrollPolicy,
    PayrollRule,
    PayrollSide,
    PayrollTax,
    PolicySet,
    PostingPolicy,
    ProgressiveTable,
)

# Year-specific payroll caps and thresholds
PAYROLL_PARAMS = {
    "social_security_wage_base": 170_000,
    "additional_medicare_threshold": 200_000,
    "futa_wage_base": 7_000,
    "suta_wage_base": 9_000,
}

FEDERAL_TABLE = ProgressiveTable(
    bounds=(0, 11_926, 48_476, 103_351, 197_301, 250_526, 626_351),
    rates=(0.10, 0.12, 0.22, 0.24, 0.32, 0.35, 0.37),
)

JURISDICTION_TABLES = {
    Jurisdiction.CALIFORNIA: ProgressiveTable(
        bounds=(0, 10_757, 25_500, 40_246, 55_867, 70_607, 360_660, 432_788, 721_315),
        rates=(0.01, 0.02, 0.04, 0.06, 0.08, 0.093, 0.103, 0.113, 0.123),
    ),
    Jurisdiction.NEW_YORK: ProgressiveTable(
        bounds=(0, 8_501, 11_701, 13_901, 80_651, 215_401, 1_077_551, 5_000_001, 25_000_001),
        rates=(0.04, 0.045, 0.0525, 0.055, 0.06, 0.0685, 0.0965, 0.103, 0.109),
    ),
    # No state income tax
    Jurisdiction.TEXAS: ProgressiveTable(bounds=(0,), rates=(0.0,)),
    Jurisdiction.FLORIDA: ProgressiveTable(bounds=(0,), rates=(0.0,)),
    Jurisdiction.WASHINGTON: ProgressiveTable(bounds=(0,), rates=(0.0,)),
    # Flat
    Jurisdiction.PENNSYLVANIA: ProgressiveTable(bounds=(0,), rates=(0.0307,)),
    Jurisdiction.ILLINOIS: ProgressiveTable(bounds=(0,), rates=(0.0495,)),
    # Millionaire surtax
    Jurisdiction.MASSACHUSETTS: ProgressiveTable(
        bounds=(0, 1_000_000),
        rates=(0.05, 0.09),
    ),
    Jurisdiction.OHIO: ProgressiveTable(
        bounds=(0, 26_050, 100_000),
        rates=(0.0, 0.0275, 0.03125),
    ),
    Jurisdiction.NEW_JERSEY: ProgressiveTable(
        bounds=(0, 20_000, 35_000, 40_000, 75_000, 500_000, 1_000_000),
        rates=(0.014, 0.0175, 0.035, 0.05525, 0.0637, 0.0897, 0.1075),
    ),
}

PAYROLL_POLICIES = (
    PayrollPolicy(
        PayrollTax.SOCIAL_SECURITY, PayrollSide.EMPLOYEE, PayrollRule.CAPPED,
        rate=0.062, parameter=PAYROLL_PARAMS["social_security_wage_base"],
    ),
    PayrollPolicy(
        PayrollTax.MEDICARE, PayrollSide.EMPLOYEE, PayrollRule.FLAT,
        rate=0.0145,
    ),
    PayrollPolicy(
        PayrollTax.ADDITIONAL_MEDICARE, PayrollSide.EMPLOYEE, PayrollRule.ABOVE_THRESHOLD,
        rate=0.009, parameter=PAYROLL_PARAMS["additional_medicare_threshold"],
    ),
    PayrollPolicy(
        PayrollTax.SOCIAL_SECURITY, PayrollSide.EMPLOYER, PayrollRule.CAPPED,
        rate=0.062, parameter=PAYROLL_PARAMS["social_security_wage_base"],
    ),
    PayrollPolicy(
        PayrollTax.MEDICARE, PayrollSide.EMPLOYER, PayrollRule.FLAT,
        rate=0.0145,
    ),
    PayrollPolicy(
        PayrollTax.FEDERAL_UNEMPLOYMENT, PayrollSide.EMPLOYER, PayrollRule.CAPPED,
        rate=0.006, parameter=PAYROLL_PARAMS["futa_wage_base"],
    ),
    PayrollPolicy(
        PayrollTax.STATE_UNEMPLOYMENT, PayrollSide.EMPLOYER, PayrollRule.CAPPED,
        rate=0.027, parameter=PAYROLL_PARAMS["suta_wage_base"],
    ),
)

# Employer burden accruals posted per employee
POSTING_POLICIES = (
    PostingPolicy(bucket_id=5100, rate=0.04),    # 401(k) match
    PostingPolicy(bucket_id=5200, rate=0.065),   # health benefits
    PostingPolicy(bucket_id=5300, rate=0.0125),  # workers' compensation
    PostingPolicy(bucket_id=5400, rate=0.02),    # paid leave accrual
)


def default_policy_set() -> PolicySet:
    """Bundle the module-level tables into a PolicySet."""
    return PolicySet(
        federal=FEDERAL_TABLE,
        jurisdictions=JURISDICTION_TABLES,
        payroll=PAYROLL_POLICIES,
        postings=POSTING_POLICIES,
    )
