"""
Reference tax calculator - per-record scalar implementation.

Walks each bracket and evaluates each payroll rule in closed form, one record
at a time. This is the oracle the matrix path is validated against, so it
shares no code with taxmatrix.matrix.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from ..errors import ConfigurationError, ContractViolationError
from ..policies import (
    PAYROLL_FIELDS,
    Jurisdiction,
    PayrollPolicy,
    PayrollRule,
    PayrollSide,
    PayrollTax,
    PolicySet,
    ProgressiveTable,
)
from ..records import Record, TaxResult

_FIELD_BY_POLICY: Dict[Tuple[PayrollTax, PayrollSide], str] = {
    (f.tax, f.side): f.name for f in PAYROLL_FIELDS
}


def calculate_progressive_tax(income: float, table: ProgressiveTable) -> float:
    """
    Calculate progressive tax by walking brackets in order.

    Args:
        income: Income to tax (>= 0)
        table: Bracket lower bounds and marginal rates

    Returns:
        Sum over brackets of (min(income, bracket_end) - bracket_start) * rate
    """
    bounds = table.bounds
    rates = table.rates
    bracket_count = len(rates)

    tax = 0.0
    for i in range(bracket_count):
        bracket_start = bounds[i]
        bracket_end = bounds[i + 1] if i + 1 < bracket_count else float("inf")

        if income <= bracket_start:
            break

        tax += (min(income, bracket_end) - bracket_start) * rates[i]

    return tax


def calculate_jurisdiction_tax(
    income: float,
    jurisdiction: Jurisdiction,
    tables: Dict[Jurisdiction, ProgressiveTable],
) -> float:
    """Progressive tax for the record's jurisdiction, 0 if it has no table."""
    table = tables.get(jurisdiction)
    if table is None:
        return 0.0
    return calculate_progressive_tax(income, table)


def evaluate_payroll_policy(income: float, policy: PayrollPolicy) -> float:
    """Amount produced by one payroll policy for one income."""
    if policy.rule == PayrollRule.FLAT:
        return policy.rate * income
    elif policy.rule == PayrollRule.ABOVE_THRESHOLD:
        return policy.rate * max(0.0, income - policy.parameter)
    elif policy.rule == PayrollRule.CAPPED:
        return policy.rate * min(income, policy.parameter)
    raise ConfigurationError(f"Unhandled payroll rule: {policy.rule!r}")


def payroll_field_for(policy: PayrollPolicy) -> str:
    """TaxResult attribute that receives this policy's amount."""
    try:
        return _FIELD_BY_POLICY[(policy.tax, policy.side)]
    except KeyError:
        raise ConfigurationError(
            f"No result field for payroll tax={policy.tax.value}, side={policy.side.value}"
        ) from None


def calculate_record_taxes(
    record: Record,
    policy_set: PolicySet,
    result: Optional[TaxResult] = None,
) -> TaxResult:
    """
    Calculate every output for one record.

    Args:
        record: The record to tax
        policy_set: Tables, payroll policies and posting buckets
        result: Optional result object to overwrite instead of allocating

    Returns:
        The populated TaxResult
    """
    income = float(record.income)

    if result is None:
        result = TaxResult(record=record)
    else:
        result.record = record

    result.federal_tax = calculate_progressive_tax(income, policy_set.federal)
    result.jurisdiction_tax = calculate_jurisdiction_tax(
        income, record.jurisdiction, policy_set.jurisdictions
    )

    for field_def in PAYROLL_FIELDS:
        setattr(result, field_def.name, 0.0)
    for policy in policy_set.payroll:
        setattr(result, payroll_field_for(policy), evaluate_payroll_policy(income, policy))

    bucket_count = len(policy_set.postings)
    if bucket_count == 0:
        result.general_ledger_postings = None
    else:
        if result.general_ledger_postings is None or len(result.general_ledger_postings) != bucket_count:
            result.general_ledger_postings = np.zeros(bucket_count)
        for b, posting in enumerate(policy_set.postings):
            result.general_ledger_postings[b] = income * posting.rate

    return result


def calculate_taxes(
    records: Sequence[Record],
    policy_set: PolicySet,
    show_progress: bool = False,
) -> List[TaxResult]:
    """
    Run the reference calculator over a batch.

    Args:
        records: Records in output order
        policy_set: Policy data to evaluate
        show_progress: Show a progress bar

    Returns:
        One TaxResult per record, aligned to the input ordering
    """
    iterator = tqdm(records, desc="Reference") if show_progress else records
    return [calculate_record_taxes(record, policy_set) for record in iterator]


def calculate_taxes_into(
    records: Sequence[Record],
    policy_set: PolicySet,
    results: Sequence[TaxResult],
    show_progress: bool = False,
) -> None:
    """Like calculate_taxes, but overwrites pre-allocated result objects."""
    if len(results) < len(records):
        raise ContractViolationError(
            f"Results array holds {len(results)} entries for {len(records)} records"
        )

    iterator = tqdm(records, desc="Reference") if show_progress else records
    for i, record in enumerate(iterator):
        calculate_record_taxes(record, policy_set, results[i])
