"""
Packs per-policy output arrays into per-record TaxResult objects.
"""

from typing import List, Sequence

import numpy as np

from ..errors import ContractViolationError
from ..records import Record, TaxResult
from .buffers import OutputBuffers
from .plan import PolicyPlan


def pack(
    records: Sequence[Record],
    outputs: OutputBuffers,
    plan: PolicyPlan,
) -> List[TaxResult]:
    """Allocate and fill one TaxResult per record, in record order."""
    _validate(records, outputs, plan)

    federal = outputs.federal_taxes.tolist()
    jurisdiction = outputs.jurisdiction_taxes.tolist()
    payroll = [(name, outputs.payroll_taxes[index].tolist()) for name, index in plan.payroll_fields]
    postings = outputs.postings.as_matrix() if plan.bucket_count else None

    results = []
    for i, record in enumerate(records):
        result = TaxResult(
            record=record,
            federal_tax=federal[i],
            jurisdiction_tax=jurisdiction[i],
            general_ledger_postings=None if postings is None else postings[i].copy(),
        )
        for name, values in payroll:
            setattr(result, name, values[i])
        results.append(result)

    return results


def pack_into(
    records: Sequence[Record],
    outputs: OutputBuffers,
    plan: PolicyPlan,
    results: Sequence[TaxResult],
) -> None:
    """
    Overwrite pre-allocated results in place.

    Every field is rewritten so a reused result is indistinguishable from a
    freshly packed one. When buckets are configured each result must already
    carry a posting array of exactly bucket_count entries.

    Raises:
        ContractViolationError: results are undersized or missing posting arrays.
            Checked before any result is touched.
    """
    _validate(records, outputs, plan)

    record_count = len(records)
    bucket_count = plan.bucket_count

    if results is None or len(results) < record_count:
        raise ContractViolationError(
            f"Results array holds {0 if results is None else len(results)} entries "
            f"for {record_count} records"
        )
    if bucket_count:
        for i in range(record_count):
            gl = results[i].general_ledger_postings
            if gl is None or np.shape(gl) != (bucket_count,):
                raise ContractViolationError(
                    f"Result {i} needs a general ledger array of length {bucket_count}"
                )

    federal = outputs.federal_taxes.tolist()
    jurisdiction = outputs.jurisdiction_taxes.tolist()
    payroll = [(name, outputs.payroll_taxes[index].tolist()) for name, index in plan.payroll_fields]
    postings = outputs.postings.as_matrix() if bucket_count else None

    for i, record in enumerate(records):
        result = results[i]
        result.record = record
        result.federal_tax = federal[i]
        result.jurisdiction_tax = jurisdiction[i]
        for name, values in payroll:
            setattr(result, name, values[i])

        if postings is None:
            result.general_ledger_postings = None
        else:
            result.general_ledger_postings[:] = postings[i]


def _validate(records: Sequence[Record], outputs: OutputBuffers, plan: PolicyPlan) -> None:
    if records is None:
        raise ContractViolationError("records are required")
    if outputs is None:
        raise ContractViolationError("outputs are required")

    record_count = len(records)
    for name, buffer in (
        ("federal_taxes", outputs.federal_taxes),
        ("jurisdiction_taxes", outputs.jurisdiction_taxes),
    ):
        if buffer is None or len(buffer) < record_count:
            raise ContractViolationError(f"{name} is smaller than the record count")

    for name, index in plan.payroll_fields:
        if index >= len(outputs.payroll_taxes) or len(outputs.payroll_taxes[index]) < record_count:
            raise ContractViolationError(f"Payroll buffer for {name} is missing or undersized")

    if plan.bucket_count:
        postings = outputs.postings
        if postings is None or postings.rows < record_count or postings.cols != plan.bucket_count:
            raise ContractViolationError("Postings buffer is missing or undersized")
