"""
Policy plan: shared threshold basis and dense policy transform matrix.

Built once per policy set so the hot path stays a single
``feature_matrix @ transform_matrix``. For any income x and policy column c,

    sum_i transform[i, c] * feature_i(x) == policy_c(x)

where feature_0(x) = x and feature_{1+i}(x) = max(0, x - thresholds[i]).
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError
from ..policies import (
    PAYROLL_FIELDS,
    Jurisdiction,
    PayrollField,
    PayrollPolicy,
    PayrollRule,
    PayrollSide,
    PayrollTax,
    PolicySet,
    PostingPolicy,
    ProgressiveTable,
    jurisdictions_in_order,
)

FEDERAL_COLUMN = 0


@dataclass(frozen=True)
class PolicyLayout:
    """Deterministic policy -> transform column assignment.

    Column 0 is federal, columns 1..J are jurisdictions in code order, and
    payroll policies follow in declared order.
    """

    jurisdictions_in_order: Tuple[Jurisdiction, ...]
    payroll_policy_count: int

    @property
    def payroll_offset(self) -> int:
        return 1 + len(self.jurisdictions_in_order)

    @property
    def total_policy_count(self) -> int:
        return self.payroll_offset + self.payroll_policy_count

    def jurisdiction_column(self, jurisdiction: Jurisdiction) -> int:
        try:
            return 1 + self.jurisdictions_in_order.index(jurisdiction)
        except ValueError:
            raise KeyError(f"Jurisdiction {jurisdiction!r} not in policy layout") from None

    def payroll_column(self, payroll_index: int) -> int:
        if not 0 <= payroll_index < self.payroll_policy_count:
            raise IndexError(f"Payroll policy index {payroll_index} out of range")
        return self.payroll_offset + payroll_index

    @classmethod
    def build(
        cls,
        jurisdiction_tables: Mapping[Jurisdiction, ProgressiveTable],
        payroll_policies: Sequence[PayrollPolicy],
    ) -> "PolicyLayout":
        return cls(
            jurisdictions_in_order=tuple(jurisdictions_in_order(jurisdiction_tables)),
            payroll_policy_count=len(payroll_policies),
        )


def resolve_payroll_fields(
    payroll_policies: Sequence[PayrollPolicy],
    fields: Sequence[PayrollField] = PAYROLL_FIELDS,
) -> Tuple[Tuple[str, int], ...]:
    """
    Resolve the result-field manifest to payroll policy indices.

    Every manifest field needs exactly one policy, and every policy needs a
    manifest field, so both calculators fill each field from the same policy.

    Returns:
        (field_name, payroll_policy_index) pairs in manifest order

    Raises:
        ConfigurationError: a manifest field has no matching policy, two
            policies share a (tax, side) pair, or a policy has no field
    """
    index_by_key: Dict[Tuple[PayrollTax, PayrollSide], int] = {}
    for index, policy in enumerate(payroll_policies):
        key = (policy.tax, policy.side)
        if key in index_by_key:
            raise ConfigurationError(
                f"Duplicate payroll policy for tax={policy.tax.value}, side={policy.side.value}"
            )
        index_by_key[key] = index

    resolved = []
    for field_def in fields:
        index = index_by_key.pop((field_def.tax, field_def.side), None)
        if index is None:
            raise ConfigurationError(
                f"No payroll policy found for tax={field_def.tax.value}, "
                f"side={field_def.side.value} (field {field_def.name})"
            )
        resolved.append((field_def.name, index))

    if index_by_key:
        tax, side = next(iter(index_by_key))
        raise ConfigurationError(
            f"No result field for payroll tax={tax.value}, side={side.value}"
        )
    return tuple(resolved)


def build_shared_thresholds(
    federal_table: ProgressiveTable,
    jurisdiction_tables: Mapping[Jurisdiction, ProgressiveTable],
    payroll_policies: Sequence[PayrollPolicy],
) -> np.ndarray:
    """
    Collect every non-zero boundary used by any policy.

    Bracket lower bounds above zero from every table, plus the parameter of
    every above-threshold or capped payroll rule. De-duplicated by exact
    equality.

    Returns:
        Sorted, strictly increasing float64 array (possibly empty)
    """
    thresholds = []

    thresholds.extend(b for b in federal_table.bounds[1:])
    for jurisdiction in jurisdictions_in_order(jurisdiction_tables):
        thresholds.extend(b for b in jurisdiction_tables[jurisdiction].bounds[1:])

    for policy in payroll_policies:
        if policy.rule == PayrollRule.FLAT:
            continue
        elif policy.rule in (PayrollRule.ABOVE_THRESHOLD, PayrollRule.CAPPED):
            thresholds.append(float(policy.parameter))
        else:
            raise ConfigurationError(f"Unhandled payroll rule: {policy.rule!r}")

    # Exact-equality dedupe; thresholds are policy constants
    return np.unique(np.asarray(thresholds, dtype=np.float64))


def find_threshold_index(shared_thresholds: np.ndarray, threshold: float) -> int:
    """Index of a threshold that must exist in the shared basis."""
    index = int(np.searchsorted(shared_thresholds, threshold))
    if index >= len(shared_thresholds) or shared_thresholds[index] != threshold:
        raise ConfigurationError(
            f"Threshold {threshold} was not found in shared thresholds"
        )
    return index


def fill_progressive_column(
    transform: np.ndarray,
    column: int,
    shared_thresholds: np.ndarray,
    table: ProgressiveTable,
) -> None:
    """
    Fill one transform column for a progressive table.

    Row 0 gets the first bracket rate. The row of each of the table's own
    boundaries gets the marginal rate delta introduced there.
    """
    bounds = table.bounds
    rates = table.rates

    transform[0, column] = rates[0]

    for b in range(1, len(bounds)):
        row = 1 + find_threshold_index(shared_thresholds, bounds[b])
        transform[row, column] = rates[b] - rates[b - 1]


def fill_payroll_column(
    transform: np.ndarray,
    column: int,
    shared_thresholds: np.ndarray,
    policy: PayrollPolicy,
) -> None:
    """Fill one transform column for a payroll policy."""
    if policy.rule == PayrollRule.FLAT:
        transform[0, column] = policy.rate
    elif policy.rule == PayrollRule.ABOVE_THRESHOLD:
        row = 1 + find_threshold_index(shared_thresholds, policy.parameter)
        transform[row, column] = policy.rate
    elif policy.rule == PayrollRule.CAPPED:
        # rate * x - rate * max(0, x - cap) == rate * min(x, cap)
        row = 1 + find_threshold_index(shared_thresholds, policy.parameter)
        transform[0, column] = policy.rate
        transform[row, column] = -policy.rate
    else:
        raise ConfigurationError(f"Unhandled payroll rule: {policy.rule!r}")


def build_transform_matrix(
    shared_thresholds: np.ndarray,
    layout: PolicyLayout,
    federal_table: ProgressiveTable,
    jurisdiction_tables: Mapping[Jurisdiction, ProgressiveTable],
    payroll_policies: Sequence[PayrollPolicy],
) -> np.ndarray:
    """
    Build the dense [1 + T] x [policy_count] transform matrix.

    Stored column-major so each policy column (and each column block) is
    contiguous.
    """
    if len(payroll_policies) != layout.payroll_policy_count:
        raise ConfigurationError(
            f"Layout expects {layout.payroll_policy_count} payroll policies, "
            f"got {len(payroll_policies)}"
        )

    feature_count = 1 + len(shared_thresholds)
    transform = np.zeros((feature_count, layout.total_policy_count), order="F")

    fill_progressive_column(transform, FEDERAL_COLUMN, shared_thresholds, federal_table)

    for jurisdiction in layout.jurisdictions_in_order:
        fill_progressive_column(
            transform,
            layout.jurisdiction_column(jurisdiction),
            shared_thresholds,
            jurisdiction_tables[jurisdiction],
        )

    for index, policy in enumerate(payroll_policies):
        fill_payroll_column(
            transform, layout.payroll_column(index), shared_thresholds, policy
        )

    return transform


def _read_only(array: np.ndarray) -> np.ndarray:
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class PolicyPlan:
    """
    Compiled, immutable plan shared by every batch.

    Callers build one plan per policy set and pass it into each batch. If
    policy data changes, build a new plan.
    """

    layout: PolicyLayout
    shared_thresholds: np.ndarray
    transform: np.ndarray
    payroll_fields: Tuple[Tuple[str, int], ...]
    posting_rates: np.ndarray
    posting_bucket_ids: Tuple[int, ...] = ()

    @property
    def feature_count(self) -> int:
        return 1 + len(self.shared_thresholds)

    @property
    def policy_count(self) -> int:
        return self.layout.total_policy_count

    @property
    def payroll_policy_count(self) -> int:
        return self.layout.payroll_policy_count

    @property
    def bucket_count(self) -> int:
        return len(self.posting_rates)

    @classmethod
    def build(
        cls,
        federal_table: ProgressiveTable,
        jurisdiction_tables: Mapping[Jurisdiction, ProgressiveTable],
        payroll_policies: Sequence[PayrollPolicy],
        posting_policies: Sequence[PostingPolicy] = (),
    ) -> "PolicyPlan":
        """
        Compile policy data into a plan.

        Raises:
            ConfigurationError: unknown rule kind, a threshold missing from
                the shared basis, or payroll policies that do not map one to
                one onto result fields
        """
        payroll_policies = tuple(payroll_policies)
        payroll_fields = resolve_payroll_fields(payroll_policies)
        layout = PolicyLayout.build(jurisdiction_tables, payroll_policies)
        shared_thresholds = build_shared_thresholds(
            federal_table, jurisdiction_tables, payroll_policies
        )
        transform = build_transform_matrix(
            shared_thresholds,
            layout,
            federal_table,
            jurisdiction_tables,
            payroll_policies,
        )
        posting_rates = np.array([p.rate for p in posting_policies], dtype=np.float64)

        return cls(
            layout=layout,
            shared_thresholds=_read_only(shared_thresholds),
            transform=_read_only(transform),
            payroll_fields=payroll_fields,
            posting_rates=_read_only(posting_rates),
            posting_bucket_ids=tuple(p.bucket_id for p in posting_policies),
        )

    @classmethod
    def from_policy_set(cls, policy_set: PolicySet) -> "PolicyPlan":
        return cls.build(
            policy_set.federal,
            policy_set.jurisdictions,
            policy_set.payroll,
            policy_set.postings,
        )

    def describe(self) -> Dict:
        """Summary of the plan's shape for reporting."""
        return {
            "feature_count": self.feature_count,
            "policy_count": self.policy_count,
            "jurisdictions": [j.value for j in self.layout.jurisdictions_in_order],
            "payroll_offset": self.layout.payroll_offset,
            "payroll_policy_count": self.payroll_policy_count,
            "bucket_count": self.bucket_count,
            "shared_thresholds": self.shared_thresholds.tolist(),
        }
