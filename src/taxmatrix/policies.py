"""
Policy data types: progressive tables, payroll rules and posting buckets.

These are pure configuration. Nothing here computes a tax; the reference
calculators and the matrix plan both read these types and must agree on them.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, NamedTuple, Sequence, Tuple

from .errors import ConfigurationError


class Jurisdiction(str, Enum):
    """State of residence used to select a jurisdiction tax table."""

    CALIFORNIA = "CA"
    NEW_YORK = "NY"
    TEXAS = "TX"
    FLORIDA = "FL"
    PENNSYLVANIA = "PA"
    NEW_JERSEY = "NJ"
    ILLINOIS = "IL"
    MASSACHUSETTS = "MA"
    OHIO = "OH"
    WASHINGTON = "WA"


class PayrollTax(str, Enum):
    SOCIAL_SECURITY = "social_security"
    MEDICARE = "medicare"
    ADDITIONAL_MEDICARE = "additional_medicare"
    FEDERAL_UNEMPLOYMENT = "federal_unemployment"
    STATE_UNEMPLOYMENT = "state_unemployment"


class PayrollSide(str, Enum):
    EMPLOYEE = "employee"
    EMPLOYER = "employer"


class PayrollRule(str, Enum):
    """
    Closed set of payroll rule kinds.

    Every consumer switches over all three arms and raises on anything else:
    - FLAT: rate * income
    - ABOVE_THRESHOLD: rate * max(0, income - parameter)
    - CAPPED: rate * min(income, parameter)
    """

    FLAT = "flat"
    ABOVE_THRESHOLD = "above_threshold"
    CAPPED = "capped"


THRESHOLDED_RULES = (PayrollRule.ABOVE_THRESHOLD, PayrollRule.CAPPED)


class PayrollField(NamedTuple):
    """Binds a TaxResult attribute to the payroll policy that fills it."""

    name: str
    tax: PayrollTax
    side: PayrollSide


# Ordered manifest of payroll result fields. Plans resolve each entry to a
# payroll policy index at build time and fail if one is missing.
PAYROLL_FIELDS = (
    PayrollField("social_security_employee", PayrollTax.SOCIAL_SECURITY, PayrollSide.EMPLOYEE),
    PayrollField("medicare_employee", PayrollTax.MEDICARE, PayrollSide.EMPLOYEE),
    PayrollField("additional_medicare_employee", PayrollTax.ADDITIONAL_MEDICARE, PayrollSide.EMPLOYEE),
    PayrollField("social_security_employer", PayrollTax.SOCIAL_SECURITY, PayrollSide.EMPLOYER),
    PayrollField("medicare_employer", PayrollTax.MEDICARE, PayrollSide.EMPLOYER),
    PayrollField("federal_unemployment_employer", PayrollTax.FEDERAL_UNEMPLOYMENT, PayrollSide.EMPLOYER),
    PayrollField("state_unemployment_employer", PayrollTax.STATE_UNEMPLOYMENT, PayrollSide.EMPLOYER),
)

PAYROLL_FIELD_NAMES = tuple(f.name for f in PAYROLL_FIELDS)


@dataclass(frozen=True)
class ProgressiveTable:
    """Bracket lower bounds with matching marginal rates.

    Brackets are right-open: bracket i covers [bounds[i], bounds[i + 1]).
    """

    bounds: Tuple[float, ...]
    rates: Tuple[float, ...]

    def __post_init__(self):
        bounds = tuple(float(b) for b in self.bounds)
        rates = tuple(float(r) for r in self.rates)
        object.__setattr__(self, "bounds", bounds)
        object.__setattr__(self, "rates", rates)

        if len(bounds) == 0:
            raise ConfigurationError("Progressive table needs at least one bracket")
        if len(bounds) != len(rates):
            raise ConfigurationError(
                f"Progressive table has {len(bounds)} bounds but {len(rates)} rates"
            )
        if bounds[0] != 0.0:
            raise ConfigurationError(
                f"First bracket must start at 0, got {bounds[0]}"
            )
        for lower, upper in zip(bounds, bounds[1:]):
            if upper <= lower:
                raise ConfigurationError(
                    f"Bracket bounds must be strictly increasing: {bounds}"
                )

    @property
    def bracket_count(self) -> int:
        return len(self.rates)


@dataclass(frozen=True)
class PayrollPolicy:
    """One payroll tax evaluated for every record."""

    tax: PayrollTax
    side: PayrollSide
    rule: PayrollRule
    rate: float
    parameter: float = 0.0

    @property
    def is_thresholded(self) -> bool:
        return self.rule in THRESHOLDED_RULES


@dataclass(frozen=True)
class PostingPolicy:
    """A general ledger posting bucket: income * rate."""

    bucket_id: int
    rate: float


@dataclass(frozen=True)
class PolicySet:
    """Everything a plan (or the reference calculator) is built from."""

    federal: ProgressiveTable
    jurisdictions: Mapping[Jurisdiction, ProgressiveTable]
    payroll: Tuple[PayrollPolicy, ...]
    postings: Tuple[PostingPolicy, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "jurisdictions", dict(self.jurisdictions))
        object.__setattr__(self, "payroll", tuple(self.payroll))
        object.__setattr__(self, "postings", tuple(self.postings))

        # Each policy fills exactly one result field
        field_keys = {(f.tax, f.side) for f in PAYROLL_FIELDS}
        seen = set()
        for policy in self.payroll:
            key = (policy.tax, policy.side)
            if key in seen:
                raise ConfigurationError(
                    f"Duplicate payroll policy for tax={policy.tax.value}, "
                    f"side={policy.side.value}"
                )
            if key not in field_keys:
                raise ConfigurationError(
                    f"No result field for payroll tax={policy.tax.value}, "
                    f"side={policy.side.value}"
                )
            seen.add(key)

    @property
    def posting_rates(self) -> Tuple[float, ...]:
        return tuple(p.rate for p in self.postings)


# =============================================================================
# JSON policy files
# =============================================================================


def _table_to_dict(table: ProgressiveTable) -> Dict:
    return {"bounds": list(table.bounds), "rates": list(table.rates)}


def _table_from_dict(data: Mapping) -> ProgressiveTable:
    try:
        return ProgressiveTable(bounds=tuple(data["bounds"]), rates=tuple(data["rates"]))
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f"Malformed progressive table: {data!r}") from e


def policy_set_to_dict(policy_set: PolicySet) -> Dict:
    """Serialize a policy set into plain JSON-compatible data."""
    return {
        "federal": _table_to_dict(policy_set.federal),
        "jurisdictions": {
            j.value: _table_to_dict(t) for j, t in policy_set.jurisdictions.items()
        },
        "payroll": [
            {
                "tax": p.tax.value,
                "side": p.side.value,
                "rule": p.rule.value,
                "rate": p.rate,
                "parameter": p.parameter,
            }
            for p in policy_set.payroll
        ],
        "postings": [
            {"bucket_id": p.bucket_id, "rate": p.rate} for p in policy_set.postings
        ],
    }


def policy_set_from_dict(data: Mapping) -> PolicySet:
    """Build a PolicySet from data shaped like policy_set_to_dict output."""
    try:
        federal = _table_from_dict(data["federal"])
        jurisdictions = {
            Jurisdiction(code): _table_from_dict(table)
            for code, table in data.get("jurisdictions", {}).items()
        }
        payroll = tuple(
            PayrollPolicy(
                tax=PayrollTax(p["tax"]),
                side=PayrollSide(p["side"]),
                rule=PayrollRule(p["rule"]),
                rate=float(p["rate"]),
                parameter=float(p.get("parameter", 0.0)),
            )
            for p in data.get("payroll", [])
        )
        postings = tuple(
            PostingPolicy(bucket_id=int(p["bucket_id"]), rate=float(p["rate"]))
            for p in data.get("postings", [])
        )
    except ConfigurationError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed policy data: {e}") from e

    return PolicySet(
        federal=federal,
        jurisdictions=jurisdictions,
        payroll=payroll,
        postings=postings,
    )


def load_policy_set(path) -> PolicySet:
    """Load a policy set from a JSON file."""
    path = Path(path)
    with path.open("r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path} is not valid JSON: {e}") from e
    return policy_set_from_dict(data)


def dump_policy_set(policy_set: PolicySet, path) -> None:
    """Write a policy set to a JSON file."""
    path = Path(path)
    path.write_text(json.dumps(policy_set_to_dict(policy_set), indent=2))


def jurisdictions_in_order(tables: Mapping[Jurisdiction, ProgressiveTable]) -> Sequence[Jurisdiction]:
    """Configured jurisdictions sorted lexicographically by code."""
    return sorted(tables, key=lambda j: j.value)
