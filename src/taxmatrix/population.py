"""
Synthetic population generator.

Produces reproducible records for benchmarks and validation runs.
"""

from typing import List, Optional, Sequence

import numpy as np

from .policies import Jurisdiction
from .records import Record

FIRST_NAMES = (
    "Alex", "Blake", "Casey", "Drew", "Emery", "Finley", "Gray", "Harper",
    "Indy", "Jordan", "Kai", "Logan", "Morgan", "Noel", "Parker", "Quinn",
    "Reese", "Sage", "Taylor", "Val",
)

LAST_NAMES = (
    "Adams", "Baker", "Chen", "Diaz", "Evans", "Fischer", "Garcia", "Hughes",
    "Ito", "Jones", "Khan", "Lopez", "Miller", "Nguyen", "Okafor", "Patel",
    "Rossi", "Smith", "Tanaka", "Weber",
)

# Log-normal income distribution: median around $60k with a long right tail
INCOME_PARAMS = {
    "log_mean": 11.0,
    "log_sigma": 0.75,
    "max_income": 10_000_000,
}


def generate_records(
    count: int,
    seed: int = 1234,
    jurisdictions: Optional[Sequence[Jurisdiction]] = None,
) -> List[Record]:
    """
    Generate a reproducible population.

    Args:
        count: Number of records
        seed: Random seed
        jurisdictions: Jurisdictions to draw from (default: all)

    Returns:
        Records with ids 0..count-1
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")

    rng = np.random.default_rng(seed)
    choices = list(jurisdictions) if jurisdictions else list(Jurisdiction)

    incomes = np.round(
        rng.lognormal(INCOME_PARAMS["log_mean"], INCOME_PARAMS["log_sigma"], size=count)
    )
    incomes = np.clip(incomes, 0, INCOME_PARAMS["max_income"])
    jurisdiction_index = rng.integers(0, len(choices), size=count)
    first = rng.integers(0, len(FIRST_NAMES), size=count)
    last = rng.integers(0, len(LAST_NAMES), size=count)

    return [
        Record(
            id=i,
            name=f"{FIRST_NAMES[first[i]]} {LAST_NAMES[last[i]]}",
            jurisdiction=choices[jurisdiction_index[i]],
            income=float(incomes[i]),
        )
        for i in range(count)
    ]
