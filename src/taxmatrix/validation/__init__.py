"""
Validation: compare the matrix path against the reference calculators.

- Comparator: field-by-field tolerance comparison with mismatch reporting
- race: timing run of both paths with a spot-check max delta
"""

from .comparator import (
    Comparator,
    ComparisonConfig,
    ComparisonResults,
    merge_results,
    results_to_frame,
)
from .race import RaceResult, compute_max_delta, race

__all__ = [
    "Comparator",
    "ComparisonConfig",
    "ComparisonResults",
    "merge_results",
    "results_to_frame",
    "RaceResult",
    "compute_max_delta",
    "race",
]
