"""Shared fixtures: the default policy set and a small hand-checkable one."""

import pytest

from taxmatrix.policies import Jurisdiction, PolicySet, PostingPolicy, ProgressiveTable
from taxmatrix.policy_data import PAYROLL_POLICIES, default_policy_set
from taxmatrix.records import Record


@pytest.fixture
def policy_set():
    return default_policy_set()


@pytest.fixture
def small_policy_set():
    """Two-bracket federal table, CA-only jurisdiction table, default payroll."""
    return PolicySet(
        federal=ProgressiveTable(bounds=(0, 10_000), rates=(0.10, 0.20)),
        jurisdictions={
            Jurisdiction.CALIFORNIA: ProgressiveTable(bounds=(0, 5_000), rates=(0.01, 0.02)),
        },
        payroll=PAYROLL_POLICIES,
        postings=(PostingPolicy(bucket_id=1, rate=0.5),),
    )


@pytest.fixture
def make_record():
    def _make(income, jurisdiction=Jurisdiction.TEXAS, id=0):
        return Record(id=id, name=f"Person {id}", jurisdiction=jurisdiction, income=income)

    return _make
