"""
Tests for the reference (per-record) calculator.

Expected values are worked by hand from the default tax year tables.
"""

import numpy as np
import pytest

from taxmatrix.calculators import (
    calculate_jurisdiction_tax,
    calculate_progressive_tax,
    calculate_record_taxes,
    calculate_taxes,
    calculate_taxes_into,
    evaluate_payroll_policy,
    payroll_field_for,
)
from taxmatrix.errors import ConfigurationError, ContractViolationError
from taxmatrix.policies import (
    Jurisdiction,
    PayrollPolicy,
    PayrollRule,
    PayrollSide,
    PayrollTax,
    PolicySet,
    ProgressiveTable,
)
from taxmatrix.policy_data import FEDERAL_TABLE, JURISDICTION_TABLES
from taxmatrix.records import TaxResult, preallocate_results


class TestProgressiveTax:
    """Tests for the bracket walk."""

    def test_zero_income(self):
        assert calculate_progressive_tax(0.0, FEDERAL_TABLE) == 0.0

    def test_first_boundary_is_right_open(self):
        """Income exactly at a boundary pays nothing at the next rate."""
        assert calculate_progressive_tax(11_926, FEDERAL_TABLE) == pytest.approx(1192.6)

    def test_just_below_boundary(self):
        assert calculate_progressive_tax(11_925.99, FEDERAL_TABLE) == pytest.approx(1192.599)

    def test_one_dollar_over_boundary(self):
        assert calculate_progressive_tax(11_927, FEDERAL_TABLE) == pytest.approx(1192.72)

    def test_fifty_thousand(self):
        # 11926 * 0.10 + 36550 * 0.12 + 1524 * 0.22
        assert calculate_progressive_tax(50_000, FEDERAL_TABLE) == pytest.approx(5913.88)

    def test_top_bracket(self):
        assert calculate_progressive_tax(1_000_000, FEDERAL_TABLE) == pytest.approx(327_019.98)

    def test_single_bracket_flat(self):
        table = ProgressiveTable(bounds=(0,), rates=(0.0495,))
        assert calculate_progressive_tax(100_000, table) == pytest.approx(4950.0)


class TestJurisdictionTax:
    """Tests for jurisdiction table lookup."""

    def test_no_income_tax_state(self):
        assert calculate_jurisdiction_tax(50_000, Jurisdiction.TEXAS, JURISDICTION_TABLES) == 0.0

    def test_missing_table_is_zero(self):
        assert calculate_jurisdiction_tax(50_000, Jurisdiction.OHIO, {}) == 0.0

    def test_massachusetts_surtax(self):
        tax = calculate_jurisdiction_tax(1_100_000, Jurisdiction.MASSACHUSETTS, JURISDICTION_TABLES)
        table = JURISDICTION_TABLES[Jurisdiction.MASSACHUSETTS]
        expected = 1_000_000 * table.rates[0] + 100_000 * table.rates[1]
        assert tax == pytest.approx(expected)


class TestPayrollRules:
    """Tests for each payroll rule kind."""

    SS = PayrollPolicy(
        PayrollTax.SOCIAL_SECURITY, PayrollSide.EMPLOYEE, PayrollRule.CAPPED, 0.062, 170_000
    )
    ADDITIONAL = PayrollPolicy(
        PayrollTax.ADDITIONAL_MEDICARE, PayrollSide.EMPLOYEE, PayrollRule.ABOVE_THRESHOLD, 0.009, 200_000
    )
    MEDICARE = PayrollPolicy(PayrollTax.MEDICARE, PayrollSide.EMPLOYEE, PayrollRule.FLAT, 0.0145)

    def test_flat(self):
        assert evaluate_payroll_policy(50_000, self.MEDICARE) == pytest.approx(725.0)

    @pytest.mark.parametrize("income", [170_000, 200_000, 5_000_000])
    def test_capped_saturates(self, income):
        assert evaluate_payroll_policy(income, self.SS) == pytest.approx(10_540.0)

    def test_capped_below_cap(self):
        assert evaluate_payroll_policy(50_000, self.SS) == pytest.approx(3100.0)

    @pytest.mark.parametrize(
        "income,expected",
        [(100_000, 0.0), (200_000, 0.0), (250_000, 450.0)],
    )
    def test_above_threshold(self, income, expected):
        assert evaluate_payroll_policy(income, self.ADDITIONAL) == pytest.approx(expected)

    def test_field_for_policy(self):
        assert payroll_field_for(self.SS) == "social_security_employee"

    def test_policy_without_field(self):
        policy = PayrollPolicy(
            PayrollTax.ADDITIONAL_MEDICARE, PayrollSide.EMPLOYER, PayrollRule.FLAT, 0.01
        )
        with pytest.raises(ConfigurationError, match="No result field"):
            payroll_field_for(policy)


class TestRecordTaxes:
    """Tests for the full per-record calculation."""

    def test_texas_fifty_thousand(self, policy_set, make_record):
        result = calculate_record_taxes(make_record(50_000), policy_set)

        assert result.federal_tax == pytest.approx(5913.88)
        assert result.jurisdiction_tax == 0.0
        assert result.social_security_employee == pytest.approx(3100.0)
        assert result.medicare_employee == pytest.approx(725.0)
        assert result.additional_medicare_employee == 0.0
        assert result.social_security_employer == pytest.approx(3100.0)
        assert result.medicare_employer == pytest.approx(725.0)
        assert result.federal_unemployment_employer == pytest.approx(42.0)
        assert result.state_unemployment_employer == pytest.approx(243.0)
        np.testing.assert_allclose(result.general_ledger_postings, [2000.0, 3250.0, 625.0, 1000.0])

    def test_totals(self, policy_set, make_record):
        result = calculate_record_taxes(make_record(50_000), policy_set)
        assert result.employee_payroll_total == pytest.approx(3825.0)
        assert result.employer_payroll_total == pytest.approx(4110.0)
        assert result.total_income_tax == pytest.approx(5913.88)

    def test_record_is_referenced(self, policy_set, make_record):
        record = make_record(1_000)
        assert calculate_record_taxes(record, policy_set).record is record

    def test_no_buckets(self, policy_set, make_record):
        no_postings = PolicySet(
            federal=policy_set.federal,
            jurisdictions=policy_set.jurisdictions,
            payroll=policy_set.payroll,
        )
        result = calculate_record_taxes(make_record(1_000), no_postings)
        assert result.general_ledger_postings is None

    def test_reused_result_is_overwritten(self, policy_set, make_record):
        result = TaxResult(record=make_record(1), federal_tax=99.0, social_security_employee=99.0)
        result.general_ledger_postings = np.full(4, 99.0)
        gl = result.general_ledger_postings

        calculate_record_taxes(make_record(0), policy_set, result)

        assert result.federal_tax == 0.0
        assert result.social_security_employee == 0.0
        assert result.general_ledger_postings is gl
        np.testing.assert_array_equal(gl, 0.0)

    def test_unconfigured_payroll_field_is_zero(self, policy_set, make_record):
        only_medicare = PolicySet(
            federal=policy_set.federal,
            jurisdictions={},
            payroll=[p for p in policy_set.payroll if p.tax == PayrollTax.MEDICARE],
        )
        result = calculate_record_taxes(make_record(10_000), only_medicare)
        assert result.medicare_employee == pytest.approx(145.0)
        assert result.social_security_employee == 0.0


class TestBatch:
    """Tests for batch entry points."""

    def test_order_preserved(self, policy_set, make_record):
        records = [make_record(i * 1000.0, id=i) for i in range(5)]
        results = calculate_taxes(records, policy_set)
        assert [r.record.id for r in results] == [0, 1, 2, 3, 4]

    def test_with_progress(self, policy_set, make_record):
        results = calculate_taxes([make_record(1000.0)], policy_set, show_progress=True)
        assert len(results) == 1

    def test_into_preallocated(self, policy_set, make_record):
        records = [make_record(50_000, id=i) for i in range(3)]
        results = preallocate_results(records, len(policy_set.postings))
        calculate_taxes_into(records, policy_set, results)
        assert all(r.federal_tax == pytest.approx(5913.88) for r in results)

    def test_into_undersized(self, policy_set, make_record):
        records = [make_record(1.0, id=i) for i in range(3)]
        results = preallocate_results(records[:2], 4)
        with pytest.raises(ContractViolationError):
            calculate_taxes_into(records, policy_set, results)
