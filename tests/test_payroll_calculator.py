"""
Tests for the entry builder over transient model instances.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from payroll_core.addons.payroll_calculator import PayrollCalculator
from payroll_core.addons.period_policy import Period, PeriodPolicy
from payroll_core.models import Deduction, DeductionType, Loan, OverloadPay

PERIOD = Period(date(2026, 6, 1), date(2026, 6, 15))
IN_PERIOD = datetime(2026, 6, 5, 8, 0)
LAST_MONTH = datetime(2026, 5, 20, 8, 0)


def deduction(id, definition, amount, applied_at=IN_PERIOD, notes=None, archived_at=None):
    instance = Deduction(id=id, amount=Decimal(amount), applied_at=applied_at, notes=notes, archived_at=archived_at)
    instance.deduction_type = definition
    return instance


@pytest.fixture
def definitions():
    return {
        'sss': DeductionType(id=1, name='SSS', calculation_type='PERCENTAGE', amount=Decimal('0'),
                             percentage_value=Decimal('5'), is_mandatory=True, is_attendance=False),
        'philhealth': DeductionType(id=2, name='PhilHealth', calculation_type='FIXED', amount=Decimal('200'),
                                    is_mandatory=True, is_attendance=False),
        'uniform': DeductionType(id=3, name='Uniform', calculation_type='FIXED', amount=Decimal('300'),
                                 is_mandatory=False, is_attendance=False),
        'late': DeductionType(id=4, name='Late Deduction', calculation_type='FIXED', amount=Decimal('0'),
                              is_mandatory=False, is_attendance=False),
    }


@pytest.fixture
def inputs(definitions):
    deductions = [
        deduction(10, definitions['sss'], '600', applied_at=LAST_MONTH),
        deduction(11, definitions['philhealth'], '200', applied_at=LAST_MONTH),
        deduction(12, definitions['uniform'], '300'),
        deduction(13, definitions['late'], '125', notes='Late: 1h 0m'),
        # optional, outside the period
        deduction(14, definitions['uniform'], '300', applied_at=LAST_MONTH),
        # archived
        deduction(15, definitions['uniform'], '999', archived_at=datetime(2026, 6, 2)),
    ]
    loans = [
        Loan(id=20, amount=Decimal('12000'), balance=Decimal('12000'), monthly_payment_percent=Decimal('10'),
             term_months=10, status='ACTIVE'),
        Loan(id=21, amount=Decimal('5000'), balance=Decimal('5000'), monthly_payment_percent=Decimal('10'),
             term_months=10, status='PENDING'),
    ]
    overload = [
        OverloadPay(id=30, amount=Decimal('750'), type='OVERTIME', is_approved=True, applied_at=IN_PERIOD),
        OverloadPay(id=31, amount=Decimal('400'), type='OVERTIME', is_approved=False, applied_at=IN_PERIOD),
        OverloadPay(id=32, amount=Decimal('400'), type='OVERTIME', is_approved=True, applied_at=LAST_MONTH),
    ]
    return {'deductions': deductions, 'loans': loans, 'overload_pays': overload}


def build(inputs, salary='12000', policy=None, **kwargs):
    return PayrollCalculator.build_entry(
        Decimal(salary) if salary is not None else None,
        PERIOD,
        policy or PeriodPolicy(),
        **inputs,
        **kwargs,
    )


class TestBuildEntry:

    def test_figures(self, inputs):
        result = build(inputs)
        assert result.basic_salary == Decimal('6000.00')
        assert result.overtime == Decimal('750.00')
        assert result.gross_pay == Decimal('6750.00')
        # half of the monthly 600 and 200, the one-off 300; 125 attendance; 600 loan
        assert result.snapshot.database_deductions == Decimal('700.00')
        assert result.snapshot.attendance_deductions == Decimal('125.00')
        assert result.snapshot.loan_payments == Decimal('600.00')
        assert result.total_deductions == Decimal('1425.00')
        assert result.net_pay == Decimal('5325.00')

    def test_net_pay_invariant(self, inputs):
        result = build(inputs)
        snapshot = result.snapshot
        assert result.net_pay == result.basic_salary + result.overtime - result.total_deductions
        assert snapshot.components_total() == snapshot.total_deductions
        assert snapshot.details_total() == snapshot.total_deductions
        assert snapshot.net_pay == result.net_pay

    def test_details(self, inputs):
        snapshot = build(inputs).snapshot
        assert [d.id for d in snapshot.deduction_details] == [10, 11, 12]
        assert [d.id for d in snapshot.attendance_deduction_details] == [13]
        assert snapshot.late_minutes == 60
        loan = snapshot.loan_details[0]
        assert (loan.loan_id, loan.payment, loan.remaining_balance) == (20, Decimal('600.00'), Decimal('11400.00'))
        assert len(snapshot.loan_details) == 1
        assert [p.id for p in snapshot.overload_pay_details] == [30]

    def test_deterministic_snapshot(self, inputs):
        first = build(inputs).snapshot_json
        reordered = dict(inputs, deductions=list(reversed(inputs['deductions'])), loans=list(reversed(inputs['loans'])))
        assert build(reordered).snapshot_json == first
        assert build(inputs).snapshot_json == first

    def test_monthly_policy(self, inputs):
        result = build(inputs, policy=PeriodPolicy(convention='monthly'))
        assert result.basic_salary == Decimal('12000.00')
        assert result.snapshot.loan_payments == Decimal('1200.00')

    def test_without_attendance(self, inputs):
        result = build(inputs, include_attendance=False)
        assert result.snapshot.attendance_deductions == Decimal('0.00')
        assert result.snapshot.attendance_deduction_details == []
        assert result.total_deductions == Decimal('1300.00')

    def test_recompute_uses_current_definitions(self, inputs, definitions):
        definitions['sss'].percentage_value = Decimal('10')
        stored = build(inputs)
        recomputed = build(inputs, recompute=True)
        assert stored.snapshot.database_deductions == Decimal('700.00')
        # 12000 * 10% = 1200 a month, 600 this half
        assert recomputed.snapshot.database_deductions == Decimal('1000.00')

    def test_no_salary_profile(self, inputs):
        result = build(inputs, salary=None, recompute=True)
        assert result.basic_salary == Decimal('0.00')
        sss = result.snapshot.deduction_details[0]
        assert sss.amount == Decimal('0.00')

    def test_empty_inputs(self):
        result = build({'deductions': [], 'loans': [], 'overload_pays': []}, salary='9000')
        assert result.net_pay == Decimal('4500.00')
        assert result.total_deductions == Decimal('0.00')


class TestPerPeriodCharges:

    def test_mandatory_amounts_split_across_the_month(self, inputs):
        second_half = Period(date(2026, 6, 16), date(2026, 6, 30))
        first = build(inputs).snapshot
        second = PayrollCalculator.build_entry(Decimal('12000'), second_half, PeriodPolicy(), **inputs).snapshot

        sss_first = [d.amount for d in first.deduction_details if d.id == 10][0]
        sss_second = [d.amount for d in second.deduction_details if d.id == 10][0]
        assert sss_first + sss_second == Decimal('600.00')
        assert first.basic_salary + second.basic_salary == Decimal('12000.00')

    def test_one_off_charges_taken_in_full(self, inputs):
        uniform = [d for d in build(inputs).snapshot.deduction_details if d.id == 12][0]
        assert uniform.amount == Decimal('300.00')
        assert uniform.is_mandatory is False

    def test_deactivated_types_do_not_count(self, inputs, definitions):
        definitions['uniform'].is_active = False
        definitions['philhealth'].is_active = False
        snapshot = build(inputs).snapshot
        assert [d.id for d in snapshot.deduction_details] == [10]
        assert snapshot.database_deductions == Decimal('300.00')


class TestRebalance:

    def test_edits_earnings_and_keeps_deductions(self, inputs):
        snapshot = build(inputs).snapshot
        edited = PayrollCalculator.rebalance(snapshot, basic_salary=Decimal('6500'))
        assert edited.basic_salary == Decimal('6500.00')
        assert edited.overload_pay == Decimal('750.00')
        assert edited.gross_pay == Decimal('7250.00')
        assert edited.total_deductions == snapshot.total_deductions
        assert edited.net_pay == Decimal('5825.00')
        assert edited.edited_basic_salary == Decimal('6500.00')
        assert edited.edited_overtime is None
        assert snapshot.basic_salary == Decimal('6000.00')

    def test_edits_carried_onto_rebuilt_snapshot(self, inputs, definitions):
        edited = PayrollCalculator.rebalance(build(inputs).snapshot, basic_salary=Decimal('7000'))
        inputs['deductions'].append(deduction(16, definitions['uniform'], '150'))

        rebuilt = PayrollCalculator.reapply_edits(build(inputs).snapshot, edited)

        assert rebuilt.basic_salary == Decimal('7000.00')
        assert rebuilt.total_deductions == Decimal('1575.00')
        assert rebuilt.net_pay == Decimal('6175.00')
        assert rebuilt.edited_basic_salary == Decimal('7000.00')

    def test_unedited_snapshot_is_not_touched(self, inputs):
        fresh = build(inputs).snapshot
        assert PayrollCalculator.reapply_edits(fresh, build(inputs).snapshot) is fresh
