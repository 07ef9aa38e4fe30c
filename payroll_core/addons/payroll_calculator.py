# addons/payroll_calculator.py
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .attendance_penalties import AttendancePenaltyAggregator
from .deduction_rules import DeductionRuleEvaluator
from .functions import money, to_decimal, ZERO
from .loan_calculator import LoanCalculator
from .snapshot import BreakdownSnapshot


@dataclass(frozen=True)
class EntryComputation:
    basic_salary: Decimal
    overtime: Decimal
    gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    snapshot: BreakdownSnapshot

    @property
    def snapshot_json(self):
        return self.snapshot.to_json()


def _chronological(item):
    return (item.applied_at or datetime.min, item.id or 0)


class PayrollCalculator:
    """Builds one employee's payroll figures and breakdown for one period."""

    @classmethod
    def prorated_salary(cls, monthly_salary, policy, period):
        if monthly_salary is None:
            return ZERO
        return policy.share(monthly_salary, period)

    @classmethod
    def deductions_in_scope(cls, instances, period):
        """
        Split an employee's deduction instances into (database, attendance)
        lists for a period. Archived instances and instances of a deactivated
        type never count; mandatory ones count in every period; the rest only
        when applied within the period.
        """
        database, attendance = [], []
        for instance in sorted(instances, key=_chronological):
            if instance.archived_at is not None:
                continue
            definition = instance.deduction_type
            # is_active is unset (None) on transient rows; only an explicit False excludes
            if definition is not None and definition.is_active is False:
                continue
            mandatory = bool(definition and definition.is_mandatory)
            if not mandatory and not period.contains(instance.applied_at):
                continue
            if definition is not None and definition.is_attendance_related:
                attendance.append(instance)
            else:
                database.append(instance)
        return database, attendance

    @classmethod
    def overload_in_scope(cls, overload_pays, period):
        return [
            pay for pay in sorted(overload_pays, key=_chronological)
            if pay.archived_at is None and pay.is_approved and period.contains(pay.applied_at)
        ]

    @classmethod
    def build_entry(cls, monthly_salary, period, policy, deductions=(), loans=(), overload_pays=(),
                    recompute=False, include_attendance=True):
        """
        Compose salary, additional pay, deductions, attendance penalties and
        loan installments into the entry totals and its breakdown snapshot.

        Mandatory instances hold monthly amounts and are charged their share
        for the period (see PeriodPolicy.share); instances applied within the
        period are one-off charges taken in full. With ``recompute`` the
        deduction instances are re-evaluated against their current definitions
        instead of being taken at stored value.
        Identical inputs produce an identical snapshot.
        """
        basic_salary = cls.prorated_salary(monthly_salary, policy, period)

        overload_details = []
        overtime = ZERO
        for pay in cls.overload_in_scope(overload_pays, period):
            amount = money(pay.amount)
            overtime += amount
            overload_details.append({'id': pay.id, 'type': pay.type or 'Additional Pay', 'amount': amount})
        overtime = money(overtime)

        database, attendance = cls.deductions_in_scope(deductions, period)

        deduction_details = []
        database_total = ZERO
        for instance in database:
            definition = instance.deduction_type
            mandatory = bool(definition and definition.is_mandatory)
            if recompute and definition is not None:
                amount = DeductionRuleEvaluator.evaluate(definition, monthly_salary)
            else:
                amount = money(instance.amount)
            if mandatory:
                amount = policy.share(amount, period)
            database_total += amount
            deduction_details.append({
                'id': instance.id,
                'type': definition.name if definition else 'Deduction',
                'amount': amount,
                'description': definition.description if definition else None,
                'appliedAt': instance.applied_at.isoformat() if instance.applied_at else None,
                'notes': instance.notes,
                'isMandatory': mandatory,
            })
        database_total = money(database_total)

        if include_attendance:
            summary = AttendancePenaltyAggregator.aggregate(attendance)
        else:
            summary = AttendancePenaltyAggregator.aggregate([])

        loan_details = []
        loan_total = ZERO
        for loan in sorted(loans, key=lambda l: l.id or 0):
            settlement = LoanCalculator.settle(loan, policy.periods_per_month)
            if settlement.installment <= 0:
                continue
            loan_total += settlement.installment
            loan_details.append({
                'loanId': loan.id,
                'amount': money(loan.amount),
                'monthlyPaymentPercent': to_decimal(loan.monthly_payment_percent),
                'payment': settlement.installment,
                'balance': settlement.balance_before,
                'remainingBalance': settlement.new_balance,
                'purpose': loan.purpose,
                'completes': settlement.completes,
            })
        loan_total = money(loan_total)

        gross_pay = money(basic_salary + overtime)
        total_deductions = money(database_total + summary.total + loan_total)
        net_pay = money(gross_pay - total_deductions)

        snapshot = BreakdownSnapshot.model_validate({
            'basicSalary': basic_salary,
            'overloadPay': overtime,
            'grossPay': gross_pay,
            'totalDeductions': total_deductions,
            'attendanceDeductions': summary.total,
            'databaseDeductions': database_total,
            'loanPayments': loan_total,
            'netPay': net_pay,
            'lateMinutes': summary.late_minutes,
            'absentDays': summary.absent_days,
            'deductionDetails': deduction_details,
            'attendanceDeductionDetails': summary.details,
            'loanDetails': loan_details,
            'overloadPayDetails': overload_details,
        })

        return EntryComputation(
            basic_salary=basic_salary,
            overtime=overtime,
            gross_pay=gross_pay,
            total_deductions=total_deductions,
            net_pay=net_pay,
            snapshot=snapshot,
        )

    @classmethod
    def rebalance(cls, snapshot, basic_salary=None, overtime=None):
        """
        Copy of a snapshot with edited earnings; deductions stay as frozen.
        The edited values are recorded on the copy so a later rebuild of the
        entry can apply them again.
        """
        edited_basic = snapshot.edited_basic_salary if basic_salary is None else money(basic_salary)
        edited_overtime = snapshot.edited_overtime if overtime is None else money(overtime)
        basic = money(snapshot.basic_salary if basic_salary is None else basic_salary)
        extra = money(snapshot.overload_pay if overtime is None else overtime)
        gross = money(basic + extra)
        return snapshot.model_copy(update={
            'basic_salary': basic,
            'overload_pay': extra,
            'gross_pay': gross,
            'net_pay': money(gross - snapshot.total_deductions),
            'edited_basic_salary': edited_basic,
            'edited_overtime': edited_overtime,
        })

    @classmethod
    def reapply_edits(cls, rebuilt, previous):
        """Carry hand-edited earnings from the previous snapshot onto a rebuilt one."""
        if previous.edited_basic_salary is None and previous.edited_overtime is None:
            return rebuilt
        return cls.rebalance(rebuilt, previous.edited_basic_salary, previous.edited_overtime)

    @classmethod
    def monthly_salary_for(cls, employee) -> Optional[Decimal]:
        salary = employee.monthly_salary
        return None if salary is None else to_decimal(salary)
