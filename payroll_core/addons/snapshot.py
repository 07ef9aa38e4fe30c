# addons/snapshot.py
"""
Breakdown snapshot: the frozen record of how an entry's net pay was derived.

The persisted layout uses camelCase keys and is tagged with ``schemaVersion``.
Payloads written before the version tag existed (version 1) are untyped
dictionaries with a few differently named keys; they are converted by
``migrate_legacy`` before validation, so readers only ever see the typed
record.
"""
import json
import logging
from decimal import Decimal
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, BeforeValidator, PlainSerializer
from pydantic.alias_generators import to_camel

from .exceptions import SnapshotUnparseable
from .functions import money, ZERO

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

Money = Annotated[
    Decimal,
    BeforeValidator(money),
    PlainSerializer(lambda value: str(money(value)), return_type=str, when_used='json'),
]


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class DeductionDetail(_SnapshotModel):
    id: Optional[Union[int, str]] = None
    type: str = 'Deduction'
    amount: Money = ZERO
    description: Optional[str] = None
    applied_at: Optional[str] = None
    notes: Optional[str] = None
    is_mandatory: bool = False


class AttendanceDeductionDetail(_SnapshotModel):
    id: Optional[Union[int, str]] = None
    type: str = 'Attendance Deduction'
    amount: Money = ZERO
    applied_at: Optional[str] = None
    notes: Optional[str] = None
    late_minutes: Optional[int] = None
    absent_days: Optional[Decimal] = None


class LoanDetail(_SnapshotModel):
    loan_id: Optional[Union[int, str]] = None
    amount: Money = ZERO
    monthly_payment_percent: Decimal = Decimal('0')
    payment: Money = ZERO
    balance: Money = ZERO
    remaining_balance: Money = ZERO
    purpose: Optional[str] = None
    completes: bool = False


class OverloadPayDetail(_SnapshotModel):
    id: Optional[Union[int, str]] = None
    type: str = 'Additional Pay'
    amount: Money = ZERO


class BreakdownSnapshot(_SnapshotModel):
    schema_version: int = SCHEMA_VERSION
    basic_salary: Money = ZERO
    overload_pay: Money = ZERO
    gross_pay: Money = ZERO
    total_deductions: Money = ZERO
    attendance_deductions: Money = ZERO
    database_deductions: Money = ZERO
    loan_payments: Money = ZERO
    net_pay: Money = ZERO
    late_minutes: int = 0
    absent_days: Decimal = Decimal('0')
    # earnings set by hand on a PENDING entry; re-applied when the entry is rebuilt
    edited_basic_salary: Optional[Money] = None
    edited_overtime: Optional[Money] = None
    deduction_details: List[DeductionDetail] = []
    attendance_deduction_details: List[AttendanceDeductionDetail] = []
    loan_details: List[LoanDetail] = []
    overload_pay_details: List[OverloadPayDetail] = []

    def components_total(self):
        """Sum of the three component totals."""
        return money(self.database_deductions + self.attendance_deductions + self.loan_payments)

    def details_total(self):
        """Sum of every detail line (the last resort when totals are missing)."""
        total = sum((d.amount for d in self.deduction_details), ZERO)
        total += sum((d.amount for d in self.attendance_deduction_details), ZERO)
        total += sum((l.payment for l in self.loan_details), ZERO)
        return money(total)

    def to_payload(self):
        return self.model_dump(mode='json', by_alias=True)

    def to_json(self):
        # sorted keys and fixed separators keep the text byte-identical for identical inputs
        return json.dumps(self.to_payload(), sort_keys=True, separators=(',', ':'))


def _records(value):
    """Dict items of a legacy detail list; anything that is not a list yields nothing."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def migrate_legacy(data):
    """Convert an untagged (version 1) payload to the current layout."""
    loans = []
    for item in _records(data.get('loanDetails')):
        payment = item.get('payment')
        if payment is None:
            payment = item.get('amount')
        loans.append({
            'loanId': item.get('loanId') or item.get('id'),
            'amount': item.get('amount') or 0,
            'monthlyPaymentPercent': item.get('monthlyPaymentPercent') or 0,
            'payment': payment or 0,
            'balance': item.get('balance') or item.get('remainingBalance') or 0,
            'remainingBalance': item.get('remainingBalance') or 0,
            'purpose': item.get('purpose'),
        })

    deduction_details = data.get('deductionDetails')
    if deduction_details is None:
        deduction_details = data.get('otherDeductionDetails')

    database_deductions = data.get('databaseDeductions')
    if database_deductions is None:
        database_deductions = data.get('otherDeductions') or 0

    loan_payments = data.get('loanPayments')
    if loan_payments is None:
        loan_payments = data.get('loanDeductions') or 0

    basic_salary = data.get('basicSalary') or 0
    overload_pay = data.get('overloadPay') or 0
    gross_pay = data.get('grossPay')
    if gross_pay is None:
        gross_pay = money(basic_salary) + money(overload_pay)

    return {
        'schemaVersion': SCHEMA_VERSION,
        'basicSalary': basic_salary,
        'overloadPay': overload_pay,
        'grossPay': gross_pay,
        'totalDeductions': data.get('totalDeductions') or 0,
        'attendanceDeductions': data.get('attendanceDeductions') or 0,
        'databaseDeductions': database_deductions,
        'loanPayments': loan_payments,
        'netPay': data.get('netPay') or 0,
        'deductionDetails': _records(deduction_details),
        'attendanceDeductionDetails': _records(data.get('attendanceDeductionDetails')),
        'loanDetails': loans,
        'overloadPayDetails': _records(data.get('overloadPayDetails')),
    }


def load_snapshot(raw):
    """Parse a stored snapshot (JSON text or mapping) into a BreakdownSnapshot."""
    if isinstance(raw, BreakdownSnapshot):
        return raw
    if raw is None or raw == '':
        raise SnapshotUnparseable("Breakdown snapshot is empty")
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8')
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotUnparseable(f"Breakdown snapshot is not valid JSON: {e}")
    if not isinstance(raw, dict):
        raise SnapshotUnparseable(f"Breakdown snapshot must be an object, got {type(raw).__name__}")

    try:
        if raw.get('schemaVersion') is None:
            logger.debug("Migrating legacy breakdown snapshot")
            raw = migrate_legacy(raw)
        return BreakdownSnapshot.model_validate(raw)
    except (ValidationError, ValueError, TypeError, ArithmeticError) as e:
        raise SnapshotUnparseable(f"Breakdown snapshot failed validation: {e}")
