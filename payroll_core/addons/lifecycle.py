# addons/lifecycle.py
"""
Payroll entry and loan state machines.

Entry:  (absent) -> PENDING -> RELEASED -> ARCHIVED, and PENDING -> (absent)
        through the clear-pending maintenance action.
Loan:   PENDING -> ACTIVE | REJECTED, ACTIVE -> COMPLETED when the balance
        reaches zero during release.

Only PENDING entries accept field edits. The reconciliation engine is the
single exception and only touches the stored deductions/net pay.
"""
import logging
from datetime import date, datetime

from .extensions import db
from .exceptions import IllegalStateTransition, InputDataMissing, InvalidRate, RecordNotFound, SnapshotUnparseable
from .functions import add_months, money, to_decimal
from .loan_calculator import LoanCalculator
from .notifications import notify
from .payroll_calculator import PayrollCalculator
from .payroll_generator import build_for_employee
from ..models import Deduction, Loan, PayrollEntry

logger = logging.getLogger(__name__)

ABSENT = None

ENTRY_TRANSITIONS = {
    ABSENT: {'PENDING'},
    'PENDING': {'RELEASED', ABSENT},
    'RELEASED': {'ARCHIVED'},
    'ARCHIVED': set(),
}

LOAN_TRANSITIONS = {
    'PENDING': {'ACTIVE', 'REJECTED'},
    'ACTIVE': {'COMPLETED'},
    'REJECTED': set(),
    'COMPLETED': set(),
}


def assert_transition(current, target, table=ENTRY_TRANSITIONS, label='Payroll entry'):
    if target not in table.get(current, set()):
        raise IllegalStateTransition(
            f"{label} cannot move from {current or 'absent'} to {target or 'absent'}",
            details={'from': current, 'to': target},
        )


def assert_editable(entry):
    if entry.status != 'PENDING':
        raise IllegalStateTransition(
            f"Payroll entry {entry.id} is {entry.status}; only PENDING entries can be edited",
            details={'status': entry.status},
        )


def _get_entry(entry_id):
    entry = db.session.get(PayrollEntry, entry_id)
    if entry is None:
        raise RecordNotFound(f"Payroll entry {entry_id} not found")
    return entry


def _store_snapshot(entry, snapshot):
    entry.basic_salary = snapshot.basic_salary
    entry.overtime = snapshot.overload_pay
    entry.deductions = snapshot.total_deductions
    entry.net_pay = snapshot.net_pay
    entry.breakdown_snapshot = snapshot.to_json()


def _refresh_entry(entry, period, policy, include_attendance):
    """Rebuild a PENDING entry from current inputs, keeping earnings edited by hand."""
    try:
        rebuilt = build_for_employee(entry.employee, period, policy, include_attendance=include_attendance)
    except InputDataMissing as e:
        logger.warning(f"Releasing entry {entry.id} as generated: {e.message}")
        return
    snapshot = rebuilt.snapshot
    try:
        snapshot = PayrollCalculator.reapply_edits(snapshot, entry.snapshot())
    except SnapshotUnparseable as e:
        logger.warning(f"Entry {entry.id} snapshot unreadable, edits not carried over: {e.message}")
    _store_snapshot(entry, snapshot)


def edit_entry(entry_id, basic_salary=None, overtime=None):
    """Change the earnings of a PENDING entry; frozen deductions are kept and net pay follows."""
    entry = _get_entry(entry_id)
    assert_editable(entry)
    for label, value in (('basicSalary', basic_salary), ('overtime', overtime)):
        if value is not None and to_decimal(value) < 0:
            raise InvalidRate(f"{label} cannot be negative")

    snapshot = PayrollCalculator.rebalance(entry.snapshot(), basic_salary, overtime)
    try:
        _store_snapshot(entry, snapshot)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Edited payroll entry {entry.id}: basic {entry.basic_salary}, overtime {entry.overtime}")
    return entry


def _settle_loans(snapshot, now, summary):
    for detail in snapshot.loan_details:
        if detail.payment <= 0 or detail.loan_id is None:
            continue
        loan = db.session.get(Loan, detail.loan_id)
        if loan is None or not loan.is_payable:
            continue
        completed = LoanCalculator.apply_payment(loan, detail.payment, when=now)
        summary['loansSettled'] += 1
        if completed:
            summary['loansCompleted'] += 1
            logger.info(f"Loan {loan.id} paid off and marked COMPLETED")


def _archive_consumed_deductions(snapshot, now, summary):
    ids = [d.id for d in snapshot.deduction_details if not d.is_mandatory]
    ids += [d.id for d in snapshot.attendance_deduction_details]
    for deduction_id in ids:
        if deduction_id is None:
            continue
        instance = db.session.get(Deduction, deduction_id)
        if instance is None or instance.archived_at is not None:
            continue
        if instance.deduction_type is not None and instance.deduction_type.is_mandatory:
            continue
        instance.archive(now)
        summary['deductionsArchived'] += 1


def release_payroll(period, policy, include_attendance=True, refresh=True, now=None):
    """
    Release every PENDING entry of a period.

    With ``refresh`` each entry is rebuilt from current inputs before it is
    frozen; earnings edited by hand while PENDING are kept. Releasing also archives RELEASED entries of earlier periods,
    settles the frozen loan installments, archives the optional deductions
    the released snapshots consumed and notifies each employee. The whole
    release commits as one transaction.
    """
    now = now or datetime.now()
    pending = PayrollEntry.for_period(period, status='PENDING')
    if not pending:
        raise RecordNotFound(f"No pending payroll entries for {period.key}")

    summary = {
        'periodKey': period.key,
        'released': 0,
        'archivedPrevious': 0,
        'loansSettled': 0,
        'loansCompleted': 0,
        'deductionsArchived': 0,
        'totalNetPay': '0.00',
    }
    total_net = money(0)
    try:
        previous = (
            PayrollEntry.query
            .filter(PayrollEntry.status == 'RELEASED', PayrollEntry.period_end < period.start)
            .all()
        )
        for entry in previous:
            assert_transition(entry.status, 'ARCHIVED')
            entry.status = 'ARCHIVED'
            entry.archived_at = now
        summary['archivedPrevious'] = len(previous)

        for entry in pending:
            assert_transition(entry.status, 'RELEASED')
            if refresh:
                _refresh_entry(entry, period, policy, include_attendance)

            snapshot = entry.snapshot()
            entry.status = 'RELEASED'
            entry.released_at = now
            _settle_loans(snapshot, now, summary)
            _archive_consumed_deductions(snapshot, now, summary)
            notify(
                entry.employee_id,
                'Payroll Released',
                f"Your payroll for {period.start.isoformat()} to {period.end.isoformat()} "
                f"has been released. Net pay: {money(entry.net_pay)}",
                type='success',
            )
            total_net += money(entry.net_pay)
            summary['released'] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    summary['totalNetPay'] = str(money(total_net))
    logger.info(
        f"Released {summary['released']} entries for {period.key}; "
        f"archived {summary['archivedPrevious']} earlier entries"
    )
    return summary


def archive_entry(entry_id, now=None):
    entry = _get_entry(entry_id)
    assert_transition(entry.status, 'ARCHIVED')
    entry.status = 'ARCHIVED'
    entry.archived_at = now or datetime.now()
    db.session.commit()
    return entry


def archive_period(period, now=None):
    """Move a period's RELEASED entries to ARCHIVED; returns how many moved."""
    now = now or datetime.now()
    entries = PayrollEntry.for_period(period, status='RELEASED')
    try:
        for entry in entries:
            entry.status = 'ARCHIVED'
            entry.archived_at = now
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Archived {len(entries)} entries for {period.key}")
    return len(entries)


def clear_pending(period=None):
    """Delete PENDING entries (optionally for one period); returns how many were removed."""
    query = PayrollEntry.query.filter(PayrollEntry.status == 'PENDING')
    if period is not None:
        query = query.filter(
            PayrollEntry.period_start == period.start,
            PayrollEntry.period_end == period.end,
        )
    entries = query.all()
    try:
        for entry in entries:
            assert_transition(entry.status, ABSENT)
            db.session.delete(entry)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Cleared {len(entries)} pending payroll entries")
    return len(entries)


def _get_loan(loan_id):
    loan = Loan.find_or_raise(loan_id)
    return loan


def approve_loan(loan_id, start_date=None):
    loan = _get_loan(loan_id)
    assert_transition(loan.status, 'ACTIVE', LOAN_TRANSITIONS, label='Loan')
    start = start_date or date.today()
    try:
        loan.status = 'ACTIVE'
        loan.start_date = start
        loan.end_date = add_months(start, loan.term_months)
        loan.balance = loan.amount
        notify(
            loan.employee_id,
            'Loan Approved',
            f"Your loan request of {money(loan.amount)} has been approved.",
            type='success',
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Loan {loan.id} approved; runs {loan.start_date} to {loan.end_date}")
    return loan


def reject_loan(loan_id, reason=None):
    loan = _get_loan(loan_id)
    assert_transition(loan.status, 'REJECTED', LOAN_TRANSITIONS, label='Loan')
    try:
        loan.status = 'REJECTED'
        message = f"Your loan request of {money(loan.amount)} has been rejected."
        if reason:
            message = f"{message} Reason: {reason}"
        notify(loan.employee_id, 'Loan Rejected', message, type='warning')
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Loan {loan.id} rejected")
    return loan
