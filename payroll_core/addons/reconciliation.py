# addons/reconciliation.py
"""
Reconciliation of stored payroll totals against their breakdown snapshots.

The snapshot is the ground truth. When the stored net pay of an entry
disagrees with the net pay its snapshot implies by more than the tolerance,
the stored ``deductions`` and ``net_pay`` are overwritten. The snapshot
itself is never modified.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from .extensions import db
from .exceptions import SnapshotUnparseable
from .functions import money, to_decimal
from .listeners import log_audit
from ..models import PayrollEntry

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal('0.01')


@dataclass
class ReconciliationReport:
    status: str
    inspected: int = 0
    corrections: List[dict] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)

    @property
    def corrected(self):
        return len(self.corrections)

    def to_dict(self):
        return {
            'status': self.status,
            'inspected': self.inspected,
            'corrected': self.corrected,
            'skippedCount': len(self.skipped),
            'corrections': self.corrections,
            'skipped': self.skipped,
        }


def snapshot_total_deductions(snapshot, stored_deductions=None):
    """
    Total deductions implied by a snapshot.

    Prefers the snapshot's own total; when that is missing or zero falls back
    to the stored deductions, then to the sum of the detail lines.
    """
    if snapshot.total_deductions > 0:
        return money(snapshot.total_deductions)
    stored = money(stored_deductions)
    if stored > 0:
        return stored
    return snapshot.details_total()


def expected_figures(entry):
    """(total deductions, net pay) the entry's snapshot implies; raises SnapshotUnparseable."""
    snapshot = entry.snapshot()
    total = snapshot_total_deductions(snapshot, entry.deductions)
    gross = money(entry.basic_salary) + money(entry.overtime)
    return total, money(gross - total)


def reconcile_entry(entry, tolerance=DEFAULT_TOLERANCE):
    """
    Correct one entry in the current session. Returns a description of the
    correction, or None when the stored net pay is within tolerance.
    """
    total, correct_net = expected_figures(entry)
    stored_net = money(entry.net_pay)
    if abs(stored_net - correct_net) <= to_decimal(tolerance):
        return None

    correction = {
        'entryId': entry.id,
        'employeeId': entry.employee_id,
        'periodKey': entry.period_key,
        'oldNetPay': str(stored_net),
        'newNetPay': str(correct_net),
        'oldDeductions': str(money(entry.deductions)),
        'newDeductions': str(total),
    }
    entry.deductions = total
    entry.net_pay = correct_net
    log_audit(
        'PayrollEntry', entry.id, 'reconciled',
        before={'net_pay': correction['oldNetPay'], 'deductions': correction['oldDeductions']},
        after={'net_pay': correction['newNetPay'], 'deductions': correction['newDeductions']},
        comment=f"Net pay corrected from {stored_net} to {correct_net}",
    )
    logger.info(
        f"Reconciled entry {entry.id} ({entry.period_key}): net pay {stored_net} -> {correct_net}, "
        f"deductions {correction['oldDeductions']} -> {total}"
    )
    return correction


def reconcile_entries(status='ARCHIVED', tolerance=DEFAULT_TOLERANCE):
    """
    Scan entries of a status (all entries when None) and correct those whose
    stored net pay drifted from their snapshot. Unparseable snapshots are
    reported and skipped.
    """
    report = ReconciliationReport(status=status or 'ALL')
    query = PayrollEntry.query
    if status:
        query = query.filter(PayrollEntry.status == status)
    entries = query.order_by(PayrollEntry.period_start, PayrollEntry.employee_id).all()

    try:
        for entry in entries:
            report.inspected += 1
            try:
                correction = reconcile_entry(entry, tolerance)
            except SnapshotUnparseable as e:
                logger.warning(f"Skipping entry {entry.id}: {e.message}")
                report.skipped.append({'entryId': entry.id, 'reason': e.message})
                continue
            if correction is not None:
                report.corrections.append(correction)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Reconciliation ({report.status}): {report.inspected} inspected, "
        f"{report.corrected} corrected, {len(report.skipped)} skipped"
    )
    return report
