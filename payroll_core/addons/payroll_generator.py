# addons/payroll_generator.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError

from .extensions import db
from .exceptions import GenerationNotConfirmed, InputDataMissing, DuplicateGeneration, PayrollError, RecordNotFound
from .functions import money, ZERO
from .payroll_calculator import PayrollCalculator
from .period_policy import Period
from ..models import Employee, PayrollEntry, PayrollBatch

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    period: Period
    created: List[PayrollEntry] = field(default_factory=list)
    regenerated: List[PayrollEntry] = field(default_factory=list)
    skipped: List[dict] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)
    batch: PayrollBatch = None

    @property
    def entries(self):
        return self.created + self.regenerated

    def to_dict(self):
        return {
            'periodKey': self.period.key,
            'periodStart': self.period.start.isoformat(),
            'periodEnd': self.period.end.isoformat(),
            'createdCount': len(self.created),
            'regeneratedCount': len(self.regenerated),
            'skippedCount': len(self.skipped),
            'failedCount': len(self.failed),
            'entries': [entry.to_dict() for entry in self.entries],
            'skipped': self.skipped,
            'failed': self.failed,
            'batchId': self.batch.id if self.batch else None,
        }


def build_for_employee(employee, period, policy, recompute=False, include_attendance=True):
    """Run the entry builder over an employee's current deductions, loans and additional pay."""
    if employee.salary_profile is None:
        raise InputDataMissing(
            f"Employee {employee.employee_id} has no salary profile",
            details={'employeeId': employee.id},
        )
    return PayrollCalculator.build_entry(
        PayrollCalculator.monthly_salary_for(employee),
        period,
        policy,
        deductions=employee.deductions,
        loans=employee.loans,
        overload_pays=employee.overload_pays,
        recompute=recompute,
        include_attendance=include_attendance,
    )


def apply_computation(entry, computation):
    entry.basic_salary = computation.basic_salary
    entry.overtime = computation.overtime
    entry.deductions = computation.total_deductions
    entry.net_pay = computation.net_pay
    entry.breakdown_snapshot = computation.snapshot_json
    return entry


def _skip(result, employee, reason):
    logger.warning(f"Skipped employee {employee.employee_id}: {reason}")
    result.skipped.append({
        'employeeId': employee.id,
        'employeeCode': employee.employee_id,
        'name': employee.full_name,
        'reason': reason,
    })


def generate_payroll(period, policy, confirmed=False, force=False, performed_by=None):
    """
    Create one PENDING entry per active personnel employee for a period.

    Requires ``confirmed``. An employee who already has an entry for the
    exact period is skipped; with ``force`` a PENDING entry is rebuilt in
    place, while RELEASED and ARCHIVED entries are never overwritten.
    Each employee is committed separately, so one failure does not undo the
    entries already written.
    """
    if not confirmed:
        raise GenerationNotConfirmed("Payroll generation must be explicitly confirmed")

    result = GenerationResult(period=period)
    employees = Employee.active_personnel()
    logger.info(f"Generating payroll for {period.key}: {len(employees)} employee(s), force={force}")

    for employee in employees:
        try:
            existing = PayrollEntry.find(employee.id, period)
            if existing is not None and not force:
                _skip(result, employee, f"Entry already exists for {period.key} ({existing.status})")
                continue
            if existing is not None and existing.status != 'PENDING':
                _skip(result, employee, f"{existing.status} entry for {period.key} cannot be regenerated")
                continue

            computation = build_for_employee(employee, period, policy)

            if existing is not None:
                apply_computation(existing, computation)
                existing.processed_at = datetime.now()
                db.session.commit()
                result.regenerated.append(existing)
                logger.info(f"Regenerated entry {existing.id} for {employee.employee_id}: net {computation.net_pay}")
                continue

            entry = PayrollEntry(
                employee_id=employee.id,
                period_start=period.start,
                period_end=period.end,
                status='PENDING',
                processed_at=datetime.now(),
            )
            apply_computation(entry, computation)
            db.session.add(entry)
            db.session.commit()
            result.created.append(entry)
            logger.info(f"Created entry {entry.id} for {employee.employee_id}: net {computation.net_pay}")

        except InputDataMissing as e:
            _skip(result, employee, e.message)
        except IntegrityError:
            db.session.rollback()
            _skip(result, employee, DuplicateGeneration(
                f"Another entry for {period.key} was written concurrently"
            ).message)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Failed to generate payroll for {employee.employee_id}: {e}")
            result.failed.append({
                'employeeId': employee.id,
                'employeeCode': employee.employee_id,
                'name': employee.full_name,
                'reason': str(e),
            })

    result.batch = record_batch(result, performed_by)
    logger.info(
        f"Payroll {period.key}: {len(result.created)} created, {len(result.regenerated)} regenerated, "
        f"{len(result.skipped)} skipped, {len(result.failed)} failed"
    )
    return result


def record_batch(result, performed_by=None):
    entries = result.entries
    batch = PayrollBatch(
        period_start=result.period.start,
        period_end=result.period.end,
        processed_by=str(performed_by) if performed_by is not None else None,
        created_count=len(entries),
        skipped_count=len(result.skipped),
        failed_count=len(result.failed),
        total_gross_pay=money(sum((entry.gross_pay for entry in entries), ZERO)),
        total_net_pay=money(sum((entry.net_pay for entry in entries), ZERO)),
        details={'skipped': result.skipped, 'failed': result.failed},
    )
    try:
        db.session.add(batch)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return batch


def get_entry(employee_id, period_key):
    try:
        period = Period.from_key(period_key)
    except ValueError as e:
        raise PayrollError(str(e))
    entry = PayrollEntry.find(employee_id, period)
    if entry is None:
        raise RecordNotFound(f"No payroll entry for employee {employee_id} in {period.key}")
    return entry
