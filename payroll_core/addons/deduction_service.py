# addons/deduction_service.py
import logging
from datetime import datetime

from .extensions import db
from .exceptions import InvalidRate, RecordNotFound
from .deduction_rules import DeductionRuleEvaluator
from .attendance_penalties import AttendancePenaltyAggregator, format_attendance_notes
from .functions import money, to_decimal
from ..models import Deduction, DeductionType, Employee

logger = logging.getLogger(__name__)

ATTENDANCE_TYPE_NAME = 'Attendance Deduction'

EDITABLE_FIELDS = (
    'name', 'description', 'calculation_type', 'amount',
    'percentage_value', 'is_mandatory', 'is_active', 'is_attendance',
)
RATE_FIELDS = ('calculation_type', 'amount', 'percentage_value')


def recalculate_instances(definition):
    """
    Recompute every non-archived instance of a deduction type from its
    current rate. Runs inside the caller's transaction; returns the number
    of instances whose amount changed.
    """
    instances = (
        Deduction.query
        .filter(Deduction.deduction_type_id == definition.id, Deduction.archived_at.is_(None))
        .order_by(Deduction.id)
        .with_for_update()
        .all()
    )
    changed = 0
    for instance in instances:
        salary = instance.employee.monthly_salary if instance.employee else None
        amount = DeductionRuleEvaluator.evaluate(definition, salary)
        if money(instance.amount) != amount:
            instance.amount = amount
            changed += 1
    return changed


def update_deduction_type(type_id, changes):
    """
    Apply an edit to a deduction type and cascade a rate change to its
    active instances. The edit and the cascade commit together or not at all.
    """
    try:
        definition = (
            db.session.query(DeductionType)
            .filter(DeductionType.id == type_id)
            .with_for_update()
            .first()
        )
        if definition is None:
            raise RecordNotFound(f"Deduction type {type_id} not found")

        changes = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        calculation_type = changes.get('calculation_type', definition.calculation_type)
        amount = changes.get('amount', definition.amount)
        percentage_value = changes.get('percentage_value', definition.percentage_value)
        DeductionRuleEvaluator.validate_definition(calculation_type, amount, percentage_value)

        rate_changed = False
        for key, value in changes.items():
            if key in ('amount', 'percentage_value') and value is not None:
                value = to_decimal(value)
            if key in RATE_FIELDS and getattr(definition, key) != value:
                rate_changed = True
            setattr(definition, key, value)

        recalculated = 0
        if rate_changed and definition.is_attendance_related:
            logger.info(f"Deduction type {definition.id} is attendance-related; instances keep their priced amounts")
        elif rate_changed:
            recalculated = recalculate_instances(definition)

        db.session.commit()
        logger.info(f"Deduction type {definition.id} ({definition.name}) updated; {recalculated} instance(s) recalculated")
        return definition, recalculated
    except Exception:
        db.session.rollback()
        raise


def apply_mandatory_deductions(employees=None, applied_at=None):
    """Give every active personnel employee one instance of each active mandatory type they lack."""
    applied_at = applied_at or datetime.now()
    employees = Employee.active_personnel() if employees is None else employees
    definitions = (
        DeductionType.query
        .filter_by(is_mandatory=True, is_active=True)
        .order_by(DeductionType.id)
        .all()
    )
    created = []
    try:
        for employee in employees:
            held = {
                d.deduction_type_id for d in employee.deductions if d.archived_at is None
            }
            for definition in definitions:
                if definition.id in held:
                    continue
                instance = Deduction(
                    employee_id=employee.id,
                    deduction_type_id=definition.id,
                    amount=DeductionRuleEvaluator.evaluate(definition, employee.monthly_salary),
                    applied_at=applied_at,
                    notes=f"Mandatory deduction: {definition.name}",
                )
                db.session.add(instance)
                created.append(instance)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Applied {len(created)} mandatory deduction(s) to {len(employees)} employee(s)")
    return created


def attendance_deduction_type():
    definition = DeductionType.query.filter_by(name=ATTENDANCE_TYPE_NAME).first()
    if definition is None:
        definition = DeductionType(
            name=ATTENDANCE_TYPE_NAME,
            description='Deductions for lateness and absences',
            calculation_type='FIXED',
            amount=0,
            is_mandatory=False,
            is_attendance=True,
        )
        db.session.add(definition)
        db.session.flush()
    return definition


def record_attendance_deduction(employee_id, policy, amount=None, late_minutes=0, absent_days=0,
                                applied_at=None, notes=None):
    """
    Store an attendance-derived deduction. When no amount is given the
    penalty is priced from the employee's daily rate.
    """
    employee = Employee.find_or_raise(employee_id)
    if (late_minutes or 0) < 0 or to_decimal(absent_days) < 0:
        raise InvalidRate("Late minutes and absent days cannot be negative")

    if amount is None:
        amount = AttendancePenaltyAggregator.price(
            employee.monthly_salary, policy.working_days_per_month, late_minutes, absent_days
        )
    amount = money(amount)
    if amount < 0:
        raise InvalidRate("Attendance deduction amount cannot be negative")

    text = format_attendance_notes(late_minutes, absent_days)
    if notes:
        text = f"{text} ({notes})" if text else notes

    try:
        instance = Deduction(
            employee_id=employee.id,
            deduction_type_id=attendance_deduction_type().id,
            amount=amount,
            applied_at=applied_at or datetime.now(),
            notes=text or None,
        )
        db.session.add(instance)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Attendance deduction {amount} recorded for employee {employee.employee_id}")
    return instance


def archive_deduction(deduction_id):
    """Archive a deduction instance; persisted snapshots that captured it are not touched."""
    instance = Deduction.find_or_raise(deduction_id)
    instance.archive()
    db.session.commit()
    return instance
