# addons/attendance_penalties.py
import re
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List

from .functions import money, to_decimal, ZERO

logger = logging.getLogger(__name__)

# "Late: 1h 20m", "Late: 80 min", "Late: 45m"
LATE_HOURS_PATTERN = re.compile(r'Late:\s*(\d+)\s*h(?:ours?|rs?)?\s*(\d+)\s*m', re.IGNORECASE)
LATE_MINUTES_PATTERN = re.compile(r'Late:\s*(\d+)\s*m(?:in(?:ute)?s?)?\b', re.IGNORECASE)
ABSENT_PATTERN = re.compile(r'Absent:\s*(\d+(?:\.\d+)?)\s*day', re.IGNORECASE)


def parse_late_minutes(notes):
    """Minutes late encoded in free-text notes, or None when nothing parses."""
    if not notes:
        return None
    match = LATE_HOURS_PATTERN.search(notes)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))
    match = LATE_MINUTES_PATTERN.search(notes)
    if match:
        return int(match.group(1))
    return None


def parse_absent_days(notes):
    if not notes:
        return None
    match = ABSENT_PATTERN.search(notes)
    if match:
        return Decimal(match.group(1))
    return None


def format_attendance_notes(late_minutes=0, absent_days=0):
    """Render the notes text recorded on attendance-derived deductions."""
    parts = []
    if late_minutes:
        hours, minutes = divmod(int(late_minutes), 60)
        parts.append(f"Late: {hours}h {minutes}m")
    if absent_days:
        parts.append(f"Absent: {format(to_decimal(absent_days).normalize(), 'f')} days")
    return ', '.join(parts)


@dataclass
class AttendanceSummary:
    total: Decimal = ZERO
    late_minutes: int = 0
    absent_days: Decimal = Decimal('0')
    details: List[dict] = field(default_factory=list)


class AttendancePenaltyAggregator:
    """
    Sums attendance-derived deductions already priced by the attendance
    collaborator. Rates are not decided here.
    """

    @staticmethod
    def _sort_key(instance):
        return (instance.applied_at or datetime.min, instance.id or 0)

    @classmethod
    def aggregate(cls, instances):
        summary = AttendanceSummary()
        for instance in sorted(instances, key=cls._sort_key):
            amount = money(instance.amount)
            late = parse_late_minutes(instance.notes)
            absent = parse_absent_days(instance.notes)
            if late is None and absent is None and instance.notes:
                logger.debug(f"Unparsable attendance notes on deduction {instance.id}: {instance.notes!r}")

            summary.total += amount
            summary.late_minutes += late or 0
            summary.absent_days += absent or 0
            summary.details.append({
                'id': instance.id,
                'type': instance.deduction_type.name if instance.deduction_type else 'Attendance Deduction',
                'amount': amount,
                'appliedAt': instance.applied_at.isoformat() if instance.applied_at else None,
                'notes': instance.notes,
                'lateMinutes': late,
                'absentDays': absent,
            })
        summary.total = money(summary.total)
        return summary

    @classmethod
    def daily_rate(cls, monthly_salary, working_days_per_month):
        """One full day's deduction: monthly salary / working days per month."""
        if monthly_salary is None:
            return ZERO
        return money(to_decimal(monthly_salary) / Decimal(working_days_per_month))

    @classmethod
    def price(cls, monthly_salary, working_days_per_month, late_minutes=0, absent_days=0, hours_per_day=8):
        """Price lateness and absence with the daily-rate formula used by attendance capture."""
        if monthly_salary is None:
            return ZERO
        daily = to_decimal(monthly_salary) / Decimal(working_days_per_month)
        per_minute = daily / Decimal(hours_per_day * 60)
        return money(daily * to_decimal(absent_days) + per_minute * Decimal(int(late_minutes or 0)))
