# models/payroll.py
from ..addons.extensions import db
from ..addons.exceptions import SnapshotUnparseable
from ..addons.snapshot import load_snapshot
from ..addons.period_policy import Period
from sqlalchemy import Text
import uuid
from datetime import datetime

class PayrollEntry(db.Model):
    __tablename__ = 'payroll_entries'
    __table_args__ = (
        db.UniqueConstraint('employee_id', 'period_start', 'period_end', name='uq_payroll_entry_employee_period'),
    )

    # Status enum
    status_enum = db.Enum('PENDING', 'RELEASED', 'ARCHIVED', name='payroll_entry_status')

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    # Earnings
    basic_salary = db.Column(db.Numeric(12, 2), nullable=False)
    overtime = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Denormalized totals; always derivable from breakdown_snapshot
    deductions = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_pay = db.Column(db.Numeric(12, 2), nullable=False)

    breakdown_snapshot = db.Column(Text, nullable=True)

    # Status and dates
    status = db.Column(status_enum, nullable=False, default='PENDING')
    processed_at = db.Column(db.DateTime, default=datetime.now)
    released_at = db.Column(db.DateTime)
    archived_at = db.Column(db.DateTime)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    employee = db.relationship('Employee', backref='payroll_entries', lazy=True)

    @property
    def period(self):
        return Period(self.period_start, self.period_end)

    @property
    def period_key(self):
        return self.period.key

    @property
    def gross_pay(self):
        return (self.basic_salary or 0) + (self.overtime or 0)

    @classmethod
    def for_period(cls, period, status=None):
        query = cls.query.filter_by(period_start=period.start, period_end=period.end)
        if status:
            query = query.filter(cls.status == status)
        return query.order_by(cls.employee_id).all()

    @classmethod
    def find(cls, employee_id, period):
        return cls.query.filter_by(
            employee_id=employee_id,
            period_start=period.start,
            period_end=period.end,
        ).first()

    def snapshot(self):
        """The typed breakdown record; raises SnapshotUnparseable."""
        return load_snapshot(self.breakdown_snapshot)

    def to_dict(self):
        try:
            breakdown = self.snapshot().to_payload() if self.breakdown_snapshot else None
        except SnapshotUnparseable:
            breakdown = None
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else '',
            'department': (
                self.employee.salary_profile.department
                if self.employee and self.employee.salary_profile else ''
            ),
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'period_key': self.period_key,
            'basic_salary': float(self.basic_salary) if self.basic_salary is not None else 0,
            'overtime': float(self.overtime) if self.overtime is not None else 0,
            'gross_pay': float(self.gross_pay),
            'deductions': float(self.deductions) if self.deductions is not None else 0,
            'net_pay': float(self.net_pay) if self.net_pay is not None else 0,
            'status': self.status,
            'breakdown': breakdown,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
            'released_at': self.released_at.isoformat() if self.released_at else None,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
        }

class PayrollBatch(db.Model):
    """One generation request: what was created, skipped and failed."""
    __tablename__ = 'payroll_batches'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    processed_by = db.Column(db.String(100), nullable=True)
    created_count = db.Column(db.Integer, nullable=False, default=0)
    skipped_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    total_gross_pay = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_net_pay = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    details = db.Column(db.JSON, nullable=False, default=dict)
    processed_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'processed_by': self.processed_by,
            'created_count': self.created_count,
            'skipped_count': self.skipped_count,
            'failed_count': self.failed_count,
            'total_gross_pay': float(self.total_gross_pay) if self.total_gross_pay else 0,
            'total_net_pay': float(self.total_net_pay) if self.total_net_pay else 0,
            'details': self.details or {},
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
        }
