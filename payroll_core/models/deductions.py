# models/deductions.py
from datetime import datetime
from ..addons.extensions import BaseModel, db

# Legacy naming convention for attendance-derived deduction types
ATTENDANCE_KEYWORDS = ('Attendance', 'Late', 'Absent', 'Tardiness', 'Early', 'Partial')


class DeductionType(BaseModel):
    __tablename__ = 'deduction_types'

    calculation_type_enum = db.Enum('FIXED', 'PERCENTAGE', name='deduction_calculation_type')

    name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text)
    calculation_type = db.Column(calculation_type_enum, nullable=False, default='FIXED')
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    percentage_value = db.Column(db.Numeric(5, 2), nullable=True)
    is_mandatory = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_attendance = db.Column(db.Boolean, nullable=False, default=False)

    instances = db.relationship('Deduction', back_populates='deduction_type', lazy=True)

    @property
    def is_attendance_related(self):
        if self.is_attendance:
            return True
        return any(keyword.lower() in (self.name or '').lower() for keyword in ATTENDANCE_KEYWORDS)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'calculation_type': self.calculation_type,
            'amount': float(self.amount) if self.amount is not None else 0,
            'percentage_value': float(self.percentage_value) if self.percentage_value is not None else None,
            'is_mandatory': self.is_mandatory,
            'is_active': self.is_active,
            'is_attendance': self.is_attendance_related,
        }


class Deduction(BaseModel):
    """A deduction owed by one employee. `amount` is a stored snapshot, not recomputed on read."""
    __tablename__ = 'deductions'

    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    deduction_type_id = db.Column(db.Integer, db.ForeignKey('deduction_types.id'), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    applied_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    notes = db.Column(db.Text, nullable=True)
    archived_at = db.Column(db.DateTime, nullable=True)

    employee = db.relationship('Employee', back_populates='deductions')
    deduction_type = db.relationship('DeductionType', back_populates='instances')

    @property
    def is_active(self):
        return self.archived_at is None

    def archive(self, when=None):
        if self.archived_at is None:
            self.archived_at = when or datetime.now()

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'deduction_type_id': self.deduction_type_id,
            'type': self.deduction_type.name if self.deduction_type else None,
            'amount': float(self.amount) if self.amount is not None else 0,
            'applied_at': self.applied_at.isoformat() if self.applied_at else None,
            'notes': self.notes,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
        }
