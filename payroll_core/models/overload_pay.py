# models/overload_pay.py
from datetime import datetime
from ..addons.extensions import BaseModel, db


class OverloadPay(BaseModel):
    """Ad-hoc additional pay (overload, overtime, allowances) granted to one employee."""
    __tablename__ = 'overload_pays'

    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    type = db.Column(db.String(50), nullable=False, default='OVERLOAD')
    notes = db.Column(db.Text)
    is_approved = db.Column(db.Boolean, nullable=False, default=True)
    applied_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    archived_at = db.Column(db.DateTime, nullable=True)

    employee = db.relationship('Employee', back_populates='overload_pays')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'amount': float(self.amount) if self.amount is not None else 0,
            'type': self.type,
            'notes': self.notes,
            'is_approved': self.is_approved,
            'applied_at': self.applied_at.isoformat() if self.applied_at else None,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
        }
