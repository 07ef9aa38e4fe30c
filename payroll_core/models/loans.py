# models/loans.py
from sqlalchemy.orm import validates
from ..addons.extensions import BaseModel, db


class Loan(BaseModel):
    __tablename__ = 'loans'

    status_enum = db.Enum('PENDING', 'ACTIVE', 'REJECTED', 'COMPLETED', name='loan_status')

    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False)
    monthly_payment_percent = db.Column(db.Numeric(5, 2), nullable=False)
    term_months = db.Column(db.Integer, nullable=False)
    purpose = db.Column(db.String(255))
    status = db.Column(status_enum, nullable=False, default='PENDING')
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    archived_at = db.Column(db.DateTime, nullable=True)

    employee = db.relationship('Employee', back_populates='loans')

    @validates('balance')
    def validate_balance(self, key, value):
        if value is not None and self.amount is not None and value > self.amount:
            raise ValueError("Loan balance cannot exceed the loan amount")
        if value is not None and value < 0:
            raise ValueError("Loan balance cannot be negative")
        return value

    @property
    def is_payable(self):
        """Only ACTIVE, non-archived loans contribute an installment."""
        return self.status == 'ACTIVE' and self.archived_at is None

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'amount': float(self.amount) if self.amount is not None else 0,
            'balance': float(self.balance) if self.balance is not None else 0,
            'monthly_payment_percent': float(self.monthly_payment_percent) if self.monthly_payment_percent is not None else 0,
            'term_months': self.term_months,
            'purpose': self.purpose,
            'status': self.status,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'archived_at': self.archived_at.isoformat() if self.archived_at else None,
        }
