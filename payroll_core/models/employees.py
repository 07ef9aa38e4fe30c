# models/employees.py
from ..addons.extensions import BaseModel, db


class SalaryProfile(BaseModel):
    """Personnel type: the monthly basic salary and department an employee is paid under."""
    __tablename__ = 'salary_profiles'

    name = db.Column(db.String(100), nullable=False, unique=True)
    type = db.Column(db.String(50), nullable=True)
    department = db.Column(db.String(100), nullable=True)
    basic_salary = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True)

    employees = db.relationship('Employee', back_populates='salary_profile', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'department': self.department,
            'basic_salary': float(self.basic_salary) if self.basic_salary is not None else 0,
            'is_active': self.is_active,
        }


class Employee(BaseModel):
    __tablename__ = 'employees'

    role_enum = db.Enum('PERSONNEL', 'ADMIN', name='employee_role_enum')

    # Custom Employee ID
    employee_id = db.Column(db.String(20), unique=True, nullable=False)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=True)

    # Employment Details
    role = db.Column(role_enum, nullable=False, default='PERSONNEL')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    salary_profile_id = db.Column(db.Integer, db.ForeignKey('salary_profiles.id'), nullable=True)

    # Relationships
    salary_profile = db.relationship('SalaryProfile', back_populates='employees')
    deductions = db.relationship('Deduction', back_populates='employee', lazy=True)
    loans = db.relationship('Loan', back_populates='employee', lazy=True)
    overload_pays = db.relationship('OverloadPay', back_populates='employee', lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def monthly_salary(self):
        """Monthly basic salary, or None when the employee has no salary profile."""
        if self.salary_profile is None:
            return None
        return self.salary_profile.basic_salary

    @classmethod
    def active_personnel(cls):
        return (
            cls.query
            .filter_by(is_active=True, role='PERSONNEL')
            .order_by(cls.id)
            .all()
        )

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'role': self.role,
            'is_active': self.is_active,
            'salary_profile': self.salary_profile.to_dict() if self.salary_profile else None,
        }
