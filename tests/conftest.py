"""
Pytest fixtures for the payroll engine test suite.

Provides:
- A Flask app built by create_app against in-memory SQLite
- A seeded roster (salary profiles, employees, deduction types, loans)
- A JWT Authorization header for the HTTP tests
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from payroll_core import create_app
from payroll_core.addons.extensions import db
from payroll_core.addons.period_policy import Period, PeriodPolicy
from payroll_core.models import (
    Deduction,
    DeductionType,
    Employee,
    Loan,
    OverloadPay,
    SalaryProfile,
)

# First half of June 2026
JUNE_FIRST_HALF = Period(date(2026, 6, 1), date(2026, 6, 15))
JUNE_SECOND_HALF = Period(date(2026, 6, 16), date(2026, 6, 30))
IN_PERIOD = datetime(2026, 6, 5, 9, 30)
BEFORE_PERIOD = datetime(2026, 5, 20, 9, 30)


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'ENVIRONMENT': 'Testing',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
        'LOG_FILE': None,
        'LOG_LEVEL': 'WARNING',
        'PAYROLL_PERIOD_CONVENTION': 'semi-monthly',
        'PAYROLL_WORKING_DAYS_PER_MONTH': 22,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity='1')
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def policy():
    return PeriodPolicy()


@pytest.fixture
def period():
    return JUNE_FIRST_HALF


@pytest.fixture
def roster(app):
    """
    Two paid personnel, one without a salary profile, one admin and one
    inactive employee, plus mandatory and optional deduction types.
    """
    secretary = SalaryProfile(name='Barangay Secretary', department='Administration', basic_salary=Decimal('12000.00'))
    tanod = SalaryProfile(name='Barangay Tanod', department='Peace and Order', basic_salary=Decimal('10000.00'))
    db.session.add_all([secretary, tanod])
    db.session.flush()

    maria = Employee(employee_id='BRGY-001', first_name='Maria', last_name='Santos', salary_profile_id=secretary.id)
    jose = Employee(employee_id='BRGY-002', first_name='Jose', last_name='Reyes', salary_profile_id=tanod.id)
    ana = Employee(employee_id='BRGY-003', first_name='Ana', last_name='Cruz')
    admin = Employee(employee_id='BRGY-ADM', first_name='Admin', last_name='User', role='ADMIN', salary_profile_id=secretary.id)
    former = Employee(employee_id='BRGY-009', first_name='Pedro', last_name='Lim', is_active=False, salary_profile_id=tanod.id)
    db.session.add_all([maria, jose, ana, admin, former])
    db.session.flush()

    sss = DeductionType(name='SSS', calculation_type='PERCENTAGE', amount=0, percentage_value=Decimal('5.00'), is_mandatory=True)
    philhealth = DeductionType(name='PhilHealth', calculation_type='FIXED', amount=Decimal('200.00'), is_mandatory=True)
    uniform = DeductionType(name='Uniform', calculation_type='FIXED', amount=Decimal('300.00'))
    late = DeductionType(name='Late Deduction', calculation_type='FIXED', amount=0)
    db.session.add_all([sss, philhealth, uniform, late])
    db.session.flush()

    db.session.add_all([
        # 12000 * 5% = 600
        Deduction(employee_id=maria.id, deduction_type_id=sss.id, amount=Decimal('600.00'), applied_at=BEFORE_PERIOD),
        Deduction(employee_id=maria.id, deduction_type_id=philhealth.id, amount=Decimal('200.00'), applied_at=BEFORE_PERIOD),
        Deduction(employee_id=maria.id, deduction_type_id=uniform.id, amount=Decimal('300.00'), applied_at=IN_PERIOD),
        Deduction(employee_id=maria.id, deduction_type_id=late.id, amount=Decimal('125.00'),
                  applied_at=IN_PERIOD, notes='Late: 1h 0m'),
        # 10000 * 5% = 500
        Deduction(employee_id=jose.id, deduction_type_id=sss.id, amount=Decimal('500.00'), applied_at=BEFORE_PERIOD),
    ])
    loan = Loan(
        employee_id=maria.id, amount=Decimal('12000.00'), balance=Decimal('12000.00'),
        monthly_payment_percent=Decimal('10.00'), term_months=10, purpose='Housing repair',
        status='ACTIVE', start_date=date(2026, 5, 1),
    )
    db.session.add(loan)
    db.session.add(OverloadPay(employee_id=jose.id, amount=Decimal('750.00'), type='OVERTIME', applied_at=IN_PERIOD))
    db.session.commit()

    return {
        'maria': maria,
        'jose': jose,
        'ana': ana,
        'admin': admin,
        'former': former,
        'sss': sss,
        'philhealth': philhealth,
        'uniform': uniform,
        'late': late,
        'loan': loan,
    }
